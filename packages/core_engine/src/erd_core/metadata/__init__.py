from erd_core.metadata.adapters import ColumnAdapter, get_adapter
from erd_core.metadata.normalizer import NormalizeResult, normalize
from erd_core.metadata.payload import (
    REQUIRED_KEYS,
    fix_metadata_json,
    is_metadata_payload,
    load_payload,
    payload_issues,
    select_tables,
    validate_payload,
)

__all__ = [
    "REQUIRED_KEYS",
    "ColumnAdapter",
    "NormalizeResult",
    "fix_metadata_json",
    "get_adapter",
    "is_metadata_payload",
    "load_payload",
    "normalize",
    "payload_issues",
    "select_tables",
    "validate_payload",
]
