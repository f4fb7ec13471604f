from erd_core.builder import BuildResult, build, validate
from erd_core.classifier import ContentType, classify, classify_or_raise
from erd_core.config import ImportConfig, load_config
from erd_core.data_types import compatible, normalize_type_id, parse_type
from erd_core.dbml import DbmlResult, parse_dbml
from erd_core.ddl import get_parser, parse_ddl
from erd_core.diffing import Change, diff, summarize
from erd_core.engines import Engine, parse_engine
from erd_core.errors import (
    ClassificationAmbiguous,
    ConfigError,
    DBMLSyntaxError,
    ErdError,
    MetadataValidationError,
    ReferentialIntegrityError,
    SQLSyntaxError,
    TypeIncompatibility,
)
from erd_core.importer import ImportResult, import_text
from erd_core.loader import diagram_to_text, dump_diagram, load_diagram, load_document
from erd_core.metadata import fix_metadata_json, normalize, select_tables
from erd_core.model import DataType, Diagram
from erd_core.schema import load_schema, schema_issues

__all__ = [
    "BuildResult",
    "Change",
    "ClassificationAmbiguous",
    "ConfigError",
    "ContentType",
    "DBMLSyntaxError",
    "DataType",
    "DbmlResult",
    "Diagram",
    "Engine",
    "ErdError",
    "ImportConfig",
    "ImportResult",
    "MetadataValidationError",
    "ReferentialIntegrityError",
    "SQLSyntaxError",
    "TypeIncompatibility",
    "build",
    "classify",
    "classify_or_raise",
    "compatible",
    "diagram_to_text",
    "diff",
    "dump_diagram",
    "fix_metadata_json",
    "get_parser",
    "import_text",
    "load_config",
    "load_diagram",
    "load_document",
    "load_schema",
    "normalize",
    "normalize_type_id",
    "parse_ddl",
    "parse_dbml",
    "parse_engine",
    "parse_type",
    "schema_issues",
    "select_tables",
    "summarize",
    "validate",
]
