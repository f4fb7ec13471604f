import json
from pathlib import Path
from typing import Any, Dict, List

from jsonschema import Draft202012Validator

from erd_core.issues import Issue

SCHEMA_DIR = Path(__file__).resolve().parent / "schemas"

METADATA_SCHEMA = "metadata.schema.json"
DIAGRAM_SCHEMA = "diagram.schema.json"
CONFIG_SCHEMA = "config.schema.json"


def load_schema(schema_path: str) -> Dict[str, Any]:
    """Load a JSON Schema by path, or by file name from the bundled schemas."""
    path = Path(schema_path)
    if not path.exists():
        path = SCHEMA_DIR / schema_path
    if not path.exists():
        raise FileNotFoundError(f"Schema file not found: {schema_path}")
    with path.open("r", encoding="utf-8") as handle:
        return json.load(handle)


def _to_json_path(parts: List[Any]) -> str:
    if not parts:
        return "/"
    return "/" + "/".join(str(part) for part in parts)


def schema_issues(document: Any, schema: Dict[str, Any], code: str = "SCHEMA_VALIDATION_FAILED") -> List[Issue]:
    validator = Draft202012Validator(schema)
    issues: List[Issue] = []

    for error in sorted(validator.iter_errors(document), key=lambda e: [str(p) for p in e.absolute_path]):
        issues.append(
            Issue(
                severity="error",
                code=code,
                message=error.message,
                path=_to_json_path(list(error.absolute_path)),
            )
        )

    return issues
