"""Decoding, repair and validation of introspection payloads."""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from erd_core.errors import MetadataValidationError
from erd_core.issues import Issue
from erd_core.schema import METADATA_SCHEMA, load_schema, schema_issues

logger = logging.getLogger(__name__)

REQUIRED_KEYS = ("fk_info", "pk_info", "columns", "indexes", "tables")
OPTIONAL_LIST_KEYS = ("views", "custom_types", "check_constraints")

_EMPTY = "\x00EMPTY\x00"
_QUOTE = "\x00QUOTE\x00"

# (pattern, replacement) applied in order by fix_metadata_json.
_REPAIRS: List[Tuple[re.Pattern, str]] = [
    (re.compile(r":\"\"([^\"]+)\"\""), r':"\1"'),
    (re.compile(r"\"\"(\w+)\"\""), r'"\1"'),
    (re.compile(r"^\s+|\s+$"), ""),
    (re.compile(r"^\"|\"$"), ""),
    (re.compile(r"^'|'$"), ""),
    (re.compile(r"\"\"\"\""), '""'),
    (re.compile(r"\"\"\"([^\",}]+)\"\"\""), r'"\1"'),
    (re.compile(r"\"\"([^\",}]+)\"\""), r'"\1"'),
    (re.compile(r"'\"([^\"]+)\"'"), r'\\"\1\\"'),
    (re.compile(r"'([^']+)'::\"([^\"]+)\""), "'\\1'::\\\\\"\\2\\\\\""),
    (re.compile(r"\"precision\": \"null\""), '"precision": null'),
    (re.compile(r"\"nullable\": \"false\""), '"nullable": false'),
    (re.compile(r"\"nullable\": \"true\""), '"nullable": true'),
]


def fix_metadata_json(text: str) -> str:
    """Repair the usual copy/paste damage to a metadata payload.

    Handles backslash-escaped quotes, literal ``\\n`` sequences, shell noise
    around the object and doubled quotes. Valid JSON that contains none of
    these comes back unchanged apart from surrounding whitespace and newlines.
    """
    text = re.sub(r"\"default\": \"?'?\[[^\]]*\]'?\"?(\\\")?(,|\})", r'"default": null\2', text, flags=re.DOTALL)
    text = text.strip()
    text = re.sub(r"\\[rnt]", "", text)
    text = text.replace('\\"', '"').replace("\\\\", "\\")
    text = re.sub(r"^[^{]*", "", text)
    text = re.sub(r"\}[^}]*$", "}", text)
    for pattern, replacement in _REPAIRS:
        text = pattern.sub(replacement, text)
    text = text.replace('\\"', _QUOTE)
    text = re.sub(r"(:\s*)\"\"(?=\s*[,}])", r"\1" + _EMPTY, text)
    text = text.replace('""', '"')
    text = text.replace(_QUOTE, '\\"').replace(_EMPTY, '""')
    return text.replace("\n", "")


def load_payload(source: Union[str, bytes, Dict[str, Any]]) -> Dict[str, Any]:
    """Decode a payload, repairing it when plain JSON decoding fails."""
    if isinstance(source, dict):
        return source
    if isinstance(source, bytes):
        source = source.decode("utf-8")
    try:
        data = json.loads(source)
    except json.JSONDecodeError:
        logger.debug("payload is not valid JSON; attempting repair")
        try:
            data = json.loads(fix_metadata_json(source))
        except json.JSONDecodeError as exc:
            raise MetadataValidationError(
                [Issue(severity="error", code="INVALID_JSON", message=f"Payload is not valid JSON: {exc.msg}")]
            ) from exc
    if not isinstance(data, dict):
        raise MetadataValidationError(
            [Issue(severity="error", code="INVALID_JSON", message="Payload must be a JSON object.")]
        )
    return data


def payload_issues(payload: Any) -> List[Issue]:
    return schema_issues(payload, load_schema(METADATA_SCHEMA), code="METADATA_INVALID")


def validate_payload(payload: Dict[str, Any]) -> None:
    issues = payload_issues(payload)
    if issues:
        raise MetadataValidationError(issues)


def is_metadata_payload(text: str) -> bool:
    """True when ``text`` decodes to an object carrying every required array."""
    try:
        data = json.loads(text)
    except (TypeError, json.JSONDecodeError):
        return False
    return isinstance(data, dict) and all(isinstance(data.get(key), list) for key in REQUIRED_KEYS)


def _schema_name(value: Optional[str]) -> str:
    return value or "default"


def select_tables(payload: Dict[str, Any], selected: Iterable[str]) -> Dict[str, Any]:
    """Keep only the named tables and views, plus the rows that belong to them.

    ``selected`` holds ``schema.table`` names; a ``table:`` or ``view:`` prefix
    is ignored and tables without schema are addressed as ``default.table``.
    """
    wanted = {re.sub(r"^(?:table:|view:)", "", name) for name in selected}

    def keep(schema: Optional[str], table: Optional[str]) -> bool:
        name = table or ""
        if schema and name.startswith(schema + "."):
            name = name[len(schema) + 1:]
        return f"{_schema_name(schema)}.{name}" in wanted

    result = dict(payload)
    result["tables"] = [t for t in payload.get("tables") or [] if keep(t.get("schema"), t.get("table"))]
    result["views"] = [v for v in payload.get("views") or [] if keep(v.get("schema"), v.get("view_name"))]
    for key in ("columns", "indexes", "pk_info", "check_constraints"):
        if key in payload:
            result[key] = [row for row in payload.get(key) or [] if keep(row.get("schema"), row.get("table"))]
    # A foreign key survives only when both ends survive.
    result["fk_info"] = [
        fk
        for fk in payload.get("fk_info") or []
        if keep(fk.get("schema"), fk.get("table"))
        and keep(fk.get("reference_schema") or fk.get("schema"), fk.get("reference_table"))
    ]
    return result
