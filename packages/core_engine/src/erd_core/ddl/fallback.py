"""Regex extraction used when the grammar rejects a statement.

Only table and column skeletons are recovered. Constraints are kept when a
simple pattern spots them and dropped otherwise. A column list missing its
closing parenthesis is read to the end of the statement, but a malformed
CHECK expression rejects the whole table.
"""

from __future__ import annotations

import logging
import re
from typing import List, Optional, Tuple

from erd_core.ddl.identifiers import column_list, split_qualified_name, split_top_level, unquote
from erd_core.ddl.specs import CheckSpec, ColumnSpec, Extraction, ForeignKeySpec, TableSpec
from erd_core.ddl.statements import Statement

logger = logging.getLogger(__name__)

CREATE_TABLE_HEAD_RE = re.compile(
    r"create\s+(?:or\s+replace\s+)?(?:(?:global\s+|local\s+)?(?:temporary|temp)\s+)?table\s+"
    r"(?:if\s+not\s+exists\s+)?(?P<name>(?:[\w$]+|\"[^\"]+\"|`[^`]+`|\[[^\]]+\])"
    r"(?:\s*\.\s*(?:[\w$]+|\"[^\"]+\"|`[^`]+`|\[[^\]]+\]))*)\s*\(",
    flags=re.IGNORECASE,
)
_IDENT = r"(?:\"[^\"]+\"|`[^`]+`|\[[^\]]+\]|[A-Za-z_][\w$]*)"
_MULTIWORD_TYPES = (
    r"double\s+precision",
    r"character\s+varying",
    r"national\s+character\s+varying",
    r"timestamp\s+with(?:out)?\s+time\s+zone",
    r"time\s+with(?:out)?\s+time\s+zone",
    r"bit\s+varying",
)
COLUMN_RE = re.compile(
    rf"^\s*(?P<name>{_IDENT})\s+"
    rf"(?P<type>(?:{'|'.join(_MULTIWORD_TYPES)}|[\w$.]+)(?:\s*\([^)]*\))?(?:\s*\[\s*\])?"
    r"(?:\s+with(?:out)?\s+time\s+zone)?)"
    r"(?P<rest>.*)$",
    flags=re.IGNORECASE | re.DOTALL,
)
REFERENCES_RE = re.compile(
    rf"references\s+(?P<table>{_IDENT}(?:\s*\.\s*{_IDENT})?)\s*(?:\((?P<columns>[^)]*)\))?",
    flags=re.IGNORECASE,
)
FOREIGN_KEY_RE = re.compile(
    r"foreign\s+key\s*\((?P<local>[^)]*)\)\s*" + REFERENCES_RE.pattern,
    flags=re.IGNORECASE,
)
DEFAULT_RE = re.compile(r"\bdefault\s+('(?:[^']|'')*'|\([^)]*\)|[^\s,]+)", flags=re.IGNORECASE)
CHECK_RE = re.compile(r"\bcheck\s*\(", flags=re.IGNORECASE)
CONSTRAINT_NAME_RE = re.compile(rf"^\s*constraint\s+(?P<name>{_IDENT})\s+", flags=re.IGNORECASE)
_KEYWORD_HEAD_RE = re.compile(
    r"(?:primary|foreign|unique|check|constraint|key|index|fulltext|spatial|exclude|period)\b",
    flags=re.IGNORECASE,
)
_DANGLING_TAIL_RE = re.compile(r"(?:[<>=!+\-*/%,]|\b(?:and|or|not|in|like|between|is))\s*$", flags=re.IGNORECASE)


def _balanced_body(text: str, open_at: int) -> Optional[str]:
    """Return the text between the parenthesis at ``open_at`` and its match."""
    depth = 0
    quote = None
    for pos in range(open_at, len(text)):
        char = text[pos]
        if quote:
            if char == quote:
                quote = None
            continue
        if char in ("'", '"', "`"):
            quote = char
        elif char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
            if depth == 0:
                return text[open_at + 1:pos]
    return None


def _parenthesized(text: str, start: int) -> Optional[str]:
    open_at = text.find("(", start)
    if open_at == -1:
        return None
    return _balanced_body(text, open_at)


def _well_formed_expression(expression: Optional[str]) -> bool:
    if expression is None:
        return False
    stripped = expression.strip()
    return bool(stripped) and not _DANGLING_TAIL_RE.search(stripped)


def _check_expressions(definition: str) -> Tuple[List[str], bool]:
    """Find CHECK (...) bodies; the flag is False if any is malformed."""
    found = []
    for match in CHECK_RE.finditer(definition):
        body = _parenthesized(definition, match.end() - 1)
        if not _well_formed_expression(body):
            return found, False
        found.append(body.strip())
    return found, True


def _foreign_key(match: re.Match, columns: List[str], name: Optional[str]) -> ForeignKeySpec:
    ref_schema, ref_table = split_qualified_name(match.group("table"))
    ref_columns = column_list(match.group("columns")) if match.group("columns") else []
    return ForeignKeySpec(columns=columns, ref_table=ref_table, ref_schema=ref_schema, ref_columns=ref_columns, name=name)


class FallbackStrategy:
    """Best-effort skeleton extractor.

    Never raises; returns an empty Extraction when nothing is recoverable.
    """

    name = "fallback"

    def extract(self, statement: Statement) -> Extraction:
        head = CREATE_TABLE_HEAD_RE.search(statement.text)
        if head is None:
            return Extraction()
        body = _balanced_body(statement.text, head.end() - 1)
        if body is None:
            # Unterminated column list: read up to the end of the statement.
            logger.debug("fallback: unbalanced column list at line %d", statement.line)
            body = statement.text[head.end():].rstrip().rstrip(";")

        raw_name = head.group("name").rstrip()
        schema, name = split_qualified_name(raw_name)
        spec = TableSpec(name=name, schema=schema, quoted=raw_name[-1] in "\"`]")
        for definition in split_top_level(body):
            if not self._definition(definition, spec):
                logger.debug("fallback: malformed definition in %s at line %d", name, statement.line)
                return Extraction()

        if not spec.columns:
            return Extraction()
        return Extraction(
            specs=[spec],
            warnings=[f"Recovered table {spec.name} with fallback extraction (line {statement.line})."],
        )

    def _definition(self, definition: str, spec: TableSpec) -> bool:
        checks, ok = _check_expressions(definition)
        if not ok:
            return False

        constraint_name = None
        named = CONSTRAINT_NAME_RE.match(definition)
        text = definition
        if named:
            constraint_name = unquote(named.group("name"))
            text = definition[named.end():]
        lowered = text.lower().lstrip()

        if _KEYWORD_HEAD_RE.match(lowered):
            if lowered.startswith("primary"):
                cols = _parenthesized(text, 0)
                if cols:
                    spec.primary_key.extend(column_list(cols))
            elif lowered.startswith("foreign"):
                fk = FOREIGN_KEY_RE.search(text)
                if fk:
                    spec.foreign_keys.append(_foreign_key(fk, column_list(fk.group("local")), constraint_name))
            elif lowered.startswith("unique"):
                cols = _parenthesized(text, 0)
                if cols:
                    spec.unique_keys.append(column_list(cols))
            elif lowered.startswith("check"):
                spec.checks.extend(CheckSpec(expression=c, name=constraint_name) for c in checks)
            return True

        match = COLUMN_RE.match(definition)
        if not match:
            return True

        rest = match.group("rest")
        rest_lower = rest.lower()
        column = ColumnSpec(name=unquote(match.group("name")), type=match.group("type").strip())
        column.primary_key = "primary key" in rest_lower
        column.nullable = "not null" not in rest_lower and not column.primary_key
        column.unique = bool(re.search(r"\bunique\b", rest_lower))
        column.increment = bool(re.search(r"\b(?:auto_increment|autoincrement|identity)\b", rest_lower))

        default = DEFAULT_RE.search(rest)
        if default:
            column.default = default.group(1)
        if checks:
            column.check = checks[0]

        ref = REFERENCES_RE.search(rest)
        if ref:
            column.references = _foreign_key(ref, [column.name], None)
        spec.columns.append(column)
        return True
