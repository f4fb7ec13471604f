"""DBML import backed by pydbml."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set, Tuple

import pydbml.exceptions as dbml_exceptions
from pydbml import PyDBML
from pydbml.classes import Enum as DbmlEnum
from pyparsing import ParseBaseException

from erd_core.builder import build
from erd_core.data_types import parse_type
from erd_core.engines import Engine
from erd_core.errors import DBMLSyntaxError
from erd_core.model import (
    ASC,
    MANY,
    ONE,
    CustomType,
    DataType,
    Diagram,
    Field,
    Index,
    IndexColumn,
    Relationship,
    Table,
)

logger = logging.getLogger(__name__)

DIAGRAM_NAME = "DBML Import"
DEFAULT_SCHEMA = "public"

DBML_TYPE_ALIASES = {
    "bool": "boolean",
    "number": "numeric",
    "string": "varchar",
    "datetime": "timestamp",
    "integer": "int",
}

# ref operator -> (source is the right-hand column, source cardinality, target cardinality)
REF_ORIENTATION: Dict[str, Tuple[bool, str, str]] = {
    ">": (True, ONE, MANY),
    "<": (False, ONE, MANY),
    "-": (True, ONE, ONE),
    "<>": (True, MANY, MANY),
}

_TABLE_GROUP_RE = re.compile(r"^\s*TableGroup\s+[^{]*\{[^}]*\}", re.MULTILINE | re.IGNORECASE)
_NOTE_BLOCK_RE = re.compile(r"^\s*Note\s+\w+\s*\{[^}]*\}", re.MULTILINE | re.IGNORECASE)
_TABLE_HEAD_RE = re.compile(r"^\s*Table\s+(?P<name>(?:\"[^\"]+\"|[\w.])+)", re.IGNORECASE)
_ARRAY_COLUMN_RE = re.compile(
    r"^(?P<indent>\s*)(?P<name>\"[^\"]+\"|\w+)\s+(?P<type>[\w.]+(?:\([^)]*\))?)\s*\[\]"
)

_PYDBML_ERRORS = tuple(
    getattr(dbml_exceptions, name)
    for name in ("DBMLError", "TableNotFoundError", "ColumnNotFoundError", "AttributeMissingError")
    if hasattr(dbml_exceptions, name)
)


@dataclass
class DbmlResult:
    diagram: Diagram
    warnings: List[str] = field(default_factory=list)


def _blank_out(match: re.Match) -> str:
    return "\n" * match.group(0).count("\n")


def preprocess_dbml(text: str) -> Tuple[str, List[str]]:
    """Strip blocks the importer ignores and degrade array columns.

    Line breaks are preserved so grammar errors keep their line numbers.
    """
    warnings: List[str] = []
    text = _TABLE_GROUP_RE.sub(_blank_out, text)
    text = _NOTE_BLOCK_RE.sub(_blank_out, text)

    lines = []
    table = None
    for line in text.split("\n"):
        head = _TABLE_HEAD_RE.match(line)
        if head:
            table = head.group("name").replace('"', "")
        array = _ARRAY_COLUMN_RE.match(line)
        if array:
            column = array.group("name").strip('"')
            element = array.group("type")
            owner = f"{table}.{column}" if table else column
            warnings.append(f"Column {owner} is an array ({element}[]); imported as {element}.")
            line = f"{array.group('indent')}{array.group('name')} {element}" + line[array.end():]
        lines.append(line)
    return "\n".join(lines), warnings


def _schema(value: Optional[str]) -> Optional[str]:
    if not value or value == DEFAULT_SCHEMA:
        return None
    return value


def _note(note: Any) -> Optional[str]:
    if note is None:
        return None
    text = getattr(note, "text", note)
    return str(text) if text else None


def _default(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(getattr(value, "text", value))


def _data_type(type_text: str) -> DataType:
    data_type = parse_type(type_text).data_type
    data_type.id = DBML_TYPE_ALIASES.get(data_type.id, data_type.id)
    return data_type


class _DbmlConverter:
    def __init__(self) -> None:
        self.tables: List[Table] = []
        self.custom_types: List[CustomType] = []
        self.relationships: List[Relationship] = []
        self.columns: Dict[int, Tuple[Table, Field]] = {}
        self.warnings: List[str] = []
        self.enum_names: Set[str] = set()

    def convert_enum(self, enum: Any) -> None:
        self.enum_names.add(enum.name)
        self.custom_types.append(
            CustomType(
                name=enum.name,
                schema=_schema(getattr(enum, "schema", None)),
                values=[item.name for item in enum.items],
            )
        )

    def convert_table(self, source: Any) -> None:
        table = Table(
            name=source.name,
            schema=_schema(getattr(source, "schema", None)),
            comment=_note(source.note),
        )
        for column in source.columns:
            enum_type = None
            type_name = column.type.name if isinstance(column.type, DbmlEnum) else str(column.type)
            if type_name in self.enum_names:
                enum_type = type_name
                data_type = DataType(id="varchar")
            else:
                data_type = _data_type(type_name)
            primary_key = bool(column.pk)
            converted = Field(
                name=column.name,
                type=data_type,
                nullable=not (column.not_null or primary_key),
                primary_key=primary_key,
                unique=bool(column.unique),
                default=_default(column.default),
                comment=_note(column.note),
                enum_type=enum_type,
                increment=bool(getattr(column, "autoinc", False)),
            )
            table.fields.append(converted)
            self.columns[id(column)] = (table, converted)

        for index in source.indexes:
            self.convert_index(table, index)
        self.tables.append(table)

    def convert_index(self, table: Table, index: Any) -> None:
        columns = []
        for subject in index.subjects:
            entry = self.columns.get(id(subject))
            if entry is None:
                # Expression indexes have no field to point at.
                self.warnings.append(
                    f"Index on {table.qualified_name} uses expression {subject}; index skipped."
                )
                return
            columns.append(IndexColumn(field_id=entry[1].id, direction=ASC))
        if getattr(index, "pk", False):
            for column in columns:
                pk_field = table.field_by_id(column.field_id)
                pk_field.primary_key = True
                pk_field.nullable = False
        names = [table.field_by_id(c.field_id).name for c in columns]
        table.indexes.append(
            Index(
                name=index.name or f"idx_{table.name}_{'_'.join(names)}",
                columns=columns,
                unique=bool(index.unique or getattr(index, "pk", False)),
                index_type=index.type or None,
                is_primary_key=bool(getattr(index, "pk", False)),
            )
        )

    def convert_ref(self, ref: Any) -> None:
        right_is_source, source_card, target_card = REF_ORIENTATION[ref.type]
        left, right = list(ref.col1), list(ref.col2)
        sources, targets = (right, left) if right_is_source else (left, right)
        for source_col, target_col in zip(sources, targets):
            source = self.columns.get(id(source_col))
            target = self.columns.get(id(target_col))
            if source is None or target is None:
                self.warnings.append(f"Ref {ref.name or ref.type} points at an unknown column; skipped.")
                continue
            source_table, source_field = source
            target_table, target_field = target
            self.relationships.append(
                Relationship(
                    name=ref.name
                    or f"{source_table.name}_{source_field.name}_{target_table.name}_{target_field.name}",
                    source_table_id=source_table.id,
                    source_field_id=source_field.id,
                    target_table_id=target_table.id,
                    target_field_id=target_field.id,
                    source_cardinality=source_card,
                    target_cardinality=target_card,
                )
            )


def parse_dbml(text: str) -> DbmlResult:
    """Convert DBML text into a Diagram.

    Raises DBMLSyntaxError when the grammar rejects the text.
    """
    if not text.strip():
        return DbmlResult(diagram=Diagram(name=DIAGRAM_NAME))

    source, warnings = preprocess_dbml(text)
    try:
        database = PyDBML(source)
    except ParseBaseException as exc:
        raise DBMLSyntaxError(exc.msg, line=exc.lineno, column=exc.col) from exc
    except _PYDBML_ERRORS as exc:
        raise DBMLSyntaxError(str(exc)) from exc

    converter = _DbmlConverter()
    converter.warnings.extend(warnings)
    for enum in database.enums:
        converter.convert_enum(enum)
    for table in database.tables:
        converter.convert_table(table)
    for ref in database.refs:
        converter.convert_ref(ref)

    result = build(
        converter.tables,
        converter.relationships,
        custom_types=converter.custom_types,
        engine=Engine.GENERIC,
        name=DIAGRAM_NAME,
    )
    logger.debug("dbml import: %d tables, %d refs", len(converter.tables), len(converter.relationships))
    return DbmlResult(diagram=result.diagram, warnings=converter.warnings + result.warnings)
