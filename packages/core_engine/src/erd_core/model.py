"""Canonical schema model shared by every importer and the diff engine."""

from __future__ import annotations

import copy
import time
import uuid
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from erd_core.engines import Engine, parse_engine

ONE = "one"
MANY = "many"
CARDINALITIES = (ONE, MANY)

ASC = "asc"
DESC = "desc"

ENUM = "enum"
COMPOSITE = "composite"

DEFAULT_TABLE_COLOR = "#8eb7ff"
VIEW_COLOR = "#b0b0b0"
MATERIALIZED_VIEW_COLOR = "#7d7d7d"


def generate_id() -> str:
    return uuid.uuid4().hex


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class DataType:
    """Engine-neutral column type.

    ``length`` of -1 stands for an unbounded length such as ``varchar(max)``.
    """

    id: str
    length: Optional[int] = None
    precision: Optional[int] = None
    scale: Optional[int] = None

    def render(self) -> str:
        if self.length is not None:
            return f"{self.id}({'max' if self.length == -1 else self.length})"
        if self.precision is not None and self.scale is not None:
            return f"{self.id}({self.precision},{self.scale})"
        if self.precision is not None:
            return f"{self.id}({self.precision})"
        return self.id

    @classmethod
    def parse(cls, text: str) -> "DataType":
        from erd_core.data_types import parse_type

        return parse_type(text).data_type


@dataclass
class Field:
    name: str
    type: DataType
    nullable: bool = True
    primary_key: bool = False
    unique: bool = False
    default: Optional[str] = None
    collation: Optional[str] = None
    comment: Optional[str] = None
    enum_type: Optional[str] = None
    increment: bool = False
    id: str = field(default_factory=generate_id)


@dataclass
class IndexColumn:
    field_id: str
    direction: str = ASC


@dataclass
class Index:
    name: str
    columns: List[IndexColumn] = field(default_factory=list)
    unique: bool = False
    index_type: Optional[str] = None
    cardinality: Optional[int] = None
    is_primary_key: bool = False
    id: str = field(default_factory=generate_id)

    @property
    def field_ids(self) -> List[str]:
        return [column.field_id for column in self.columns]


@dataclass
class CheckConstraint:
    expression: str
    field_id: Optional[str] = None
    name: Optional[str] = None
    id: str = field(default_factory=generate_id)


@dataclass
class Table:
    name: str
    schema: Optional[str] = None
    fields: List[Field] = field(default_factory=list)
    indexes: List[Index] = field(default_factory=list)
    check_constraints: List[CheckConstraint] = field(default_factory=list)
    color: str = DEFAULT_TABLE_COLOR
    x: float = 0.0
    y: float = 0.0
    comment: Optional[str] = None
    is_view: bool = False
    is_materialized_view: bool = False
    view_definition: Optional[str] = None
    created_at: int = field(default_factory=_now_ms)
    id: str = field(default_factory=generate_id)

    @property
    def key(self) -> Tuple[str, str]:
        return table_key(self.schema, self.name)

    @property
    def qualified_name(self) -> str:
        return f"{self.schema}.{self.name}" if self.schema else self.name

    def field_by_name(self, name: str) -> Optional[Field]:
        for candidate in self.fields:
            if candidate.name == name:
                return candidate
        lowered = name.lower()
        for candidate in self.fields:
            if candidate.name.lower() == lowered:
                return candidate
        return None

    def field_by_id(self, field_id: str) -> Optional[Field]:
        for candidate in self.fields:
            if candidate.id == field_id:
                return candidate
        return None

    def primary_key_fields(self) -> List[Field]:
        return [f for f in self.fields if f.primary_key]


@dataclass
class Relationship:
    source_table_id: str
    source_field_id: str
    target_table_id: str
    target_field_id: str
    source_cardinality: str = ONE
    target_cardinality: str = MANY
    name: Optional[str] = None
    id: str = field(default_factory=generate_id)


@dataclass
class CustomTypeField:
    name: str
    type: str


@dataclass
class CustomType:
    name: str
    kind: str = ENUM
    schema: Optional[str] = None
    values: List[str] = field(default_factory=list)
    fields: List[CustomTypeField] = field(default_factory=list)
    id: str = field(default_factory=generate_id)


@dataclass
class Dependency:
    table_id: str
    dependent_table_id: str
    id: str = field(default_factory=generate_id)


@dataclass
class Arena:
    """Flat id lookups over one diagram snapshot.

    Owned entities map to ``(owning table id, entity)``.
    """

    tables: Dict[str, Table]
    fields: Dict[str, Tuple[str, Field]]
    indexes: Dict[str, Tuple[str, Index]]
    check_constraints: Dict[str, Tuple[str, CheckConstraint]]
    relationships: Dict[str, Relationship]
    dependencies: Dict[str, Dependency]
    custom_types: Dict[str, CustomType]


@dataclass
class Diagram:
    name: str = "New Diagram"
    database_type: Engine = Engine.GENERIC
    tables: List[Table] = field(default_factory=list)
    relationships: List[Relationship] = field(default_factory=list)
    dependencies: List[Dependency] = field(default_factory=list)
    custom_types: List[CustomType] = field(default_factory=list)
    areas: List[Dict[str, Any]] = field(default_factory=list)
    id: str = field(default_factory=generate_id)

    def arena(self) -> Arena:
        fields: Dict[str, Tuple[str, Field]] = {}
        indexes: Dict[str, Tuple[str, Index]] = {}
        checks: Dict[str, Tuple[str, CheckConstraint]] = {}
        for table in self.tables:
            for column in table.fields:
                fields[column.id] = (table.id, column)
            for index in table.indexes:
                indexes[index.id] = (table.id, index)
            for check in table.check_constraints:
                checks[check.id] = (table.id, check)
        return Arena(
            tables={table.id: table for table in self.tables},
            fields=fields,
            indexes=indexes,
            check_constraints=checks,
            relationships={rel.id: rel for rel in self.relationships},
            dependencies={dep.id: dep for dep in self.dependencies},
            custom_types={ct.id: ct for ct in self.custom_types},
        )

    def table_by_name(self, name: str, schema: Optional[str] = None) -> Optional[Table]:
        wanted = table_key(schema, name)
        for table in self.tables:
            if table.key == wanted:
                return table
        if schema is None:
            matches = [t for t in self.tables if t.name.lower() == name.lower()]
            if len(matches) == 1:
                return matches[0]
        return None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["database_type"] = self.database_type.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Diagram":
        return cls(
            id=data.get("id") or generate_id(),
            name=data.get("name") or "New Diagram",
            database_type=parse_engine(data.get("database_type")),
            tables=[_table_from_dict(t) for t in data.get("tables") or []],
            relationships=[
                Relationship(
                    id=r.get("id") or generate_id(),
                    name=r.get("name"),
                    source_table_id=r["source_table_id"],
                    source_field_id=r["source_field_id"],
                    target_table_id=r["target_table_id"],
                    target_field_id=r["target_field_id"],
                    source_cardinality=r.get("source_cardinality", ONE),
                    target_cardinality=r.get("target_cardinality", MANY),
                )
                for r in data.get("relationships") or []
            ],
            dependencies=[
                Dependency(
                    id=d.get("id") or generate_id(),
                    table_id=d["table_id"],
                    dependent_table_id=d["dependent_table_id"],
                )
                for d in data.get("dependencies") or []
            ],
            custom_types=[
                CustomType(
                    id=c.get("id") or generate_id(),
                    name=c["name"],
                    kind=c.get("kind", ENUM),
                    schema=c.get("schema"),
                    values=list(c.get("values") or []),
                    fields=[CustomTypeField(name=f["name"], type=f["type"]) for f in c.get("fields") or []],
                )
                for c in data.get("custom_types") or []
            ],
            areas=[dict(a) for a in data.get("areas") or []],
        )


def _data_type_from_dict(value: Any) -> DataType:
    if isinstance(value, str):
        return DataType.parse(value)
    return DataType(
        id=value["id"],
        length=value.get("length"),
        precision=value.get("precision"),
        scale=value.get("scale"),
    )


def _table_from_dict(data: Dict[str, Any]) -> Table:
    table = Table(
        id=data.get("id") or generate_id(),
        name=data["name"],
        schema=data.get("schema"),
        color=data.get("color") or DEFAULT_TABLE_COLOR,
        x=data.get("x", 0.0),
        y=data.get("y", 0.0),
        comment=data.get("comment"),
        is_view=bool(data.get("is_view", False)),
        is_materialized_view=bool(data.get("is_materialized_view", False)),
        view_definition=data.get("view_definition"),
        created_at=data.get("created_at") or _now_ms(),
    )
    for f in data.get("fields") or []:
        table.fields.append(
            Field(
                id=f.get("id") or generate_id(),
                name=f["name"],
                type=_data_type_from_dict(f["type"]),
                nullable=bool(f.get("nullable", True)),
                primary_key=bool(f.get("primary_key", False)),
                unique=bool(f.get("unique", False)),
                default=f.get("default"),
                collation=f.get("collation"),
                comment=f.get("comment"),
                enum_type=f.get("enum_type"),
                increment=bool(f.get("increment", False)),
            )
        )
    for i in data.get("indexes") or []:
        table.indexes.append(
            Index(
                id=i.get("id") or generate_id(),
                name=i["name"],
                columns=[
                    IndexColumn(field_id=c["field_id"], direction=c.get("direction", ASC))
                    for c in i.get("columns") or []
                ],
                unique=bool(i.get("unique", False)),
                index_type=i.get("index_type"),
                cardinality=i.get("cardinality"),
                is_primary_key=bool(i.get("is_primary_key", False)),
            )
        )
    for c in data.get("check_constraints") or []:
        table.check_constraints.append(
            CheckConstraint(
                id=c.get("id") or generate_id(),
                expression=c["expression"],
                field_id=c.get("field_id"),
                name=c.get("name"),
            )
        )
    return table


def table_key(schema: Optional[str], name: str, case_sensitive: bool = False) -> Tuple[str, str]:
    """Identity of a table inside one diagram.

    Case-insensitive unless ``case_sensitive``, which keeps names exactly as a
    catalog or a quoted identifier reports them.
    """
    if case_sensitive:
        return (schema or "", name)
    return ((schema or "").lower(), name.lower())


def remove_table(diagram: Diagram, table_id: str) -> Diagram:
    """Return a copy of ``diagram`` without the table and everything that points at it."""
    result = copy.deepcopy(diagram)
    result.tables = [t for t in result.tables if t.id != table_id]
    result.relationships = [
        r for r in result.relationships
        if r.source_table_id != table_id and r.target_table_id != table_id
    ]
    result.dependencies = [
        d for d in result.dependencies
        if d.table_id != table_id and d.dependent_table_id != table_id
    ]
    return result


def remove_field(diagram: Diagram, table_id: str, field_id: str) -> Diagram:
    """Return a copy of ``diagram`` without the field.

    Indexes lose the column and are dropped once empty; check constraints and
    relationships bound to the field are dropped.
    """
    result = copy.deepcopy(diagram)
    for table in result.tables:
        if table.id != table_id:
            continue
        table.fields = [f for f in table.fields if f.id != field_id]
        kept_indexes = []
        for index in table.indexes:
            index.columns = [c for c in index.columns if c.field_id != field_id]
            if index.columns:
                kept_indexes.append(index)
        table.indexes = kept_indexes
        table.check_constraints = [c for c in table.check_constraints if c.field_id != field_id]
    result.relationships = [
        r for r in result.relationships
        if r.source_field_id != field_id and r.target_field_id != field_id
    ]
    return result
