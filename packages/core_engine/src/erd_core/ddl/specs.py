"""Dialect-neutral statement records produced by the extraction strategies."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Tuple, Union


@dataclass
class ForeignKeySpec:
    columns: List[str]
    ref_table: str
    ref_schema: Optional[str] = None
    ref_columns: List[str] = field(default_factory=list)
    name: Optional[str] = None


@dataclass
class CheckSpec:
    expression: str
    column: Optional[str] = None
    name: Optional[str] = None


@dataclass
class ColumnSpec:
    name: str
    type: str
    nullable: bool = True
    primary_key: bool = False
    unique: bool = False
    default: Optional[str] = None
    collation: Optional[str] = None
    comment: Optional[str] = None
    check: Optional[str] = None
    increment: bool = False
    references: Optional[ForeignKeySpec] = None


@dataclass
class IndexSpec:
    name: str
    table: str
    schema: Optional[str] = None
    # (column name, "asc" | "desc")
    columns: List[Tuple[str, str]] = field(default_factory=list)
    unique: bool = False
    index_type: Optional[str] = None


@dataclass
class TableSpec:
    name: str
    schema: Optional[str] = None
    columns: List[ColumnSpec] = field(default_factory=list)
    primary_key: List[str] = field(default_factory=list)
    unique_keys: List[List[str]] = field(default_factory=list)
    checks: List[CheckSpec] = field(default_factory=list)
    foreign_keys: List[ForeignKeySpec] = field(default_factory=list)
    indexes: List[IndexSpec] = field(default_factory=list)
    comment: Optional[str] = None
    # name was written as a quoted identifier
    quoted: bool = False


@dataclass
class AlterTableSpec:
    table: str
    schema: Optional[str] = None
    add_columns: List[ColumnSpec] = field(default_factory=list)
    # (column name, new type text)
    type_changes: List[Tuple[str, str]] = field(default_factory=list)
    primary_key: List[str] = field(default_factory=list)
    unique_keys: List[List[str]] = field(default_factory=list)
    foreign_keys: List[ForeignKeySpec] = field(default_factory=list)
    checks: List[CheckSpec] = field(default_factory=list)


@dataclass
class CommentSpec:
    table: str
    text: str
    schema: Optional[str] = None
    column: Optional[str] = None


@dataclass
class ViewSpec:
    name: str
    definition: str
    schema: Optional[str] = None
    materialized: bool = False
    # (schema, table) pairs read by the view body
    references: List[Tuple[Optional[str], str]] = field(default_factory=list)
    quoted: bool = False


@dataclass
class CustomTypeSpec:
    name: str
    kind: str
    schema: Optional[str] = None
    values: List[str] = field(default_factory=list)
    # (field name, type text)
    fields: List[Tuple[str, str]] = field(default_factory=list)


StatementSpec = Union[
    TableSpec,
    AlterTableSpec,
    IndexSpec,
    CommentSpec,
    ViewSpec,
    CustomTypeSpec,
]


@dataclass
class Extraction:
    """What one strategy recovered from one statement."""

    specs: List[StatementSpec] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
