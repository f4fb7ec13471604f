"""Turn extracted statement specs into canonical tables and relationships."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from erd_core.data_types import SERIAL_TYPES, parse_type
from erd_core.ddl.specs import (
    AlterTableSpec,
    ColumnSpec,
    CommentSpec,
    CustomTypeSpec,
    ForeignKeySpec,
    IndexSpec,
    StatementSpec,
    TableSpec,
    ViewSpec,
)
from erd_core.model import (
    MANY,
    MATERIALIZED_VIEW_COLOR,
    ONE,
    VIEW_COLOR,
    CheckConstraint,
    CustomType,
    CustomTypeField,
    Dependency,
    Field,
    Index,
    IndexColumn,
    Relationship,
    Table,
    table_key,
)

logger = logging.getLogger(__name__)


@dataclass
class Assembly:
    tables: List[Table] = field(default_factory=list)
    relationships: List[Relationship] = field(default_factory=list)
    custom_types: List[CustomType] = field(default_factory=list)
    dependencies: List[Dependency] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


def _label(schema: Optional[str], name: str) -> str:
    return f"{schema}.{name}" if schema else name


def is_unique_field(table: Table, column: Field) -> bool:
    """A field is unique when declared so, when it is the sole PK, or via a single-column unique index."""
    if column.unique:
        return True
    pk_fields = table.primary_key_fields()
    if column.primary_key and len(pk_fields) == 1:
        return True
    return any(
        index.unique and index.field_ids == [column.id]
        for index in table.indexes
    )


class _Assembler:
    def __init__(self, keep_case: bool = False) -> None:
        self.keep_case = keep_case
        self.result = Assembly()
        self.tables: Dict[Tuple[str, str], Table] = {}
        self.pending_fks: List[Tuple[Table, ForeignKeySpec]] = []
        self.pending_views: List[Tuple[Table, ViewSpec]] = []

    def warn(self, message: str) -> None:
        logger.debug(message)
        self.result.warnings.append(message)

    def identity(self, schema: Optional[str], name: str, quoted: bool) -> Tuple[str, str]:
        # Unquoted names fold; quoted ones keep their case where the engine does.
        if self.keep_case and quoted:
            return ((schema or "").lower(), name)
        return table_key(schema, name)

    def lookup(self, schema: Optional[str], name: str) -> Optional[Table]:
        for key in (self.identity(schema, name, True), table_key(schema, name)):
            table = self.tables.get(key)
            if table is not None:
                return table
        # A reference may qualify a table defined without schema, or the reverse.
        matches = [t for t in self.tables.values() if t.name.lower() == name.lower()]
        return matches[0] if len(matches) == 1 else None

    def register(self, table: Table, quoted: bool = False) -> bool:
        key = self.identity(table.schema, table.name, quoted)
        if key in self.tables:
            self.warn(
                f"Table {table.qualified_name} is defined more than once; keeping the first definition."
            )
            return False
        self.tables[key] = table
        self.result.tables.append(table)
        return True

    # -- fields -------------------------------------------------------------

    def make_field(self, table_name: str, spec: ColumnSpec) -> Field:
        parsed = parse_type(spec.type)
        if parsed.is_array:
            self.warn(
                f"Column {table_name}.{spec.name} is an array ({spec.type}); imported as its element type."
            )
        return Field(
            name=spec.name,
            type=parsed.data_type,
            nullable=spec.nullable and not spec.primary_key,
            primary_key=spec.primary_key,
            unique=spec.unique,
            default=spec.default,
            collation=spec.collation,
            comment=spec.comment,
            increment=spec.increment or parsed.data_type.id in SERIAL_TYPES,
        )

    def add_column(self, table: Table, spec: ColumnSpec) -> None:
        column = self.make_field(table.name, spec)
        table.fields.append(column)
        if spec.check:
            table.check_constraints.append(CheckConstraint(expression=spec.check, field_id=column.id))
        if spec.references is not None:
            self.pending_fks.append((table, spec.references))

    def mark_primary_key(self, table: Table, columns: List[str]) -> None:
        for name in columns:
            column = table.field_by_name(name)
            if column is None:
                self.warn(f"Primary key of {table.qualified_name} names unknown column {name}.")
                continue
            column.primary_key = True
            column.nullable = False

    def add_unique(self, table: Table, columns: List[str]) -> None:
        if len(columns) == 1:
            column = table.field_by_name(columns[0])
            if column is None:
                self.warn(f"Unique constraint on {table.qualified_name} names unknown column {columns[0]}.")
            else:
                column.unique = True
            return
        self.add_index(
            table,
            IndexSpec(
                name=f"{table.name}_{'_'.join(columns)}_key",
                table=table.name,
                schema=table.schema,
                columns=[(name, "asc") for name in columns],
                unique=True,
            ),
        )

    def add_index(self, table: Table, spec: IndexSpec) -> None:
        columns = []
        for name, direction in spec.columns:
            column = table.field_by_name(name)
            if column is None:
                self.warn(f"Index {spec.name} on {table.qualified_name} names unknown column {name}; index skipped.")
                return
            columns.append(IndexColumn(field_id=column.id, direction=direction))
        if not columns:
            return
        table.indexes.append(
            Index(name=spec.name, columns=columns, unique=spec.unique, index_type=spec.index_type)
        )

    # -- statements ---------------------------------------------------------

    def create_table(self, spec: TableSpec) -> None:
        table = Table(name=spec.name, schema=spec.schema, comment=spec.comment)
        if not self.register(table, spec.quoted):
            return
        for column in spec.columns:
            self.add_column(table, column)
        self.mark_primary_key(table, spec.primary_key)
        for columns in spec.unique_keys:
            self.add_unique(table, columns)
        for check in spec.checks:
            table.check_constraints.append(CheckConstraint(expression=check.expression, name=check.name))
        for index in spec.indexes:
            self.add_index(table, index)
        for fk in spec.foreign_keys:
            self.pending_fks.append((table, fk))

    def alter_table(self, spec: AlterTableSpec) -> None:
        table = self.lookup(spec.schema, spec.table)
        if table is None:
            self.warn(f"ALTER TABLE references unknown table {_label(spec.schema, spec.table)}; skipped.")
            return
        for column in spec.add_columns:
            if table.field_by_name(column.name) is not None:
                self.warn(f"Column {table.qualified_name}.{column.name} already exists; ADD COLUMN skipped.")
                continue
            self.add_column(table, column)
        for name, type_text in spec.type_changes:
            column = table.field_by_name(name)
            if column is None:
                self.warn(f"ALTER COLUMN names unknown column {table.qualified_name}.{name}.")
                continue
            column.type = parse_type(type_text).data_type
        self.mark_primary_key(table, spec.primary_key)
        for columns in spec.unique_keys:
            self.add_unique(table, columns)
        for check in spec.checks:
            table.check_constraints.append(CheckConstraint(expression=check.expression, name=check.name))
        for fk in spec.foreign_keys:
            self.pending_fks.append((table, fk))

    def create_index(self, spec: IndexSpec) -> None:
        table = self.lookup(spec.schema, spec.table)
        if table is None:
            self.warn(f"Index {spec.name} references unknown table {_label(spec.schema, spec.table)}; skipped.")
            return
        self.add_index(table, spec)

    def comment(self, spec: CommentSpec) -> None:
        table = self.lookup(spec.schema, spec.table)
        if table is None:
            self.warn(f"COMMENT references unknown table {_label(spec.schema, spec.table)}; skipped.")
            return
        if spec.column is None:
            table.comment = spec.text
            return
        column = table.field_by_name(spec.column)
        if column is None:
            self.warn(f"COMMENT references unknown column {table.qualified_name}.{spec.column}; skipped.")
            return
        column.comment = spec.text

    def create_view(self, spec: ViewSpec) -> None:
        view = Table(
            name=spec.name,
            schema=spec.schema,
            is_view=True,
            is_materialized_view=spec.materialized,
            view_definition=spec.definition,
            color=MATERIALIZED_VIEW_COLOR if spec.materialized else VIEW_COLOR,
        )
        if self.register(view, spec.quoted):
            self.pending_views.append((view, spec))

    def create_type(self, spec: CustomTypeSpec) -> None:
        self.result.custom_types.append(
            CustomType(
                name=spec.name,
                schema=spec.schema,
                kind=spec.kind,
                values=list(spec.values),
                fields=[CustomTypeField(name=name, type=type_text) for name, type_text in spec.fields],
            )
        )

    # -- deferred resolution ------------------------------------------------

    def resolve_foreign_keys(self) -> None:
        for table, fk in self.pending_fks:
            ref_table = self.lookup(fk.ref_schema, fk.ref_table)
            if ref_table is None:
                self.warn(
                    f"Foreign key on {table.qualified_name}({', '.join(fk.columns)}) references "
                    f"missing table {_label(fk.ref_schema, fk.ref_table)}; relationship skipped."
                )
                continue
            ref_columns = fk.ref_columns or [f.name for f in ref_table.primary_key_fields()]
            if len(ref_columns) != len(fk.columns):
                self.warn(
                    f"Foreign key on {table.qualified_name}({', '.join(fk.columns)}) does not match "
                    f"the referenced columns of {ref_table.qualified_name}; relationship skipped."
                )
                continue
            for local, remote in zip(fk.columns, ref_columns):
                target_field = table.field_by_name(local)
                source_field = ref_table.field_by_name(remote)
                if target_field is None or source_field is None:
                    self.warn(
                        f"Foreign key {table.qualified_name}.{local} -> {ref_table.qualified_name}.{remote} "
                        "references a missing column; relationship skipped."
                    )
                    continue
                self.result.relationships.append(
                    Relationship(
                        name=fk.name or f"{table.name}_{local}_fkey",
                        source_table_id=ref_table.id,
                        source_field_id=source_field.id,
                        target_table_id=table.id,
                        target_field_id=target_field.id,
                        source_cardinality=ONE,
                        target_cardinality=ONE if is_unique_field(table, target_field) else MANY,
                    )
                )

    def resolve_views(self) -> None:
        for view, spec in self.pending_views:
            for schema, name in spec.references:
                base = self.lookup(schema, name)
                if base is None or base.id == view.id:
                    continue
                self.result.dependencies.append(Dependency(table_id=base.id, dependent_table_id=view.id))


def assemble(specs: Sequence[StatementSpec], keep_case: bool = False) -> Assembly:
    """Resolve specs into entities.

    ``keep_case`` treats a quoted table name as distinct from its folded
    spelling, for engines that fold unquoted identifiers.
    """
    assembler = _Assembler(keep_case)
    handlers = {
        TableSpec: assembler.create_table,
        AlterTableSpec: assembler.alter_table,
        IndexSpec: assembler.create_index,
        CommentSpec: assembler.comment,
        ViewSpec: assembler.create_view,
        CustomTypeSpec: assembler.create_type,
    }
    # Tables first so ALTER/INDEX/COMMENT may precede the CREATE in the script.
    ordered = sorted(specs, key=lambda spec: 0 if isinstance(spec, (TableSpec, ViewSpec, CustomTypeSpec)) else 1)
    for spec in ordered:
        handlers[type(spec)](spec)
    assembler.resolve_foreign_keys()
    assembler.resolve_views()
    return assembler.result
