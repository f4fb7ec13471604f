"""Turn an introspection payload into a canonical Diagram."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union

from erd_core.builder import build
from erd_core.ddl.grammar import view_references
from erd_core.engines import Engine, parse_engine, sqlglot_dialect
from erd_core.errors import SQLSyntaxError
from erd_core.metadata.adapters import ColumnAdapter, get_adapter, to_bool, to_int
from erd_core.metadata.payload import load_payload, validate_payload
from erd_core.model import (
    ASC,
    COMPOSITE,
    DESC,
    ENUM,
    MANY,
    MATERIALIZED_VIEW_COLOR,
    ONE,
    VIEW_COLOR,
    CheckConstraint,
    CustomType,
    CustomTypeField,
    Dependency,
    Diagram,
    Field,
    Index,
    IndexColumn,
    Relationship,
    Table,
    table_key,
)

logger = logging.getLogger(__name__)

DEFAULT_DIAGRAM_NAME = "New Diagram"

TableKey = Tuple[str, str]


@dataclass
class NormalizeResult:
    diagram: Diagram
    warnings: List[str] = field(default_factory=list)


class _Normalizer:
    def __init__(self, payload: Dict[str, Any], engine: Engine) -> None:
        self.payload = payload
        self.engine = engine
        self.adapter: ColumnAdapter = get_adapter(engine)
        self.tables: Dict[TableKey, Table] = {}
        self.warnings: List[str] = []

    def rows(self, key: str) -> List[Dict[str, Any]]:
        return [row for row in self.payload.get(key) or [] if isinstance(row, dict)]

    def key(self, schema: Any, table: Any) -> TableKey:
        # Catalog names are exact; "Users" and "users" are two tables.
        return table_key(self.adapter.schema_name(schema), self.adapter.table_name(table), case_sensitive=True)

    def lookup(self, schema: Any, table: Any) -> Optional[Table]:
        found = self.tables.get(self.key(schema, table))
        if found is not None:
            return found
        folded = table_key(*self.key(schema, table))
        matches = [t for key, t in self.tables.items() if table_key(*key) == folded]
        return matches[0] if len(matches) == 1 else None

    def register(self, table: Table) -> None:
        key = table_key(table.schema, table.name, case_sensitive=True)
        if key in self.tables:
            kind = "View" if table.is_view else "Table"
            self.warnings.append(
                f"{kind} {table.qualified_name} appears more than once in the payload; the later entry was skipped."
            )
            return
        self.tables[key] = table

    # -- tables and columns -------------------------------------------------

    def add_tables(self) -> None:
        for row in self.rows("tables"):
            name = self.adapter.table_name(row.get("table"))
            if not name:
                continue
            table = Table(
                name=name,
                schema=self.adapter.schema_name(row.get("schema")),
                comment=row.get("comment") or None,
            )
            self.register(table)

    def add_views(self) -> None:
        for row in self.rows("views"):
            name = self.adapter.table_name(row.get("view_name"))
            if not name:
                continue
            definition = self.adapter.view_definition(row.get("view_definition"))
            materialized = bool(definition and "materialized" in definition.lower())
            view = Table(
                name=name,
                schema=self.adapter.schema_name(row.get("schema")),
                is_view=True,
                is_materialized_view=materialized,
                color=MATERIALIZED_VIEW_COLOR if materialized else VIEW_COLOR,
                view_definition=definition,
            )
            self.register(view)

    def add_columns(self) -> None:
        grouped: Dict[str, Tuple[Table, List[Tuple[int, Field]]]] = {}
        for row in self.rows("columns"):
            table = self.lookup(row.get("schema"), row.get("table"))
            if table is None:
                continue
            column = self.adapter.field(row)
            if not column.name:
                continue
            grouped.setdefault(table.id, (table, []))[1].append((self.adapter.ordinal(row), column))

        for table, entries in grouped.values():
            seen = set()
            # sort is stable, so equal ordinals keep payload order
            for _, column in sorted(entries, key=lambda entry: entry[0]):
                if column.name.lower() in seen:
                    self.warnings.append(
                        f"Column {column.name} appears more than once on table {table.qualified_name}; "
                        "the later entry was skipped."
                    )
                    continue
                seen.add(column.name.lower())
                table.fields.append(column)

    def apply_primary_keys(self) -> None:
        for row in self.rows("pk_info"):
            table = self.lookup(row.get("schema"), row.get("table"))
            if table is None:
                continue
            column = table.field_by_name(self.adapter.column_name(row.get("column")))
            if column is None:
                self.warnings.append(
                    f"Primary key column {row.get('column')} not found on table {table.qualified_name}."
                )
                continue
            column.primary_key = True
            column.nullable = False

    # -- indexes ------------------------------------------------------------

    def add_indexes(self) -> None:
        grouped: Dict[Tuple[str, str], Tuple[Table, List[Dict[str, Any]]]] = {}
        for row in self.rows("indexes"):
            table = self.lookup(row.get("schema"), row.get("table"))
            if table is None or not row.get("name"):
                continue
            grouped.setdefault((table.id, str(row["name"])), (table, []))[1].append(row)

        for (_, name), (table, rows) in grouped.items():
            ordered = sorted(
                enumerate(rows),
                key=lambda item: (to_int(item[1].get("column_position")) or 0, item[0]),
            )
            columns: List[IndexColumn] = []
            for _, row in ordered:
                column = table.field_by_name(self.adapter.column_name(row.get("column")))
                if column is None:
                    self.warnings.append(
                        f"Index {name} on table {table.qualified_name} references unknown column {row.get('column')}; index skipped."
                    )
                    columns = []
                    break
                if any(existing.field_id == column.id for existing in columns):
                    continue
                direction = DESC if str(row.get("direction") or "").lower() == "desc" else ASC
                columns.append(IndexColumn(field_id=column.id, direction=direction))
            if not columns:
                continue
            first = rows[0]
            table.indexes.append(
                Index(
                    name=name,
                    columns=columns,
                    unique=to_bool(first.get("unique")),
                    index_type=(str(first["index_type"]).lower() if first.get("index_type") else None),
                    cardinality=to_int(first.get("cardinality")),
                )
            )

    def finish_indexes(self, table: Table) -> None:
        pk_ids = [f.id for f in table.primary_key_fields()]
        kept: List[Index] = []
        pk_index: Optional[Index] = None
        for index in table.indexes:
            if pk_ids and pk_index is None and sorted(index.field_ids) == sorted(pk_ids):
                index.is_primary_key = True
                index.unique = True
                pk_index = index
                continue
            kept.append(index)
            if index.unique and len(index.columns) == 1:
                table.field_by_id(index.columns[0].field_id).unique = True
        if pk_ids and pk_index is None:
            pk_index = Index(
                name=f"{table.name}_pkey",
                columns=[IndexColumn(field_id=field_id) for field_id in pk_ids],
                unique=True,
                is_primary_key=True,
            )
        table.indexes = ([pk_index] if pk_index else []) + kept

    # -- constraints, types, relationships ----------------------------------

    def add_check_constraints(self) -> None:
        for row in self.rows("check_constraints"):
            table = self.lookup(row.get("schema"), row.get("table"))
            expression = str(row.get("expression") or "").strip()
            if table is None or not expression:
                continue
            field_id = None
            if row.get("column"):
                column = table.field_by_name(self.adapter.column_name(row["column"]))
                field_id = column.id if column else None
            table.check_constraints.append(
                CheckConstraint(expression=expression, field_id=field_id, name=row.get("name") or None)
            )

    def custom_types(self) -> List[CustomType]:
        result = []
        for row in self.rows("custom_types"):
            kind = COMPOSITE if row.get("kind") == COMPOSITE else ENUM
            result.append(
                CustomType(
                    name=str(row.get("type") or ""),
                    kind=kind,
                    schema=self.adapter.schema_name(row.get("schema")),
                    values=[str(v) for v in row.get("values") or []],
                    fields=[
                        CustomTypeField(name=str(f.get("field")), type=str(f.get("type")))
                        for f in row.get("fields") or []
                    ],
                )
            )
        return [ct for ct in result if ct.name]

    def relationships(self) -> List[Relationship]:
        result = []
        for row in self.rows("fk_info"):
            schema = row.get("schema")
            target_table = self.lookup(schema, row.get("table"))
            reference_schema = row.get("reference_schema")
            if self.adapter.schema_name(reference_schema) is None:
                reference_schema = schema
            source_table = self.lookup(reference_schema, row.get("reference_table"))
            if source_table is None or target_table is None:
                self.warnings.append(
                    f"Foreign key {row.get('foreign_key_name') or row.get('table')} references a table that is not in the payload; skipped."
                )
                continue
            source_field = source_table.field_by_name(self.adapter.column_name(row.get("reference_column")))
            target_field = target_table.field_by_name(self.adapter.column_name(row.get("column")))
            if source_field is None or target_field is None:
                self.warnings.append(
                    f"Foreign key {row.get('foreign_key_name') or target_table.name} references an unknown column; skipped."
                )
                continue
            result.append(
                Relationship(
                    name=row.get("foreign_key_name") or None,
                    source_table_id=source_table.id,
                    source_field_id=source_field.id,
                    target_table_id=target_table.id,
                    target_field_id=target_field.id,
                    source_cardinality=_cardinality(source_table, source_field),
                    target_cardinality=_cardinality(target_table, target_field),
                )
            )
        return result

    def dependencies(self) -> List[Dependency]:
        result = []
        dialect = sqlglot_dialect(self.engine)
        for view in self.tables.values():
            if not view.is_view or not view.view_definition:
                continue
            try:
                refs = view_references(view.view_definition, dialect)
            except SQLSyntaxError as exc:
                self.warnings.append(f"Could not read dependencies of view {view.qualified_name}: {exc.message}")
                continue
            for schema, name in refs:
                base = self.lookup(schema or view.schema, name) or self.lookup(schema, name)
                if base is None or base.id == view.id:
                    continue
                result.append(Dependency(table_id=base.id, dependent_table_id=view.id))
        return result


def _cardinality(table: Table, column: Field) -> str:
    if column.unique:
        return ONE
    pk = table.primary_key_fields()
    if len(pk) == 1 and pk[0].id == column.id:
        return ONE
    return MANY


def normalize(
    payload: Union[str, bytes, Dict[str, Any]],
    engine: Union[str, Engine] = Engine.GENERIC,
    validate: bool = True,
) -> NormalizeResult:
    """Normalise an introspection payload into a Diagram.

    Raises MetadataValidationError when the payload cannot be decoded or, with
    ``validate``, when it does not match the bundled metadata schema.
    """
    engine = parse_engine(engine)
    data = load_payload(payload)
    if validate:
        validate_payload(data)

    normalizer = _Normalizer(data, engine)
    normalizer.add_tables()
    normalizer.add_views()
    normalizer.add_columns()
    normalizer.apply_primary_keys()
    normalizer.add_indexes()
    for table in normalizer.tables.values():
        normalizer.finish_indexes(table)
    normalizer.add_check_constraints()

    relationships = normalizer.relationships()
    dependencies = normalizer.dependencies()
    tables = sorted(normalizer.tables.values(), key=lambda t: (t.is_view, t.name.lower(), t.schema or ""))

    result = build(
        tables,
        relationships,
        dependencies,
        normalizer.custom_types(),
        engine=engine,
        name=data.get("database_name") or DEFAULT_DIAGRAM_NAME,
        case_sensitive_names=True,
    )
    logger.debug(
        "normalized %s payload: %d tables, %d relationships",
        engine.value,
        len(result.diagram.tables),
        len(result.diagram.relationships),
    )
    return NormalizeResult(diagram=result.diagram, warnings=normalizer.warnings + result.warnings)
