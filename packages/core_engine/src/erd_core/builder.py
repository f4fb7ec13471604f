"""Canonical model builder: integrity checks and id assignment."""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple, Union

from erd_core.data_types import compatible
from erd_core.engines import Engine
from erd_core.errors import ReferentialIntegrityError, TypeIncompatibility
from erd_core.issues import Issue, warning_messages
from erd_core.model import (
    CARDINALITIES,
    CustomType,
    Dependency,
    Diagram,
    Relationship,
    Table,
    generate_id,
    table_key,
)

logger = logging.getLogger(__name__)


@dataclass
class BuildResult:
    diagram: Diagram
    issues: List[Issue] = field(default_factory=list)

    @property
    def warnings(self) -> List[str]:
        return warning_messages(self.issues)


class _IdPool:
    def __init__(self) -> None:
        self.seen: Set[str] = set()

    def claim(self, entity: Any, kind: str, issues: List[Issue]) -> None:
        if not entity.id:
            entity.id = generate_id()
        elif entity.id in self.seen:
            old = entity.id
            entity.id = generate_id()
            issues.append(
                Issue(
                    severity="warn",
                    code="DUPLICATE_ID",
                    message=f"Duplicate {kind} id '{old}' was reassigned.",
                    path=f"/{kind}/{entity.id}",
                )
            )
        self.seen.add(entity.id)


def _issue(error: Union[ReferentialIntegrityError, TypeIncompatibility], path: str) -> Issue:
    return Issue(severity="warn", code=error.code, message=str(error), path=path)


def _dangling(message: str, path: str) -> Issue:
    return _issue(ReferentialIntegrityError(message), path)


def _build_table(table: Table, ids: _IdPool, issues: List[Issue]) -> None:
    ids.claim(table, "table", issues)
    path = f"/tables/{table.qualified_name}"

    kept_fields = []
    names: Set[str] = set()
    for column in table.fields:
        lowered = column.name.lower()
        if lowered in names:
            issues.append(
                Issue(
                    severity="warn",
                    code="DUPLICATE_FIELD",
                    message=f"Field '{column.name}' is declared twice in table '{table.qualified_name}'; the later declaration was skipped.",
                    path=f"{path}/fields/{column.name}",
                )
            )
            continue
        names.add(lowered)
        ids.claim(column, "field", issues)
        kept_fields.append(column)
    table.fields = kept_fields
    field_ids = {column.id for column in table.fields}

    kept_indexes = []
    for index in table.indexes:
        missing = [c.field_id for c in index.columns if c.field_id not in field_ids]
        if missing or not index.columns:
            issues.append(
                _dangling(
                    f"Index '{index.name}' on table '{table.qualified_name}' references missing field(s) and was skipped.",
                    f"{path}/indexes/{index.name}",
                )
            )
            continue
        ids.claim(index, "index", issues)
        kept_indexes.append(index)
    table.indexes = kept_indexes

    kept_checks = []
    for check in table.check_constraints:
        if check.field_id is not None and check.field_id not in field_ids:
            issues.append(
                _dangling(
                    f"Check constraint '{check.expression}' on table '{table.qualified_name}' references a missing field and was skipped.",
                    f"{path}/check_constraints",
                )
            )
            continue
        ids.claim(check, "check_constraint", issues)
        kept_checks.append(check)
    table.check_constraints = kept_checks


def _check_relationship(
    rel: Relationship,
    tables: Dict[str, Table],
    engine: Engine,
    check_types: bool,
) -> None:
    """Raise when ``rel`` points at missing entities or joins incompatible types."""
    label = rel.name or rel.id
    source = tables.get(rel.source_table_id)
    target = tables.get(rel.target_table_id)
    if source is None or target is None:
        missing = rel.source_table_id if source is None else rel.target_table_id
        raise ReferentialIntegrityError(
            f"Relationship '{label}' references missing table '{missing}' and was skipped."
        )

    source_field = source.field_by_id(rel.source_field_id)
    target_field = target.field_by_id(rel.target_field_id)
    if source_field is None or target_field is None:
        owner, missing = (
            (source, rel.source_field_id) if source_field is None else (target, rel.target_field_id)
        )
        raise ReferentialIntegrityError(
            f"Relationship '{label}' references missing field '{missing}' on table '{owner.qualified_name}' and was skipped."
        )

    if check_types and not compatible(source_field.type, target_field.type, engine):
        raise TypeIncompatibility(
            f"{source.qualified_name}.{source_field.name} ({source_field.type.render()})",
            f"{target.qualified_name}.{target_field.name} ({target_field.type.render()})",
            engine.value,
            label=label,
        )


def build(
    tables: Iterable[Table],
    relationships: Iterable[Relationship] = (),
    dependencies: Iterable[Dependency] = (),
    custom_types: Iterable[CustomType] = (),
    *,
    engine: Engine = Engine.GENERIC,
    name: str = "New Diagram",
    areas: Iterable[Dict[str, Any]] = (),
    diagram_id: Optional[str] = None,
    check_types: bool = True,
    case_sensitive_names: bool = False,
) -> BuildResult:
    """Validate entities and assemble them into a Diagram.

    Inputs are copied. Entities that break referential integrity are excluded
    and reported as issues; nothing is raised. ``check_types`` applies the
    relationship type check, which only belongs to relationship creation.
    ``case_sensitive_names`` compares table and type names exactly.
    """
    issues: List[Issue] = []
    ids = _IdPool()

    kept_tables: List[Table] = []
    keys: Set[Tuple[str, str]] = set()
    for table in copy.deepcopy(list(tables)):
        key = table_key(table.schema, table.name, case_sensitive_names)
        if key in keys:
            issues.append(
                Issue(
                    severity="warn",
                    code="DUPLICATE_TABLE",
                    message=f"Table '{table.qualified_name}' is defined more than once; the later definition was skipped.",
                    path=f"/tables/{table.qualified_name}",
                )
            )
            continue
        keys.add(key)
        _build_table(table, ids, issues)
        kept_tables.append(table)
    tables_by_id = {table.id: table for table in kept_tables}

    kept_relationships: List[Relationship] = []
    seen_links: Set[Tuple[str, str, str, str]] = set()
    for rel in copy.deepcopy(list(relationships)):
        path = f"/relationships/{rel.name or rel.id}"
        if rel.source_cardinality not in CARDINALITIES or rel.target_cardinality not in CARDINALITIES:
            issues.append(
                Issue(
                    severity="warn",
                    code="INVALID_CARDINALITY",
                    message=f"Relationship '{rel.name or rel.id}' has an invalid cardinality and was skipped.",
                    path=path,
                )
            )
            continue
        try:
            _check_relationship(rel, tables_by_id, engine, check_types)
        except (ReferentialIntegrityError, TypeIncompatibility) as exc:
            issues.append(_issue(exc, path))
            continue
        link = (rel.source_table_id, rel.source_field_id, rel.target_table_id, rel.target_field_id)
        if link in seen_links:
            continue
        seen_links.add(link)
        ids.claim(rel, "relationship", issues)
        kept_relationships.append(rel)

    kept_dependencies: List[Dependency] = []
    seen_deps: Set[Tuple[str, str]] = set()
    for dep in copy.deepcopy(list(dependencies)):
        if dep.table_id not in tables_by_id or dep.dependent_table_id not in tables_by_id:
            issues.append(
                _dangling(
                    f"Dependency '{dep.id}' references a missing table and was skipped.",
                    f"/dependencies/{dep.id}",
                )
            )
            continue
        if (dep.table_id, dep.dependent_table_id) in seen_deps:
            continue
        seen_deps.add((dep.table_id, dep.dependent_table_id))
        ids.claim(dep, "dependency", issues)
        kept_dependencies.append(dep)

    kept_types: List[CustomType] = []
    type_keys: Set[Tuple[str, str]] = set()
    for custom in copy.deepcopy(list(custom_types)):
        key = table_key(custom.schema, custom.name, case_sensitive_names)
        if key in type_keys:
            issues.append(
                Issue(
                    severity="warn",
                    code="DUPLICATE_TYPE",
                    message=f"Custom type '{custom.name}' is defined more than once; the later definition was skipped.",
                    path=f"/custom_types/{custom.name}",
                )
            )
            continue
        type_keys.add(key)
        ids.claim(custom, "custom_type", issues)
        kept_types.append(custom)

    diagram = Diagram(
        name=name,
        database_type=engine,
        tables=kept_tables,
        relationships=kept_relationships,
        dependencies=kept_dependencies,
        custom_types=kept_types,
        areas=[dict(area) for area in areas],
    )
    if diagram_id:
        diagram.id = diagram_id

    for issue in issues:
        logger.warning("%s: %s", issue.code, issue.message)
    logger.debug(
        "built diagram with %d tables, %d relationships",
        len(kept_tables),
        len(kept_relationships),
    )
    return BuildResult(diagram=diagram, issues=issues)


def validate(diagram: Diagram) -> BuildResult:
    """Re-run the builder checks over an existing diagram.

    Names are compared exactly and relationship types are not re-checked, so
    an edited column type does not drop the relationship.
    """
    return build(
        diagram.tables,
        diagram.relationships,
        diagram.dependencies,
        diagram.custom_types,
        engine=diagram.database_type,
        name=diagram.name,
        areas=diagram.areas,
        diagram_id=diagram.id,
        check_types=False,
        case_sensitive_names=True,
    )
