from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from erd_core.model import DataType, Diagram, Field, Index

ADDED = "added"
REMOVED = "removed"
CHANGED = "changed"

DIAGRAM = "diagram"
TABLE = "table"
FIELD = "field"
INDEX = "index"
CHECK_CONSTRAINT = "check_constraint"
RELATIONSHIP = "relationship"
DEPENDENCY = "dependency"
CUSTOM_TYPE = "custom_type"


@dataclass(frozen=True)
class Change:
    kind: str
    object: str
    entity_id: str
    attribute: Optional[str] = None
    old_value: Any = None
    new_value: Any = None
    parent_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def describe(self) -> str:
        if self.kind == CHANGED:
            return f"{self.object} {self.entity_id} {self.attribute}: {self.old_value!r} -> {self.new_value!r}"
        return f"{self.object} {self.entity_id} {self.kind}"


def _index_columns(index: Index) -> List[List[str]]:
    return [[column.field_id, column.direction] for column in index.columns]


# attribute name -> value read from the entity; values must compare with ==.
TABLE_ATTRIBUTES: Dict[str, Callable[[Any], Any]] = {
    "name": lambda t: t.name,
    "schema": lambda t: t.schema,
    "color": lambda t: t.color,
    "comment": lambda t: t.comment,
    "is_view": lambda t: t.is_view,
    "is_materialized_view": lambda t: t.is_materialized_view,
    "view_definition": lambda t: t.view_definition,
}

FIELD_ATTRIBUTES: Dict[str, Callable[[Field], Any]] = {
    "name": lambda f: f.name,
    "type": lambda f: asdict(f.type),
    "nullable": lambda f: f.nullable,
    "unique": lambda f: f.unique,
    "primary_key": lambda f: f.primary_key,
    "default": lambda f: f.default,
    "collation": lambda f: f.collation,
    "comment": lambda f: f.comment,
    "enum_type": lambda f: f.enum_type,
    "increment": lambda f: f.increment,
}

INDEX_ATTRIBUTES: Dict[str, Callable[[Index], Any]] = {
    "name": lambda i: i.name,
    "unique": lambda i: i.unique,
    "columns": _index_columns,
    "index_type": lambda i: i.index_type,
    "is_primary_key": lambda i: i.is_primary_key,
}

CHECK_ATTRIBUTES: Dict[str, Callable[[Any], Any]] = {
    "expression": lambda c: c.expression,
    "field_id": lambda c: c.field_id,
    "name": lambda c: c.name,
}

RELATIONSHIP_ATTRIBUTES: Dict[str, Callable[[Any], Any]] = {
    "name": lambda r: r.name,
    "source_table_id": lambda r: r.source_table_id,
    "source_field_id": lambda r: r.source_field_id,
    "target_table_id": lambda r: r.target_table_id,
    "target_field_id": lambda r: r.target_field_id,
    "source_cardinality": lambda r: r.source_cardinality,
    "target_cardinality": lambda r: r.target_cardinality,
}

DEPENDENCY_ATTRIBUTES: Dict[str, Callable[[Any], Any]] = {
    "table_id": lambda d: d.table_id,
    "dependent_table_id": lambda d: d.dependent_table_id,
}

CUSTOM_TYPE_ATTRIBUTES: Dict[str, Callable[[Any], Any]] = {
    "name": lambda c: c.name,
    "schema": lambda c: c.schema,
    "kind": lambda c: c.kind,
    "values": lambda c: list(c.values),
    "fields": lambda c: [[f.name, f.type] for f in c.fields],
}


def _compare(
    obj: str,
    before: Dict[str, Tuple[Optional[str], Any]],
    after: Dict[str, Tuple[Optional[str], Any]],
    attributes: Dict[str, Callable[[Any], Any]],
    owner_attribute: Optional[str] = None,
) -> Iterable[Change]:
    """Yield changes for one entity kind.

    ``before`` and ``after`` map entity id to ``(parent id, entity)``.
    """
    for entity_id in before.keys() - after.keys():
        parent, entity = before[entity_id]
        yield Change(REMOVED, obj, entity_id, old_value=asdict(entity), parent_id=parent)
    for entity_id in after.keys() - before.keys():
        parent, entity = after[entity_id]
        yield Change(ADDED, obj, entity_id, new_value=asdict(entity), parent_id=parent)
    for entity_id in before.keys() & after.keys():
        old_parent, old = before[entity_id]
        new_parent, new = after[entity_id]
        if owner_attribute and old_parent != new_parent:
            yield Change(CHANGED, obj, entity_id, owner_attribute, old_parent, new_parent, new_parent)
        for attribute, read in attributes.items():
            old_value, new_value = read(old), read(new)
            if old_value != new_value:
                yield Change(CHANGED, obj, entity_id, attribute, old_value, new_value, new_parent)


def _unowned(entities: Dict[str, Any]) -> Dict[str, Tuple[Optional[str], Any]]:
    return {key: (None, value) for key, value in entities.items()}


def diff(before: Diagram, after: Diagram) -> List[Change]:
    """Compare two snapshots entity by entity, matching on id.

    Every changed attribute is its own record; added and removed entities
    carry the whole entity as a dict. The result is sorted by entity id, then
    attribute, then kind, so it does not depend on collection order.
    """
    old, new = before.arena(), after.arena()
    changes: List[Change] = []

    diagram_id = after.id if before.id == after.id else DIAGRAM
    for attribute in ("name", "database_type"):
        old_value, new_value = getattr(before, attribute), getattr(after, attribute)
        if old_value != new_value:
            changes.append(Change(CHANGED, DIAGRAM, diagram_id, attribute, _plain(old_value), _plain(new_value)))

    changes.extend(_compare(TABLE, _unowned(old.tables), _unowned(new.tables), TABLE_ATTRIBUTES))
    changes.extend(_compare(FIELD, old.fields, new.fields, FIELD_ATTRIBUTES, owner_attribute="table_id"))
    changes.extend(_compare(INDEX, old.indexes, new.indexes, INDEX_ATTRIBUTES, owner_attribute="table_id"))
    changes.extend(
        _compare(CHECK_CONSTRAINT, old.check_constraints, new.check_constraints, CHECK_ATTRIBUTES, owner_attribute="table_id")
    )
    changes.extend(
        _compare(RELATIONSHIP, _unowned(old.relationships), _unowned(new.relationships), RELATIONSHIP_ATTRIBUTES)
    )
    changes.extend(
        _compare(DEPENDENCY, _unowned(old.dependencies), _unowned(new.dependencies), DEPENDENCY_ATTRIBUTES)
    )
    changes.extend(
        _compare(CUSTOM_TYPE, _unowned(old.custom_types), _unowned(new.custom_types), CUSTOM_TYPE_ATTRIBUTES)
    )

    changes.sort(key=lambda c: (c.entity_id, c.attribute or "", c.kind, c.object))
    return changes


def _plain(value: Any) -> Any:
    return getattr(value, "value", value)


def _narrowed(old: DataType, new: DataType) -> bool:
    """True unless the new type is the same type at an equal or larger size."""
    if old.id != new.id:
        return True
    if old.length is not None and new.length is not None:
        if old.length == -1:
            return new.length != -1
        return new.length != -1 and new.length < old.length
    if old.precision is not None and new.precision is not None:
        return new.precision < old.precision or (new.scale or 0) < (old.scale or 0)
    if old.precision is None and new.precision is None:
        return (new.scale or 0) < (old.scale or 0)
    return False


def _label(change: Change, names: Dict[str, str]) -> str:
    value = change.new_value if change.kind == ADDED else change.old_value
    if change.kind != CHANGED and isinstance(value, dict) and value.get("name"):
        own = value["name"]
    else:
        own = names.get(change.entity_id, change.entity_id)
    if change.parent_id and change.parent_id in names:
        return f"{names[change.parent_id]}.{own}"
    return own


def summarize(changes: List[Change], before: Optional[Diagram] = None, after: Optional[Diagram] = None) -> Dict[str, Any]:
    """Count changes per object kind and list the breaking ones."""
    names: Dict[str, str] = {}
    for snapshot in (before, after):
        if snapshot is None:
            continue
        for table in snapshot.tables:
            names[table.id] = table.qualified_name
            for column in table.fields:
                names[column.id] = column.name
            for index in table.indexes:
                names[index.id] = index.name

    counts: Dict[str, Dict[str, int]] = {}
    breaking_changes: List[str] = []
    for change in changes:
        bucket = counts.setdefault(change.object, {ADDED: 0, REMOVED: 0, CHANGED: 0})
        bucket[change.kind] += 1
        label = _label(change, names)

        if change.kind == REMOVED and change.object == TABLE:
            breaking_changes.append(f"Table removed: {label}")
        elif change.kind == REMOVED and change.object == FIELD:
            breaking_changes.append(f"Field removed: {label}")
        elif change.kind == CHANGED and change.object == FIELD:
            if change.attribute == "type":
                old_type, new_type = DataType(**change.old_value), DataType(**change.new_value)
                if _narrowed(old_type, new_type):
                    breaking_changes.append(
                        f"Field type narrowed: {label} ({old_type.render()} -> {new_type.render()})"
                    )
            elif change.attribute == "nullable" and change.old_value and not change.new_value:
                breaking_changes.append(f"Field became non-nullable: {label}")
            elif change.attribute == "primary_key":
                breaking_changes.append(f"Primary key changed: {label}")
        elif change.kind == ADDED and change.object == INDEX and (change.new_value or {}).get("unique"):
            breaking_changes.append(f"Unique index added: {label}")

    breaking = sorted(set(breaking_changes))
    return {
        "summary": {
            "total": len(changes),
            "by_object": counts,
            "breaking_change_count": len(breaking),
        },
        "breaking_changes": breaking,
        "has_breaking_changes": bool(breaking),
    }
