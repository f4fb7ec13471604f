import copy
import random
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "packages" / "core_engine" / "src"))

from erd_core.diffing import ADDED, CHANGED, REMOVED, Change, diff, summarize
from erd_core.engines import Engine
from erd_core.model import (
    DataType,
    Dependency,
    Diagram,
    Field,
    Index,
    IndexColumn,
    Relationship,
    Table,
)


def _diagram():
    users = Table(
        name="users",
        fields=[
            Field(name="id", type=DataType(id="int"), nullable=False, primary_key=True),
            Field(name="email", type=DataType(id="varchar", length=255)),
        ],
    )
    orders = Table(
        name="orders",
        fields=[
            Field(name="id", type=DataType(id="int"), nullable=False, primary_key=True),
            Field(name="user_id", type=DataType(id="int")),
            Field(name="total", type=DataType(id="decimal", precision=10, scale=2)),
        ],
    )
    orders.indexes.append(Index(name="orders_user_idx", columns=[IndexColumn(field_id=orders.fields[1].id)]))
    view = Table(name="big_orders", is_view=True, view_definition="SELECT * FROM orders")
    return Diagram(
        name="shop",
        database_type=Engine.POSTGRESQL,
        tables=[users, orders, view],
        relationships=[
            Relationship(
                source_table_id=users.id,
                source_field_id=users.fields[0].id,
                target_table_id=orders.id,
                target_field_id=orders.fields[1].id,
            )
        ],
        dependencies=[Dependency(table_id=orders.id, dependent_table_id=view.id)],
    )


def _kinds(changes):
    return [(c.kind, c.object, c.attribute) for c in changes]


class TestDiff:
    def test_identical_snapshots(self):
        diagram = _diagram()
        assert diff(diagram, diagram) == []
        assert diff(diagram, copy.deepcopy(diagram)) == []

    def test_empty_snapshots(self):
        empty = Diagram()
        assert diff(empty, copy.deepcopy(empty)) == []

    def test_rename_is_a_change_not_add_remove(self):
        before = _diagram()
        after = copy.deepcopy(before)
        after.tables[0].name = "accounts"
        changes = diff(before, after)
        assert changes == [
            Change(CHANGED, "table", before.tables[0].id, "name", "users", "accounts")
        ]

    def test_field_changes_carry_owner(self):
        before = _diagram()
        after = copy.deepcopy(before)
        email = after.tables[0].fields[1]
        email.nullable = False
        email.type = DataType(id="varchar", length=100)
        changes = diff(before, after)
        assert _kinds(changes) == [(CHANGED, "field", "nullable"), (CHANGED, "field", "type")]
        assert changes[1].old_value == {"id": "varchar", "length": 255, "precision": None, "scale": None}
        assert changes[1].new_value["length"] == 100
        assert all(c.parent_id == before.tables[0].id for c in changes)

    def test_scale_change_without_precision(self):
        before = _diagram()
        before.tables[1].fields[2].type = DataType(id="numeric", scale=2)
        after = copy.deepcopy(before)
        after.tables[1].fields[2].type = DataType(id="numeric", scale=4)
        changes = diff(before, after)
        assert _kinds(changes) == [(CHANGED, "field", "type")]
        assert (changes[0].old_value["scale"], changes[0].new_value["scale"]) == (2, 4)

    def test_scale_reduction_is_breaking(self):
        before = _diagram()
        before.tables[1].fields[2].type = DataType(id="numeric", scale=4)
        after = copy.deepcopy(before)
        after.tables[1].fields[2].type = DataType(id="numeric", scale=2)
        report = summarize(diff(before, after), before, after)
        assert report["breaking_changes"] == ["Field type narrowed: orders.total (numeric -> numeric)"]

    def test_added_and_removed_entities(self):
        before = _diagram()
        after = copy.deepcopy(before)
        removed = after.tables.pop(2)
        after.dependencies = []
        added = Field(name="shipped_at", type=DataType(id="timestamp"))
        after.tables[1].fields.append(added)
        changes = diff(before, after)
        by_id = {c.entity_id: c for c in changes}
        assert by_id[removed.id].kind == REMOVED
        assert by_id[removed.id].old_value["name"] == "big_orders"
        assert by_id[before.dependencies[0].id].kind == REMOVED
        assert by_id[added.id].kind == ADDED
        assert by_id[added.id].new_value["name"] == "shipped_at"
        assert by_id[added.id].parent_id == after.tables[1].id

    def test_field_moved_between_tables(self):
        before = _diagram()
        after = copy.deepcopy(before)
        moved = after.tables[0].fields.pop(1)
        after.tables[1].fields.append(moved)
        changes = diff(before, after)
        assert _kinds(changes) == [(CHANGED, "field", "table_id")]
        assert changes[0].old_value == before.tables[0].id
        assert changes[0].new_value == before.tables[1].id

    def test_index_and_relationship_changes(self):
        before = _diagram()
        after = copy.deepcopy(before)
        after.tables[1].indexes[0].unique = True
        after.relationships[0].target_cardinality = "one"
        changes = diff(before, after)
        assert sorted(_kinds(changes)) == [
            (CHANGED, "index", "unique"),
            (CHANGED, "relationship", "target_cardinality"),
        ]
        index_change = [c for c in changes if c.object == "index"][0]
        assert index_change.parent_id == before.tables[1].id

    def test_diagram_attributes(self):
        before = _diagram()
        after = copy.deepcopy(before)
        after.name = "store"
        after.database_type = Engine.MYSQL
        changes = diff(before, after)
        assert [(c.object, c.attribute, c.old_value, c.new_value) for c in changes] == [
            ("diagram", "database_type", "postgresql", "mysql"),
            ("diagram", "name", "shop", "store"),
        ]
        assert changes[0].entity_id == before.id

    def test_order_independent(self):
        before = _diagram()
        after = copy.deepcopy(before)
        after.tables[0].name = "accounts"
        after.tables[1].fields[2].type = DataType(id="decimal", precision=8, scale=2)
        expected = diff(before, after)

        shuffled = copy.deepcopy(after)
        rng = random.Random(7)
        rng.shuffle(shuffled.tables)
        for table in shuffled.tables:
            rng.shuffle(table.fields)
        assert diff(before, shuffled) == expected

    def test_symmetry(self):
        before = _diagram()
        after = copy.deepcopy(before)
        after.tables[0].comment = "people"
        after.tables.pop(2)
        after.dependencies = []
        forward = diff(before, after)
        backward = diff(after, before)
        flipped = {ADDED: REMOVED, REMOVED: ADDED, CHANGED: CHANGED}
        assert sorted((flipped[c.kind], c.object, c.entity_id, c.attribute) for c in forward) == sorted(
            (c.kind, c.object, c.entity_id, c.attribute) for c in backward
        )

    def test_change_serialization(self):
        change = Change(CHANGED, "field", "f1", "nullable", True, False, "t1")
        assert change.to_dict() == {
            "kind": "changed",
            "object": "field",
            "entity_id": "f1",
            "attribute": "nullable",
            "old_value": True,
            "new_value": False,
            "parent_id": "t1",
        }
        assert change.describe() == "field f1 nullable: True -> False"
        assert Change(ADDED, "table", "t2").describe() == "table t2 added"


class TestSummarize:
    def test_no_changes(self):
        report = summarize([])
        assert report["summary"]["total"] == 0
        assert report["breaking_changes"] == []
        assert not report["has_breaking_changes"]

    def test_breaking_changes(self):
        before = _diagram()
        after = copy.deepcopy(before)
        users, orders = after.tables[0], after.tables[1]
        users.fields[1].nullable = False
        orders.fields[2].type = DataType(id="decimal", precision=8, scale=2)
        orders.fields[0].primary_key = False
        orders.indexes.append(Index(name="orders_total_key", unique=True, columns=[IndexColumn(field_id=orders.fields[2].id)]))
        after.tables.pop(2)
        after.dependencies = []

        report = summarize(diff(before, after), before, after)
        assert report["has_breaking_changes"]
        assert report["breaking_changes"] == [
            "Field became non-nullable: users.email",
            "Field type narrowed: orders.total (decimal(10,2) -> decimal(8,2))",
            "Primary key changed: orders.id",
            "Table removed: big_orders",
            "Unique index added: orders.orders_total_key",
        ]
        assert report["summary"]["breaking_change_count"] == 5
        assert report["summary"]["by_object"]["table"] == {"added": 0, "removed": 1, "changed": 0}

    def test_widening_is_not_breaking(self):
        before = _diagram()
        after = copy.deepcopy(before)
        after.tables[0].fields[1].type = DataType(id="varchar", length=500)
        after.tables[1].fields[1].nullable = False
        after.tables[1].fields[1].nullable = True
        after.tables[0].comment = "people"
        after.tables[1].fields.append(Field(name="note", type=DataType(id="text")))
        report = summarize(diff(before, after), before, after)
        assert report["breaking_changes"] == []
        assert report["summary"]["total"] == 3

    def test_removed_field(self):
        before = _diagram()
        after = copy.deepcopy(before)
        after.tables[0].fields.pop(1)
        report = summarize(diff(before, after), before, after)
        assert report["breaking_changes"] == ["Field removed: users.email"]

    def test_type_family_change_is_narrowing(self):
        before = _diagram()
        after = copy.deepcopy(before)
        after.tables[1].fields[1].type = DataType(id="varchar", length=36)
        report = summarize(diff(before, after))
        assert len(report["breaking_changes"]) == 1
        assert report["breaking_changes"][0].startswith("Field type narrowed:")
