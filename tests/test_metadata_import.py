"""Tests for metadata-JSON normalization."""

import base64
import copy
import json
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "packages" / "core_engine" / "src"))

from erd_core.engines import Engine
from erd_core.errors import MetadataValidationError
from erd_core.metadata import (
    fix_metadata_json,
    get_adapter,
    is_metadata_payload,
    load_payload,
    normalize,
    select_tables,
)
from erd_core.model import MANY, ONE, VIEW_COLOR

FIXTURES = Path(__file__).resolve().parent / "fixtures"


def _b64(text, encoding="utf-8"):
    return base64.b64encode(text.encode(encoding)).decode("ascii")


@pytest.fixture
def pg_payload():
    return json.loads((FIXTURES / "shop_postgres_metadata.json").read_text(encoding="utf-8"))


def _table(diagram, name):
    for table in diagram.tables:
        if table.name == name:
            return table
    raise AssertionError(f"table {name} missing")


# ---------------------------------------------------------------------------
# PostgreSQL payload
# ---------------------------------------------------------------------------

class TestNormalizePostgres:
    def test_name_and_table_order(self, pg_payload):
        diagram = normalize(pg_payload, Engine.POSTGRESQL).diagram
        assert diagram.name == "shop"
        assert diagram.database_type == Engine.POSTGRESQL
        assert [t.name for t in diagram.tables] == ["orders", "users", "paid_orders"]

    def test_fields_ordered_and_deduplicated(self, pg_payload):
        diagram = normalize(pg_payload, "postgresql").diagram
        assert [f.name for f in _table(diagram, "orders").fields] == ["id", "user_id", "total"]
        assert [f.name for f in _table(diagram, "users").fields] == ["id", "email"]

    def test_column_coercion(self, pg_payload):
        diagram = normalize(pg_payload, "postgresql").diagram
        orders = _table(diagram, "orders")
        total = orders.field_by_name("total")
        assert (total.type.id, total.type.precision, total.type.scale) == ("numeric", 10, 2)
        assert total.nullable
        assert orders.field_by_name("id").increment
        assert orders.field_by_name("user_id").type.render() == "int"
        email = _table(diagram, "users").field_by_name("email")
        assert email.type.render() == "varchar(255)"
        assert not email.nullable

    def test_primary_key_and_indexes(self, pg_payload):
        diagram = normalize(pg_payload, "postgresql").diagram
        users = _table(diagram, "users")
        assert users.field_by_name("id").primary_key
        assert users.indexes[0].name == "users_pkey"
        assert users.indexes[0].is_primary_key
        assert [i.name for i in users.indexes if i.is_primary_key] == ["users_pkey"]
        assert users.field_by_name("email").unique

        orders = _table(diagram, "orders")
        pk_index = orders.indexes[0]
        assert pk_index.is_primary_key
        assert pk_index.field_ids == [orders.field_by_name("id").id]
        composite = orders.indexes[1]
        assert composite.name == "orders_user_total_idx"
        assert composite.field_ids == [orders.field_by_name("user_id").id, orders.field_by_name("total").id]
        assert composite.index_type == "btree"

    def test_relationship(self, pg_payload):
        diagram = normalize(pg_payload, "postgresql").diagram
        users = _table(diagram, "users")
        orders = _table(diagram, "orders")
        assert len(diagram.relationships) == 1
        rel = diagram.relationships[0]
        assert rel.name == "orders_user_id_fkey"
        assert (rel.source_table_id, rel.source_field_id) == (users.id, users.field_by_name("id").id)
        assert (rel.target_table_id, rel.target_field_id) == (orders.id, orders.field_by_name("user_id").id)
        assert (rel.source_cardinality, rel.target_cardinality) == (ONE, MANY)

    def test_view_and_dependency(self, pg_payload):
        diagram = normalize(pg_payload, "postgresql").diagram
        view = _table(diagram, "paid_orders")
        assert view.is_view
        assert not view.is_materialized_view
        assert view.color == VIEW_COLOR
        assert view.view_definition.startswith("SELECT id, user_id FROM orders")
        orders = _table(diagram, "orders")
        assert [(d.table_id, d.dependent_table_id) for d in diagram.dependencies] == [(orders.id, view.id)]

    def test_custom_types_and_checks(self, pg_payload):
        diagram = normalize(pg_payload, "postgresql").diagram
        assert [(c.name, c.kind, c.values) for c in diagram.custom_types] == [
            ("order_status", "enum", ["new", "paid"])
        ]
        orders = _table(diagram, "orders")
        check = orders.check_constraints[0]
        assert check.expression == "total >= 0"
        assert check.field_id == orders.field_by_name("total").id

    def test_skeleton_preserved(self, pg_payload):
        diagram = normalize(pg_payload, "postgresql").diagram
        expected = {(c["table"].split(".")[-1], c["name"]) for c in pg_payload["columns"]}
        actual = {(t.name, f.name) for t in diagram.tables for f in t.fields}
        assert actual == expected

    def test_accepts_json_text(self, pg_payload):
        diagram = normalize(json.dumps(pg_payload), "postgresql").diagram
        assert len(diagram.tables) == 3

    def test_materialized_view(self, pg_payload):
        payload = copy.deepcopy(pg_payload)
        payload["views"][0]["view_definition"] = _b64(
            "CREATE MATERIALIZED VIEW paid_orders AS SELECT id, user_id FROM orders"
        )
        view = _table(normalize(payload, "postgresql").diagram, "paid_orders")
        assert view.is_materialized_view

    def test_duplicate_column_warns(self, pg_payload):
        warnings = normalize(pg_payload, "postgresql").warnings
        assert "Column email appears more than once on table public.users; the later entry was skipped." in warnings

    def test_names_differing_in_case_are_distinct(self):
        payload = _payload(
            [
                {"schema": "public", "table": "Users", "name": "id", "type": "integer", "ordinal_position": 1},
                {"schema": "public", "table": "users", "name": "id", "type": "uuid", "ordinal_position": 1},
                {"schema": "public", "table": "users", "name": "email", "type": "text", "ordinal_position": 2},
            ]
        )
        payload["tables"] = [{"schema": "public", "table": "Users"}, {"schema": "public", "table": "users"}]
        result = normalize(payload, "postgresql")
        assert [t.name for t in result.diagram.tables] == ["Users", "users"]
        upper, lower = result.diagram.tables
        assert [(f.name, f.type.id) for f in upper.fields] == [("id", "int")]
        assert [f.name for f in lower.fields] == ["id", "email"]
        assert lower.fields[0].type.id == "uuid"
        assert not any("more than once" in w for w in result.warnings)

    def test_duplicate_table_row_skipped(self, pg_payload):
        payload = copy.deepcopy(pg_payload)
        payload["tables"].append({"schema": "public", "table": "users"})
        result = normalize(payload, "postgresql")
        assert [t.name for t in result.diagram.tables].count("users") == 1
        assert "Table public.users appears more than once in the payload; the later entry was skipped." in result.warnings
        assert [f.name for f in _table(result.diagram, "users").fields] == ["id", "email"]

    def test_missing_reference_table_warns(self, pg_payload):
        payload = copy.deepcopy(pg_payload)
        payload["fk_info"][0]["reference_table"] = "accounts"
        result = normalize(payload, "postgresql")
        assert result.diagram.relationships == []
        assert any("accounts" in w or "not in the payload" in w for w in result.warnings)


# ---------------------------------------------------------------------------
# Engine adapters
# ---------------------------------------------------------------------------

def _payload(columns, views=()):
    return {
        "fk_info": [],
        "pk_info": [],
        "columns": columns,
        "indexes": [],
        "tables": [{"schema": "dbo", "table": "accounts"}],
        "views": list(views),
    }


class TestAdapters:
    def test_sql_server_defaults_and_utf16_view(self):
        definition = "CREATE VIEW dbo.active_accounts AS SELECT id FROM dbo.accounts"
        payload = _payload(
            [
                {"schema": "dbo", "table": "accounts", "name": "id", "type": "int", "ordinal_position": 1, "nullable": False, "default": "((0))"},
                {"schema": "dbo", "table": "accounts", "name": "label", "type": "nvarchar", "ordinal_position": 2, "character_maximum_length": -1, "default": "('n/a')"},
            ],
            views=[{"schema": "dbo", "view_name": "active_accounts", "view_definition": _b64(definition, "utf-16-le")}],
        )
        diagram = normalize(payload, Engine.SQL_SERVER).diagram
        accounts = _table(diagram, "accounts")
        assert accounts.field_by_name("id").default == "0"
        label = accounts.field_by_name("label")
        assert label.default == "'n/a'"
        assert label.type.render() == "nvarchar(max)"
        view = _table(diagram, "active_accounts")
        assert view.view_definition == definition
        assert diagram.dependencies[0].table_id == accounts.id

    def test_mysql_quotes_string_defaults(self):
        adapter = get_adapter("mysql")
        status = adapter.field({"name": "status", "type": "varchar(20)", "default": "pending"})
        created = adapter.field({"name": "created", "type": "timestamp", "default": "CURRENT_TIMESTAMP"})
        count = adapter.field({"name": "n", "type": "int", "default": "0"})
        assert status.default == "'pending'"
        assert created.default == "CURRENT_TIMESTAMP"
        assert count.default == "0"

    def test_clickhouse_nullable_wrapper(self):
        adapter = get_adapter(Engine.CLICKHOUSE)
        column = adapter.field({"name": "title", "type": "Nullable(String)", "nullable": "false", "default": "null"})
        assert column.nullable
        assert column.default is None
        assert column.type.id == "string"

    def test_string_flags_and_null_lengths(self):
        adapter = get_adapter("sqlite")
        column = adapter.field(
            {"name": "code", "type": "varchar", "nullable": "false", "character_maximum_length": "null"}
        )
        assert not column.nullable
        assert column.type.length is None

    def test_plain_text_view_definition(self):
        adapter = get_adapter("cockroachdb")
        assert adapter.view_definition("SELECT 1 FROM t") == "SELECT 1 FROM t"
        assert adapter.view_definition("") is None
        assert adapter.view_definition(None) is None

    def test_postgres_table_names_cleaned(self):
        adapter = get_adapter("postgresql")
        assert adapter.table_name('"sales"."Orders"') == "Orders"
        assert adapter.table_name("public.orders") == "orders"


# ---------------------------------------------------------------------------
# Payload decoding, validation and selection
# ---------------------------------------------------------------------------

MINIMAL = {
    "fk_info": [],
    "pk_info": [],
    "columns": [],
    "indexes": [],
    "tables": [{"schema": "public", "table": "users"}],
}


class TestPayload:
    def test_valid_json_unchanged(self):
        text = json.dumps(MINIMAL)
        assert fix_metadata_json(text) == text

    def test_shell_escaped_payload_repaired(self):
        shell = "query result:\n" + json.dumps(json.dumps(MINIMAL)) + "\n(1 row)\n"
        assert json.loads(fix_metadata_json(shell)) == MINIMAL
        assert load_payload(shell) == MINIMAL

    def test_doubled_quotes_repaired(self):
        text = (
            '{""fk_info"": [], ""pk_info"": [], ""columns"": [], ""indexes"": [], '
            '""tables"": [{""schema"": """", ""table"": ""users""}]}'
        )
        repaired = json.loads(fix_metadata_json(text))
        assert repaired["tables"] == [{"schema": "", "table": "users"}]

    def test_undecodable_payload(self):
        with pytest.raises(MetadataValidationError) as info:
            load_payload("not json at all")
        assert info.value.issues[0].code == "INVALID_JSON"

    def test_non_object_payload(self):
        with pytest.raises(MetadataValidationError):
            load_payload("[1, 2]")

    def test_schema_violation(self):
        with pytest.raises(MetadataValidationError) as info:
            normalize({"tables": []}, "postgresql")
        assert all(issue.code == "METADATA_INVALID" for issue in info.value.issues)

    def test_validation_can_be_skipped(self):
        diagram = normalize({"tables": [{"table": "t"}]}, "generic", validate=False).diagram
        assert [t.name for t in diagram.tables] == ["t"]

    def test_is_metadata_payload(self):
        assert is_metadata_payload(json.dumps(MINIMAL))
        assert not is_metadata_payload('{"tables": []}')
        assert not is_metadata_payload("CREATE TABLE t (id int);")

    def test_select_tables(self, pg_payload):
        selected = select_tables(pg_payload, ["public.users"])
        assert [t["table"] for t in selected["tables"]] == ["users"]
        assert selected["views"] == []
        assert selected["fk_info"] == []
        assert {c["table"] for c in selected["columns"]} == {"users"}

    def test_select_tables_keeps_fk_between_selected(self, pg_payload):
        selected = select_tables(pg_payload, ["table:public.users", "table:public.orders"])
        assert len(selected["fk_info"]) == 1
        diagram = normalize(selected, "postgresql").diagram
        assert len(diagram.relationships) == 1
