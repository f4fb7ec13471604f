"""Tests for DBML import."""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "packages" / "core_engine" / "src"))

from erd_core.dbml import parse_dbml, preprocess_dbml
from erd_core.errors import DBMLSyntaxError
from erd_core.model import MANY, ONE

SHOP_DBML = """
Enum order_status {
  new
  paid
  shipped
}

Table users {
  id int [pk, increment]
  email varchar(255) [not null, unique]
  active bool [default: true]
  Note: 'App users'
}

Table orders {
  id int [pk]
  user_id int [not null, ref: > users.id]
  status order_status
  tags text[]
}

TableGroup core {
  users
  orders
}

Note overview {
  'Shop schema'
}
"""

INLINE_REF = """
Table users {
  id int [pk]
}

Table orders {
  id int [pk]
  user_id int [ref: > users.id]
}
"""

BLOCK_REF = """
Table users {
  id int [pk]
}

Table orders {
  id int [pk]
  user_id int
}

Ref: users.id < orders.user_id
"""


def _links(diagram):
    tables = {t.id: t for t in diagram.tables}
    links = []
    for rel in diagram.relationships:
        source = tables[rel.source_table_id]
        target = tables[rel.target_table_id]
        links.append(
            (
                source.name,
                source.field_by_id(rel.source_field_id).name,
                target.name,
                target.field_by_id(rel.target_field_id).name,
                rel.source_cardinality,
                rel.target_cardinality,
            )
        )
    return links


class TestParseDbml:
    def test_tables_and_fields(self):
        result = parse_dbml(SHOP_DBML)
        diagram = result.diagram
        assert diagram.name == "DBML Import"
        assert [t.name for t in diagram.tables] == ["users", "orders"]
        users = diagram.tables[0]
        assert users.schema is None
        assert users.comment == "App users"
        assert users.field_by_name("id").primary_key
        assert users.field_by_name("id").increment
        email = users.field_by_name("email")
        assert not email.nullable
        assert email.unique
        assert email.type.length == 255
        assert users.field_by_name("active").type.id == "boolean"

    def test_enum_becomes_custom_type(self):
        diagram = parse_dbml(SHOP_DBML).diagram
        assert [c.name for c in diagram.custom_types] == ["order_status"]
        assert diagram.custom_types[0].values == ["new", "paid", "shipped"]
        status = diagram.tables[1].field_by_name("status")
        assert status.enum_type == "order_status"

    def test_array_column_degraded_with_warning(self):
        result = parse_dbml(SHOP_DBML)
        tags = result.diagram.tables[1].field_by_name("tags")
        assert tags.type.id == "text"
        assert "Column orders.tags is an array (text[]); imported as text." in result.warnings

    def test_inline_ref(self):
        diagram = parse_dbml(SHOP_DBML).diagram
        assert _links(diagram) == [("users", "id", "orders", "user_id", ONE, MANY)]
        assert diagram.relationships[0].name == "users_id_orders_user_id"

    def test_ref_direction_equivalence(self):
        assert _links(parse_dbml(INLINE_REF).diagram) == _links(parse_dbml(BLOCK_REF).diagram)

    def test_one_to_one_ref(self):
        text = BLOCK_REF.replace("Ref: users.id < orders.user_id", "Ref: orders.user_id - users.id")
        assert _links(parse_dbml(text).diagram) == [("users", "id", "orders", "user_id", ONE, ONE)]

    def test_empty_text(self):
        result = parse_dbml("   ")
        assert result.diagram.tables == []
        assert result.warnings == []

    def test_syntax_error(self):
        with pytest.raises(DBMLSyntaxError) as info:
            parse_dbml("Table users {\n  id int [pk\n}\n")
        assert info.value.line is not None


class TestPreprocessDbml:
    def test_blocks_removed_line_count_kept(self):
        text, warnings = preprocess_dbml(SHOP_DBML)
        assert "TableGroup" not in text
        assert "Shop schema" not in text
        assert text.count("\n") == SHOP_DBML.count("\n")
        assert len(warnings) == 1

    def test_plain_text_untouched(self):
        assert preprocess_dbml(INLINE_REF) == (INLINE_REF, [])
