"""Tests for content-type detection."""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "packages" / "core_engine" / "src"))

from erd_core.classifier import ContentType, classify, classify_or_raise
from erd_core.errors import ClassificationAmbiguous


class TestClassify:
    def test_create_table_is_ddl(self):
        assert classify("CREATE TABLE users (id int);") == ContentType.DDL

    def test_alter_table_is_ddl(self):
        assert classify("alter table users add column email text;") == ContentType.DDL

    def test_table_block_is_dbml(self):
        text = """
        Table users {
          id int [pk]
        }
        """
        assert classify(text) == ContentType.DBML

    def test_dbml_wins_over_embedded_sql(self):
        text = """
        Table users {
          id int [pk]
          Note: 'replaces CREATE TABLE users in the legacy schema'
        }
        """
        assert classify(text) == ContentType.DBML

    def test_ref_line_is_dbml(self):
        assert classify("Ref: orders.user_id > users.id") == ContentType.DBML

    def test_json_object_is_query(self):
        assert classify('{"fk_info": [], "pk_info": []}') == ContentType.QUERY

    def test_json_array_is_query(self):
        assert classify("  [1, 2, 3]  ") == ContentType.QUERY

    def test_empty_and_whitespace_are_unknown(self):
        assert classify("") is None
        assert classify("   \n\t ") is None

    def test_prose_is_unknown(self):
        assert classify("hello world, nothing to see") is None

    def test_keywords_need_word_boundaries(self):
        assert classify("recreate tablets later") is None


class TestClassifyOrRaise:
    def test_returns_type(self):
        assert classify_or_raise("CREATE VIEW v AS SELECT 1;") == ContentType.DDL

    def test_raises_on_unknown(self):
        with pytest.raises(ClassificationAmbiguous):
            classify_or_raise("just some words")
