"""Tests for type parsing and foreign-key compatibility."""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "packages" / "core_engine" / "src"))

from erd_core.data_types import compatible, normalize_type_id, parse_type, type_family
from erd_core.engines import Engine
from erd_core.model import DataType


class TestParseType:
    def test_length_type(self):
        parsed = parse_type("VARCHAR(255)")
        assert parsed.data_type == DataType(id="varchar", length=255)
        assert not parsed.is_array

    def test_precision_and_scale(self):
        assert parse_type("decimal(15, 2)").data_type == DataType(id="decimal", precision=15, scale=2)

    def test_max_length(self):
        data_type = parse_type("nvarchar(max)").data_type
        assert data_type.length == -1
        assert data_type.render() == "nvarchar(max)"

    def test_multiword_alias(self):
        assert parse_type("character varying(40)").data_type.id == "varchar"
        assert parse_type("timestamp without time zone").data_type.id == "timestamp"

    def test_array_suffix(self):
        parsed = parse_type("text[]")
        assert parsed.data_type.id == "text"
        assert parsed.is_array

    def test_clickhouse_wrappers(self):
        assert parse_type("Nullable(String)").data_type.id == "string"
        assert parse_type("LowCardinality(String)").data_type.id == "string"
        assert parse_type("Array(UInt32)").is_array

    def test_unsigned_modifier_dropped(self):
        assert parse_type("int unsigned").data_type.id == "int"

    def test_render_round_trip(self):
        for text in ("varchar(20)", "decimal(10,2)", "int", "timestamp(6)"):
            assert DataType.parse(text).render() == text


class TestNormalizeTypeId:
    def test_aliases(self):
        assert normalize_type_id("INTEGER") == "int"
        assert normalize_type_id("int8") == "bigint"
        assert normalize_type_id('"bool"') == "boolean"

    def test_unknown_kept(self):
        assert normalize_type_id("geography") == "geography"


class TestCompatible:
    def test_same_type(self):
        assert compatible("int", "INTEGER")

    def test_same_family(self):
        assert compatible("int", "bigint")
        assert compatible("varchar(20)", "text")
        assert type_family("numeric") == "decimal"

    def test_different_families(self):
        assert not compatible("int", "varchar")
        assert not compatible("uuid", "int")

    def test_serial_joins_integer(self):
        assert compatible("serial", "integer", Engine.POSTGRESQL)

    def test_mysql_tinyint_boolean(self):
        assert compatible("tinyint(1)", "boolean", Engine.MYSQL)
        assert not compatible("tinyint", "boolean", Engine.POSTGRESQL)

    def test_sqlite_integer_numeric(self):
        assert compatible("integer", "numeric", Engine.SQLITE)
        assert not compatible("integer", "numeric", Engine.GENERIC)

    def test_accepts_data_type_objects(self):
        assert compatible(DataType(id="bigint"), DataType(id="smallint"))
