"""Tests for the SQL auto-fix pass and statement splitting."""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "packages" / "core_engine" / "src"))

from erd_core.autofix import CAST_OPERATOR_FIX, SPLIT_NUMERIC_FIX, run_autofix
from erd_core.ddl.statements import split_statements

SPLIT_DECIMAL_SQL = """CREATE TABLE invoices (
  id int PRIMARY KEY,
  amount DECIMAL(15,
2) NOT NULL,
  note text
);
CREATE TABLE lines (id int);
"""


class TestAutoFix:
    def test_split_decimal_rejoined(self):
        result = run_autofix(SPLIT_DECIMAL_SQL)
        assert "DECIMAL(15,2)" in result.sql
        assert result.applied == {"split_numeric": 1}
        assert result.warnings == ["Auto-fixed split DECIMAL/NUMERIC type declarations (1 occurrence)."]

    def test_split_decimal_keeps_line_count(self):
        result = run_autofix(SPLIT_DECIMAL_SQL)
        assert result.sql.count("\n") == SPLIT_DECIMAL_SQL.count("\n")

    def test_single_line_decimal_untouched(self):
        sql = "CREATE TABLE t (amount DECIMAL(10, 2));"
        result = run_autofix(sql)
        assert result.sql == sql
        assert not result.changed
        assert result.warnings == []

    def test_cast_operator(self):
        result = run_autofix("CREATE TABLE t (d text DEFAULT 'x': :text);")
        assert "'x'::text" in result.sql
        assert result.applied == {"cast_operator": 1}

    def test_fix_selection(self):
        sql = "CREATE TABLE t (d text DEFAULT 'x': :text);"
        result = run_autofix(sql, (SPLIT_NUMERIC_FIX,))
        assert result.sql == sql

    def test_idempotent(self):
        sources = [
            SPLIT_DECIMAL_SQL,
            "CREATE TABLE t (a NUMERIC(\n 8 ,\n 3 ), d text DEFAULT 'x': :text);",
            "CREATE TABLE t (id int);",
        ]
        for sql in sources:
            once = run_autofix(sql, (SPLIT_NUMERIC_FIX, CAST_OPERATOR_FIX)).sql
            twice = run_autofix(once, (SPLIT_NUMERIC_FIX, CAST_OPERATOR_FIX))
            assert twice.sql == once
            assert not twice.changed


class TestSplitStatements:
    def test_splits_and_tracks_lines(self):
        statements = split_statements("CREATE TABLE a (id int);\n\nCREATE TABLE b (id int);\n")
        assert [s.line for s in statements] == [1, 3]
        assert statements[1].text == "CREATE TABLE b (id int)"

    def test_semicolon_in_string_and_comment(self):
        sql = "-- first; comment\nCREATE TABLE a (note text DEFAULT 'a;b');\n/* x; y */ CREATE TABLE b (id int);"
        statements = split_statements(sql)
        assert len(statements) == 2
        assert "'a;b'" in statements[0].text
        assert statements[0].line == 2
        assert statements[1].line == 3

    def test_empty_statements_dropped(self):
        assert split_statements(";;  ;\n") == []

    def test_hash_comments_only_when_enabled(self):
        sql = "# note; here\nCREATE TABLE a (id int);"
        assert len(split_statements(sql, hash_comments=True)) == 1
        assert len(split_statements(sql)) == 2

    def test_dollar_quoted_body(self):
        sql = "CREATE FUNCTION f() RETURNS int AS $$ BEGIN RETURN 1; END; $$ LANGUAGE plpgsql;\nCREATE TABLE a (id int);"
        statements = split_statements(sql, dollar_quotes=True)
        assert len(statements) == 2
        assert statements[1].line == 2

    def test_bracket_quotes(self):
        sql = "CREATE TABLE [odd;name] (id int);"
        assert len(split_statements(sql, bracket_quotes=True)) == 1

    def test_absolute_line(self):
        statement = split_statements("\n\nCREATE TABLE a (\n id int\n);")[0]
        assert statement.line == 3
        assert statement.absolute_line(2) == 4
