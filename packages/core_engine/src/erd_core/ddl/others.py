"""Parsers for engines that need no pre-processing beyond their dialect."""

import re

from erd_core.autofix import SPLIT_NUMERIC_FIX
from erd_core.ddl.base import (
    ENUM_COLUMN,
    MYSQL_AUTO_INCREMENT,
    ORACLE_NUMBER,
    ORACLE_VARCHAR2,
    POSTGRES_SERIAL,
    DialectParser,
    SkipRule,
)
from erd_core.engines import Engine


class GenericParser(DialectParser):
    engine = Engine.GENERIC
    display_name = "Generic SQL"


class SQLiteParser(DialectParser):
    engine = Engine.SQLITE
    display_name = "SQLite"
    fixes = (SPLIT_NUMERIC_FIX,)
    backtick_quotes = True
    bracket_quotes = True
    foreign_syntax = (ORACLE_VARCHAR2, ORACLE_NUMBER, ENUM_COLUMN)
    skip_rules = (
        SkipRule(
            category="pragma",
            pattern=re.compile(r"^\s*(?:pragma|begin|commit)\b", re.IGNORECASE),
            message="Skipped PRAGMA and transaction statements.",
        ),
        SkipRule(
            category="trigger",
            pattern=re.compile(r"^\s*create\s+(?:temp(?:orary)?\s+)?trigger\b", re.IGNORECASE),
            message="Skipped trigger definitions.",
        ),
    )


class OracleParser(DialectParser):
    engine = Engine.ORACLE
    display_name = "Oracle"
    fixes = (SPLIT_NUMERIC_FIX,)
    foreign_syntax = (MYSQL_AUTO_INCREMENT, POSTGRES_SERIAL)
    skip_rules = (
        SkipRule(
            category="plsql",
            pattern=re.compile(
                r"^\s*(?:create\s+(?:or\s+replace\s+)?(?:procedure|function|trigger|package|sequence)|begin|declare)\b",
                re.IGNORECASE,
            ),
            message="Skipped PL/SQL blocks and sequences.",
        ),
    )


class ClickHouseParser(DialectParser):
    engine = Engine.CLICKHOUSE
    display_name = "ClickHouse"
    fixes = (SPLIT_NUMERIC_FIX,)
    backtick_quotes = True
