import re

from erd_core.autofix import SPLIT_NUMERIC_FIX
from erd_core.ddl.base import (
    ORACLE_NUMBER,
    ORACLE_VARCHAR2,
    POSTGRES_SERIAL,
    SQLSERVER_BRACKETS,
    DialectParser,
    SkipRule,
)
from erd_core.engines import Engine

_FLAGS = re.IGNORECASE

MYSQL_SKIP_RULES = (
    SkipRule(
        category="dump_settings",
        pattern=re.compile(r"^\s*(?:set|lock\s+tables?|unlock\s+tables?|use|delimiter)\b", _FLAGS),
        message="Skipped mysqldump session statements (SET, USE, LOCK/UNLOCK TABLES).",
    ),
    SkipRule(
        category="data",
        pattern=re.compile(r"^\s*(?:insert|replace)\s+into\b", _FLAGS),
        message="Skipped INSERT statements; only structure is imported.",
    ),
    SkipRule(
        category="routine",
        pattern=re.compile(
            r"^\s*create\s+(?:definer\s*=\s*\S+\s+)?(?:procedure|function|trigger|event)\b", _FLAGS
        ),
        message="Skipped stored routines, triggers and events.",
    ),
)


class MySQLParser(DialectParser):
    engine = Engine.MYSQL
    display_name = "MySQL"
    # ':' has no cast meaning in MySQL.
    fixes = (SPLIT_NUMERIC_FIX,)
    hash_comments = True
    backtick_quotes = True
    skip_rules = MYSQL_SKIP_RULES
    foreign_syntax = (ORACLE_VARCHAR2, ORACLE_NUMBER, POSTGRES_SERIAL, SQLSERVER_BRACKETS)


class MariaDBParser(MySQLParser):
    engine = Engine.MARIADB
    display_name = "MariaDB"
