import re

from erd_core.ddl.base import (
    MYSQL_AUTO_INCREMENT,
    ORACLE_NUMBER,
    ORACLE_VARCHAR2,
    DialectParser,
    SkipRule,
)
from erd_core.engines import Engine

_FLAGS = re.IGNORECASE

POSTGRES_SKIP_RULES = (
    SkipRule(
        category="extension",
        pattern=re.compile(r"^\s*create\s+extension\b", _FLAGS),
        message="Skipped CREATE EXTENSION statements; extensions are not part of the diagram.",
    ),
    SkipRule(
        category="function",
        pattern=re.compile(r"^\s*create\s+(?:or\s+replace\s+)?function\b", _FLAGS),
        message="Skipped function definitions.",
    ),
    SkipRule(
        category="trigger",
        pattern=re.compile(r"^\s*create\s+(?:or\s+replace\s+)?(?:constraint\s+)?trigger\b", _FLAGS),
        message="Skipped trigger definitions.",
    ),
    SkipRule(
        category="procedure",
        pattern=re.compile(r"^\s*(?:create\s+(?:or\s+replace\s+)?procedure|do)\b", _FLAGS),
        message="Skipped procedures and anonymous code blocks.",
    ),
    SkipRule(
        category="dump_settings",
        pattern=re.compile(
            r"^\s*(?:set\s|select\s+pg_catalog\.set_config|alter\s+\w+(?:\s+\w+)?\s+[\w\".]+\s+owner\s+to\b)",
            _FLAGS,
        ),
        message="Skipped pg_dump session settings and ownership statements.",
    ),
)


class PostgresParser(DialectParser):
    engine = Engine.POSTGRESQL
    display_name = "PostgreSQL"
    dollar_quotes = True
    skip_rules = POSTGRES_SKIP_RULES
    foreign_syntax = (ORACLE_VARCHAR2, ORACLE_NUMBER, MYSQL_AUTO_INCREMENT)


class CockroachParser(PostgresParser):
    """CockroachDB speaks the PostgreSQL wire dialect for DDL."""

    engine = Engine.COCKROACHDB
    display_name = "CockroachDB"
