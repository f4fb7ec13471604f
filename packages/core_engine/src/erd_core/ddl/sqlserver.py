import re

from erd_core.autofix import SPLIT_NUMERIC_FIX
from erd_core.ddl.base import (
    MYSQL_AUTO_INCREMENT,
    ORACLE_NUMBER,
    ORACLE_VARCHAR2,
    POSTGRES_SERIAL,
    DialectParser,
    SkipRule,
)
from erd_core.engines import Engine

_FLAGS = re.IGNORECASE

# Batch separator understood by sqlcmd/SSMS, not by the server.
GO_LINE_RE = re.compile(r"^[ \t]*GO(?:[ \t]+\d+)?[ \t]*$", re.IGNORECASE | re.MULTILINE)

SQLSERVER_SKIP_RULES = (
    SkipRule(
        category="session",
        pattern=re.compile(r"^\s*(?:set|use|print)\b", _FLAGS),
        message="Skipped SET/USE session statements.",
    ),
    SkipRule(
        category="routine",
        pattern=re.compile(
            r"^\s*(?:create|alter)\s+(?:or\s+alter\s+)?(?:proc|procedure|function|trigger)\b", _FLAGS
        ),
        message="Skipped stored procedures, functions and triggers.",
    ),
    SkipRule(
        category="exec",
        pattern=re.compile(r"^\s*exec(?:ute)?\b", _FLAGS),
        message="Skipped EXEC statements.",
    ),
)


class SQLServerParser(DialectParser):
    engine = Engine.SQL_SERVER
    display_name = "SQL Server"
    fixes = (SPLIT_NUMERIC_FIX,)
    bracket_quotes = True
    skip_rules = SQLSERVER_SKIP_RULES
    foreign_syntax = (ORACLE_VARCHAR2, ORACLE_NUMBER, MYSQL_AUTO_INCREMENT, POSTGRES_SERIAL)

    def preprocess(self, sql: str) -> str:
        # A GO line ends the statement; the line itself is kept so numbering holds.
        return GO_LINE_RE.sub(";", sql)
