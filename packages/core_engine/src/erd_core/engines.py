"""Supported database engines."""

from enum import Enum
from typing import Dict, List, Optional, Union


class Engine(str, Enum):
    GENERIC = "generic"
    POSTGRESQL = "postgresql"
    MYSQL = "mysql"
    MARIADB = "mariadb"
    SQLITE = "sqlite"
    SQL_SERVER = "sql_server"
    ORACLE = "oracle"
    CLICKHOUSE = "clickhouse"
    COCKROACHDB = "cockroachdb"


_ALIASES: Dict[str, Engine] = {
    "postgres": Engine.POSTGRESQL,
    "pg": Engine.POSTGRESQL,
    "sqlserver": Engine.SQL_SERVER,
    "mssql": Engine.SQL_SERVER,
    "tsql": Engine.SQL_SERVER,
    "cockroach": Engine.COCKROACHDB,
    "maria": Engine.MARIADB,
}

# sqlglot dialect names; None is sqlglot's default dialect.
SQLGLOT_DIALECTS: Dict[Engine, Optional[str]] = {
    Engine.GENERIC: None,
    Engine.POSTGRESQL: "postgres",
    Engine.COCKROACHDB: "postgres",
    Engine.MYSQL: "mysql",
    Engine.MARIADB: "mysql",
    Engine.SQLITE: "sqlite",
    Engine.SQL_SERVER: "tsql",
    Engine.ORACLE: "oracle",
    Engine.CLICKHOUSE: "clickhouse",
}


def parse_engine(value: Union[str, Engine, None]) -> Engine:
    """Resolve a user supplied engine name, accepting common aliases."""
    if value is None:
        return Engine.GENERIC
    if isinstance(value, Engine):
        return value
    key = str(value).strip().lower().replace("-", "_")
    if key in _ALIASES:
        return _ALIASES[key]
    try:
        return Engine(key)
    except ValueError:
        raise ValueError(
            f"Unknown engine '{value}'. Expected one of: {', '.join(engine_names())}"
        ) from None


def engine_names() -> List[str]:
    return [engine.value for engine in Engine]


def sqlglot_dialect(engine: Engine) -> Optional[str]:
    return SQLGLOT_DIALECTS[engine]


# Engines where a quoted identifier keeps its case and is a different name
# from the unquoted (folded) spelling.
QUOTED_KEEPS_CASE = frozenset({Engine.POSTGRESQL, Engine.COCKROACHDB, Engine.ORACLE})


def keeps_identifier_case(engine: Engine) -> bool:
    return engine in QUOTED_KEEPS_CASE
