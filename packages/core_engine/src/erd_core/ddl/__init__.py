"""SQL DDL import: one parser class per engine family."""

from __future__ import annotations

from typing import Dict, Optional, Type, Union

from erd_core.config import ImportConfig
from erd_core.ddl.base import DialectParser, ParseOutcome, ParseState, StatementResult
from erd_core.ddl.mysql import MariaDBParser, MySQLParser
from erd_core.ddl.others import ClickHouseParser, GenericParser, OracleParser, SQLiteParser
from erd_core.ddl.postgres import CockroachParser, PostgresParser
from erd_core.ddl.sqlserver import SQLServerParser
from erd_core.engines import Engine, parse_engine

_PARSERS: Dict[Engine, Type[DialectParser]] = {
    Engine.GENERIC: GenericParser,
    Engine.POSTGRESQL: PostgresParser,
    Engine.COCKROACHDB: CockroachParser,
    Engine.MYSQL: MySQLParser,
    Engine.MARIADB: MariaDBParser,
    Engine.SQLITE: SQLiteParser,
    Engine.SQL_SERVER: SQLServerParser,
    Engine.ORACLE: OracleParser,
    Engine.CLICKHOUSE: ClickHouseParser,
}


def get_parser(engine: Union[str, Engine], config: Optional[ImportConfig] = None) -> DialectParser:
    config = config or ImportConfig()
    parser_cls = _PARSERS[parse_engine(engine)]
    return parser_cls(
        autofix=config.autofix,
        fallback=config.fallback,
        large_file_threshold=config.large_file_threshold,
    )


def parse_ddl(
    sql: str,
    engine: Union[str, Engine] = Engine.GENERIC,
    config: Optional[ImportConfig] = None,
) -> ParseOutcome:
    """Parse a DDL script. Failures are reported on the outcome, never raised."""
    return get_parser(engine, config).parse(sql)


__all__ = [
    "DialectParser",
    "ParseOutcome",
    "ParseState",
    "StatementResult",
    "get_parser",
    "parse_ddl",
]
