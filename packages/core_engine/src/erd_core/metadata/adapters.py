"""Per-engine coercion of introspection rows into canonical fields.

Each introspection script encodes nullability, lengths, precision, defaults
and view bodies its own way; an adapter turns one engine's encoding into
canonical values and drops what the model has no place for.
"""

from __future__ import annotations

import base64
import binascii
import re
from typing import Any, Dict, Optional, Tuple, Type, Union

from erd_core.data_types import parse_type, type_family
from erd_core.engines import Engine, parse_engine
from erd_core.model import DataType, Field

_TRUE = {"true", "yes", "y", "1", "t"}
_FALSE = {"false", "no", "n", "0", "f"}
_NULL_TEXT = {"", "null", "none"}

_QUOTED_RE = re.compile(r"^'.*'$", re.DOTALL)
_CALL_RE = re.compile(r"^[A-Za-z_][\w.]*\s*\(.*\)$", re.DOTALL)
_SQL_KEYWORDS = {"current_timestamp", "current_date", "current_time", "localtimestamp", "now()", "null", "true", "false"}


def to_bool(value: Any, default: bool = False) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return default
    if isinstance(value, (int, float)):
        return bool(value)
    text = str(value).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    return default


def to_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    text = str(value).strip()
    if text.lower() in _NULL_TEXT:
        return None
    try:
        return int(float(text))
    except ValueError:
        return None


def is_null_text(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip().lower() in _NULL_TEXT)


def _strip_wrapping_parens(text: str) -> str:
    while text.startswith("(") and text.endswith(")"):
        depth = 0
        for pos, char in enumerate(text):
            if char == "(":
                depth += 1
            elif char == ")":
                depth -= 1
                if depth == 0 and pos != len(text) - 1:
                    return text
        text = text[1:-1].strip()
    return text


class ColumnAdapter:
    engine = Engine.GENERIC
    display_name = "Generic"
    view_encoding = "utf-8"

    # -- names --------------------------------------------------------------

    def schema_name(self, value: Any) -> Optional[str]:
        if is_null_text(value):
            return None
        return str(value).strip().strip('"`[]')

    def table_name(self, value: Any) -> str:
        return str(value or "").strip().strip('"`[]')

    def column_name(self, value: Any) -> str:
        return str(value or "").strip().strip('"`[]')

    # -- column attributes --------------------------------------------------

    def nullable(self, column: Dict[str, Any]) -> bool:
        return to_bool(column.get("nullable"), default=True)

    def ordinal(self, column: Dict[str, Any]) -> int:
        position = to_int(column.get("ordinal_position"))
        return position if position is not None else 1 << 30

    def length(self, column: Dict[str, Any]) -> Optional[int]:
        return to_int(column.get("character_maximum_length"))

    def precision(self, column: Dict[str, Any]) -> Tuple[Optional[int], Optional[int]]:
        value = column.get("precision")
        if isinstance(value, dict):
            return to_int(value.get("precision")), to_int(value.get("scale"))
        if isinstance(value, str) and "," in value:
            head, tail = value.split(",", 1)
            return to_int(head), to_int(tail)
        return to_int(value), None

    def increment(self, column: Dict[str, Any]) -> bool:
        return to_bool(column.get("is_identity"))

    def default(self, column: Dict[str, Any], data_type: DataType) -> Optional[str]:
        value = column.get("default")
        if value is None or isinstance(value, bool):
            return None if value is None else ("true" if value else "false")
        text = str(value).strip()
        if not text or text == '""':
            return None
        return text

    def data_type(self, column: Dict[str, Any]) -> DataType:
        data_type = parse_type(str(column.get("type") or "unknown")).data_type
        length = self.length(column)
        if length is not None and data_type.length is None and data_type.precision is None:
            if type_family(data_type.id) == "string" or data_type.id in ("binary", "varbinary", "bit"):
                data_type.length = length
        precision, scale = self.precision(column)
        if precision is not None and data_type.precision is None and type_family(data_type.id) == "decimal":
            data_type.precision = precision
            data_type.scale = scale
        return data_type

    def field(self, column: Dict[str, Any]) -> Field:
        data_type = self.data_type(column)
        collation = column.get("collation")
        comment = column.get("comment")
        return Field(
            name=self.column_name(column.get("name")),
            type=data_type,
            nullable=self.nullable(column),
            default=self.default(column, data_type),
            collation=None if is_null_text(collation) else str(collation),
            comment=None if is_null_text(comment) else str(comment),
            increment=self.increment(column),
        )

    # -- views --------------------------------------------------------------

    def view_definition(self, value: Any) -> Optional[str]:
        """Decode a view body; text that is not base64 is taken as plain SQL."""
        if is_null_text(value) or str(value).strip() == '""':
            return None
        text = str(value).strip()
        try:
            raw = base64.b64decode(text, validate=True)
            decoded = raw.decode(self.view_encoding)
        except (binascii.Error, UnicodeDecodeError, ValueError):
            return text
        return decoded.strip() or None


class PostgresAdapter(ColumnAdapter):
    engine = Engine.POSTGRESQL
    display_name = "PostgreSQL"

    def table_name(self, value: Any) -> str:
        # regclass text is schema-qualified when the schema is off the search path.
        name = super().table_name(value)
        if "." in name:
            name = name.rsplit(".", 1)[1]
        return name.strip('"')


class CockroachAdapter(PostgresAdapter):
    engine = Engine.COCKROACHDB
    display_name = "CockroachDB"


class MySQLAdapter(ColumnAdapter):
    engine = Engine.MYSQL
    display_name = "MySQL"

    def default(self, column: Dict[str, Any], data_type: DataType) -> Optional[str]:
        text = super().default(column, data_type)
        if text is None:
            return None
        # information_schema hands out string defaults unquoted.
        if type_family(data_type.id) in ("string", "date", "time", "datetime"):
            lowered = text.lower()
            if not (_QUOTED_RE.match(text) or _CALL_RE.match(text) or lowered in _SQL_KEYWORDS):
                return "'" + text.replace("'", "''") + "'"
        return text


class MariaDBAdapter(MySQLAdapter):
    engine = Engine.MARIADB
    display_name = "MariaDB"

    def default(self, column: Dict[str, Any], data_type: DataType) -> Optional[str]:
        # MariaDB already quotes literals and reports a missing default as NULL.
        text = ColumnAdapter.default(self, column, data_type)
        if text is not None and text.upper() == "NULL":
            return None
        return text


class SQLServerAdapter(ColumnAdapter):
    engine = Engine.SQL_SERVER
    display_name = "SQL Server"
    view_encoding = "utf-16-le"

    def default(self, column: Dict[str, Any], data_type: DataType) -> Optional[str]:
        text = super().default(column, data_type)
        if text is None:
            return None
        return _strip_wrapping_parens(text) or None


class SQLiteAdapter(ColumnAdapter):
    engine = Engine.SQLITE
    display_name = "SQLite"


class OracleAdapter(ColumnAdapter):
    engine = Engine.ORACLE
    display_name = "Oracle"


class ClickHouseAdapter(ColumnAdapter):
    engine = Engine.CLICKHOUSE
    display_name = "ClickHouse"

    def nullable(self, column: Dict[str, Any]) -> bool:
        if str(column.get("type") or "").lower().startswith("nullable("):
            return True
        return to_bool(column.get("nullable"), default=False)

    def default(self, column: Dict[str, Any], data_type: DataType) -> Optional[str]:
        text = super().default(column, data_type)
        if text is None or text.lower() == "null":
            return None
        return text


_ADAPTERS: Dict[Engine, Type[ColumnAdapter]] = {
    Engine.GENERIC: ColumnAdapter,
    Engine.POSTGRESQL: PostgresAdapter,
    Engine.COCKROACHDB: CockroachAdapter,
    Engine.MYSQL: MySQLAdapter,
    Engine.MARIADB: MariaDBAdapter,
    Engine.SQL_SERVER: SQLServerAdapter,
    Engine.SQLITE: SQLiteAdapter,
    Engine.ORACLE: OracleAdapter,
    Engine.CLICKHOUSE: ClickHouseAdapter,
}


def get_adapter(engine: Union[str, Engine]) -> ColumnAdapter:
    return _ADAPTERS[parse_engine(engine)]()
