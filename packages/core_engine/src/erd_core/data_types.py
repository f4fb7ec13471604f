"""Type parsing, normalization and the foreign-key compatibility resolver."""

from __future__ import annotations

import re
from typing import Dict, FrozenSet, List, NamedTuple, Optional, Tuple, Union

from erd_core.engines import Engine
from erd_core.model import DataType


class ParsedType(NamedTuple):
    data_type: DataType
    is_array: bool = False


_TYPE_ALIASES = {
    "integer": "int",
    "int4": "int",
    "int2": "smallint",
    "int8": "bigint",
    "bool": "boolean",
    "character_varying": "varchar",
    "char_varying": "varchar",
    "character": "char",
    "national_character_varying": "nvarchar",
    "national_char": "nchar",
    "float8": "double_precision",
    "float4": "real",
    "double": "double_precision",
    "dec": "decimal",
    "timestamp_without_time_zone": "timestamp",
    "timestamp_with_time_zone": "timestamptz",
    "time_without_time_zone": "time",
    "time_with_time_zone": "timetz",
    "bit_varying": "varbit",
    "serial4": "serial",
    "serial8": "bigserial",
    "serial2": "smallserial",
}

_LENGTH_TYPES = frozenset(
    {
        "char",
        "varchar",
        "nchar",
        "nvarchar",
        "varchar2",
        "nvarchar2",
        "binary",
        "varbinary",
        "bit",
        "varbit",
        "raw",
        "fixedstring",
    }
)

SERIAL_TYPES = frozenset({"serial", "smallserial", "bigserial"})

# Types inside one family can always be joined by a foreign key.
TYPE_FAMILIES: Dict[str, FrozenSet[str]] = {
    "integer": frozenset(
        {
            "int", "smallint", "bigint", "tinyint", "mediumint",
            "serial", "smallserial", "bigserial",
            "int16", "int32", "int64", "int128", "int256",
            "uint8", "uint16", "uint32", "uint64", "uint128", "uint256",
            "pls_integer", "binary_integer",
        }
    ),
    "decimal": frozenset({"decimal", "numeric", "number", "money", "smallmoney"}),
    "float": frozenset(
        {"float", "real", "double_precision", "binary_float", "binary_double", "float32", "float64"}
    ),
    "string": frozenset(
        {
            "varchar", "char", "text", "nvarchar", "nchar", "varchar2", "nvarchar2",
            "tinytext", "mediumtext", "longtext", "ntext", "clob", "nclob",
            "citext", "string", "fixedstring", "name",
        }
    ),
    "boolean": frozenset({"boolean"}),
    "datetime": frozenset(
        {"timestamp", "timestamptz", "datetime", "datetime2", "smalldatetime", "datetimeoffset", "datetime64"}
    ),
    "date": frozenset({"date", "date32"}),
    "time": frozenset({"time", "timetz"}),
    "binary": frozenset(
        {"bytea", "blob", "tinyblob", "mediumblob", "longblob", "binary", "varbinary", "raw", "image"}
    ),
    "json": frozenset({"json", "jsonb"}),
    "uuid": frozenset({"uuid", "uniqueidentifier"}),
}

_FAMILY_OF: Dict[str, str] = {
    type_id: family for family, members in TYPE_FAMILIES.items() for type_id in members
}

# Engine-specific pairs on top of the families. "@name" names a whole family.
_ENGINE_EXTRAS: Dict[Engine, List[Tuple[str, str]]] = {
    Engine.MYSQL: [("tinyint", "boolean"), ("bit", "boolean")],
    Engine.MARIADB: [("tinyint", "boolean"), ("bit", "boolean")],
    Engine.SQL_SERVER: [("bit", "boolean")],
    Engine.SQLITE: [("@integer", "boolean"), ("@integer", "@decimal")],
    Engine.ORACLE: [("number", "@integer"), ("number", "@float")],
}

_WRAPPER_RE = re.compile(r"^\s*(nullable|lowcardinality|array)\s*\((.*)\)\s*$", re.IGNORECASE | re.DOTALL)
_TYPE_RE = re.compile(
    r"^\s*(?P<name>[A-Za-z_][\w ]*?)\s*"
    r"(?:\(\s*(?P<args>[^()]*)\)\s*(?P<suffix>[A-Za-z_][\w ]*?)?)?\s*"
    r"(?P<array>(?:\[\s*\d*\s*\])*)\s*$"
)
_MODIFIER_WORDS = {"unsigned", "signed", "zerofill"}


def normalize_type_id(name: str) -> str:
    """Lower-case a type name, drop quoting and sign modifiers, and apply aliases."""
    text = str(name or "").strip().strip('"`[]').lower()
    words = [w for w in re.split(r"\s+", text) if w and w not in _MODIFIER_WORDS]
    type_id = "_".join(words)
    return _TYPE_ALIASES.get(type_id, type_id)


def _int_args(args: str) -> List[Optional[int]]:
    values: List[Optional[int]] = []
    for part in args.split(","):
        token = part.strip().lower()
        if token == "max":
            values.append(-1)
        elif re.fullmatch(r"-?\d+", token):
            values.append(int(token))
        elif token:
            values.append(None)
    return values


def parse_type(text: str) -> ParsedType:
    """Parse a column type as written in DDL, DBML or introspection output."""
    raw = str(text or "").strip()
    wrapper = _WRAPPER_RE.match(raw)
    if wrapper:
        inner = parse_type(wrapper.group(2))
        if wrapper.group(1).lower() == "array":
            return ParsedType(inner.data_type, True)
        return inner

    match = _TYPE_RE.match(raw)
    if not match:
        head = raw.split("(", 1)[0]
        return ParsedType(DataType(id=normalize_type_id(head) or "unknown"))

    name = match.group("name")
    if match.group("suffix"):
        name = f"{name} {match.group('suffix')}"
    type_id = normalize_type_id(name)
    is_array = bool(match.group("array"))

    args = _int_args(match.group("args") or "")
    if not args or args[0] is None:
        return ParsedType(DataType(id=type_id), is_array)
    if type_id in _LENGTH_TYPES:
        return ParsedType(DataType(id=type_id, length=args[0]), is_array)
    if len(args) >= 2 and args[1] is not None:
        return ParsedType(DataType(id=type_id, precision=args[0], scale=args[1]), is_array)
    return ParsedType(DataType(id=type_id, precision=args[0]), is_array)


def type_family(type_id: str) -> Optional[str]:
    return _FAMILY_OF.get(type_id)


def _as_type_id(value: Union[str, DataType]) -> str:
    if isinstance(value, DataType):
        return value.id
    return parse_type(value).data_type.id


def _token_matches(token: str, type_id: str, family: Optional[str]) -> bool:
    if token.startswith("@"):
        return family == token[1:]
    return token == type_id


def compatible(
    type_a: Union[str, DataType],
    type_b: Union[str, DataType],
    engine: Engine = Engine.GENERIC,
) -> bool:
    """Whether columns of the two types may be joined by a foreign key."""
    a = _as_type_id(type_a)
    b = _as_type_id(type_b)
    if a == b:
        return True

    family_a = type_family(a)
    family_b = type_family(b)
    if family_a is not None and family_a == family_b:
        return True

    for left, right in _ENGINE_EXTRAS.get(engine, []):
        if _token_matches(left, a, family_a) and _token_matches(right, b, family_b):
            return True
        if _token_matches(left, b, family_b) and _token_matches(right, a, family_a):
            return True
    return False
