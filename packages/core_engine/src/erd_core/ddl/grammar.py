"""Primary extraction strategy backed by the sqlglot grammar."""

from __future__ import annotations

import logging
import re
from typing import List, Optional, Tuple

import sqlglot
from sqlglot import exp
from sqlglot.errors import ErrorLevel, ParseError as SqlglotParseError, SqlglotError

from erd_core.ddl.identifiers import split_qualified_name, split_top_level, unquote
from erd_core.ddl.specs import (
    AlterTableSpec,
    CheckSpec,
    ColumnSpec,
    CommentSpec,
    CustomTypeSpec,
    Extraction,
    ForeignKeySpec,
    IndexSpec,
    StatementSpec,
    TableSpec,
    ViewSpec,
)
from erd_core.ddl.statements import Statement
from erd_core.errors import SQLSyntaxError
from erd_core.model import ASC, COMPOSITE, DESC, ENUM

logger = logging.getLogger(__name__)

CREATE_ENUM_RE = re.compile(
    r"^\s*create\s+type\s+(?P<name>[\w\"\.]+)\s+as\s+enum\s*\((?P<values>.*)\)\s*$",
    flags=re.IGNORECASE | re.DOTALL,
)
CREATE_COMPOSITE_RE = re.compile(
    r"^\s*create\s+type\s+(?P<name>[\w\"\.]+)\s+as\s*\((?P<body>.*)\)\s*$",
    flags=re.IGNORECASE | re.DOTALL,
)
MATERIALIZED_VIEW_RE = re.compile(
    r"^\s*create\s+(?:or\s+replace\s+)?materialized\s+view\b",
    flags=re.IGNORECASE,
)
TABLE_OR_ALTER_RE = re.compile(r"^\s*(?:create|alter)\b[^(]*?\btable\b", flags=re.IGNORECASE)

_INCREMENT_CONSTRAINTS = tuple(
    node_type
    for node_type in (
        getattr(exp, "AutoIncrementColumnConstraint", None),
        getattr(exp, "GeneratedAsIdentityColumnConstraint", None),
    )
    if node_type is not None
)

_ALTER_TYPES = tuple(
    node_type
    for node_type in (getattr(exp, "Alter", None), getattr(exp, "AlterTable", None))
    if node_type is not None
)


def _enum_values(text: str) -> List[str]:
    return [value.replace("''", "'") for value in re.findall(r"'((?:[^']|'')*)'", text)]


def custom_type_spec(text: str) -> Optional[CustomTypeSpec]:
    """Recognise PostgreSQL ``CREATE TYPE`` enum and composite declarations."""
    match = CREATE_ENUM_RE.match(text)
    if match:
        schema, name = split_qualified_name(match.group("name"))
        return CustomTypeSpec(name=name, schema=schema, kind=ENUM, values=_enum_values(match.group("values")))
    match = CREATE_COMPOSITE_RE.match(text)
    if match:
        schema, name = split_qualified_name(match.group("name"))
        fields = []
        for part in split_top_level(match.group("body")):
            pieces = part.split(None, 1)
            if len(pieces) == 2:
                fields.append((unquote(pieces[0]), pieces[1].strip()))
        return CustomTypeSpec(name=name, schema=schema, kind=COMPOSITE, fields=fields)
    return None


def _column_name(node: exp.Expression) -> Optional[str]:
    if isinstance(node, (exp.Identifier, exp.Var)):
        return node.name
    if isinstance(node, exp.Column):
        return node.name
    if isinstance(node, exp.Ordered):
        return _column_name(node.this)
    ident = node.find(exp.Identifier)
    if ident is not None:
        return ident.name
    return node.name or None


def _names(nodes) -> List[str]:
    names = []
    for node in nodes or []:
        name = _column_name(node)
        if name:
            names.append(name)
    return names


def _table_parts(node: Optional[exp.Expression]) -> Tuple[Optional[str], str]:
    if node is None:
        return None, ""
    if isinstance(node, exp.Schema):
        node = node.this
    if isinstance(node, exp.Table):
        return (node.db or None), node.name
    return None, node.name


def _is_quoted(node: Optional[exp.Expression]) -> bool:
    if isinstance(node, exp.Schema):
        node = node.this
    ident = node.this if isinstance(node, exp.Table) else None
    return isinstance(ident, exp.Identifier) and bool(ident.args.get("quoted"))


def _literal_text(node: Optional[exp.Expression]) -> Optional[str]:
    if node is None:
        return None
    if isinstance(node, exp.Literal):
        return node.name
    return node.name or node.sql()


def table_references(body: Optional[exp.Expression]) -> List[Tuple[Optional[str], str]]:
    """(schema, table) pairs read by a query, CTE names excluded."""
    if body is None:
        return []
    cte_names = {cte.alias for cte in body.find_all(exp.CTE) if cte.alias}
    refs: List[Tuple[Optional[str], str]] = []
    for table in body.find_all(exp.Table):
        if not table.name or table.name in cte_names:
            continue
        ref = (table.db or None, table.name)
        if ref not in refs:
            refs.append(ref)
    return refs


def view_references(sql: str, dialect: Optional[str] = None) -> List[Tuple[Optional[str], str]]:
    """Tables read by a view, given either its full CREATE statement or its query."""
    text = MATERIALIZED_VIEW_RE.sub("CREATE VIEW", sql.strip().rstrip(";"), count=1)
    try:
        tree = sqlglot.parse_one(text, read=dialect, error_level=ErrorLevel.RAISE)
    except SqlglotError as exc:
        raise SQLSyntaxError(str(exc).splitlines()[0]) from exc
    if isinstance(tree, exp.Create):
        return table_references(tree.expression)
    return table_references(tree)


class GrammarStrategy:
    """Turn one statement into specs via ``sqlglot.parse_one``.

    Raises SQLSyntaxError when the grammar rejects the statement so the caller
    can hand it to the fallback strategy.
    """

    name = "grammar"

    def __init__(self, dialect: Optional[str] = None) -> None:
        self.dialect = dialect

    def extract(self, statement: Statement) -> Extraction:
        custom = custom_type_spec(statement.text)
        if custom is not None:
            return Extraction(specs=[custom])

        try:
            tree = sqlglot.parse_one(statement.text, read=self.dialect, error_level=ErrorLevel.RAISE)
        except SqlglotParseError as exc:
            detail = exc.errors[0] if exc.errors else {}
            message = detail.get("description") or str(exc).splitlines()[0]
            raise SQLSyntaxError(
                message,
                line=statement.absolute_line(detail.get("line") or 1),
                column=detail.get("col"),
            ) from exc
        except SqlglotError as exc:
            raise SQLSyntaxError(str(exc).splitlines()[0], line=statement.line) from exc

        if tree is None:
            return Extraction()
        if isinstance(tree, exp.Command) and TABLE_OR_ALTER_RE.match(statement.text):
            raise SQLSyntaxError("unsupported table syntax", line=statement.line)
        return Extraction(specs=self._convert(tree, statement))

    def _sql(self, node: Optional[exp.Expression]) -> Optional[str]:
        if node is None:
            return None
        return node.sql(dialect=self.dialect)

    def _convert(self, tree: exp.Expression, statement: Statement) -> List[StatementSpec]:
        if isinstance(tree, exp.Create):
            kind = str(tree.args.get("kind") or "").upper()
            if kind == "TABLE":
                return [self._table(tree)]
            if kind == "VIEW":
                return [self._view(tree, statement)]
            if kind == "INDEX":
                spec = self._index(tree)
                return [spec] if spec is not None else []
            logger.debug("ignoring CREATE %s at line %d", kind, statement.line)
            return []
        if _ALTER_TYPES and isinstance(tree, _ALTER_TYPES):
            return [self._alter(tree)]
        if isinstance(tree, exp.Comment):
            spec = self._comment(tree)
            return [spec] if spec is not None else []
        logger.debug("ignoring %s statement at line %d", tree.key, statement.line)
        return []

    # -- CREATE TABLE -------------------------------------------------------

    def _table(self, tree: exp.Create) -> TableSpec:
        target = tree.this
        schema, name = _table_parts(target)
        spec = TableSpec(name=name, schema=schema, quoted=_is_quoted(target))
        items = target.expressions if isinstance(target, exp.Schema) else []

        for item in items:
            if isinstance(item, exp.ColumnDef):
                spec.columns.append(self._column(item))
            else:
                self._table_constraint(item, spec, None)

        comment = tree.find(exp.SchemaCommentProperty)
        if comment is not None:
            spec.comment = _literal_text(comment.this)
        return spec

    def _column(self, coldef: exp.ColumnDef) -> ColumnSpec:
        kind = coldef.args.get("kind")
        column = ColumnSpec(name=coldef.name, type=self._sql(kind) if kind is not None else "unknown")

        for constraint in coldef.args.get("constraints") or []:
            node = constraint.args.get("kind") if isinstance(constraint, exp.ColumnConstraint) else constraint
            if isinstance(node, exp.NotNullColumnConstraint):
                column.nullable = bool(node.args.get("allow_null"))
            elif isinstance(node, exp.PrimaryKeyColumnConstraint):
                column.primary_key = True
                column.nullable = False
            elif isinstance(node, exp.UniqueColumnConstraint):
                column.unique = True
            elif isinstance(node, exp.DefaultColumnConstraint):
                column.default = self._sql(node.this)
            elif isinstance(node, exp.CollateColumnConstraint):
                column.collation = unquote(node.this.name or self._sql(node.this) or "")
            elif isinstance(node, exp.CommentColumnConstraint):
                column.comment = _literal_text(node.this)
            elif isinstance(node, exp.CheckColumnConstraint):
                column.check = self._sql(node.this)
            elif isinstance(node, _INCREMENT_CONSTRAINTS):
                column.increment = True
            elif isinstance(node, exp.Reference):
                column.references = self._reference(node, [column.name], None)
        return column

    def _reference(
        self, node: exp.Reference, columns: List[str], name: Optional[str]
    ) -> ForeignKeySpec:
        target = node.this
        ref_schema, ref_table = _table_parts(target)
        ref_columns = _names(target.expressions) if isinstance(target, exp.Schema) else []
        return ForeignKeySpec(
            columns=columns,
            ref_table=ref_table,
            ref_schema=ref_schema,
            ref_columns=ref_columns,
            name=name,
        )

    def _table_constraint(self, item: exp.Expression, spec, name: Optional[str]) -> None:
        """Apply a table-level constraint to a TableSpec or AlterTableSpec."""
        if isinstance(item, exp.Constraint):
            for inner in item.expressions:
                self._table_constraint(inner, spec, item.name or None)
        elif isinstance(item, exp.PrimaryKey):
            spec.primary_key.extend(_names(item.expressions))
        elif isinstance(item, exp.PrimaryKeyColumnConstraint):
            spec.primary_key.extend(_names(item.expressions))
        elif isinstance(item, exp.ForeignKey):
            reference = item.args.get("reference")
            if reference is not None:
                spec.foreign_keys.append(self._reference(reference, _names(item.expressions), name))
        elif isinstance(item, exp.UniqueColumnConstraint):
            inner = item.this
            columns = _names(inner.expressions) if isinstance(inner, exp.Schema) else []
            if columns:
                spec.unique_keys.append(columns)
        elif isinstance(item, exp.CheckColumnConstraint):
            spec.checks.append(CheckSpec(expression=self._sql(item.this) or "", name=name))
        elif isinstance(item, exp.IndexColumnConstraint) and isinstance(spec, TableSpec):
            index_name = _column_name(item.this) if item.this is not None else None
            columns = [
                (col, DESC if isinstance(node, exp.Ordered) and node.args.get("desc") else ASC)
                for node in item.expressions
                for col in [_column_name(node)]
                if col
            ]
            kind = str(item.args.get("kind") or "").upper()
            spec.indexes.append(
                IndexSpec(
                    name=index_name or f"{spec.name}_{'_'.join(c for c, _ in columns)}_idx",
                    table=spec.name,
                    schema=spec.schema,
                    columns=columns,
                    unique=kind == "UNIQUE",
                    index_type=kind.lower() or None,
                )
            )
        else:
            logger.debug("ignoring table element %s", item.key)

    # -- CREATE VIEW --------------------------------------------------------

    def _view(self, tree: exp.Create, statement: Statement) -> ViewSpec:
        schema, name = _table_parts(tree.this)
        spec = ViewSpec(
            name=name,
            schema=schema,
            definition=statement.text,
            materialized=bool(MATERIALIZED_VIEW_RE.match(statement.text)),
            quoted=_is_quoted(tree.this),
        )
        spec.references = table_references(tree.expression)
        return spec

    # -- CREATE INDEX -------------------------------------------------------

    def _index(self, tree: exp.Create) -> Optional[IndexSpec]:
        index = tree.this
        if not isinstance(index, exp.Index):
            return None
        schema, table = _table_parts(index.args.get("table"))
        params = index.args.get("params")
        nodes = index.args.get("columns")
        if nodes is None and params is not None:
            nodes = params.args.get("columns")
        using = params.args.get("using") if params is not None else index.args.get("using")

        columns = []
        for node in nodes or []:
            col = _column_name(node)
            if col:
                desc = isinstance(node, exp.Ordered) and bool(node.args.get("desc"))
                columns.append((col, DESC if desc else ASC))
        return IndexSpec(
            name=index.name,
            table=table,
            schema=schema,
            columns=columns,
            unique=bool(tree.args.get("unique") or index.args.get("unique")),
            index_type=(using.name or self._sql(using)).lower() if using is not None else None,
        )

    # -- ALTER TABLE --------------------------------------------------------

    def _alter(self, tree: exp.Expression) -> AlterTableSpec:
        schema, name = _table_parts(tree.this)
        spec = AlterTableSpec(table=name, schema=schema)
        for action in tree.args.get("actions") or []:
            if isinstance(action, exp.ColumnDef):
                spec.add_columns.append(self._column(action))
                continue
            if isinstance(action, exp.AlterColumn):
                dtype = action.args.get("dtype")
                if dtype is not None:
                    spec.type_changes.append((action.name, self._sql(dtype)))
                continue
            for coldef in action.find_all(exp.ColumnDef):
                spec.add_columns.append(self._column(coldef))
            constraints = [action] if isinstance(action, exp.Constraint) else list(action.find_all(exp.Constraint))
            if constraints:
                for constraint in constraints:
                    self._table_constraint(constraint, spec, None)
            else:
                for node in action.find_all(exp.ForeignKey, exp.PrimaryKey, exp.UniqueColumnConstraint):
                    self._table_constraint(node, spec, None)
        return spec

    # -- COMMENT ON ---------------------------------------------------------

    def _comment(self, tree: exp.Comment) -> Optional[CommentSpec]:
        kind = str(tree.args.get("kind") or "").upper()
        text = _literal_text(tree.expression)
        if text is None:
            return None
        target = tree.this
        if kind == "TABLE":
            schema, name = _table_parts(target)
            return CommentSpec(table=name, schema=schema, text=text)
        if kind == "COLUMN" and isinstance(target, exp.Column):
            return CommentSpec(
                table=target.table,
                schema=target.db or None,
                column=target.name,
                text=text,
            )
        return None
