"""Dialect parser base class and the parse outcome types."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, List, Optional, Tuple, Union

from erd_core.autofix import CAST_OPERATOR_FIX, SPLIT_NUMERIC_FIX, AutoFix, run_autofix
from erd_core.builder import build
from erd_core.ddl.assemble import assemble
from erd_core.ddl.fallback import FallbackStrategy
from erd_core.ddl.grammar import GrammarStrategy
from erd_core.ddl.specs import StatementSpec
from erd_core.ddl.statements import Statement, split_statements
from erd_core.engines import Engine, keeps_identifier_case, sqlglot_dialect
from erd_core.errors import SQLSyntaxError
from erd_core.issues import ParseError
from erd_core.model import CustomType, Dependency, Diagram, Relationship, Table

logger = logging.getLogger(__name__)

LARGE_FILE_STATEMENTS = 100


class ParseState(str, Enum):
    START = "start"
    AUTO_FIXING = "auto_fixing"
    PRIMARY_PARSE = "primary_parse"
    FALLBACK_EXTRACTION = "fallback_extraction"
    SUCCESS = "success"
    FAILED = "failed"
    DONE = "done"


@dataclass(frozen=True)
class SkipRule:
    """Statements the importer recognises but does not turn into entities."""

    category: str
    pattern: re.Pattern
    message: str


@dataclass(frozen=True)
class ForeignSyntax:
    """A construct from another engine that this dialect does not accept as written."""

    feature: str
    origin: str
    pattern: re.Pattern
    suggestion: str

    def find_lines(self, sql: str) -> List[int]:
        return [number for number, line in enumerate(sql.splitlines(), 1) if self.pattern.search(line)]


MAX_REPORTED_LINES = 5

_FOREIGN_FLAGS = re.IGNORECASE

ORACLE_VARCHAR2 = ForeignSyntax(
    feature="VARCHAR2",
    origin="Oracle",
    pattern=re.compile(r"\bvarchar2\b", _FOREIGN_FLAGS),
    suggestion="use VARCHAR",
)
# NUMBER only counts in type position, so a column called "number" is not flagged.
ORACLE_NUMBER = ForeignSyntax(
    feature="NUMBER",
    origin="Oracle",
    pattern=re.compile(r"^\s*(?:\"[^\"]+\"|`[^`]+`|\[[^\]]+\]|[\w$]+)\s+number\b", _FOREIGN_FLAGS),
    suggestion="use NUMERIC, DECIMAL or an integer type",
)
MYSQL_AUTO_INCREMENT = ForeignSyntax(
    feature="AUTO_INCREMENT",
    origin="MySQL",
    pattern=re.compile(r"\bauto_increment\b", _FOREIGN_FLAGS),
    suggestion="use an identity column",
)
POSTGRES_SERIAL = ForeignSyntax(
    feature="SERIAL",
    origin="PostgreSQL",
    pattern=re.compile(r"^\s*(?:\"[^\"]+\"|`[^`]+`|\[[^\]]+\]|[\w$]+)\s+(?:big|small)?serial\b", _FOREIGN_FLAGS),
    suggestion="use an auto-increment or identity column",
)
SQLSERVER_BRACKETS = ForeignSyntax(
    feature="square-bracket identifiers",
    origin="SQL Server",
    pattern=re.compile(r"\[[A-Za-z_][\w ]*\]"),
    suggestion="quote identifiers with backticks",
)
ENUM_COLUMN = ForeignSyntax(
    feature="ENUM",
    origin="MySQL",
    pattern=re.compile(r"\benum\s*\(", _FOREIGN_FLAGS),
    suggestion="use a CHECK constraint",
)


@dataclass
class PreparedScript:
    sql: str
    statements: List[Statement]
    warnings: List[str] = field(default_factory=list)


@dataclass
class StatementResult:
    statement: Statement
    specs: List[StatementSpec] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    error: Optional[ParseError] = None
    strategy: Optional[str] = None
    skipped: Optional[str] = None


@dataclass
class ParseOutcome:
    engine: Engine
    tables: List[Table] = field(default_factory=list)
    relationships: List[Relationship] = field(default_factory=list)
    custom_types: List[CustomType] = field(default_factory=list)
    dependencies: List[Dependency] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    errors: List[ParseError] = field(default_factory=list)
    state: ParseState = ParseState.START
    trail: List[ParseState] = field(default_factory=lambda: [ParseState.START])
    statements_total: int = 0
    statements_recovered: int = 0

    def advance(self, state: ParseState) -> None:
        self.state = state
        self.trail.append(state)

    @property
    def ok(self) -> bool:
        return self.state == ParseState.SUCCESS

    def to_diagram(self, name: str = "New Diagram") -> Diagram:
        return Diagram(
            name=name,
            database_type=self.engine,
            tables=list(self.tables),
            relationships=list(self.relationships),
            dependencies=list(self.dependencies),
            custom_types=list(self.custom_types),
        )


class DialectParser:
    """Parse a SQL script for one engine.

    Subclasses adjust lexical options, auto-fixes, skip rules and
    pre-processing; the statement loop lives here.
    """

    engine: Engine = Engine.GENERIC
    display_name: str = "Generic SQL"
    fixes: Tuple[AutoFix, ...] = (SPLIT_NUMERIC_FIX, CAST_OPERATOR_FIX)
    hash_comments: bool = False
    backtick_quotes: bool = False
    bracket_quotes: bool = False
    dollar_quotes: bool = False
    skip_rules: Tuple[SkipRule, ...] = ()
    foreign_syntax: Tuple[ForeignSyntax, ...] = ()

    def __init__(
        self,
        autofix: bool = True,
        fallback: bool = True,
        large_file_threshold: int = LARGE_FILE_STATEMENTS,
    ) -> None:
        self.autofix_enabled = autofix
        self.large_file_threshold = large_file_threshold
        self.grammar = GrammarStrategy(sqlglot_dialect(self.engine))
        self.fallback: Optional[FallbackStrategy] = FallbackStrategy() if fallback else None

    def preprocess(self, sql: str) -> str:
        return sql

    def foreign_syntax_warnings(self, sql: str) -> List[str]:
        """One warning per construct from another engine found in ``sql``."""
        warnings = []
        for rule in self.foreign_syntax:
            lines = rule.find_lines(sql)
            if not lines:
                continue
            shown = ", ".join(str(n) for n in lines[:MAX_REPORTED_LINES])
            more = len(lines) - MAX_REPORTED_LINES
            if more > 0:
                shown += f" and {more} more"
            warnings.append(
                f"{rule.origin} syntax {rule.feature} found on line(s) {shown}; "
                f"{self.display_name} may not accept it ({rule.suggestion})."
            )
        return warnings

    def prepare(self, sql: str) -> PreparedScript:
        """Auto-fix and split ``sql``; nothing is parsed yet."""
        warnings: List[str] = self.foreign_syntax_warnings(sql)
        text = self.preprocess(sql)
        if self.autofix_enabled:
            fixed = run_autofix(text, self.fixes)
            text = fixed.sql
            warnings.extend(fixed.warnings)
        statements = split_statements(
            text,
            hash_comments=self.hash_comments,
            backtick_quotes=self.backtick_quotes,
            bracket_quotes=self.bracket_quotes,
            dollar_quotes=self.dollar_quotes,
        )
        if len(statements) > self.large_file_threshold:
            warnings.append(
                f"Large SQL file: {len(statements)} statements found. Import may take a moment."
            )
        return PreparedScript(sql=text, statements=statements, warnings=warnings)

    def _skip_rule(self, statement: Statement) -> Optional[SkipRule]:
        for rule in self.skip_rules:
            if rule.pattern.match(statement.text):
                return rule
        return None

    def parse_statement(self, statement: Statement) -> StatementResult:
        rule = self._skip_rule(statement)
        if rule is not None:
            return StatementResult(statement=statement, skipped=rule.category)

        try:
            extraction = self.grammar.extract(statement)
        except SQLSyntaxError as exc:
            logger.debug("grammar rejected statement at line %d: %s", statement.line, exc)
            if self.fallback is not None:
                recovered = self.fallback.extract(statement)
                if recovered.specs:
                    return StatementResult(
                        statement=statement,
                        specs=recovered.specs,
                        warnings=recovered.warnings,
                        strategy=self.fallback.name,
                    )
            line = exc.line or statement.line
            return StatementResult(
                statement=statement,
                warnings=[f"Skipped statement at line {line}: {exc.message}"],
                error=ParseError(line=line, message=exc.message, column=exc.column),
            )
        return StatementResult(
            statement=statement,
            specs=extraction.specs,
            warnings=extraction.warnings,
            strategy=self.grammar.name,
        )

    def iter_parse(self, source: Union[str, PreparedScript]) -> Iterator[StatementResult]:
        """Yield one result per statement so callers can interleave other work."""
        prepared = self.prepare(source) if isinstance(source, str) else source
        for statement in prepared.statements:
            yield self.parse_statement(statement)

    def finish(self, prepared: PreparedScript, results: List[StatementResult]) -> ParseOutcome:
        outcome = ParseOutcome(engine=self.engine)
        outcome.advance(ParseState.AUTO_FIXING)
        outcome.warnings.extend(prepared.warnings)
        outcome.advance(ParseState.PRIMARY_PARSE)
        outcome.statements_total = len(results)

        specs: List[StatementSpec] = []
        skipped: Dict[str, int] = {}
        for result in results:
            specs.extend(result.specs)
            outcome.warnings.extend(result.warnings)
            if result.error is not None:
                outcome.errors.append(result.error)
            if result.strategy == "fallback":
                outcome.statements_recovered += 1
            if result.skipped:
                skipped[result.skipped] = skipped.get(result.skipped, 0) + 1

        for rule in self.skip_rules:
            if rule.category in skipped:
                outcome.warnings.append(rule.message)

        if outcome.statements_recovered or outcome.errors:
            outcome.advance(ParseState.FALLBACK_EXTRACTION)

        keep_case = keeps_identifier_case(self.engine)
        assembly = assemble(specs, keep_case)
        outcome.warnings.extend(assembly.warnings)
        built = build(
            assembly.tables,
            assembly.relationships,
            assembly.dependencies,
            assembly.custom_types,
            engine=self.engine,
            case_sensitive_names=keep_case,
        )
        outcome.warnings.extend(built.warnings)
        outcome.tables = built.diagram.tables
        outcome.relationships = built.diagram.relationships
        outcome.dependencies = built.diagram.dependencies
        outcome.custom_types = built.diagram.custom_types

        failed = bool(outcome.errors) and not specs
        outcome.advance(ParseState.FAILED if failed else ParseState.SUCCESS)
        outcome.trail.append(ParseState.DONE)
        logger.info(
            "%s import: %d tables, %d relationships, %d warnings, %d errors",
            self.display_name,
            len(outcome.tables),
            len(outcome.relationships),
            len(outcome.warnings),
            len(outcome.errors),
        )
        return outcome

    def parse(self, sql: str) -> ParseOutcome:
        prepared = self.prepare(sql)
        return self.finish(prepared, list(self.iter_parse(prepared)))
