"""Exception types raised across the import boundary."""

from __future__ import annotations

from typing import List, Optional

from erd_core.issues import Issue


class ErdError(Exception):
    """Base class for every error raised by erd_core."""


class ClassificationAmbiguous(ErdError):
    """Input text could not be matched to DDL, DBML or a metadata payload."""

    def __init__(self, message: str = "Could not determine the content type of the input.") -> None:
        super().__init__(message)


class SQLSyntaxError(ErdError):
    """A statement could not be parsed even after auto-fix and fallback."""

    def __init__(self, message: str, line: Optional[int] = None, column: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.line = line
        self.column = column

    def __str__(self) -> str:
        if self.line is None:
            return self.message
        if self.column is None:
            return f"line {self.line}: {self.message}"
        return f"line {self.line}, column {self.column}: {self.message}"


class DBMLSyntaxError(SQLSyntaxError):
    """DBML text was rejected by the DBML grammar."""


class ReferentialIntegrityError(ErdError):
    """An index, constraint or relationship points at a missing table or field."""

    code = "REFERENTIAL_INTEGRITY"


class TypeIncompatibility(ErdError):
    """A relationship joins two columns whose types cannot be compared."""

    code = "TYPE_INCOMPATIBILITY"

    def __init__(self, source: str, target: str, engine: str, label: Optional[str] = None) -> None:
        subject = f"Relationship '{label}' joins {source} to {target}" if label else f"{source} and {target}"
        super().__init__(f"{subject}, which are not compatible for {engine}.")
        self.source = source
        self.target = target
        self.engine = engine


class MetadataValidationError(ErdError):
    """A metadata payload failed schema validation."""

    def __init__(self, issues: List[Issue]) -> None:
        self.issues = list(issues)
        first = self.issues[0].message if self.issues else "invalid payload"
        super().__init__(f"Metadata payload is invalid: {first}")


class ConfigError(ErdError):
    """Configuration file is missing or does not validate."""
