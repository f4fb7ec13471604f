from dataclasses import dataclass
from typing import Iterable, List, Optional


@dataclass(frozen=True)
class Issue:
    severity: str
    code: str
    message: str
    path: str = "/"


@dataclass(frozen=True)
class ParseError:
    """A fatal, per-statement parse failure."""

    line: int
    message: str
    column: Optional[int] = None

    def describe(self) -> str:
        if self.column is None:
            return f"line {self.line}: {self.message}"
        return f"line {self.line}, column {self.column}: {self.message}"


def has_errors(issues: Iterable[Issue]) -> bool:
    return any(issue.severity == "error" for issue in issues)


def warning_messages(issues: Iterable[Issue]) -> List[str]:
    return [issue.message for issue in issues if issue.severity == "warn"]


def to_lines(issues: List[Issue]) -> List[str]:
    lines = []
    for issue in issues:
        lines.append(
            f"[{issue.severity.upper()}] {issue.code} {issue.path}: {issue.message}"
        )
    return lines
