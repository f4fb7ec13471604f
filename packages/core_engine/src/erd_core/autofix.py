"""Text repairs applied to SQL before it reaches the grammar.

Every fix is a single regex substitution whose output no longer matches its
own pattern, so running the pass again is a no-op. Fixes touch disjoint
syntax and can run in any order.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Sequence, Tuple

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AutoFix:
    category: str
    message: str
    pattern: re.Pattern
    replace: Callable[[re.Match], str]

    def apply(self, sql: str) -> Tuple[str, int]:
        count = 0

        def _sub(match: re.Match) -> str:
            nonlocal count
            replacement = self.replace(match)
            if replacement != match.group(0):
                count += 1
            return replacement

        return self.pattern.sub(_sub, sql), count


@dataclass
class AutoFixResult:
    sql: str
    warnings: List[str] = field(default_factory=list)
    applied: Dict[str, int] = field(default_factory=dict)

    @property
    def changed(self) -> bool:
        return bool(self.applied)


def _rejoin_split_numeric(match: re.Match) -> str:
    newlines = match.group(0).count("\n")
    if not newlines:
        return match.group(0)
    # Moved line breaks keep later line numbers stable.
    return f"{match.group(1)}({match.group(2)},{match.group(3)})" + "\n" * newlines


SPLIT_NUMERIC_FIX = AutoFix(
    category="split_numeric",
    message="Auto-fixed split DECIMAL/NUMERIC type declarations",
    pattern=re.compile(
        r"\b(DECIMAL|NUMERIC|NUMBER|DEC)\s*\(\s*(\d+)\s*,\s*(\d+)\s*\)",
        re.IGNORECASE,
    ),
    replace=_rejoin_split_numeric,
)

CAST_OPERATOR_FIX = AutoFix(
    category="cast_operator",
    message="Auto-fixed cast operator syntax (': :' -> '::')",
    pattern=re.compile(r":\s+:"),
    replace=lambda match: "::",
)

DEFAULT_FIXES: Tuple[AutoFix, ...] = (SPLIT_NUMERIC_FIX, CAST_OPERATOR_FIX)


def run_autofix(sql: str, fixes: Sequence[AutoFix] = DEFAULT_FIXES) -> AutoFixResult:
    result = AutoFixResult(sql=sql)
    for fix in fixes:
        fixed, count = fix.apply(result.sql)
        if not count:
            continue
        result.sql = fixed
        result.applied[fix.category] = count
        noun = "occurrence" if count == 1 else "occurrences"
        result.warnings.append(f"{fix.message} ({count} {noun}).")
        logger.debug("auto-fix %s applied %d time(s)", fix.category, count)
    return result
