"""Detect whether pasted text is DDL, DBML or an introspection payload."""

import logging
import re
from enum import Enum
from typing import Optional

from erd_core.errors import ClassificationAmbiguous

logger = logging.getLogger(__name__)


class ContentType(str, Enum):
    DDL = "ddl"
    DBML = "dbml"
    QUERY = "query"


# DBML can carry SQL inside notes and comments, so these patterns win ties.
DBML_PATTERNS = [
    re.compile(r"^\s*Table\s+[\w\".]+(?:\s+as\s+\w+)?\s*(?:\[[^\]]*\]\s*)?\{", re.MULTILINE),
    re.compile(r"^\s*Ref(?:\s+\w+)?\s*:\s*[\w\"]+", re.MULTILINE),
    re.compile(r"^\s*Enum\s+[\w\".]+\s*\{", re.MULTILINE),
    re.compile(r"^\s*TableGroup\s+", re.MULTILINE),
    re.compile(r"^\s*Note\s+\w+\s*\{", re.MULTILINE),
    re.compile(r"\[pk\]", re.IGNORECASE),
    re.compile(r"\[ref:\s*[<>-]", re.IGNORECASE),
]

DDL_KEYWORDS = [
    ("CREATE", "TABLE"),
    ("ALTER", "TABLE"),
    ("DROP", "TABLE"),
    ("CREATE", "INDEX"),
    ("CREATE", "VIEW"),
    ("CREATE", "PROCEDURE"),
    ("CREATE", "FUNCTION"),
    ("CREATE", "SCHEMA"),
    ("CREATE", "DATABASE"),
]

_DDL_RE = re.compile(
    "|".join(rf"\b{first}\s+{second}\b" for first, second in DDL_KEYWORDS),
    re.IGNORECASE,
)


def _looks_like_dbml(text: str) -> bool:
    return any(pattern.search(text) for pattern in DBML_PATTERNS)


def _looks_like_ddl(text: str) -> bool:
    return _DDL_RE.search(text) is not None


def _looks_like_query(text: str) -> bool:
    return (text.startswith("{") and text.endswith("}")) or (
        text.startswith("[") and text.endswith("]")
    )


def classify(text: str) -> Optional[ContentType]:
    """Return the content type of ``text`` or None when nothing matches."""
    if not text or not text.strip():
        return None
    stripped = text.strip()

    if _looks_like_dbml(stripped):
        result = ContentType.DBML
    elif _looks_like_ddl(stripped):
        result = ContentType.DDL
    elif _looks_like_query(stripped):
        result = ContentType.QUERY
    else:
        result = None

    logger.debug("classified input as %s", result.value if result else "unknown")
    return result


def classify_or_raise(text: str) -> ContentType:
    result = classify(text)
    if result is None:
        raise ClassificationAmbiguous(
            "Could not tell whether the input is SQL DDL, DBML or a metadata JSON payload; "
            "pick the format explicitly."
        )
    return result
