"""Split a SQL script into top-level statements with their start lines."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List

_DOLLAR_TAG_RE = re.compile(r"\$([A-Za-z_][A-Za-z0-9_]*)?\$")


@dataclass(frozen=True)
class Statement:
    text: str
    line: int

    def absolute_line(self, relative_line: int) -> int:
        """Map a 1-based line inside ``text`` to a line in the whole script."""
        return self.line + max(relative_line, 1) - 1


def split_statements(
    sql_text: str,
    hash_comments: bool = False,
    backtick_quotes: bool = False,
    bracket_quotes: bool = False,
    dollar_quotes: bool = False,
) -> List[Statement]:
    """Split on ``;`` outside quotes and comments.

    Comments are removed from the returned text. Newlines inside comments are
    kept so relative line numbers stay valid.
    """
    statements: List[Statement] = []
    buf: List[str] = []
    start_line = None
    line = 1
    in_single = False
    in_double = False
    in_backtick = False
    in_bracket = False
    in_line_comment = False
    in_block_comment = False
    i = 0

    def _append(chunk: str) -> None:
        nonlocal start_line
        if start_line is None and chunk.strip():
            start_line = line
        buf.append(chunk)

    def _flush() -> None:
        nonlocal buf, start_line
        stmt = "".join(buf).strip()
        if stmt:
            statements.append(Statement(text=stmt, line=start_line or line))
        buf = []
        start_line = None

    while i < len(sql_text):
        ch = sql_text[i]
        nxt = sql_text[i + 1] if i + 1 < len(sql_text) else ""
        quoted = in_single or in_double or in_backtick or in_bracket

        if in_line_comment:
            if ch == "\n":
                in_line_comment = False
                buf.append(ch)
                line += 1
            i += 1
            continue

        if in_block_comment:
            if ch == "*" and nxt == "/":
                in_block_comment = False
                i += 2
                continue
            if ch == "\n":
                buf.append(ch)
                line += 1
            i += 1
            continue

        if not quoted and ch == "-" and nxt == "-":
            in_line_comment = True
            i += 2
            continue

        if not quoted and hash_comments and ch == "#":
            in_line_comment = True
            i += 1
            continue

        if not quoted and ch == "/" and nxt == "*":
            in_block_comment = True
            i += 2
            continue

        if not quoted and dollar_quotes and ch == "$":
            tag = _DOLLAR_TAG_RE.match(sql_text, i)
            if tag:
                close = sql_text.find(tag.group(0), tag.end())
                end = len(sql_text) if close == -1 else close + len(tag.group(0))
                chunk = sql_text[i:end]
                _append(chunk)
                line += chunk.count("\n")
                i = end
                continue

        if ch == "'" and not (in_double or in_backtick or in_bracket):
            if in_single and nxt == "'":
                _append(ch + nxt)
                i += 2
                continue
            in_single = not in_single
            _append(ch)
            i += 1
            continue

        if ch == '"' and not (in_single or in_backtick or in_bracket):
            in_double = not in_double
            _append(ch)
            i += 1
            continue

        if backtick_quotes and ch == "`" and not (in_single or in_double or in_bracket):
            in_backtick = not in_backtick
            _append(ch)
            i += 1
            continue

        if bracket_quotes and not (in_single or in_double or in_backtick):
            if ch == "[" and not in_bracket:
                in_bracket = True
            elif ch == "]" and in_bracket:
                in_bracket = False

        if ch == ";" and not (in_single or in_double or in_backtick or in_bracket):
            _flush()
            i += 1
            continue

        _append(ch)
        if ch == "\n":
            line += 1
        i += 1

    _flush()
    return statements
