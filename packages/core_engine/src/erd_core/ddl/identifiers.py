import re
from typing import List, Optional, Tuple

_QUOTE_CHARS = "\"`[]"


def unquote(token: str) -> str:
    return token.strip().strip(_QUOTE_CHARS)


def split_qualified_name(token: str) -> Tuple[Optional[str], str]:
    """Split ``schema.table`` (any quoting style) into its parts."""
    parts = [unquote(part) for part in re.split(r"\.(?=(?:[^\"]*\"[^\"]*\")*[^\"]*$)", token.strip())]
    parts = [part for part in parts if part]
    if not parts:
        return None, ""
    if len(parts) == 1:
        return None, parts[0]
    return parts[-2], parts[-1]


def split_top_level(body: str) -> List[str]:
    """Split on commas that are not nested in parentheses or quotes."""
    parts: List[str] = []
    current: List[str] = []
    depth = 0
    in_single = False
    in_double = False

    for char in body:
        if char == "'" and not in_double:
            in_single = not in_single
        elif char == '"' and not in_single:
            in_double = not in_double
        elif not in_single and not in_double:
            if char == "(":
                depth += 1
            elif char == ")":
                depth = max(0, depth - 1)
            elif char == "," and depth == 0:
                parts.append("".join(current).strip())
                current = []
                continue
        current.append(char)

    if current:
        parts.append("".join(current).strip())
    return [part for part in parts if part]


def column_list(text: str) -> List[str]:
    return [unquote(part.split()[0]) for part in split_top_level(text) if part.split()]
