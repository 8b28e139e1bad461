"""
Locate JavaScript query code inside a Markdown note.

Two forms are recognised:

- fenced blocks opened by ```` ```dataviewjs ```` (language tag compared
  case-insensitively) and closed by a bare ```` ``` ```` line;
- inline expressions written as `` `$=expr` `` outside fenced blocks.

Blocks of other languages are skipped whole; an opening fence without a
closing one is ignored.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List

QUERY_LANGUAGE = "dataviewjs"

_FENCE_OPEN = re.compile(r"^\s*```(\S+)")
_FENCE_CLOSE = re.compile(r"^\s*```\s*$")
_INLINE_EXPRESSION = re.compile(r"`\$=(.*?)`")


@dataclass(frozen=True)
class QueryBlock:
    kind: str  # "block" or "inline"
    source: str
    line: int  # 1-based line of the opening fence or of the inline expression

    @property
    def is_inline(self) -> bool:
        return self.kind == "inline"


def find_query_blocks(markdown: str) -> List[QueryBlock]:
    """
    Return every query block and inline expression of a note in document order.

    Args:
        markdown: Full note text.

    Returns:
        QueryBlock entries; block sources exclude the fence lines.
    """
    lines = markdown.splitlines()
    found: List[QueryBlock] = []
    index = 0
    while index < len(lines):
        line = lines[index]
        opened = _FENCE_OPEN.match(line)
        if opened:
            close = _find_closing_fence(lines, index + 1)
            if close is None:
                index += 1
                continue
            if opened.group(1).lower() == QUERY_LANGUAGE:
                body = "\n".join(lines[index + 1 : close])
                found.append(QueryBlock(kind="block", source=body, line=index + 1))
            index = close + 1
            continue
        for match in _INLINE_EXPRESSION.finditer(line):
            found.append(QueryBlock(kind="inline", source=match.group(1), line=index + 1))
        index += 1
    return found


def _find_closing_fence(lines: List[str], start: int):
    for index in range(start, len(lines)):
        if _FENCE_CLOSE.match(lines[index]):
            return index
    return None


__all__ = ["QUERY_LANGUAGE", "QueryBlock", "find_query_blocks"]
