"""
Textual clean-up passes applied to the transformed Lua chunk.

The transform engine leaves a few placeholders that are easier to desugar on
the finished text than on the token stream: compound assignment (`+=`, `-=`
and `..=` for strings), increment/decrement (`x++ `, `x-- `) and literal
zero-based indexing.
Every pass skips string literals and comments, so a `"a[0]"` inside a string
stays untouched.
"""

from __future__ import annotations

import logging
import re
from typing import Callable, Iterable, List, Optional, Tuple

logger = logging.getLogger(__name__)

CodePass = Callable[[str], str]

_PROTECTED = re.compile(
    r'"(?:\\.|[^"\\\n])*"'  # double-quoted string
    r"|--\[\[.*?\]\]"  # block comment
    r"|(?<![\w\]\)])--[^\n]*",  # line comment (`x-- ` is a decrement)
    re.DOTALL,
)
_COMPOUND = re.compile(r"([\w.\[\]\"']+?)[ \t]*(?P<op>[+-]|\.\.)=[ \t]*")
_INCREMENT = re.compile(r"([\w.\[\]]+)(?P<op>\+\+) ?")
_DECREMENT = re.compile(r"([\w.\[\]]+)(?P<op>--) ")
_LITERAL_INDEX = re.compile(r"(?<=[\w)\]])(?P<op>\[)(\d+)\]")


def _protected_spans(code: str) -> List[Tuple[int, int]]:
    return [match.span() for match in _PROTECTED.finditer(code)]


def _sub_outside_literals(
    pattern: re.Pattern[str], replace: Callable[[re.Match[str]], str], code: str
) -> str:
    spans = _protected_spans(code)

    def _guarded(match: re.Match[str]) -> str:
        at = match.start("op")
        for start, end in spans:
            if start <= at < end:
                return match.group(0)
        return replace(match)

    return pattern.sub(_guarded, code)


def desugar_compound_assignment(code: str) -> str:
    """`x += y` -> `x = x + y`; `-=` and the string form `s ..= y` likewise."""
    return _sub_outside_literals(
        _COMPOUND, lambda m: f"{m.group(1)} = {m.group(1)} {m.group('op')} ", code
    )


def desugar_increments(code: str) -> str:
    """`x++ ` -> `x = x + 1`, `x-- ` -> `x = x - 1`. The placeholder space is consumed."""
    code = _sub_outside_literals(_INCREMENT, lambda m: f"{m.group(1)} = {m.group(1)} + 1", code)
    return _sub_outside_literals(_DECREMENT, lambda m: f"{m.group(1)} = {m.group(1)} - 1", code)


def shift_literal_indices(code: str) -> str:
    """`a[0]` -> `a[1]`. Computed indices are left alone."""
    return _sub_outside_literals(_LITERAL_INDEX, lambda m: f"[{int(m.group(2)) + 1}]", code)


def normalize_whitespace(code: str) -> str:
    """Drop trailing blanks, collapse runs of blank lines, strip the ends. Idempotent."""
    code = re.sub(r"[ \t]+\n", "\n", code)
    code = re.sub(r"\n{3,}", "\n\n", code)
    return code.strip()


DEFAULT_PASSES: Tuple[CodePass, ...] = (
    desugar_compound_assignment,
    desugar_increments,
    shift_literal_indices,
    normalize_whitespace,
)


class PostProcessor:
    """Ordered list of text passes run over a finished chunk."""

    def __init__(self, passes: Optional[Iterable[CodePass]] = None):
        self.passes: List[CodePass] = list(DEFAULT_PASSES if passes is None else passes)

    def add_pass(self, code_pass: CodePass) -> None:
        self.passes.append(code_pass)

    def process(self, code: str) -> str:
        for code_pass in self.passes:
            code = code_pass(code)
            logger.debug("post-process pass %s done", code_pass.__name__)
        return code


def postprocess(code: str) -> str:
    """Run the default passes over `code`."""
    return PostProcessor().process(code)


__all__ = [
    "DEFAULT_PASSES",
    "PostProcessor",
    "desugar_compound_assignment",
    "desugar_increments",
    "normalize_whitespace",
    "postprocess",
    "shift_literal_indices",
]
