"""
Best-effort conversion of JavaScript regex literals into Lua patterns.

Lua patterns are a much smaller dialect than JavaScript regular expressions.
`convert_regex` translates the practical subset seen in query scripts:
character classes, the `\\w \\W \\d \\D \\s \\S` shorthands, anchors, `.`,
greedy and lazy quantifiers, small `{n,m}` repetitions (unrolled) and
non-capturing groups (degraded to plain groups).

Alternation has no Lua equivalent. Instead of raising, the converter returns
a `RegexConversion` whose `pattern` is `None`; callers emit a placeholder and
keep going.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Optional

_LITERAL_RE = re.compile(r"^/(.+)/([gimsuy]*)$", re.DOTALL)
_QUANTIFIER_RE = re.compile(r"\{(\d+)(,?)(\d*)\}")

# Characters that carry meaning in Lua patterns and need a `%` escape.
_LUA_MAGIC = frozenset("().%+-*?[]^$")
_SHORTHANDS = {
    "w": "[%w_]",
    "W": "[^%w_]",
    "d": "%d",
    "D": "%D",
    "s": "%s",
    "S": "%S",
}
_CLASS_SHORTHANDS = {"w": "%w_", "d": "%d", "s": "%s", "]": "%]", "[": "%["}
_CONTROL_ESCAPES = {"n": "\n", "t": "\t", "r": "\r"}
_STRING_ESCAPES = {"\\": "\\\\", '"': '\\"', "\n": "\\n", "\r": "\\r", "\t": "\\t"}


@dataclass(frozen=True)
class RegexConversion:
    """Outcome of a conversion; `pattern is None` means "not convertible"."""

    pattern: Optional[str]
    is_global: bool

    @property
    def converted(self) -> bool:
        return self.pattern is not None


def lua_string_literal(text: str) -> str:
    """Quote `text` as a double-quoted Lua string literal."""
    return '"' + "".join(_STRING_ESCAPES.get(ch, ch) for ch in text) + '"'


def escape_lua_pattern(text: str) -> str:
    """Escape every Lua pattern magic character so `text` matches literally."""
    return "".join("%" + ch if ch in _LUA_MAGIC else ch for ch in text)


def _replace_last(out: List[str], text: str) -> None:
    if out:
        out[-1] = text
    else:
        out.append(text)


def _unroll_repetition(out: List[str], low: int, high: Optional[int]) -> None:
    previous = out[-1] if out else ""
    if low == 0 and high is not None and high <= 4:
        _replace_last(out, (previous + "?") * high)
    elif low == 1 and high is None:
        _replace_last(out, previous + "+")
    elif low == 0 and high is None:
        _replace_last(out, previous + "*")
    elif high is not None:
        _replace_last(out, previous * low + (previous + "?") * (high - low))
    else:
        _replace_last(out, previous * low + previous + "*")


def _convert_class(pattern: str, i: int, out: List[str]) -> int:
    """Translate a `[...]` class starting after its `[`; returns the next index."""
    size = len(pattern)
    buf = "["
    if i < size and pattern[i] == "^":
        buf += "^"
        i += 1
    if i < size and pattern[i] == "]":
        buf += "%]"
        i += 1
    while i < size and pattern[i] != "]":
        ch = pattern[i]
        if ch == "\\":
            i += 1
            if i < size:
                escaped = pattern[i]
                if escaped in _CLASS_SHORTHANDS:
                    buf += _CLASS_SHORTHANDS[escaped]
                elif escaped in _LUA_MAGIC:
                    buf += "%" + escaped
                else:
                    buf += escaped
        elif ch == "%":
            buf += "%%"
        else:
            buf += ch
        i += 1
    out.append(buf + "]")
    return i + 1


def convert_regex(literal: str) -> RegexConversion:
    """
    Convert a JavaScript regex literal such as `/\\w+/g` into a Lua pattern.

    Args:
        literal: The full literal, slashes and flags included.

    Returns:
        RegexConversion with the Lua pattern (or `None` when the literal uses
        alternation or is not a well-formed literal) and whether the `g` flag
        was present.
    """
    match = _LITERAL_RE.match(literal)
    if match is None:
        return RegexConversion(pattern=None, is_global=False)
    pattern, flags = match.group(1), match.group(2)
    is_global = "g" in flags

    out: List[str] = []
    i = 0
    size = len(pattern)
    while i < size:
        ch = pattern[i]
        following = pattern[i + 1] if i + 1 < size else ""

        if ch == "\\":
            if not following:
                break
            if following in _SHORTHANDS:
                out.append(_SHORTHANDS[following])
            elif following == "b":
                pass  # word boundary: no Lua equivalent
            elif following in _CONTROL_ESCAPES:
                out.append(_CONTROL_ESCAPES[following])
            elif following in _LUA_MAGIC:
                out.append("%" + following)
            else:
                out.append(following)
            i += 2
        elif ch == "[":
            i = _convert_class(pattern, i + 1, out)
        elif ch == "(":
            out.append("(")
            i += 3 if pattern.startswith("?:", i + 1) else 1
        elif ch == "{":
            quantifier = _QUANTIFIER_RE.match(pattern, i)
            if quantifier is None:
                out.append("{")
                i += 1
                continue
            low = int(quantifier.group(1))
            if not quantifier.group(2):
                high: Optional[int] = low
            elif quantifier.group(3):
                high = int(quantifier.group(3))
            else:
                high = None
            _unroll_repetition(out, low, high)
            i = quantifier.end()
        elif ch == "|":
            return RegexConversion(pattern=None, is_global=is_global)
        elif ch == "*":
            # Lazy `*?` maps onto Lua's `-`; lazy `+?` and `??` keep the greedy form.
            out.append("-" if following == "?" else "*")
            i += 2 if following == "?" else 1
        elif ch in ("+", "?"):
            out.append(ch)
            i += 2 if following == "?" else 1
        elif ch in (")", ".", "^", "$"):
            out.append(ch)
            i += 1
        elif ch in _LUA_MAGIC:
            out.append("%" + ch)
            i += 1
        else:
            out.append(ch)
            i += 1

    return RegexConversion(pattern="".join(out), is_global=is_global)


__all__ = ["RegexConversion", "convert_regex", "escape_lua_pattern", "lua_string_literal"]
