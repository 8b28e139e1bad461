"""
Per-call transform state: a cursor over the token stream plus the output
buffer that target text is appended to.

The engine rewrites tokens in a single pass without building a syntax tree.
Postfix constructs (`.length`, `.push(...)`, `?:` and friends) need the left
operand that has already been emitted, so `extract_trailing_expression`
walks backward through the output buffer, removes the operand and hands it
back for re-emission inside the new construct.
"""

from __future__ import annotations

import re
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Sequence, Set, Tuple

from lexer import EOF_TOKEN, Token, TokenKind


class TranspileError(RuntimeError):
    """Raised when the token stream cannot be rewritten at all."""

    def __init__(self, message: str, line: Optional[int] = None):
        loc = f" (line {line})" if line is not None else ""
        super().__init__(f"{message}{loc}")
        self.line = line


@dataclass
class LoopFrame:
    """A loop emitted by the statement transformer; owns a `continue` label."""

    label: str
    continue_used: bool = False


# Pushed onto the loop stack when entering a function body so `continue`
# never targets a loop outside the function.
FUNCTION_BOUNDARY = None

_OPENERS = ("(", "[", "{")
_CLOSERS = (")", "]", "}")

# Emitted text after which a new expression starts, wherever it appears.
_STATEMENT_BOUNDARIES = frozenset({"=", "local", "return", "end", "then", "do", "else", ","})
# Operators that end the left operand of a postfix member access.
_OPERATOR_BOUNDARIES = frozenset(
    {"and", "or", "not", "+", "-", "*", "/", "%", "==", "~=", "<", ">", "<=", ">=", ".."}
)
_COMPARISON_SUFFIX = re.compile(r"[~<>=!]=$")
# Header entries such as `while a do`, `function(x) return ` or `local function f(a)`.
_OPENS_BODY = re.compile(
    r"(?:^|\s)(?:return|then|do|else|repeat)$|\bfunction(?:\s+[\w.:]+)?\s*\([^()]*\)$"
)


def _ends_assignment(text: str) -> bool:
    return text.endswith("=") and _COMPARISON_SUFFIX.search(text) is None


@dataclass
class TransformContext:
    """
    Cursor, output buffer and per-call bookkeeping for one transpile run.

    Sub-contexts created for nested token lists (conditions, call arguments,
    template expressions) share `map_vars` and `loops` with their parent.
    """

    tokens: Sequence[Token]
    pos: int = 0
    out: List[str] = field(default_factory=list)
    map_vars: Set[str] = field(default_factory=set)
    loops: List[Optional[LoopFrame]] = field(default_factory=list)
    # Set for sub-contexts that hold a value, not statements; blocks clear it.
    in_expression: bool = False
    statement_start: Optional[Tuple[List[str], int]] = None

    def child(self, tokens: Sequence[Token]) -> "TransformContext":
        return TransformContext(
            tokens=list(tokens) + [EOF_TOKEN],
            map_vars=self.map_vars,
            loops=self.loops,
            in_expression=True,
        )

    # ------------------------------------------------------------------ cursor

    def peek(self, offset: int = 0) -> Token:
        index = self.pos + offset
        if index < 0 or index >= len(self.tokens):
            return EOF_TOKEN
        return self.tokens[index]

    @property
    def current(self) -> Token:
        return self.peek()

    @property
    def at_end(self) -> bool:
        return self.current.kind == TokenKind.EOF

    def advance(self) -> Token:
        token = self.current
        self.pos += 1
        return token

    def advance_by(self, count: int) -> None:
        for _ in range(count):
            self.advance()

    def at(self, kind: TokenKind, value: Optional[str] = None) -> bool:
        return self.current.is_(kind, value)

    def at_punct(self, *values: str) -> bool:
        return self.current.is_punct(*values)

    def skip_trivia(self) -> str:
        """Consume whitespace, newlines and comments; return their raw text."""
        skipped: List[str] = []
        while self.current.is_trivia:
            skipped.append(self.advance().value)
        return "".join(skipped)

    def skip_inline_space(self) -> None:
        while self.current.kind == TokenKind.WHITESPACE:
            self.advance()

    def peek_significant(self, start: int = 0) -> Tuple[Token, int]:
        """Return the first non-trivia token at or after `start` and its offset."""
        offset = start
        while True:
            token = self.peek(offset)
            if not token.is_trivia:
                return token, offset
            offset += 1

    def previous_significant(self) -> Token:
        """The last non-trivia token consumed so far."""
        index = self.pos - 1
        while index >= 0:
            token = self.tokens[index]
            if not token.is_trivia:
                return token
            index -= 1
        return EOF_TOKEN

    def line_of(self, index: Optional[int] = None) -> int:
        index = self.pos if index is None else index
        return 1 + sum(token.value.count("\n") for token in self.tokens[:index])

    # ------------------------------------------------------------ token groups

    def collect_group(self, opener: str = "(", closer: str = ")") -> List[Token]:
        """
        Consume a bracketed group starting at the current `opener` and return
        the tokens strictly inside it.
        """
        if not self.at_punct(opener):
            raise TranspileError(f"expected '{opener}'", self.line_of())
        start_line = self.line_of()
        self.advance()
        inner: List[Token] = []
        depth = 1
        while not self.at_end:
            token = self.current
            if token.is_punct(opener):
                depth += 1
            elif token.is_punct(closer):
                depth -= 1
                if depth == 0:
                    self.advance()
                    return inner
            inner.append(self.advance())
        raise TranspileError(f"unterminated '{opener}'", start_line)

    def skip_group(self, opener: str, closer: str) -> None:
        self.collect_group(opener, closer)

    # ------------------------------------------------------------------ output

    def emit(self, text: str) -> None:
        self.out.append(text)

    def mark_statement_start(self) -> None:
        if not self.in_expression:
            self.statement_start = (self.out, len(self.out))

    def at_statement_start(self) -> bool:
        """True when nothing has been emitted since the current expression statement began."""
        if self.in_expression or self.statement_start is None:
            return False
        out, index = self.statement_start
        return out is self.out and len(out) == index

    def last_emitted(self) -> str:
        """The last output entry that is not blank, stripped."""
        for entry in reversed(self.out):
            stripped = entry.strip()
            if stripped:
                return stripped
        return ""

    @contextmanager
    def capture(self) -> Iterator[List[str]]:
        """Redirect emission into a fresh buffer for the duration of the block."""
        saved = self.out
        buffer: List[str] = []
        self.out = buffer
        try:
            yield buffer
        finally:
            self.out = saved

    def extract_trailing_expression(self, *, operators_end_operand: bool = True) -> str:
        """
        Remove the most recently emitted expression from the output buffer and
        return it stripped.

        The walk goes backward while keeping `()`/`[]` balanced and stops at a
        statement boundary (`=`, `local`, `return`, block keywords, `,`, a
        newline, a header entry ending in `do`/`then`/`return` or a function
        parameter list), at an unmatched opening bracket, and, when
        `operators_end_operand` is set, at whitespace or a binary operator.
        Whitespace in front of a `.member`/`:method` entry never ends the
        operand, so chains split over several lines stay whole.
        """
        out = self.out
        index = len(out) - 1
        while index >= 0 and not out[index].strip():
            index -= 1
        end = index
        depth = 0
        while index >= 0:
            for ch in reversed(out[index]):
                if ch in ")]":
                    depth += 1
                elif ch in "([":
                    depth -= 1
            if depth < 0:
                index += 1
                break
            if depth == 0 and index > 0:
                previous = index - 1
                if out[index].lstrip().startswith((".", ":")):
                    # A member chained on a following line continues the operand.
                    while previous > 0 and not out[previous].strip():
                        previous -= 1
                if self._is_boundary(out[previous], operators_end_operand):
                    break
                index = previous
                continue
            index -= 1
        index = max(index, 0)
        while index < end and not out[index].strip():
            index += 1
        expression = "".join(out[index : end + 1]).strip()
        del out[index:]
        return expression

    @staticmethod
    def _is_boundary(raw: str, operators_end_operand: bool) -> bool:
        text = raw.strip()
        if "\n" in raw:
            return True
        if not text:
            return operators_end_operand
        if text in _STATEMENT_BOUNDARIES or _ends_assignment(text) or _OPENS_BODY.search(text):
            return True
        return operators_end_operand and text in _OPERATOR_BOUNDARIES


def split_top_level(tokens: Sequence[Token], separator: str = ",") -> List[List[Token]]:
    """Split a token list on `separator` punctuation at bracket depth zero."""
    groups: List[List[Token]] = [[]]
    depth = 0
    for token in tokens:
        if token.is_punct(*_OPENERS):
            depth += 1
        elif token.is_punct(*_CLOSERS):
            depth -= 1
        if depth == 0 and token.is_punct(separator):
            groups.append([])
            continue
        groups[-1].append(token)
    return groups


def split_first_argument(tokens: Sequence[Token]) -> Tuple[List[Token], List[Token]]:
    """Split call arguments at the first top-level comma."""
    groups = split_top_level(tokens)
    first = groups[0]
    rest: List[Token] = []
    for index, group in enumerate(groups[1:]):
        if index:
            rest.append(Token(kind=TokenKind.PUNCTUATION, value=","))
        rest.extend(group)
    return first, rest


__all__ = [
    "FUNCTION_BOUNDARY",
    "LoopFrame",
    "TransformContext",
    "TranspileError",
    "split_first_argument",
    "split_top_level",
]
