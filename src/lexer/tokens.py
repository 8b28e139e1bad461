"""
Token model shared by the tokenizer and the transform engine.

Tokens are immutable. A token stream is a flat list that always ends with
`EOF_TOKEN`; concatenating the `value` of every token reproduces the source
text exactly, template literals included (their `value` is the raw literal,
while `parts` carries the parsed text/expression segments).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple


class TokenKind(str, Enum):
    IDENTIFIER = "ident"
    NUMBER = "num"
    STRING = "str"
    TEMPLATE = "tmpl"
    REGEX = "regex"
    OPERATOR = "op"
    PUNCTUATION = "punct"
    NEWLINE = "nl"
    WHITESPACE = "ws"
    COMMENT = "comment"
    EOF = "eof"


TRIVIA_KINDS = frozenset({TokenKind.WHITESPACE, TokenKind.NEWLINE, TokenKind.COMMENT})


@dataclass(frozen=True)
class TemplatePart:
    """One segment of a template literal: literal `text` or an `expr` source."""

    kind: str
    value: str

    @property
    def is_expression(self) -> bool:
        return self.kind == "expr"


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    value: str
    parts: Tuple[TemplatePart, ...] = ()

    @property
    def is_trivia(self) -> bool:
        return self.kind in TRIVIA_KINDS

    def is_(self, kind: TokenKind, value: Optional[str] = None) -> bool:
        """Match on kind and, when given, on the exact value."""
        if self.kind != kind:
            return False
        return value is None or self.value == value

    def is_punct(self, *values: str) -> bool:
        return self.kind == TokenKind.PUNCTUATION and self.value in values

    def is_op(self, *values: str) -> bool:
        return self.kind == TokenKind.OPERATOR and self.value in values


EOF_TOKEN = Token(kind=TokenKind.EOF, value="")


__all__ = ["EOF_TOKEN", "TRIVIA_KINDS", "TemplatePart", "Token", "TokenKind"]
