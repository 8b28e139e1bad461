"""
Lossless tokenizer for the JavaScript subset used in query blocks.

`tokenize` never fails: characters it does not recognise are emitted as
single-character whitespace tokens so the stream stays total. Whitespace,
newlines and comments are kept as tokens because the transform engine uses
them to find statement boundaries and to preserve the source layout.

A `/` starts a regex literal unless the nearest preceding non-trivia token is
an identifier, a number, a closing `)`/`]`, or `++`/`--`; without a full parse
that is the only practical way to tell division from a regex.
"""

from __future__ import annotations

from typing import List, Sequence, Tuple

from .tokens import EOF_TOKEN, TemplatePart, Token, TokenKind

_DIGITS = frozenset("0123456789")
_HEX_DIGITS = frozenset("0123456789abcdefABCDEF")
_INLINE_SPACE = frozenset(" \t\r")
_REGEX_FLAGS = frozenset("gimsuy")
_SINGLE_CHAR_OPERATORS = frozenset("+-*/%=!<>.")
_PUNCTUATION = frozenset("()[]{},;:?")

# Longest match first.
_MULTI_CHAR_OPERATORS = (
    "===",
    "!==",
    "=>",
    "&&",
    "||",
    "==",
    "!=",
    ">=",
    "<=",
    "+=",
    "-=",
    "++",
    "--",
)

_BRACKET_PAIRS = {")": "(", "]": "[", "}": "{"}

# Returned by `_peek` past the end of input; matches none of the sets above.
_END = "\0"


class UnbalancedBracketError(ValueError):
    """Raised by `verify_brackets` when `()`, `[]` or `{}` do not pair up."""

    def __init__(self, message: str, line: int):
        super().__init__(f"{message} (line {line})")
        self.line = line


class _Tokenizer:
    def __init__(self, source: str) -> None:
        self._src = source
        self._len = len(source)
        self._pos = 0
        self._tokens: List[Token] = []

    def run(self) -> List[Token]:
        while self._pos < self._len:
            self._scan_token()
        self._tokens.append(EOF_TOKEN)
        return self._tokens

    # ------------------------------------------------------------------ helpers

    def _peek(self, offset: int = 0) -> str:
        index = self._pos + offset
        if index >= self._len:
            return _END
        return self._src[index]

    def _skip_while(self, chars) -> None:
        while self._pos < self._len and self._src[self._pos] in chars:
            self._pos += 1

    def _push(self, kind: TokenKind, start: int, parts: Tuple[TemplatePart, ...] = ()) -> None:
        self._pos = min(self._pos, self._len)
        self._tokens.append(Token(kind=kind, value=self._src[start : self._pos], parts=parts))

    def _slash_is_division(self) -> bool:
        for token in reversed(self._tokens):
            if token.is_trivia:
                continue
            if token.kind in (TokenKind.IDENTIFIER, TokenKind.NUMBER):
                return True
            return token.is_punct(")", "]") or token.is_op("++", "--")
        return False

    # ----------------------------------------------------------------- scanners

    def _scan_token(self) -> None:
        start = self._pos
        ch = self._peek()

        if ch == "\n":
            self._pos += 1
            self._push(TokenKind.NEWLINE, start)
        elif ch in _INLINE_SPACE:
            self._skip_while(_INLINE_SPACE)
            self._push(TokenKind.WHITESPACE, start)
        elif ch == "/" and self._peek(1) == "/":
            while self._pos < self._len and self._src[self._pos] != "\n":
                self._pos += 1
            self._push(TokenKind.COMMENT, start)
        elif ch == "/" and self._peek(1) == "*":
            end = self._src.find("*/", self._pos + 2)
            self._pos = self._len if end < 0 else end + 2
            self._push(TokenKind.COMMENT, start)
        elif ch == "`":
            self._scan_template(start)
        elif ch in ("'", '"'):
            self._scan_string(start, ch)
        elif ch == "/" and not self._slash_is_division():
            self._scan_regex(start)
        elif ch in _DIGITS or (ch == "." and self._peek(1) in _DIGITS):
            self._scan_number(start)
        elif ch.isalpha() or ch in ("_", "$"):
            while self._pos < self._len and (
                self._src[self._pos].isalnum() or self._src[self._pos] in ("_", "$")
            ):
                self._pos += 1
            self._push(TokenKind.IDENTIFIER, start)
        else:
            self._scan_operator(start, ch)

    def _scan_operator(self, start: int, ch: str) -> None:
        for operator in _MULTI_CHAR_OPERATORS:
            if self._src.startswith(operator, self._pos):
                self._pos += len(operator)
                self._push(TokenKind.OPERATOR, start)
                return
        self._pos += 1
        if ch in _SINGLE_CHAR_OPERATORS:
            self._push(TokenKind.OPERATOR, start)
        elif ch in _PUNCTUATION:
            self._push(TokenKind.PUNCTUATION, start)
        else:
            self._push(TokenKind.WHITESPACE, start)

    def _scan_template(self, start: int) -> None:
        self._pos += 1
        parts: List[TemplatePart] = []
        text: List[str] = []
        while self._pos < self._len and self._src[self._pos] != "`":
            ch = self._src[self._pos]
            if ch == "$" and self._peek(1) == "{":
                if text:
                    parts.append(TemplatePart(kind="text", value="".join(text)))
                    text = []
                self._pos += 2
                expr_start = self._pos
                depth = 1
                while self._pos < self._len:
                    c = self._src[self._pos]
                    if c == "{":
                        depth += 1
                    elif c == "}":
                        depth -= 1
                        if depth == 0:
                            break
                    self._pos += 1
                parts.append(TemplatePart(kind="expr", value=self._src[expr_start : self._pos]))
                if self._pos < self._len:
                    self._pos += 1
            elif ch == "\\":
                text.append(self._src[self._pos : self._pos + 2])
                self._pos += 2
            else:
                text.append(ch)
                self._pos += 1
        if text:
            parts.append(TemplatePart(kind="text", value="".join(text)))
        if self._pos < self._len:
            self._pos += 1
        self._push(TokenKind.TEMPLATE, start, tuple(parts))

    def _scan_string(self, start: int, quote: str) -> None:
        self._pos += 1
        while self._pos < self._len and self._src[self._pos] != quote:
            self._pos += 2 if self._src[self._pos] == "\\" else 1
        if self._pos < self._len:
            self._pos += 1
        self._push(TokenKind.STRING, start)

    def _scan_regex(self, start: int) -> None:
        self._pos += 1
        in_class = False
        while self._pos < self._len:
            c = self._src[self._pos]
            if c == "\\":
                self._pos += 2
                continue
            self._pos += 1
            if c == "[":
                in_class = True
            elif c == "]":
                in_class = False
            elif c == "/" and not in_class:
                break
        self._pos = min(self._pos, self._len)
        self._skip_while(_REGEX_FLAGS)
        self._push(TokenKind.REGEX, start)

    def _scan_number(self, start: int) -> None:
        if self._peek() == "0" and self._peek(1) in ("x", "X"):
            self._pos += 2
            self._skip_while(_HEX_DIGITS)
        else:
            self._skip_while(_DIGITS)
            if self._peek() == ".":
                self._pos += 1
                self._skip_while(_DIGITS)
            if self._peek() in ("e", "E"):
                self._pos += 1
                if self._peek() in ("+", "-"):
                    self._pos += 1
                self._skip_while(_DIGITS)
        self._push(TokenKind.NUMBER, start)


def tokenize(source: str) -> List[Token]:
    """
    Split JavaScript source into a flat, lossless token list.

    Args:
        source: Raw JavaScript text.

    Returns:
        Tokens in source order, terminated by `EOF_TOKEN`. Joining every
        token's `value` yields `source` unchanged.
    """
    return _Tokenizer(source).run()


def verify_brackets(tokens: Sequence[Token]) -> None:
    """
    Check that punctuation brackets pair up across the token stream.

    Raises:
        UnbalancedBracketError: On a stray closer or an unclosed opener.
    """
    stack: List[Tuple[str, int]] = []
    line = 1
    for token in tokens:
        if token.kind == TokenKind.PUNCTUATION:
            if token.value in "([{":
                stack.append((token.value, line))
            elif token.value in _BRACKET_PAIRS:
                expected = _BRACKET_PAIRS[token.value]
                if not stack:
                    raise UnbalancedBracketError(f"unexpected '{token.value}'", line)
                opener, opened_at = stack.pop()
                if opener != expected:
                    raise UnbalancedBracketError(
                        f"'{token.value}' does not close '{opener}' opened on line {opened_at}",
                        line,
                    )
        line += token.value.count("\n")
    if stack:
        opener, opened_at = stack[-1]
        raise UnbalancedBracketError(f"unmatched '{opener}'", opened_at)


__all__ = ["UnbalancedBracketError", "tokenize", "verify_brackets"]
