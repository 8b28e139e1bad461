"""Tokenization and regex-dialect helpers for the JavaScript query subset."""

from .regex_pattern import RegexConversion, convert_regex, escape_lua_pattern, lua_string_literal
from .tokenizer import UnbalancedBracketError, tokenize, verify_brackets
from .tokens import EOF_TOKEN, TemplatePart, Token, TokenKind

__all__ = [
    "EOF_TOKEN",
    "RegexConversion",
    "TemplatePart",
    "Token",
    "TokenKind",
    "UnbalancedBracketError",
    "convert_regex",
    "escape_lua_pattern",
    "lua_string_literal",
    "tokenize",
    "verify_brackets",
]
