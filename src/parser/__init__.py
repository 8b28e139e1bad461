"""esprima-backed syntax check for JavaScript query blocks."""

from .js_parser import ParseError, ParseResult, parse_js

__all__ = ["ParseError", "ParseResult", "parse_js"]
