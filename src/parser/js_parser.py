"""
Optional syntax check of a JavaScript query block with `esprima`.

The transpiler itself never needs a syntax tree; this parse exists so the
command line can point at real syntax errors (with line/column) before the
token-level rewrite produces confusing Lua, and so `analyzer` can look for
constructs the transpiler only degrades.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Optional

import esprima


@dataclass(frozen=True)
class ParseError:
    """A syntax error reported by esprima."""

    description: str
    line: Optional[int]
    column: Optional[int]

    def __str__(self) -> str:
        if self.line is None:
            return self.description
        return f"{self.description} (line {self.line}, column {self.column})"


@dataclass(frozen=True)
class ParseResult:
    ast: Optional[dict]
    errors: List[ParseError]
    source_name: str

    @property
    def ok(self) -> bool:
        return self.ast is not None and not self.errors


def _error_from_exception(exc: Any) -> ParseError:
    return ParseError(
        description=getattr(exc, "description", None) or str(exc),
        line=getattr(exc, "lineNumber", None),
        column=getattr(exc, "column", None),
    )


def parse_js(source: str, *, source_name: str = "<input>", tolerant: bool = True) -> ParseResult:
    """
    Parse a query block as an ES2017 script.

    Args:
        source: JavaScript text of one block.
        source_name: Label used in diagnostics.
        tolerant: When True esprima recovers where it can and the recovered
            errors are listed; a fatal error yields `ast=None`.

    Returns:
        ParseResult with the AST as plain dicts (locations included) and
        any syntax errors.

    Raises:
        esprima.Error: On a syntax error when `tolerant` is False.
    """
    try:
        program = esprima.parseScript(source, loc=True, range=True, comment=True, tolerant=tolerant)
    except esprima.Error as exc:
        if not tolerant:
            raise
        return ParseResult(ast=None, errors=[_error_from_exception(exc)], source_name=source_name)

    raw_ast = program.toDict() if hasattr(program, "toDict") else program
    errors: List[ParseError] = []
    if isinstance(raw_ast, dict):
        for error in raw_ast.get("errors") or []:
            if isinstance(error, dict):
                errors.append(
                    ParseError(
                        description=error.get("description") or "syntax error",
                        line=error.get("lineNumber"),
                        column=error.get("column"),
                    )
                )
            else:
                errors.append(_error_from_exception(error))
    return ParseResult(ast=raw_ast, errors=errors, source_name=source_name)


__all__ = ["ParseError", "ParseResult", "parse_js"]
