"""
Front-end checks for one query block: the esprima parse plus support analysis.

The transpiler never reads the esprima tree. The command line runs these
checks first so syntax errors and degraded constructs are reported against
positions in the JavaScript the user wrote.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Union

from analyzer import AnalysisIssue, AnalysisResult, analyze_support
from parser import ParseError, ParseResult, parse_js

Diagnostic = Union[ParseError, AnalysisIssue]


@dataclass(frozen=True)
class FrontEndResult:
    parse: ParseResult
    analysis: Optional[AnalysisResult]

    @property
    def has_ast(self) -> bool:
        return self.parse.ast is not None

    @property
    def diagnostics(self) -> List[Diagnostic]:
        """Syntax errors first, then support issues."""
        issues = self.analysis.issues if self.analysis else []
        return [*self.parse.errors, *issues]


def run_frontend(
    source: str,
    *,
    source_name: str = "<input>",
    tolerant: bool = True,
    analyze: bool = True,
) -> FrontEndResult:
    """
    Parse a query block and, unless disabled, look for unsupported constructs.

    Args:
        source: JavaScript text of the block.
        source_name: Label for diagnostics, usually the file path.
        tolerant: Passed through to `parse_js`.
        analyze: When False only the parse runs.

    Returns:
        FrontEndResult; `analysis` is None when skipped or when the parse
        produced no tree.
    """
    parsed = parse_js(source, source_name=source_name, tolerant=tolerant)
    if not analyze or parsed.ast is None:
        return FrontEndResult(parse=parsed, analysis=None)
    return FrontEndResult(parse=parsed, analysis=analyze_support(parsed.ast, source_name=source_name))


__all__ = ["Diagnostic", "FrontEndResult", "run_frontend"]
