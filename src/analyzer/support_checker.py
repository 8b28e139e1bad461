"""
Support analysis for esprima ASTs of query blocks.

The transpiler rewrites tokens without understanding the program, so it can
only notice unsupported constructs once it is already emitting output. This
walker finds the same constructs up front on the esprima AST and reports
them with exact line/column positions:

- C-style `for (init; test; update)` loops (`C_STYLE_FOR`)
- regex literals that use alternation (`REGEX_ALTERNATION`)
- object/array destructuring patterns (`DESTRUCTURING_PATTERN`)
- `switch`, `try` and `class` (`UNSUPPORTED_STATEMENT`)
- `continue` that has no enclosing supported loop in the same function
  (`CONTINUE_OUTSIDE_LOOP`)
- `eval(...)` (`EVAL_CALL`)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from lexer import convert_regex

_LOOP_TYPES = frozenset({"ForOfStatement", "ForInStatement", "WhileStatement", "DoWhileStatement"})
_FUNCTION_TYPES = frozenset({"FunctionDeclaration", "FunctionExpression", "ArrowFunctionExpression"})
_UNSUPPORTED_STATEMENTS = {
    "SwitchStatement": "switch",
    "TryStatement": "try",
    "ClassDeclaration": "class",
    "ClassExpression": "class",
}


@dataclass(frozen=True)
class SourcePosition:
    line: Optional[int]
    column: Optional[int]


@dataclass(frozen=True)
class AnalysisIssue:
    code: str
    message: str
    loc: SourcePosition

    def __str__(self) -> str:
        return f"{self.code}: {self.message} (line {self.loc.line}, column {self.loc.column})"


@dataclass(frozen=True)
class AnalysisResult:
    source_name: str
    issues: List[AnalysisIssue]

    def codes(self) -> List[str]:
        return [issue.code for issue in self.issues]


class _SupportAnalyzer:
    def __init__(self, source_name: str) -> None:
        self._source_name = source_name
        self._issues: List[AnalysisIssue] = []
        # One loop counter per enclosing function; `continue` looks at the last.
        self._loop_depths: List[int] = [0]

    def analyze(self, ast: Dict[str, Any]) -> AnalysisResult:
        self._visit(ast)
        return AnalysisResult(source_name=self._source_name, issues=self._issues)

    # ------------------------------------------------------------------ helpers

    @staticmethod
    def _source_position(node: Dict[str, Any]) -> SourcePosition:
        loc = node.get("loc") or {}
        start = loc.get("start") or {}
        return SourcePosition(line=start.get("line"), column=start.get("column"))

    def _add_issue(self, code: str, message: str, node: Dict[str, Any]) -> None:
        self._issues.append(
            AnalysisIssue(code=code, message=message, loc=self._source_position(node))
        )

    def _visit(self, node: Any) -> None:
        if node is None:
            return
        if isinstance(node, list):
            for element in node:
                self._visit(element)
            return
        if not isinstance(node, dict):
            return

        node_type = node.get("type")
        if node_type in _LOOP_TYPES:
            self._visit_loop(node)
            return
        if node_type in _FUNCTION_TYPES:
            self._visit_function(node)
            return
        if node_type in _UNSUPPORTED_STATEMENTS:
            self._add_issue(
                code="UNSUPPORTED_STATEMENT",
                message=f"`{_UNSUPPORTED_STATEMENTS[node_type]}` is not transpiled; it is skipped.",
                node=node,
            )
            return

        handler = getattr(self, f"_visit_{node_type}", None)
        if handler:
            handler(node)
        else:
            self._generic_visit(node)

    def _generic_visit(self, node: Dict[str, Any]) -> None:
        for key, value in node.items():
            if key in {"loc", "range", "comments", "errors"}:
                continue
            self._visit(value)

    # ----------------------------------------------------------------- visitors

    def _visit_loop(self, node: Dict[str, Any]) -> None:
        self._loop_depths[-1] += 1
        try:
            self._generic_visit(node)
        finally:
            self._loop_depths[-1] -= 1

    def _visit_function(self, node: Dict[str, Any]) -> None:
        self._loop_depths.append(0)
        try:
            self._generic_visit(node)
        finally:
            self._loop_depths.pop()

    def _visit_ForStatement(self, node: Dict[str, Any]) -> None:
        self._add_issue(
            code="C_STYLE_FOR",
            message="C-style for loops are not transpiled; the loop body is skipped.",
            node=node,
        )

    def _visit_ContinueStatement(self, node: Dict[str, Any]) -> None:
        if self._loop_depths[-1] == 0:
            self._add_issue(
                code="CONTINUE_OUTSIDE_LOOP",
                message="`continue` has no enclosing for-of, for-in, while or do-while loop.",
                node=node,
            )

    def _visit_Literal(self, node: Dict[str, Any]) -> None:
        regex = node.get("regex")
        if not isinstance(regex, dict):
            return
        literal = f"/{regex.get('pattern', '')}/{regex.get('flags', '')}"
        if convert_regex(literal).pattern is None:
            self._add_issue(
                code="REGEX_ALTERNATION",
                message=f"{literal} uses alternation, which Lua patterns cannot express.",
                node=node,
            )

    def _visit_ObjectPattern(self, node: Dict[str, Any]) -> None:
        self._add_destructuring(node)

    def _visit_ArrayPattern(self, node: Dict[str, Any]) -> None:
        self._add_destructuring(node)

    def _add_destructuring(self, node: Dict[str, Any]) -> None:
        self._add_issue(
            code="DESTRUCTURING_PATTERN",
            message="Destructuring patterns are not transpiled.",
            node=node,
        )

    def _visit_CallExpression(self, node: Dict[str, Any]) -> None:
        callee = node.get("callee")
        if (
            isinstance(callee, dict)
            and callee.get("type") == "Identifier"
            and callee.get("name") == "eval"
        ):
            self._add_issue(
                code="EVAL_CALL",
                message="eval cannot be transpiled.",
                node=callee,
            )
        self._generic_visit(node)


def analyze_support(ast: Dict[str, Any], *, source_name: str = "<input>") -> AnalysisResult:
    """
    Report constructs in a parsed query block that the transpiler degrades.

    Args:
        ast: esprima AST as plain dicts (result of `parse_js`).
        source_name: Label for diagnostics and reporting.

    Returns:
        AnalysisResult listing issues in source order of discovery.
    """
    return _SupportAnalyzer(source_name=source_name).analyze(ast)


__all__ = ["AnalysisIssue", "AnalysisResult", "SourcePosition", "analyze_support"]
