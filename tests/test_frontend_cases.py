from pathlib import Path

import pytest

from analyzer import analyze_support
from frontend import find_query_blocks, run_frontend
from parser import parse_js

CASES = Path(__file__).parent / "cases"


def _codes(source: str):
    result = run_frontend(source, source_name="snippet.js")
    assert result.has_ast, result.parse.errors
    return result.analysis.codes()


def test_parse_valid_block():
    result = parse_js("const pages = dv.pages('#project');", source_name="block.js")
    assert result.ok
    assert result.ast["type"] == "Program"
    assert result.source_name == "block.js"


def test_parse_reports_syntax_error_with_location():
    source = (CASES / "syntax_error.js").read_text(encoding="utf-8")
    result = parse_js(source)
    assert not result.ok
    assert result.errors
    assert result.errors[0].line == 1
    assert "line 1" in str(result.errors[0])


def test_supported_block_has_no_issues():
    source = (CASES / "query_block.js").read_text(encoding="utf-8")
    assert _codes(source) == []


def test_unsupported_case_file():
    source = (CASES / "unsupported.js").read_text(encoding="utf-8")
    assert _codes(source) == ["C_STYLE_FOR", "UNSUPPORTED_STATEMENT"]


@pytest.mark.parametrize(
    "source, code",
    [
        ("const r = /cat|dog/;", "REGEX_ALTERNATION"),
        ("const { a } = o;", "DESTRUCTURING_PATTERN"),
        ("for (const [k, v] of pairs) {}", "DESTRUCTURING_PATTERN"),
        ("try { a(); } catch (e) {}", "UNSUPPORTED_STATEMENT"),
        ("class A {}", "UNSUPPORTED_STATEMENT"),
        ("eval('1');", "EVAL_CALL"),
    ],
)
def test_single_issue(source, code):
    assert _codes(source) == [code]


def test_issue_location():
    result = run_frontend("let a = 1;\nconst r = /x|y/g;")
    issue = result.analysis.issues[0]
    assert (issue.loc.line, issue.loc.column) == (2, 10)
    assert str(issue).startswith("REGEX_ALTERNATION: ")


def test_convertible_regex_is_not_reported():
    assert _codes("const r = /\\d+/g;") == []


def test_continue_outside_loop_in_nested_function():
    # esprima rejects this program, so the tree is built by hand.
    continue_node = {
        "type": "ContinueStatement",
        "label": None,
        "loc": {"start": {"line": 3, "column": 4}},
    }
    ast = {
        "type": "Program",
        "body": [
            {
                "type": "WhileStatement",
                "test": {"type": "Identifier", "name": "a"},
                "body": {
                    "type": "BlockStatement",
                    "body": [
                        {
                            "type": "FunctionDeclaration",
                            "id": {"type": "Identifier", "name": "f"},
                            "params": [],
                            "body": {"type": "BlockStatement", "body": [continue_node]},
                        }
                    ],
                },
            }
        ],
    }
    result = analyze_support(ast, source_name="hand.js")
    assert result.codes() == ["CONTINUE_OUTSIDE_LOOP"]
    assert result.issues[0].loc.line == 3


def test_continue_inside_loop_is_fine():
    assert _codes("while (a) { if (b) continue; }") == []


def test_frontend_can_skip_analysis():
    result = run_frontend("switch (x) {}", analyze=False)
    assert result.has_ast
    assert result.analysis is None
    assert result.diagnostics == []


def test_find_query_blocks_in_note():
    markdown = (CASES / "project_note.md").read_text(encoding="utf-8")
    blocks = find_query_blocks(markdown)

    assert [(block.kind, block.line) for block in blocks] == [("inline", 3), ("block", 5)]
    assert blocks[0].is_inline
    assert blocks[0].source == 'dv.pages("#project").length'
    assert blocks[1].source.splitlines() == [
        'const items = dv.pages("#project");',
        "dv.header(2, `Total: ${items.length}`);",
    ]


def test_fence_language_is_case_insensitive():
    blocks = find_query_blocks("```DataviewJS\ndv.paragraph(1);\n```\n")
    assert [block.source for block in blocks] == ["dv.paragraph(1);"]


def test_unclosed_fence_is_ignored():
    assert find_query_blocks("```dataviewjs\ndv.paragraph(1);\n") == []


def test_inline_expression_inside_other_fence_is_ignored():
    markdown = "```text\n`$=dv.current()`\n```\nafter `$=1 + 1`"
    blocks = find_query_blocks(markdown)
    assert [(block.source, block.line) for block in blocks] == [("1 + 1", 4)]
