from pathlib import Path

import pytest

from transformer import transpile

CASES = Path(__file__).parent / "cases"


def _lua(source: str) -> str:
    result = transpile(source)
    assert result.ok, result.error
    return result.code


def test_function_declaration_from_case_file():
    source = (CASES / "function_call.js").read_text(encoding="utf-8")
    assert _lua(source) == (
        "local function add(a, b)\n"
        "  return a + b\n"
        "end\n"
        "\n"
        "local result = add(1, 2)"
    )


def test_declarations():
    assert _lua("let a, b;") == "local a, b"
    assert _lua("var total = 0;") == "local total = 0"


def test_destructuring_is_a_soft_failure():
    result = transpile("const {a} = o;\nconst b = 1;")
    assert result.ok
    assert result.code == "--[[ unsupported: destructuring declaration ]]\nlocal b = 1"
    assert len(result.diagnostics) == 1


@pytest.mark.parametrize(
    "source, expected",
    [
        ("if (a) { x = 1; }", "if a then x = 1 end"),
        ("if (a) { x = 1; } else { x = 2; }", "if a then x = 1 else x = 2 end"),
        (
            "if (a) { x = 1; } else if (b) { x = 2; } else { x = 3; }",
            "if a then x = 1 elseif b then x = 2 else x = 3 end",
        ),
        ("if (a) return;", "if a then return end"),
        ("if (a&&b) {}", "if a and b then end"),
    ],
)
def test_if_statements(source, expected):
    assert _lua(source) == expected


def test_multiline_if_else_layout():
    source = "if (a) {\n  x = 1;\n} else {\n  x = 2;\n}"
    assert _lua(source) == "if a then\n  x = 1\nelse\n  x = 2\nend"


def test_nested_blocks_keep_indentation():
    source = "\n".join(
        [
            "function first(xs) {",
            "  for (const x of xs) {",
            "    if (x) {",
            "      return x;",
            "    }",
            "  }",
            "}",
        ]
    )
    assert _lua(source) == "\n".join(
        [
            "local function first(xs)",
            "  for _, x in ipairs(xs) do",
            "    if x then",
            "      return x",
            "    end",
            "  end",
            "end",
        ]
    )


def test_for_in_uses_pairs():
    assert _lua("for (const k in obj) { print(k); }") == "for k in pairs(obj) do print(k) end"


def test_while_and_break():
    assert _lua("while (i < 10) { i++; }") == "while i < 10 do i = i + 1 end"
    assert _lua("while (true) { break; }") == "while true do break end"


def test_do_while_becomes_repeat_until():
    assert _lua("do { x++; } while (x < 5);") == "repeat x = x + 1 until not (x < 5)"


def test_do_without_while_is_a_hard_failure():
    result = transpile("do { x++; }")
    assert not result.ok
    assert "expected 'while' after do-block" in result.error


def test_continue_uses_goto_label():
    source = (CASES / "loop_continue.js").read_text(encoding="utf-8")
    assert _lua(source) == "\n".join(
        [
            "local total = 0",
            "for _, p in ipairs(pages) do",
            "  do",
            "    if p.skip then goto continue_1 end",
            "    total = total + p.n",
            "  end",
            "  ::continue_1::",
            "end",
        ]
    )


def test_each_loop_gets_its_own_label():
    code = _lua("while (a) { continue; }\nwhile (b) { continue; }")
    assert "goto continue_1" in code
    assert "goto continue_2" in code
    assert code.count("::continue_1::") == 1
    assert code.count("::continue_2::") == 1


def test_continue_does_not_cross_function_boundary():
    result = transpile("while (a) { xs.forEach(function (x) { continue; }); }")
    assert result.ok
    assert "goto" not in result.code
    assert "--[[ unsupported: continue outside a loop ]]" in result.code
    assert result.diagnostics == ["unsupported construct skipped: continue outside a loop"]


def test_c_style_for_is_skipped():
    result = transpile("for (let i = 0; i < 3; i++) { total += i; }\nconst done = true;")
    assert result.ok
    assert result.code == (
        "--[[ unsupported: C-style for loop (body skipped) ]]\nlocal done = true"
    )


@pytest.mark.parametrize("keyword", ["switch (x) { case 1: break; }", "try { a(); } catch (e) { b(); }"])
def test_unsupported_statements(keyword):
    result = transpile(keyword + "\nconst after = 1;")
    assert result.ok
    assert result.code.startswith("--[[ unsupported: ")
    assert result.code.endswith("\nlocal after = 1")
    assert len(result.diagnostics) == 1


def test_statement_continues_across_chained_lines():
    source = 'const names = pages\n  .map(p => p.name)\n  .join(", ");'
    assert _lua(source) == 'local names = table.concat(pages\n  :map(function(p) return p.name end), ", ")'


def test_throw():
    assert _lua('throw "boom";') == 'error("boom")'


@pytest.mark.parametrize(
    "source, expected",
    [
        ("let a = 1, b = a + 1;", "local a = 1; local b = a + 1"),
        ("let a, b = 2;", "local a; local b = 2"),
        ("let xs = [1, 2], n;", "local xs = {1, 2}; local n"),
        ("const f = (a, b) => a + b, g = 1;", "local f = function(a, b) return a + b end; local g = 1"),
    ],
)
def test_each_initialised_declarator_gets_its_own_local(source, expected):
    assert _lua(source) == expected


@pytest.mark.parametrize(
    "source, expected",
    [
        ("while (a) {xs.push(1)}", "while a do table.insert(xs, 1) end"),
        ("if (ok) {xs.push(x.length)}", "if ok then table.insert(xs, #x) end"),
        ("function add(xs) {xs.push(1)}", "local function add(xs) table.insert(xs, 1) end"),
        ("do {n.toString()} while (a);", "repeat tostring(n) until not (a)"),
    ],
)
def test_rewrite_at_start_of_block_keeps_header(source, expected):
    assert _lua(source) == expected


def test_single_line_loop_with_continue():
    assert _lua("while (a) { if (b) continue; c(); }") == (
        "while a do do if b then goto continue_1 end c() end ::continue_1:: end"
    )


def test_sort_statement_and_sort_value():
    assert _lua("xs.sort((a, b) => a - b);") == (
        "table.sort(xs, function(a, b) return (a - b) < 0 end)"
    )
    assert _lua("const ys = xs.sort((a, b) => a - b);") == (
        "local ys = (function(_s) table.sort(_s, function(a, b) return (a - b) < 0 end)"
        " return _s end)(xs)"
    )


def test_sort_inside_call_argument_returns_the_table():
    assert _lua("show(xs.sort(cmp));") == (
        "show((function(_s) table.sort(_s, function(a, b) return (cmp)(a, b) < 0 end)"
        " return _s end)(xs))"
    )
