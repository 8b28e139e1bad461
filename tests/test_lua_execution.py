from pathlib import Path

import pytest

from emitter import EmitOptions, emit_chunk
from transformer import transpile

lupa = pytest.importorskip("lupa")

CASES = Path(__file__).parent / "cases"


def _lua(source: str) -> str:
    result = transpile(source)
    assert result.ok, result.error
    return result.code


@pytest.fixture
def lua():
    return lupa.LuaRuntime(unpack_returned_tuples=True)


def _run(lua, source: str, tail: str, prelude: str = ""):
    return lua.execute(f"{prelude}\n{_lua(source)}\n{tail}")


@pytest.mark.parametrize("name", ["function_call.js", "query_block.js", "loop_continue.js", "unsupported.js"])
def test_case_files_compile(lua, name):
    code = _lua((CASES / name).read_text(encoding="utf-8"))
    lua.execute(f"return function()\n{code}\nend")


def test_ternary_takes_both_branches(lua):
    source = 'function pick(a) {\n  return a ? "yes" : "no";\n}'
    assert _run(lua, source, "return pick(true), pick(false), pick(nil)") == ("yes", "no", "no")


def test_arrow_with_length(lua):
    assert _run(lua, "const f = x => x.length;", "return f({1, 2, 3})") == 3


def test_arrow_with_includes(lua):
    source = 'const hasA = p => p.tags.includes("a");'
    tail = 'return hasA({tags = "cat"}), hasA({tags = "dog"})'
    assert _run(lua, source, tail) == (True, False)


def test_push_at_start_of_loop_body(lua):
    source = "const xs = [];\nlet a = 3;\nwhile (a > 0) {xs.push(a); a -= 1;}"
    assert _run(lua, source, "return #xs, xs[1], a") == (3, 3, 0)


def test_compound_assignment_keeps_precedence(lua):
    source = "let x = 10;\nconst a = 2, b = 3;\nx -= a + b;"
    assert _run(lua, source, "return x") == 5


def test_compound_assignment_on_strings(lua):
    source = 'let s = "a";\ns += "b";\ns += `${1}!`;'
    assert _run(lua, source, "return s") == "ab1!"


def test_later_declarator_sees_earlier_one(lua):
    assert _run(lua, "let a = 1, b = a + 1;", "return a, b") == (1, 2)


def test_sort_result_is_the_sorted_table(lua):
    source = "const xs = [3, 1, 2];\nconst ys = xs.sort((a, b) => a - b);"
    assert _run(lua, source, "return ys[1], ys[2], ys[3], ys == xs") == (1, 2, 3, True)


def test_continue_skips_rest_of_body(lua):
    source = (CASES / "loop_continue.js").read_text(encoding="utf-8")
    prelude = "pages = {{n = 1}, {n = 2, skip = true}, {n = 4}}"
    assert _run(lua, source, "return total", prelude=prelude) == 5


def test_split_with_runtime_prelude(lua):
    code = _lua('const s = "a,b,c";\nconst parts = s.split(",");')
    source = emit_chunk(code, EmitOptions(include_runtime=True)).source
    assert lua.execute(source + "\nreturn #parts, parts[2]") == (3, "b")
