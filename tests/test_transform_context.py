import pytest

from lexer import tokenize
from transformer import TransformContext, TranspileError


def _context(out):
    ctx = TransformContext(tokens=tokenize(""))
    ctx.out = list(out)
    return ctx


@pytest.mark.parametrize(
    "out, expression, remaining",
    [
        (["local n = ", "items"], "items", ["local n = "]),
        (["x", " ", "=", " ", "f", "(", "a", ",", " ", "b", ")"], "f(a, b)", ["x", " ", "=", " "]),
        (["return", " ", "a", " ", "and", " ", "b"], "b", ["return", " ", "a", " ", "and", " "]),
        (["print", "(", "xs"], "xs", ["print", "("]),
        (["local s = ", "pages", "\n", "  ", ":map", "(", "f", ")"], "pages\n  :map(f)", ["local s = "]),
        (["local f = ", "function(x) return ", "x"], "x", ["local f = ", "function(x) return "]),
        (["while a do", "xs"], "xs", ["while a do"]),
        (["local function f(a)", "a", ".b"], "a.b", ["local function f(a)"]),
        (["repeat", "n"], "n", ["repeat"]),
        (["x = ", "myfunction(a)", ".b"], "myfunction(a).b", ["x = "]),
    ],
)
def test_extract_trailing_expression(out, expression, remaining):
    ctx = _context(out)
    assert ctx.extract_trailing_expression() == expression
    assert ctx.out == remaining


def test_extract_condition_spans_operators():
    ctx = _context(["x", " ", "=", " ", "a", " ", "==", " ", "1", " "])
    assert ctx.extract_trailing_expression(operators_end_operand=False) == "a == 1"
    assert ctx.out == ["x", " ", "=", " "]


def test_extract_stops_at_newline():
    ctx = _context(["a()", "\n", "b"])
    assert ctx.extract_trailing_expression(operators_end_operand=False) == "b"
    assert ctx.out == ["a()", "\n"]


def test_collect_group_returns_inner_tokens():
    ctx = TransformContext(tokens=tokenize("(a, (b)) c"))
    inner = ctx.collect_group()
    assert "".join(token.value for token in inner) == "a, (b)"
    assert ctx.skip_trivia() == " "
    assert ctx.current.value == "c"


def test_collect_group_unterminated():
    ctx = TransformContext(tokens=tokenize("(a, b"))
    with pytest.raises(TranspileError, match=r"unterminated '\(' \(line 1\)"):
        ctx.collect_group()


def test_capture_redirects_output():
    ctx = _context(["keep"])
    with ctx.capture() as buffer:
        ctx.emit("inner")
    assert buffer == ["inner"]
    assert ctx.out == ["keep"]


def test_child_shares_loop_stack_and_map_vars():
    ctx = TransformContext(tokens=tokenize("m"))
    ctx.map_vars.add("m")
    child = ctx.child(tokenize("x")[:-1])
    assert child.map_vars is ctx.map_vars
    assert child.loops is ctx.loops
    assert child.tokens[-1].value == ""


def test_statement_start_tracks_output_position():
    ctx = _context(["local a = 1", "\n"])
    ctx.mark_statement_start()
    assert ctx.at_statement_start()
    ctx.emit("xs")
    assert not ctx.at_statement_start()
    with ctx.capture():
        assert not ctx.at_statement_start()


def test_child_is_never_at_statement_start():
    ctx = TransformContext(tokens=tokenize("x"))
    child = ctx.child(tokenize("y")[:-1])
    assert child.in_expression
    child.mark_statement_start()
    assert not child.at_statement_start()
