import pytest

from emitter import PostProcessor, normalize_whitespace, postprocess
from emitter.post_processor import (
    DEFAULT_PASSES,
    desugar_compound_assignment,
    desugar_increments,
    shift_literal_indices,
)


@pytest.mark.parametrize(
    "code, expected",
    [
        ("x += 2", "x = x + 2"),
        ("t.n -= 1", "t.n = t.n - 1"),
        ("total  +=  p.n", "total = total + p.n"),
        ('s ..= "a"', 's = s .. "a"'),
        ("x -= (a + b)", "x = x - (a + b)"),
    ],
)
def test_desugar_compound_assignment(code, expected):
    assert desugar_compound_assignment(code) == expected


def test_compound_assignment_inside_string_is_kept():
    code = 'local s = "x += 1"'
    assert desugar_compound_assignment(code) == code


@pytest.mark.parametrize(
    "code, expected",
    [
        ("i++ ", "i = i + 1"),
        ("count-- \n", "count = count - 1\n"),
        ("a[i]++  end", "a[i] = a[i] + 1 end"),
    ],
)
def test_desugar_increments(code, expected):
    assert desugar_increments(code) == expected


def test_line_comment_is_not_a_decrement():
    code = "x = 1 -- note "
    assert desugar_increments(code) == code


def test_shift_literal_indices():
    assert shift_literal_indices("a[0] + m[1][2]") == "a[1] + m[2][3]"


def test_shift_leaves_computed_and_protected_indices():
    code = 'local v = a[i] .. "b[0]" --[[ c[0] ]]'
    assert shift_literal_indices(code) == code


def test_shift_leaves_table_constructor_keys():
    code = "local t = {[0] = 1}"
    assert shift_literal_indices(code) == code


def test_normalize_whitespace_is_idempotent():
    code = "\n\nlocal a = 1   \n\n\n\nlocal b = 2\t\n\n"
    once = normalize_whitespace(code)
    assert once == "local a = 1\n\nlocal b = 2"
    assert normalize_whitespace(once) == once


def test_post_processor_runs_passes_in_order():
    processor = PostProcessor(passes=[])
    assert processor.process("x += 1") == "x += 1"

    processor.add_pass(desugar_compound_assignment)
    processor.add_pass(lambda code: code.upper())
    assert processor.process("x += 1") == "X = X + 1"


def test_default_pipeline():
    assert len(DEFAULT_PASSES) == 4
    assert postprocess("items[0] += 1\ni++ \n") == "items[1] = items[1] + 1\ni = i + 1"
