import random

import pytest

from lexer import EOF_TOKEN, TemplatePart, TokenKind, UnbalancedBracketError, tokenize, verify_brackets
from transformer import transpile


def _significant(source: str):
    return [(token.kind, token.value) for token in tokenize(source) if not token.is_trivia][:-1]


@pytest.mark.parametrize(
    "source",
    [
        "const x = a.b(c) + 'd';\n",
        "let s = `x ${y + 1} z`; // done",
        "/* block */ if (a !== b) { a++; }",
        "const r = /[a/]+/gi.test(s)",
    ],
)
def test_tokenize_is_lossless(source):
    tokens = tokenize(source)
    assert tokens[-1] == EOF_TOKEN
    assert "".join(token.value for token in tokens) == source


def test_multi_character_operators_are_single_tokens():
    assert _significant("a === b && c => d") == [
        (TokenKind.IDENTIFIER, "a"),
        (TokenKind.OPERATOR, "==="),
        (TokenKind.IDENTIFIER, "b"),
        (TokenKind.OPERATOR, "&&"),
        (TokenKind.IDENTIFIER, "c"),
        (TokenKind.OPERATOR, "=>"),
        (TokenKind.IDENTIFIER, "d"),
    ]


def test_slash_after_operand_is_division():
    kinds = _significant("total / count")
    assert kinds[1] == (TokenKind.OPERATOR, "/")


def test_slash_in_expression_position_is_regex():
    tokens = _significant("s.replace(/\\s+/g, '-')")
    assert (TokenKind.REGEX, "/\\s+/g") in tokens


def test_regex_character_class_may_contain_slash():
    tokens = _significant("x = /[/]a/")
    assert tokens[-1] == (TokenKind.REGEX, "/[/]a/")


def test_template_literal_parts():
    token = tokenize("`Hello ${user.name}!`")[0]
    assert token.kind == TokenKind.TEMPLATE
    assert token.parts == (
        TemplatePart(kind="text", value="Hello "),
        TemplatePart(kind="expr", value="user.name"),
        TemplatePart(kind="text", value="!"),
    )


def test_template_expression_with_nested_braces():
    token = tokenize("`${ {a: 1}.a }`")[0]
    assert [part.kind for part in token.parts] == ["expr"]
    assert token.parts[0].value == " {a: 1}.a "


def test_comments_and_newlines_are_trivia():
    tokens = tokenize("a // note\n/* b */")
    trivia = [token.kind for token in tokens if token.is_trivia]
    assert trivia == [TokenKind.WHITESPACE, TokenKind.COMMENT, TokenKind.NEWLINE, TokenKind.COMMENT]


def test_numbers():
    assert _significant("0x1F 3.5e-2 .5") == [
        (TokenKind.NUMBER, "0x1F"),
        (TokenKind.NUMBER, "3.5e-2"),
        (TokenKind.NUMBER, ".5"),
    ]


def test_verify_brackets_accepts_balanced_input():
    verify_brackets(tokenize("f(a[0], { b: '(' })"))


def test_verify_brackets_reports_unclosed_opener():
    with pytest.raises(UnbalancedBracketError, match=r"unmatched '\{' \(line 2\)") as excinfo:
        verify_brackets(tokenize("a;\nif (x) {\n  y;\n"))
    assert excinfo.value.line == 2


def test_verify_brackets_reports_mismatched_closer():
    with pytest.raises(UnbalancedBracketError, match="does not close"):
        verify_brackets(tokenize("(]"))


def test_verify_brackets_reports_stray_closer():
    with pytest.raises(UnbalancedBracketError, match="unexpected '\\)'"):
        verify_brackets(tokenize("a)"))


_FRAGMENTS = (
    "a", "xs", " ", "\t", "\n", "1", "0x1F", ".5", "'", '"', "`", "${", "}", "{", "(", ")",
    "[", "]", "/", "//", "/*", "*/", "\\", "/re/g", "=>", "+=", "++", "===", "?", ":", ";",
    ",", ".", "!", "&&", "é", "#",
)


@pytest.mark.parametrize("seed", range(20))
def test_tokenize_is_lossless_on_generated_input(seed):
    rng = random.Random(seed)
    for _ in range(50):
        source = "".join(rng.choice(_FRAGMENTS) for _ in range(rng.randint(1, 40)))
        assert "".join(token.value for token in tokenize(source)) == source
        result = transpile(source)
        assert result.ok or result.error
