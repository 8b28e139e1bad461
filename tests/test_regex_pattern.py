import pytest

from lexer import convert_regex, escape_lua_pattern, lua_string_literal


@pytest.mark.parametrize(
    "literal, expected",
    [
        (r"/\d+/", "%d+"),
        (r"/^\w+$/", "^[%w_]+$"),
        (r"/\s*\S/", "%s*%S"),
        (r"/a\.b/", "a%.b"),
        (r"/[a-z]{2}/", "[a-z][a-z]"),
        (r"/x{0,2}/", "x?x?"),
        (r"/x{2,}/", "xxx*"),
        (r"/.*?;/", ".-;"),
        (r"/(?:ab)+/", "(ab)+"),
        (r"/\bword/", "word"),
        (r"/[\w-]+/", "[%w_-]+"),
        (r"/50%/", "50%%"),
    ],
)
def test_convert_regex_patterns(literal, expected):
    conversion = convert_regex(literal)
    assert conversion.converted
    assert conversion.pattern == expected


def test_global_flag_is_reported():
    assert convert_regex(r"/\d/g").is_global
    assert not convert_regex(r"/\d/i").is_global


def test_alternation_is_not_convertible():
    conversion = convert_regex("/cat|dog/g")
    assert conversion.pattern is None
    assert not conversion.converted
    assert conversion.is_global


def test_malformed_literal_is_not_convertible():
    assert convert_regex("abc").pattern is None


def test_escape_lua_pattern():
    assert escape_lua_pattern("a.b(c)+50%") == "a%.b%(c%)%+50%%"


def test_lua_string_literal_escapes():
    assert lua_string_literal('say "hi"\n') == '"say \\"hi\\"\\n"'
    assert lua_string_literal("%w\\") == '"%w\\\\"'
