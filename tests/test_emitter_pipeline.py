from emitter import RUNTIME_PRELUDE, EmitOptions, emit_chunk
from transformer import transpile


def test_emit_chunk_defaults():
    result = emit_chunk("local x = 1\n\n")
    assert result.source == "local x = 1\n"
    assert result.runtime is None


def test_emit_chunk_with_header_and_runtime():
    options = EmitOptions(header="Generated by js2lua\nfrom query.js", include_runtime=True)
    result = emit_chunk("local x = 1", options)

    lines = result.source.splitlines()
    assert lines[:3] == ["-- Generated by js2lua", "-- from query.js", ""]
    assert result.runtime == RUNTIME_PRELUDE + "\n"
    assert RUNTIME_PRELUDE in result.source
    assert result.source.endswith("\n\nlocal x = 1\n")


def test_emit_chunk_without_trailing_newline():
    result = emit_chunk("return 1", EmitOptions(trailing_newline=False))
    assert result.source == "return 1"


def test_runtime_prelude_provides_split_and_slice():
    assert "function string.split(s, sep)" in RUNTIME_PRELUDE
    assert "slice = function(t, first, last)" in RUNTIME_PRELUDE
    assert "first = math.max(1, first or 1)" in RUNTIME_PRELUDE


def test_transpiled_split_with_runtime():
    code = transpile('const parts = s.split(",").slice(1, 2);').code
    assert code == 'local parts = s:split(","):slice(1, 2)'
    source = emit_chunk(code, EmitOptions(include_runtime=True)).source
    assert source.index("function string.split") < source.index("local parts")
