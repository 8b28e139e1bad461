"""
Assemble a finished Lua chunk, ready for writing to disk or evaluation.

Generated code calls `:split(sep)` on strings and `:slice(...)` on the
result, which plain Lua does not provide. `emit_chunk` can prepend a small
runtime prelude that installs both, and an optional header comment naming
the source the chunk came from.
"""

from __future__ import annotations

import io
from dataclasses import dataclass
from typing import Optional

RUNTIME_PRELUDE = """\
if not string.split then
  local slice_mt = {
    __index = {
      slice = function(t, first, last)
        local out = {}
        first = math.max(1, first or 1)
        last = math.min(#t, last or #t)
        for i = first, last do out[#out + 1] = t[i] end
        return setmetatable(out, getmetatable(t))
      end,
    },
  }
  function string.split(s, sep)
    local out = {}
    if sep == nil or sep == "" then
      for ch in s:gmatch(".") do out[#out + 1] = ch end
    else
      local start = 1
      while true do
        local i, j = s:find(sep, start, true)
        if not i then
          out[#out + 1] = s:sub(start)
          break
        end
        out[#out + 1] = s:sub(start, i - 1)
        start = j + 1
      end
    end
    return setmetatable(out, slice_mt)
  end
end"""


@dataclass(frozen=True)
class EmitOptions:
    header: Optional[str] = None
    include_runtime: bool = False
    trailing_newline: bool = True


@dataclass(frozen=True)
class EmitResult:
    source: str
    runtime: Optional[str]


def emit_chunk(code: str, options: Optional[EmitOptions] = None) -> EmitResult:
    """
    Render transformed Lua code as a complete chunk.

    Args:
        code: Output of `transpile`.
        options: Header, runtime and newline settings; defaults apply when omitted.

    Returns:
        EmitResult with the full chunk text and the runtime prelude that was
        included (None when the prelude was skipped).
    """
    options = options or EmitOptions()

    buffer = io.StringIO()
    if options.header:
        for line in options.header.splitlines():
            buffer.write(f"-- {line}".rstrip() + "\n")
        buffer.write("\n")

    runtime_text: Optional[str] = None
    if options.include_runtime:
        runtime_text = RUNTIME_PRELUDE + "\n"
        buffer.write(runtime_text)
        buffer.write("\n")

    buffer.write(code.rstrip())
    if options.trailing_newline:
        buffer.write("\n")

    return EmitResult(source=buffer.getvalue(), runtime=runtime_text)


__all__ = ["EmitOptions", "EmitResult", "RUNTIME_PRELUDE", "emit_chunk"]
