"""Lua chunk post-processing and emission helpers."""

from .post_processor import PostProcessor, normalize_whitespace, postprocess
from .writer import RUNTIME_PRELUDE, EmitOptions, EmitResult, emit_chunk

__all__ = [
    "EmitOptions",
    "EmitResult",
    "PostProcessor",
    "RUNTIME_PRELUDE",
    "emit_chunk",
    "normalize_whitespace",
    "postprocess",
]
