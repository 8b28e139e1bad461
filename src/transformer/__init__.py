"""JavaScript query subset to Lua transformer."""

from .context import TransformContext, TranspileError
from .core import (
    INVALID_INPUT_MESSAGE,
    TranspileResult,
    Transformer,
    transpile,
    transpile_inline_expression,
)
from .expressions import CHAIN_METHODS, MethodRewrite, method_rewrite_for

__all__ = [
    "CHAIN_METHODS",
    "INVALID_INPUT_MESSAGE",
    "MethodRewrite",
    "TransformContext",
    "TranspileError",
    "TranspileResult",
    "Transformer",
    "method_rewrite_for",
    "transpile",
    "transpile_inline_expression",
]
