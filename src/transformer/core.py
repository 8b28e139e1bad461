"""
Token-stream transformer turning the JavaScript query subset into Lua.

The transformer works in a single pass over the token list produced by
`lexer.tokenize`. It never builds a syntax tree: statements are recognised
by their leading keyword, expressions are rewritten one unit at a time, and
postfix forms reach back into the output buffer for their left operand (see
`TransformContext.extract_trailing_expression`).

Constructs outside the subset degrade softly: an inert Lua comment is emitted
and a diagnostic is recorded on `Transformer.diagnostics`. Only hard failures
(unbalanced brackets, unterminated groups) abort a run, and `transpile`
turns those into an error result instead of raising.
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from emitter import postprocess
from lexer import Token, tokenize, verify_brackets

from .context import TransformContext, TranspileError
from .expressions import ExpressionRules
from .statements import StatementRules

logger = logging.getLogger(__name__)

INVALID_INPUT_MESSAGE = "transpile: input must be a non-empty string"


@dataclass(frozen=True)
class TranspileResult:
    """Outcome of one `transpile` call: exactly one of `code`/`error` is set."""

    code: Optional[str]
    error: Optional[str]
    diagnostics: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.error is None


class Transformer(StatementRules, ExpressionRules):
    """Rewrites one token stream; keeps diagnostics and loop labels per run."""

    def __init__(self) -> None:
        self.diagnostics: List[str] = []
        self._labels = itertools.count(1)

    def _next_label(self) -> str:
        return f"continue_{next(self._labels)}"

    def transform_tokens(self, tokens: Sequence[Token]) -> str:
        """
        Transform a complete token stream (as returned by `tokenize`).

        Raises:
            TranspileError: On input the engine cannot rewrite at all.
        """
        ctx = TransformContext(tokens=tokens)
        self._transform_statements(ctx)
        return "".join(ctx.out)


def transpile(source: object) -> TranspileResult:
    """
    Convert a JavaScript snippet into Lua source.

    Args:
        source: JavaScript text. Anything other than a non-empty string is
            rejected with an error result.

    Returns:
        TranspileResult with the post-processed Lua code, or with an error
        message prefixed by "Transpile error: " when the engine gave up.
    """
    if not isinstance(source, str) or source == "":
        return TranspileResult(code=None, error=INVALID_INPUT_MESSAGE)

    transformer = Transformer()
    try:
        tokens = tokenize(source)
        verify_brackets(tokens)
        code = postprocess(transformer.transform_tokens(tokens))
    except (TranspileError, ValueError) as exc:
        logger.debug("transpile failed", exc_info=True)
        return TranspileResult(
            code=None,
            error=f"Transpile error: {exc}",
            diagnostics=transformer.diagnostics,
        )
    except Exception as exc:  # engine bug; still reported as a result
        logger.exception("unexpected failure while transpiling")
        return TranspileResult(
            code=None,
            error=f"Transpile error: {exc}",
            diagnostics=transformer.diagnostics,
        )

    return TranspileResult(code=code, error=None, diagnostics=transformer.diagnostics)


def transpile_inline_expression(expression: str) -> str:
    """
    Build the Lua chunk for an inline `$=expr` query.

    The expression is transpiled and prefixed with `return `; when
    transpilation fails the raw expression is used as-is.
    """
    result = transpile(expression)
    body = result.code if result.ok and result.code else expression
    return f"return {body.strip()}"


__all__ = [
    "INVALID_INPUT_MESSAGE",
    "TranspileResult",
    "Transformer",
    "transpile",
    "transpile_inline_expression",
]
