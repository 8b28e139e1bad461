"""
Statement-level rewrite rules: declarations, control flow and blocks.

Statements are recognised by their leading keyword through
`_statement_dispatch`; anything else is an expression statement and is
handed to the expression rules until its terminator. Constructs the target
subset cannot express (C-style `for`, `switch`, `try`, `class`,
destructuring) degrade to an inert `--[[ unsupported: ... ]]` comment, their
body is skipped and a diagnostic is recorded.
"""

from __future__ import annotations

from typing import Callable, Dict, List

from lexer import TokenKind

from .context import LoopFrame, TransformContext, TranspileError

_DECLARATION_KEYWORDS = frozenset({"const", "let", "var"})
_INDENT = "  "


class StatementRules:
    """Mixin with the statement-level half of the transformer."""

    # ------------------------------------------------------------------ blocks

    def transform_statement(self, ctx: TransformContext) -> None:
        """Consume one statement (or one piece of trivia) at the cursor."""
        token = ctx.current
        if token.kind == TokenKind.EOF:
            return
        if token.is_trivia:
            self._emit_trivia(ctx)
            return
        if token.kind == TokenKind.IDENTIFIER:
            handler = self._statement_dispatch.get(token.value)
            if handler is not None:
                handler(ctx)
                return
        ctx.mark_statement_start()
        self._transform_until_terminator(ctx)

    def transform_block(self, ctx: TransformContext) -> None:
        """
        Consume a `{ ... }` block, emitting its statements without the braces.

        Raises:
            TranspileError: If the block is never closed.
        """
        if not ctx.at_punct("{"):
            return
        line = ctx.line_of()
        ctx.advance()
        in_expression, ctx.in_expression = ctx.in_expression, False
        try:
            while not ctx.at_end:
                if ctx.at_punct("}"):
                    ctx.advance()
                    return
                start = ctx.pos
                self.transform_statement(ctx)
                if ctx.pos == start:
                    ctx.emit(ctx.advance().value)
        finally:
            ctx.in_expression = in_expression
        raise TranspileError("unterminated block", line)

    def _transform_body(self, ctx: TransformContext) -> None:
        """A loop or branch body: a block, or a single statement."""
        ctx.skip_trivia()
        body_start = len(ctx.out)
        if ctx.at_punct("{"):
            self.transform_block(ctx)
        else:
            self.transform_statement(ctx)
        self._separate_body(ctx, body_start)

    @staticmethod
    def _separate_body(ctx: TransformContext, body_start: int) -> None:
        if len(ctx.out) > body_start and not ctx.out[body_start][:1].isspace():
            ctx.out.insert(body_start, " ")

    def _transform_until_terminator(self, ctx: TransformContext, *, stop_at_comma: bool = False) -> None:
        """
        Transform expression units until `;`, an unmatched closer, or a newline
        that ends the statement. A trailing `;` is consumed; with
        `stop_at_comma` a top-level `,` also ends it and is left in place.
        """
        depth = 0
        while not ctx.at_end:
            token = ctx.current
            if depth == 0:
                if token.is_punct(";"):
                    ctx.advance()
                    return
                if token.is_punct(")", "]", "}") or (stop_at_comma and token.is_punct(",")):
                    return
                if token.kind == TokenKind.NEWLINE and not self._continues_on_next_line(ctx):
                    return
            depth += self._transform_unit(ctx)

    def _condition(self, ctx: TransformContext) -> str:
        ctx.skip_trivia()
        return self._transform_subtokens(ctx, ctx.collect_group())

    @staticmethod
    def _trim_blank(ctx: TransformContext, floor: int) -> None:
        while len(ctx.out) > floor and not ctx.out[-1].strip():
            ctx.out.pop()

    @staticmethod
    def _line_indent(ctx: TransformContext, start: int) -> str:
        """Leading whitespace of the output line that `out[start]` begins on."""
        tail: List[str] = []
        for index in range(start - 1, -1, -1):
            entry = ctx.out[index]
            newline = entry.rfind("\n")
            if newline >= 0:
                tail.append(entry[newline + 1 :])
                break
            tail.append(entry)
        line = "".join(reversed(tail))
        return line[: len(line) - len(line.lstrip(" \t"))]

    def _emit_clause(self, ctx: TransformContext, start: int, text: str) -> None:
        """Emit `end`/`else`/... on its own line when the construct spans lines."""
        self._trim_blank(ctx, start)
        if "\n" in "".join(ctx.out[start:]):
            ctx.emit("\n" + self._line_indent(ctx, start) + text)
        else:
            ctx.emit(" " + text)

    def _emit_end(self, ctx: TransformContext, start: int, keyword: str = "end") -> None:
        self._emit_clause(ctx, start, keyword)

    # ------------------------------------------------------------------ skips

    def _skip_statement(self, ctx: TransformContext) -> None:
        depth = 0
        while not ctx.at_end:
            token = ctx.current
            if depth == 0:
                if token.is_punct(";"):
                    ctx.advance()
                    return
                if token.is_punct(")", "]", "}"):
                    return
                if token.kind == TokenKind.NEWLINE and not self._continues_on_next_line(ctx):
                    return
            if token.is_punct("(", "[", "{"):
                depth += 1
            elif token.is_punct(")", "]", "}"):
                depth -= 1
            ctx.advance()

    def _skip_body(self, ctx: TransformContext) -> None:
        ctx.skip_trivia()
        if ctx.at_punct("{"):
            ctx.skip_group("{", "}")
        else:
            self._skip_statement(ctx)

    def _skip_to_block(self, ctx: TransformContext) -> None:
        """Skip a clause header and the block that follows it."""
        while not ctx.at_end:
            if ctx.at_punct("{"):
                ctx.skip_group("{", "}")
                return
            if ctx.at_punct("("):
                ctx.skip_group("(", ")")
                continue
            if ctx.at_punct(";", "}"):
                return
            ctx.advance()

    def _emit_unsupported(self, ctx: TransformContext, what: str) -> None:
        self._warn(f"unsupported construct skipped: {what}")
        ctx.emit(f"--[[ unsupported: {what} ]]")

    # -------------------------------------------------------------- dispatch

    @property
    def _statement_dispatch(self) -> Dict[str, Callable[[TransformContext], None]]:
        return {
            "const": self._stmt_declaration,
            "let": self._stmt_declaration,
            "var": self._stmt_declaration,
            "function": self._stmt_function,
            "if": self._stmt_if,
            "for": self._stmt_for,
            "while": self._stmt_while,
            "do": self._stmt_do_while,
            "return": self._stmt_return,
            "break": self._stmt_break,
            "continue": self._stmt_continue,
            "throw": self._stmt_throw,
            "switch": self._stmt_unsupported,
            "try": self._stmt_unsupported,
            "class": self._stmt_unsupported,
        }

    # ------------------------------------------------------------ statements

    def _stmt_declaration(self, ctx: TransformContext) -> None:
        """
        Each initialised declarator gets its own `local`, so `let a = 1, b = a`
        sees the new `a`. Runs of bare names share one `local a, b`.
        """
        ctx.advance()
        ctx.skip_trivia()
        if ctx.current.kind != TokenKind.IDENTIFIER:
            self._emit_unsupported(ctx, "destructuring declaration")
            self._skip_statement(ctx)
            return
        bare: List[str] = []
        separator = ""
        while True:
            name = ctx.advance().value
            ctx.skip_inline_space()
            following, offset = ctx.peek_significant()
            if following.is_op("="):
                if bare:
                    ctx.emit(f"{separator}local {', '.join(bare)}")
                    bare, separator = [], "; "
                ctx.advance_by(offset + 1)
                ctx.skip_trivia()
                constructor, _ = ctx.peek_significant(1)
                if ctx.at(TokenKind.IDENTIFIER, "new") and constructor.is_(TokenKind.IDENTIFIER, "Map"):
                    ctx.map_vars.add(name)
                ctx.emit(f"{separator}local {name} = ")
                separator = "; "
                self._transform_until_terminator(ctx, stop_at_comma=True)
                if not ctx.at_punct(","):
                    return
                offset = 0
            else:
                bare.append(name)
                if not following.is_punct(","):
                    break
            next_name, name_offset = ctx.peek_significant(offset + 1)
            if next_name.kind != TokenKind.IDENTIFIER:
                break
            ctx.advance_by(name_offset)
        if bare:
            ctx.emit(f"{separator}local {', '.join(bare)}")
        if ctx.at_punct(";"):
            ctx.advance()

    def _stmt_function(self, ctx: TransformContext) -> None:
        name, name_offset = ctx.peek_significant(1)
        if name.kind != TokenKind.IDENTIFIER:
            self._transform_until_terminator(ctx)
            return
        ctx.advance_by(name_offset + 1)
        ctx.skip_trivia()
        params = self._parameter_list(ctx) if ctx.at_punct("(") else ""
        ctx.skip_trivia()
        self._transform_function_literal(ctx, params, prefix=f"local function {name.value}")

    def _stmt_if(self, ctx: TransformContext) -> None:
        start = len(ctx.out)
        ctx.advance()
        ctx.emit(f"if {self._condition(ctx)} then")
        self._transform_body(ctx)
        while True:
            following, offset = ctx.peek_significant()
            if not following.is_(TokenKind.IDENTIFIER, "else"):
                break
            ctx.advance_by(offset + 1)
            ctx.skip_trivia()
            if ctx.at(TokenKind.IDENTIFIER, "if"):
                ctx.advance()
                self._emit_clause(ctx, start, f"elseif {self._condition(ctx)} then")
                self._transform_body(ctx)
                continue
            self._emit_clause(ctx, start, "else")
            self._transform_body(ctx)
            break
        self._emit_end(ctx, start)

    # ----------------------------------------------------------------- loops

    def _open_loop(self, ctx: TransformContext, header: str) -> LoopFrame:
        frame = LoopFrame(label=self._next_label())
        indent = self._line_indent(ctx, len(ctx.out))
        ctx.emit(header)
        body_start = len(ctx.out)
        ctx.loops.append(frame)
        try:
            self._transform_body(ctx)
        finally:
            ctx.loops.pop()
        if frame.continue_used:
            # `continue` becomes `goto`; the label must sit after a closed
            # scope so no body local is still visible at the jump target.
            self._trim_blank(ctx, body_start)
            body = "".join(ctx.out[body_start:])
            del ctx.out[body_start:]
            if "\n" in body:
                inner = indent + _INDENT
                ctx.emit(f"\n{inner}do" + body.replace("\n", "\n" + _INDENT))
                ctx.emit(f"\n{inner}end\n{inner}::{frame.label}::")
            else:
                ctx.emit(f" do{body} end ::{frame.label}::")
        return frame

    def _stmt_for(self, ctx: TransformContext) -> None:
        start = len(ctx.out)
        ctx.advance()
        ctx.skip_trivia()
        header = ctx.collect_group()
        significant = [token for token in header if not token.is_trivia]
        if significant and significant[0].value in _DECLARATION_KEYWORDS:
            significant = significant[1:]

        if (
            len(significant) >= 3
            and significant[0].kind == TokenKind.IDENTIFIER
            and significant[1].kind == TokenKind.IDENTIFIER
            and significant[1].value in ("of", "in")
        ):
            keyword = significant[1]
            split = next(i for i, token in enumerate(header) if token is keyword)
            iterable = self._transform_subtokens(ctx, header[split + 1 :])
            variable = significant[0].value
            if keyword.value == "of":
                self._open_loop(ctx, f"for _, {variable} in ipairs({iterable}) do")
            else:
                self._open_loop(ctx, f"for {variable} in pairs({iterable}) do")
            self._emit_end(ctx, start)
            return

        what = "C-style for loop" if any(t.is_punct(";") for t in header) else "for loop header"
        self._emit_unsupported(ctx, f"{what} (body skipped)")
        self._skip_body(ctx)

    def _stmt_while(self, ctx: TransformContext) -> None:
        start = len(ctx.out)
        ctx.advance()
        self._open_loop(ctx, f"while {self._condition(ctx)} do")
        self._emit_end(ctx, start)

    def _stmt_do_while(self, ctx: TransformContext) -> None:
        start = len(ctx.out)
        ctx.advance()
        self._open_loop(ctx, "repeat")
        following, offset = ctx.peek_significant()
        if not following.is_(TokenKind.IDENTIFIER, "while"):
            raise TranspileError("expected 'while' after do-block", ctx.line_of())
        ctx.advance_by(offset + 1)
        self._emit_end(ctx, start, f"until not ({self._condition(ctx)})")
        ctx.skip_inline_space()
        if ctx.at_punct(";"):
            ctx.advance()

    # ---------------------------------------------------------------- jumps

    def _stmt_return(self, ctx: TransformContext) -> None:
        ctx.advance()
        ctx.emit("return")
        ctx.skip_inline_space()
        if ctx.at_punct(";"):
            ctx.advance()
            return
        if ctx.at_end or ctx.at_punct("}") or ctx.current.kind in (TokenKind.NEWLINE, TokenKind.COMMENT):
            return
        ctx.emit(" ")
        self._transform_until_terminator(ctx)

    def _stmt_break(self, ctx: TransformContext) -> None:
        ctx.advance()
        ctx.emit("break")
        ctx.skip_inline_space()
        if ctx.at_punct(";"):
            ctx.advance()

    def _stmt_continue(self, ctx: TransformContext) -> None:
        ctx.advance()
        frame = ctx.loops[-1] if ctx.loops else None
        if frame is None:
            self._emit_unsupported(ctx, "continue outside a loop")
        else:
            frame.continue_used = True
            ctx.emit(f"goto {frame.label}")
        ctx.skip_inline_space()
        if ctx.at_punct(";"):
            ctx.advance()

    def _stmt_throw(self, ctx: TransformContext) -> None:
        ctx.advance()
        ctx.skip_inline_space()
        with ctx.capture() as buffer:
            self._transform_until_terminator(ctx)
        ctx.emit(f"error({''.join(buffer).strip()})")

    def _stmt_unsupported(self, ctx: TransformContext) -> None:
        keyword = ctx.advance().value
        self._emit_unsupported(ctx, f"{keyword} statement")
        self._skip_to_block(ctx)
        if keyword != "try":
            return
        while True:
            clause, offset = ctx.peek_significant()
            if not clause.is_(TokenKind.IDENTIFIER, "catch") and not clause.is_(TokenKind.IDENTIFIER, "finally"):
                return
            ctx.advance_by(offset + 1)
            self._skip_to_block(ctx)


__all__ = ["StatementRules"]
