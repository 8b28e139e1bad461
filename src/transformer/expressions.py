"""
Expression-level rewrite rules.

`ExpressionRules.transform_expression` consumes one semantic unit at the
cursor (a token, or a multi-token construct found by lookahead such as an
arrow function or `Math.round(...)`) and appends Lua text to the output
buffer. Postfix constructs pull their already-emitted left operand back out
of the buffer with `TransformContext.extract_trailing_expression`.

Method calls are rewritten through a closed table: `MethodRewrite` names every
strategy, `method_rewrite_for` maps a JavaScript method name onto one, and
`_method_handlers` binds every member to its handler.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence

from lexer import Token, TokenKind, convert_regex, escape_lua_pattern, lua_string_literal, tokenize

from .context import FUNCTION_BOUNDARY, TransformContext, split_first_argument, split_top_level

logger = logging.getLogger(__name__)


class MethodRewrite(str, Enum):
    PUSH = "push"
    HAS = "has"
    GET = "get"
    SET = "set"
    DELETE = "delete"
    KEYS = "keys"
    TRIM = "trim"
    REPLACE = "replace"
    REPLACE_ALL = "replaceAll"
    SPLIT = "split"
    JOIN = "join"
    INCLUDES = "includes"
    STARTS_WITH = "startsWith"
    ENDS_WITH = "endsWith"
    TO_LOWER = "toLowerCase"
    TO_UPPER = "toUpperCase"
    TO_STRING = "toString"
    SORT = "sort"
    FILTER = "filter"
    CHAIN = "chain"


# Query-API collection methods that keep their name and switch to `:` calls.
CHAIN_METHODS = frozenset(
    {
        "map",
        "forEach",
        "flatMap",
        "groupBy",
        "where",
        "limit",
        "slice",
        "first",
        "last",
        "count",
        "values",
        "array",
        "plus",
        "minus",
    }
)


def method_rewrite_for(name: str) -> Optional[MethodRewrite]:
    """Return the rewrite strategy for a method name, or None for plain calls."""
    if name in CHAIN_METHODS:
        return MethodRewrite.CHAIN
    if name == MethodRewrite.CHAIN.value:
        return None
    try:
        return MethodRewrite(name)
    except ValueError:
        return None


@dataclass(frozen=True)
class ArrowFunction:
    """Lookahead result for `x => ...` / `(a, b) => ...`."""

    params: str
    body_start_offset: int


_SIMPLE_OPERAND = re.compile(r"[\w.:]+")
_SIMPLE_RECEIVER = re.compile(r"[A-Za-z_][\w.]*")
_IDENTIFIER = re.compile(r"[A-Za-z_$][\w$]*")
_LUA_STRING = re.compile(r'"(?:\\.|[^"\\])*"')
_SIMPLE_COMPARATOR = re.compile(r"function\(([^)]*)\)\s+return\s+(.+)\s+end", re.DOTALL)
_KEYS_CLOSURE = re.compile(
    r"\(function\(\) local _k = \{\}; for k in pairs\((.*)\) do _k\[#_k\+1\] = k end; "
    r"return _k end\)\(\)",
    re.DOTALL,
)

_OPERATOR_MAP = {
    "===": "==",
    "==": "==",
    "!==": "~=",
    "!=": "~=",
    "&&": "and",
    "||": "or",
    "!": "not ",
}

_SPACED_OPERATORS = frozenset({"+", "..", "and", "or"})

_LUA_KEYWORDS = frozenset(
    {
        "and", "break", "do", "else", "elseif", "end", "false", "for", "function",
        "goto", "if", "in", "local", "nil", "not", "or", "repeat", "return", "then",
        "true", "until", "while",
    }
)
# JavaScript words after which `[` opens an array literal and `++` is a prefix.
_JS_OPERATOR_WORDS = frozenset(
    {"return", "typeof", "in", "of", "case", "else", "do", "new", "void", "throw", "await", "yield", "delete"}
)

_MATH_FUNCTIONS = frozenset(
    {"floor", "ceil", "abs", "min", "max", "sqrt", "pow", "log", "random", "exp", "sin", "cos"}
)
_CONSOLE_METHODS = frozenset({"log", "info", "warn", "error", "debug"})
_EMPTY_CONSTRUCTORS = frozenset({"Map", "Set", "Array", "Object"})
_CONVERSIONS = {"String": "tostring", "Number": "tonumber"}
_CONSTANTS = {
    "null": "nil",
    "undefined": "nil",
    "this": "self",
    "NaN": "(0/0)",
    "Infinity": "math.huge",
    "true": "true",
    "false": "false",
}

# Escapes a Lua string literal accepts as-is.
_LUA_STRING_ESCAPES = frozenset("abfnrtvxz\\\"0123456789\n")
_RAW_STRING_ESCAPES = {'"': '\\"', "\n": "\\n", "\r": "\\r"}


def js_string_body_to_lua(raw: str) -> str:
    """
    Rewrite the body of a JavaScript string or template text so it can sit
    between double quotes in Lua. Escapes Lua understands pass through;
    `\\uXXXX` becomes `\\u{XXXX}`; other escapes keep only the character.
    """
    out: List[str] = []
    i = 0
    size = len(raw)
    while i < size:
        ch = raw[i]
        if ch == "\\":
            if i + 1 >= size:
                out.append("\\\\")
                break
            escaped = raw[i + 1]
            if escaped == "u":
                if raw.startswith("{", i + 2):
                    close = raw.find("}", i + 2)
                    close = size - 1 if close < 0 else close
                    out.append(raw[i : close + 1])
                    i = close + 1
                else:
                    out.append("\\u{" + raw[i + 2 : i + 6] + "}")
                    i += 6
                continue
            out.append(ch + escaped if escaped in _LUA_STRING_ESCAPES else escaped)
            i += 2
            continue
        out.append(_RAW_STRING_ESCAPES.get(ch, ch))
        i += 1
    return "".join(out)


def string_token_to_lua(token: Token) -> str:
    """Re-emit a single- or double-quoted JavaScript string as a Lua string."""
    value = token.value
    quote = value[0]
    if len(value) >= 2 and value.endswith(quote):
        body = value[1:-1]
    else:
        body = value[1:]
    return '"' + js_string_body_to_lua(body) + '"'


def comment_to_lua(value: str) -> str:
    """Convert a `//` or `/* */` comment into Lua comment syntax."""
    if value.startswith("//"):
        text = value[2:]
        if text.startswith("["):
            text = " " + text
        return "--" + text
    body = value[2:-2] if value.endswith("*/") and len(value) >= 4 else value[2:]
    return "--[[" + body.replace("]]", "] ]") + "]]"


def keys_closure(expression: str, *, sort: bool = False) -> str:
    sort_step = " table.sort(_k);" if sort else ""
    return (
        f"(function() local _k = {{}}; for k in pairs({expression}) do _k[#_k+1] = k end;"
        f"{sort_step} return _k end)()"
    )


def _receiver(expression: str) -> str:
    if _SIMPLE_RECEIVER.fullmatch(expression) or expression.endswith((")", "]")):
        return expression
    return f"({expression})"


def _has_content(tokens: Sequence[Token]) -> bool:
    return any(not token.is_trivia for token in tokens)


def _bracket_delta(tokens: Sequence[Token]) -> int:
    delta = 0
    for token in tokens:
        if token.is_punct("(", "[", "{"):
            delta += 1
        elif token.is_punct(")", "]", "}"):
            delta -= 1
    return delta


# Binary operators after which a statement continues on the next line.
_CONTINUING_OPERATORS = (
    "+", "-", "*", "/", "%", "=", "==", "===", "!=", "!==", "<", ">", "<=", ">=",
    "&&", "||", "=>", "+=", "-=", ".",
)


class ExpressionRules:
    """Mixin with the expression-level half of the transformer."""

    diagnostics: List[str]

    def _warn(self, message: str) -> None:
        logger.debug("soft failure: %s", message)
        self.diagnostics.append(message)

    # ------------------------------------------------------------------ helpers

    def _transform_statements(self, ctx: TransformContext) -> None:
        while not ctx.at_end:
            start = ctx.pos
            self.transform_statement(ctx)
            if ctx.pos == start:
                # A stray closer no statement form accepts.
                ctx.emit(ctx.advance().value)

    def _transform_subtokens(self, ctx: TransformContext, tokens: Sequence[Token]) -> str:
        """Transform a detached token list with a child context; return stripped text."""
        child = ctx.child(tokens)
        self._transform_statements(child)
        return "".join(child.out).strip()

    def _transform_unit(self, ctx: TransformContext) -> int:
        """Transform one unit and return the bracket depth change it consumed."""
        start = ctx.pos
        self.transform_expression(ctx)
        return _bracket_delta(ctx.tokens[start : ctx.pos])

    def _continues_on_next_line(self, ctx: TransformContext) -> bool:
        """At a newline: does the expression carry on past it?"""
        following, _ = ctx.peek_significant(1)
        if following.is_op(".", "&&", "||") or following.is_punct("?"):
            return True
        previous = ctx.previous_significant()
        return previous.is_op(*_CONTINUING_OPERATORS) or previous.is_punct(",", "?", ":")

    def _transform_function_body(self, ctx: TransformContext) -> None:
        ctx.loops.append(FUNCTION_BOUNDARY)
        try:
            self.transform_block(ctx)
        finally:
            ctx.loops.pop()

    def _parameter_list(self, ctx: TransformContext) -> str:
        tokens = ctx.collect_group()
        return ", ".join(token.value for token in tokens if token.kind == TokenKind.IDENTIFIER)

    def _call_arguments(self, ctx: TransformContext) -> List[Token]:
        ctx.skip_trivia()
        return ctx.collect_group()

    def _member_call(self, ctx: TransformContext) -> Optional[tuple]:
        """For `Name . member`, return (member, offset of member) via lookahead."""
        dot, dot_offset = ctx.peek_significant(1)
        if not dot.is_op("."):
            return None
        member, member_offset = ctx.peek_significant(dot_offset + 1)
        if member.kind != TokenKind.IDENTIFIER:
            return None
        return member.value, member_offset

    def _emit_comment(self, ctx: TransformContext, token: Token) -> None:
        if ctx.out and ctx.out[-1] and not ctx.out[-1][-1].isspace():
            ctx.emit(" ")
        ctx.emit(comment_to_lua(token.value))

    def _emit_trivia(self, ctx: TransformContext) -> None:
        token = ctx.advance()
        if token.kind == TokenKind.COMMENT:
            self._emit_comment(ctx, token)
        else:
            ctx.emit(token.value)

    # ------------------------------------------------------------- entry point

    def transform_expression(self, ctx: TransformContext) -> None:
        """Consume one expression unit at the cursor and emit its Lua form."""
        token = ctx.current
        kind = token.kind
        if kind == TokenKind.EOF:
            return
        if token.is_trivia:
            self._emit_trivia(ctx)
            return
        if kind == TokenKind.TEMPLATE:
            ctx.advance()
            ctx.emit(self._transform_template(ctx, token))
            return
        if kind == TokenKind.STRING:
            ctx.advance()
            ctx.emit(string_token_to_lua(token))
            return
        if kind == TokenKind.NUMBER:
            ctx.emit(ctx.advance().value)
            return
        if kind == TokenKind.REGEX:
            ctx.advance()
            ctx.emit(self._regex_literal(token))
            return

        arrow = self._detect_arrow(ctx)
        if arrow is not None:
            self._transform_arrow(ctx, arrow)
            return

        if kind == TokenKind.OPERATOR:
            self._transform_operator(ctx)
        elif kind == TokenKind.PUNCTUATION:
            self._transform_punctuation(ctx)
        elif kind == TokenKind.IDENTIFIER:
            self._transform_identifier(ctx)
        else:
            ctx.emit(ctx.advance().value)

    # ---------------------------------------------------------------- literals

    def _regex_literal(self, token: Token) -> str:
        conversion = convert_regex(token.value)
        if conversion.pattern is None:
            self._warn(f"regex {token.value} has no Lua pattern equivalent")
            return '"" --[[ REGEX NOT CONVERTED: ' + token.value.replace("]]", "] ]") + " ]]"
        return lua_string_literal(conversion.pattern)

    def _transform_template(self, ctx: TransformContext, token: Token) -> str:
        segments: List[str] = []
        for part in token.parts:
            if part.is_expression:
                expression = self._transform_subtokens(ctx, tokenize(part.value)[:-1])
                segments.append(f"tostring({expression})")
            else:
                text = js_string_body_to_lua(part.value)
                if text:
                    segments.append(f'"{text}"')
        if not segments:
            return '""'
        return " .. ".join(segments)

    # ---------------------------------------------------------- arrow functions

    def _detect_arrow(self, ctx: TransformContext) -> Optional[ArrowFunction]:
        token = ctx.current
        if token.kind == TokenKind.IDENTIFIER:
            following, offset = ctx.peek_significant(1)
            if following.is_op("=>"):
                return ArrowFunction(params=token.value, body_start_offset=offset + 1)
            return None
        if not token.is_punct("("):
            return None
        depth = 1
        offset = 1
        while True:
            candidate = ctx.peek(offset)
            if candidate.kind == TokenKind.EOF:
                return None
            if candidate.is_punct("("):
                depth += 1
            elif candidate.is_punct(")"):
                depth -= 1
                if depth == 0:
                    break
            offset += 1
        after, after_offset = ctx.peek_significant(offset + 1)
        if not after.is_op("=>"):
            return None
        params = [
            ctx.peek(i).value for i in range(1, offset) if ctx.peek(i).kind == TokenKind.IDENTIFIER
        ]
        return ArrowFunction(params=", ".join(params), body_start_offset=after_offset + 1)

    def _transform_arrow(self, ctx: TransformContext, arrow: ArrowFunction) -> None:
        ctx.advance_by(arrow.body_start_offset)
        ctx.skip_trivia()
        if ctx.at_punct("{"):
            self._transform_function_literal(ctx, arrow.params)
            return
        ctx.emit(f"function({arrow.params}) return ")
        self._transform_until_delimiter(ctx)
        ctx.emit(" end")

    def _transform_function_literal(
        self, ctx: TransformContext, params: str, prefix: str = "function"
    ) -> None:
        """Emit `function(params) ... end` for the block at the cursor."""
        header = len(ctx.out)
        ctx.emit(f"{prefix}({params})")
        if ctx.at_punct("{"):
            self._transform_function_body(ctx)
        self._separate_body(ctx, header + 1)
        self._emit_end(ctx, header)

    def _transform_until_delimiter(self, ctx: TransformContext) -> None:
        """Arrow bodies and assignment right-hand sides: stop at `,`/`;`, a closer or line end."""
        depth = 0
        while not ctx.at_end:
            token = ctx.current
            if depth == 0:
                if token.is_punct(")", "]", "}", ",", ";"):
                    return
                if token.kind == TokenKind.NEWLINE and not self._continues_on_next_line(ctx):
                    return
            depth += self._transform_unit(ctx)

    def _transform_anonymous_function(self, ctx: TransformContext) -> None:
        ctx.advance()
        ctx.skip_trivia()
        if ctx.current.kind == TokenKind.IDENTIFIER:
            ctx.advance()
            ctx.skip_trivia()
        params = self._parameter_list(ctx) if ctx.at_punct("(") else ""
        ctx.skip_trivia()
        self._transform_function_literal(ctx, params)

    # ----------------------------------------------------------------- ternary

    def _transform_ternary(self, ctx: TransformContext) -> None:
        ctx.advance()
        condition = ctx.extract_trailing_expression(operators_end_operand=False)
        then_branch = self._ternary_branch(ctx, then_branch=True)
        else_branch = self._ternary_branch(ctx, then_branch=False)
        ctx.emit(
            f"(function() if {condition} then return {then_branch} "
            f"else return {else_branch} end end)()"
        )

    def _ternary_branch(self, ctx: TransformContext, *, then_branch: bool) -> str:
        with ctx.capture() as buffer:
            depth = 0
            while not ctx.at_end:
                token = ctx.current
                if depth == 0:
                    if token.is_punct(")", "]", "}"):
                        break
                    if token.is_punct(":"):
                        if then_branch:
                            ctx.advance()
                        break
                    if not then_branch:
                        if token.is_punct(",", ";"):
                            break
                        if token.kind == TokenKind.NEWLINE and not self._continues_on_next_line(ctx):
                            break
                depth += self._transform_unit(ctx)
        return "".join(buffer).strip()

    # --------------------------------------------------------------- operators

    def _transform_operator(self, ctx: TransformContext) -> None:
        value = ctx.current.value
        if value in ("++", "--"):
            self._transform_update(ctx)
            return
        before, after = ctx.peek(-1), ctx.peek(1)
        ctx.advance()
        if value == ".":
            self._transform_member(ctx)
            return
        if value in ("+=", "-="):
            self._transform_compound_assignment(ctx, value)
            return
        if value == "+":
            following, _ = ctx.peek_significant()
            concat = ctx.last_emitted().endswith('"') or following.kind in (
                TokenKind.STRING,
                TokenKind.TEMPLATE,
            )
            text = ".." if concat else "+"
        else:
            text = _OPERATOR_MAP.get(value, value)
        if text in _SPACED_OPERATORS:
            # Pad only where the source has no whitespace of its own.
            text = ("" if before.is_trivia else " ") + text + ("" if after.is_trivia else " ")
        ctx.emit(text)

    def _transform_compound_assignment(self, ctx: TransformContext, operator: str) -> None:
        """
        Emit `+= rhs`, `-= rhs` or `..= rhs` with the right-hand side grouped.
        The post-processor turns the placeholder into `x = x <op> rhs`.
        """
        following, _ = ctx.peek_significant()
        ctx.skip_trivia()
        with ctx.capture() as buffer:
            self._transform_until_delimiter(ctx)
        trailing: List[str] = []
        while buffer and (not buffer[-1].strip() or buffer[-1].lstrip().startswith("--")):
            trailing.insert(0, buffer.pop())
        value = "".join(buffer).strip() or "nil"
        concat = operator == "+=" and (
            following.kind in (TokenKind.STRING, TokenKind.TEMPLATE) or " .. " in value
        )
        if not (_SIMPLE_OPERAND.fullmatch(value) or _LUA_STRING.fullmatch(value)):
            value = f"({value})"
        ctx.emit(f"{'..=' if concat else operator} {value}")
        ctx.out.extend(trailing)

    def _follows_operand(self, ctx: TransformContext, *, same_line: bool) -> bool:
        """Is the token at the cursor preceded by a complete operand?"""
        index = ctx.pos - 1
        while index >= 0 and ctx.tokens[index].is_trivia:
            if same_line and ctx.tokens[index].kind == TokenKind.NEWLINE:
                return False
            index -= 1
        if index < 0:
            return False
        previous = ctx.tokens[index]
        if previous.kind == TokenKind.IDENTIFIER:
            return previous.value not in _JS_OPERATOR_WORDS
        return previous.kind in (TokenKind.STRING, TokenKind.TEMPLATE) or previous.is_punct(")", "]")

    def _transform_update(self, ctx: TransformContext) -> None:
        is_postfix = self._follows_operand(ctx, same_line=True)
        operator = ctx.advance().value
        if is_postfix:
            ctx.emit(operator + " ")
            return
        # Prefix form: re-emit as `operand<op> ` so one post-processing rule covers both.
        ctx.skip_inline_space()
        operand = self._transform_subtokens(ctx, self._collect_operand(ctx))
        ctx.emit(operand + operator + " ")

    def _collect_operand(self, ctx: TransformContext) -> List[Token]:
        """Collect a primary expression: a group, or a name with `.x`/`[i]`/`(...)` suffixes."""
        tokens: List[Token] = []
        if ctx.at_punct("("):
            start = ctx.pos
            ctx.skip_group("(", ")")
            return list(ctx.tokens[start : ctx.pos])
        if ctx.at_end:
            return tokens
        tokens.append(ctx.advance())
        while not ctx.at_end:
            token = ctx.current
            if token.is_op("."):
                tokens.append(ctx.advance())
                while ctx.current.kind == TokenKind.WHITESPACE:
                    tokens.append(ctx.advance())
                if ctx.current.kind == TokenKind.IDENTIFIER:
                    tokens.append(ctx.advance())
            elif token.is_punct("[", "("):
                closer = "]" if token.value == "[" else ")"
                start = ctx.pos
                ctx.skip_group(token.value, closer)
                tokens.extend(ctx.tokens[start : ctx.pos])
            else:
                break
        return tokens

    # ------------------------------------------------------------ member access

    def _transform_member(self, ctx: TransformContext) -> None:
        ctx.skip_trivia()
        prop = ctx.current
        if prop.kind != TokenKind.IDENTIFIER:
            ctx.emit(".")
            return
        name = prop.value

        if name == "length":
            ctx.advance()
            operand = ctx.extract_trailing_expression()
            ctx.emit(f"#{operand}" if _SIMPLE_OPERAND.fullmatch(operand) else f"#({operand})")
            return
        if name == "size" and ctx.last_emitted() in ctx.map_vars:
            ctx.advance()
            operand = ctx.extract_trailing_expression()
            ctx.emit(
                f"(function() local _n = 0; for _ in pairs({operand}) do _n = _n + 1 end; "
                "return _n end)()"
            )
            return

        following, _ = ctx.peek_significant(1)
        if following.is_punct("("):
            rewrite = method_rewrite_for(name)
            if rewrite is not None:
                ctx.advance()
                ctx.skip_trivia()
                self._method_handlers[rewrite](ctx, name)
                return

        ctx.advance()
        ctx.emit("." + name)

    @property
    def _method_handlers(self) -> Dict[MethodRewrite, Callable[[TransformContext, str], None]]:
        return {
            MethodRewrite.PUSH: self._method_push,
            MethodRewrite.HAS: self._method_lookup,
            MethodRewrite.GET: self._method_lookup,
            MethodRewrite.SET: self._method_set,
            MethodRewrite.DELETE: self._method_delete,
            MethodRewrite.KEYS: self._method_keys,
            MethodRewrite.TRIM: self._method_trim,
            MethodRewrite.REPLACE: self._method_replace,
            MethodRewrite.REPLACE_ALL: self._method_replace,
            MethodRewrite.SPLIT: self._method_split,
            MethodRewrite.JOIN: self._method_join,
            MethodRewrite.INCLUDES: self._method_includes,
            MethodRewrite.STARTS_WITH: self._method_affix,
            MethodRewrite.ENDS_WITH: self._method_affix,
            MethodRewrite.TO_LOWER: self._method_case,
            MethodRewrite.TO_UPPER: self._method_case,
            MethodRewrite.TO_STRING: self._method_to_string,
            MethodRewrite.SORT: self._method_sort,
            MethodRewrite.FILTER: self._method_filter,
            MethodRewrite.CHAIN: self._method_chain,
        }

    # Every handler starts with the cursor on the call's `(`.

    def _method_push(self, ctx: TransformContext, name: str) -> None:
        receiver = ctx.extract_trailing_expression()
        groups = [g for g in split_top_level(ctx.collect_group()) if _has_content(g)]
        values = [self._transform_subtokens(ctx, group) for group in groups] or ["nil"]
        ctx.emit("; ".join(f"table.insert({receiver}, {value})" for value in values))

    def _method_lookup(self, ctx: TransformContext, name: str) -> None:
        key = self._transform_subtokens(ctx, ctx.collect_group())
        ctx.emit(f"[{key}]")

    def _method_set(self, ctx: TransformContext, name: str) -> None:
        key_tokens, value_tokens = split_first_argument(ctx.collect_group())
        key = self._transform_subtokens(ctx, key_tokens)
        value = self._transform_subtokens(ctx, value_tokens)
        ctx.emit(f"[{key}] = {value}")

    def _method_delete(self, ctx: TransformContext, name: str) -> None:
        if ctx.last_emitted() not in ctx.map_vars:
            ctx.emit("." + name)
            return
        key = self._transform_subtokens(ctx, ctx.collect_group())
        ctx.emit(f"[{key}] = nil")

    def _method_keys(self, ctx: TransformContext, name: str) -> None:
        ctx.collect_group()
        receiver = ctx.extract_trailing_expression()
        sort = self._consume_empty_sort(ctx)
        ctx.emit(keys_closure(receiver, sort=sort))

    def _consume_empty_sort(self, ctx: TransformContext) -> bool:
        """Consume a directly following `.sort()` with no comparator."""
        dot, dot_offset = ctx.peek_significant()
        if not dot.is_op("."):
            return False
        name, name_offset = ctx.peek_significant(dot_offset + 1)
        if not name.is_(TokenKind.IDENTIFIER, "sort"):
            return False
        opener, open_offset = ctx.peek_significant(name_offset + 1)
        closer, close_offset = ctx.peek_significant(open_offset + 1)
        if not (opener.is_punct("(") and closer.is_punct(")")):
            return False
        ctx.advance_by(close_offset + 1)
        return True

    def _method_trim(self, ctx: TransformContext, name: str) -> None:
        ctx.collect_group()
        ctx.emit(':match("^%s*(.-)%s*$")')

    def _method_replace(self, ctx: TransformContext, name: str) -> None:
        pattern_tokens, replacement_tokens = split_first_argument(ctx.collect_group())
        replacement = self._replacement(ctx, replacement_tokens)
        significant = [token for token in pattern_tokens if not token.is_trivia]
        replace_all = name == MethodRewrite.REPLACE_ALL.value
        limit = ""
        if len(significant) == 1 and significant[0].kind == TokenKind.REGEX:
            conversion = convert_regex(significant[0].value)
            pattern = self._regex_literal(significant[0])
            if conversion.converted and not (conversion.is_global or replace_all):
                limit = ", 1"
        elif len(significant) == 1 and significant[0].kind == TokenKind.STRING:
            literal = string_token_to_lua(significant[0])
            pattern = '"' + escape_lua_pattern(literal[1:-1]) + '"'
            if not replace_all:
                limit = ", 1"
        else:
            pattern = self._transform_subtokens(ctx, pattern_tokens)
        ctx.emit(f":gsub({pattern}, {replacement}{limit})")

    def _replacement(self, ctx: TransformContext, tokens: Sequence[Token]) -> str:
        """Replacement argument; in a string literal `$n` becomes `%n` and `%` is escaped."""
        significant = [token for token in tokens if not token.is_trivia]
        if len(significant) != 1 or significant[0].kind != TokenKind.STRING:
            return self._transform_subtokens(ctx, tokens)
        body = string_token_to_lua(significant[0])[1:-1].replace("%", "%%")
        body = re.sub(r"\$(\d)", r"%\1", body.replace("$&", "%0"))
        return f'"{body}"'

    def _method_split(self, ctx: TransformContext, name: str) -> None:
        separator = self._transform_subtokens(ctx, ctx.collect_group())
        ctx.emit(f":split({separator})")

    def _method_join(self, ctx: TransformContext, name: str) -> None:
        separator = self._transform_subtokens(ctx, ctx.collect_group()) or '","'
        receiver = ctx.extract_trailing_expression()
        ctx.emit(f"table.concat({receiver}, {separator})")

    def _method_includes(self, ctx: TransformContext, name: str) -> None:
        value = self._transform_subtokens(ctx, ctx.collect_group())
        receiver = _receiver(ctx.extract_trailing_expression())
        ctx.emit(f"({receiver}:find({value}, 1, true) ~= nil)")

    def _method_affix(self, ctx: TransformContext, name: str) -> None:
        value = self._transform_subtokens(ctx, ctx.collect_group())
        receiver = _receiver(ctx.extract_trailing_expression())
        if name == MethodRewrite.STARTS_WITH.value:
            ctx.emit(f"({receiver}:sub(1, #({value})) == {value})")
        else:
            ctx.emit(f"({receiver}:sub(-#({value})) == {value})")

    def _method_case(self, ctx: TransformContext, name: str) -> None:
        ctx.collect_group()
        ctx.emit(":lower()" if name == MethodRewrite.TO_LOWER.value else ":upper()")

    def _method_to_string(self, ctx: TransformContext, name: str) -> None:
        ctx.collect_group()
        receiver = ctx.extract_trailing_expression()
        ctx.emit(f"tostring({receiver})")

    def _method_sort(self, ctx: TransformContext, name: str) -> None:
        arguments = ctx.collect_group()
        if not _has_content(arguments):
            ctx.emit(":sort()")
            return
        comparator = self._transform_subtokens(ctx, arguments)
        receiver = ctx.extract_trailing_expression()
        # JavaScript comparators return a number; table.sort wants "a < b".
        simple = _SIMPLE_COMPARATOR.fullmatch(comparator)
        note = ""
        if simple is not None:
            params, body = simple.group(1), simple.group(2)
            order = f", function({params}) return ({body}) < 0 end"
        elif comparator.startswith("function") or _SIMPLE_RECEIVER.fullmatch(comparator):
            order = f", function(a, b) return ({comparator})(a, b) < 0 end"
        else:
            self._warn(f"sort comparator could not be converted: {comparator}")
            order, note = "", " --[[ comparator not converted ]]"
        if ctx.at_statement_start() and self._ends_statement(ctx):
            ctx.emit(f"table.sort({receiver}{order}){note}")
        else:
            # table.sort returns nothing; hand the sorted table back.
            ctx.emit(f"(function(_s) table.sort(_s{order}) return _s end)({receiver}){note}")

    def _ends_statement(self, ctx: TransformContext) -> bool:
        offset = 0
        while ctx.peek(offset).kind == TokenKind.WHITESPACE:
            offset += 1
        token = ctx.peek(offset)
        if token.kind == TokenKind.NEWLINE:
            following, _ = ctx.peek_significant(offset + 1)
            return not (following.is_op(".", "&&", "||") or following.is_punct("?"))
        return token.kind in (TokenKind.EOF, TokenKind.COMMENT) or token.is_punct(";", "}")

    def _method_filter(self, ctx: TransformContext, name: str) -> None:
        ctx.emit(":where")

    def _method_chain(self, ctx: TransformContext, name: str) -> None:
        ctx.emit(":" + name)

    # ------------------------------------------------------------- punctuation

    def _transform_punctuation(self, ctx: TransformContext) -> None:
        value = ctx.current.value
        if value == ";":
            ctx.advance()
        elif value == "?" and ctx.peek(1).is_punct("?"):
            ctx.advance_by(2)
            self._warn("'??' approximated with 'or' (false also falls through)")
            before, after = ctx.peek(-3), ctx.current
            ctx.emit(("" if before.is_trivia else " ") + "or" + ("" if after.is_trivia else " "))
        elif value == "?":
            self._transform_ternary(ctx)
        elif value == "[":
            self._transform_bracket(ctx)
        elif value == ":" and self._rewrite_object_key(ctx):
            ctx.advance()
            ctx.emit(" =")
        else:
            ctx.emit(ctx.advance().value)

    def _transform_bracket(self, ctx: TransformContext) -> None:
        subscript = self._follows_operand(ctx, same_line=False)
        ctx.advance()
        if subscript:
            ctx.emit("[")
            return
        ctx.emit("{")
        depth = 0
        while not ctx.at_end:
            if depth == 0 and ctx.at_punct("]"):
                ctx.advance()
                break
            depth += self._transform_unit(ctx)
        ctx.emit("}")

    def _rewrite_object_key(self, ctx: TransformContext) -> bool:
        """If the `:` follows a key inside `{ }`, fix the key up and return True."""
        out = ctx.out
        for index in range(len(out) - 1, -1, -1):
            key = out[index].strip()
            if not key:
                continue
            is_name = bool(_IDENTIFIER.fullmatch(key))
            if not (is_name or _LUA_STRING.fullmatch(key) or key.isdigit()):
                return False
            if not self._inside_braces(out, index):
                return False
            if not is_name or key in _LUA_KEYWORDS:
                out[index] = f'["{key}"]' if is_name else f"[{key}]"
            return True
        return False

    @staticmethod
    def _inside_braces(out: List[str], index: int) -> bool:
        depth = 0
        for entry in reversed(out[:index]):
            for ch in reversed(entry):
                if ch == "}":
                    depth += 1
                elif ch == "{":
                    if depth == 0:
                        return True
                    depth -= 1
        return False

    # ------------------------------------------------------------- identifiers

    def _transform_identifier(self, ctx: TransformContext) -> None:
        name = ctx.current.value

        if name in _CONSTANTS:
            ctx.advance()
            ctx.emit(_CONSTANTS[name])
            return
        if name == "typeof":
            ctx.advance()
            ctx.skip_trivia()
            operand = self._transform_subtokens(ctx, self._collect_operand(ctx))
            ctx.emit(f"type({operand})")
            return
        if name == "new":
            self._transform_new(ctx)
            return
        if name == "function":
            self._transform_anonymous_function(ctx)
            return

        member = self._member_call(ctx)
        if member is not None:
            handler = self._global_handlers.get(name)
            if handler is not None and handler(ctx, member[0], member[1]):
                return

        if name in ("parseInt", "parseFloat"):
            ctx.advance()
            ctx.emit("tonumber")
            return
        if name in _CONVERSIONS:
            following, _ = ctx.peek_significant(1)
            if following.is_punct("("):
                ctx.advance()
                ctx.emit(_CONVERSIONS[name])
                return

        ctx.advance()
        ctx.emit(name)

    def _transform_new(self, ctx: TransformContext) -> None:
        ctx.advance()
        ctx.skip_trivia()
        target = ctx.current
        if target.kind == TokenKind.IDENTIFIER and target.value in _EMPTY_CONSTRUCTORS:
            ctx.advance()
            ctx.skip_inline_space()
            if ctx.at_punct("("):
                if _has_content(ctx.collect_group()):
                    self._warn(f"constructor arguments of new {target.value}(...) were dropped")
            ctx.emit("{}")
            return
        if target.kind == TokenKind.IDENTIFIER and target.value.endswith("Error"):
            # `throw new Error(msg)` becomes `error(msg)`.
            ctx.advance()
            ctx.skip_inline_space()
            message = ""
            if ctx.at_punct("("):
                message = self._transform_subtokens(ctx, ctx.collect_group())
            ctx.emit(message or lua_string_literal(target.value))
            return
        self._warn(f"'new' dropped before {target.value or 'end of input'}")

    @property
    def _global_handlers(self) -> Dict[str, Callable[[TransformContext, str, int], bool]]:
        return {
            "Math": self._global_math,
            "console": self._global_console,
            "JSON": self._global_json,
            "Object": self._global_object,
            "Array": self._global_array,
        }

    # Global handlers return False to fall back to plain identifier emission.

    def _global_math(self, ctx: TransformContext, member: str, offset: int) -> bool:
        if member == "round":
            ctx.advance_by(offset + 1)
            ctx.skip_inline_space()
            if not ctx.at_punct("("):
                ctx.emit("function(x) return math.floor(x + 0.5) end")
                return True
            argument = self._transform_subtokens(ctx, ctx.collect_group())
            ctx.emit(f"math.floor({argument} + 0.5)")
            return True
        if member in _MATH_FUNCTIONS:
            ctx.advance_by(offset + 1)
            ctx.emit(f"math.{member}")
            return True
        if member == "PI":
            ctx.advance_by(offset + 1)
            ctx.emit("math.pi")
            return True
        return False

    def _global_console(self, ctx: TransformContext, member: str, offset: int) -> bool:
        if member not in _CONSOLE_METHODS:
            return False
        ctx.advance_by(offset + 1)
        ctx.emit("print")
        return True

    def _global_json(self, ctx: TransformContext, member: str, offset: int) -> bool:
        replacement = {"stringify": "vim.inspect", "parse": "vim.json.decode"}.get(member)
        if replacement is None:
            return False
        ctx.advance_by(offset + 1)
        ctx.emit(replacement)
        return True

    def _global_object(self, ctx: TransformContext, member: str, offset: int) -> bool:
        templates = {
            "keys": "(function() local _k = {{}}; for k in pairs({0}) do _k[#_k+1] = k end; return _k end)()",
            "values": "(function() local _v = {{}}; for _, v in pairs({0}) do _v[#_v+1] = v end; return _v end)()",
            "entries": "(function() local _e = {{}}; for k, v in pairs({0}) do _e[#_e+1] = {{k, v}} end; return _e end)()",
        }
        if member not in templates:
            return False
        ctx.advance_by(offset + 1)
        argument = self._transform_subtokens(ctx, self._call_arguments(ctx))
        ctx.emit(templates[member].format(argument))
        return True

    def _global_array(self, ctx: TransformContext, member: str, offset: int) -> bool:
        if member == "from":
            ctx.advance_by(offset + 1)
            argument = self._transform_subtokens(ctx, self._call_arguments(ctx))
            keys = _KEYS_CLOSURE.fullmatch(argument)
            if keys is not None and self._consume_empty_sort(ctx):
                ctx.emit(keys_closure(keys.group(1), sort=True))
            else:
                ctx.emit(argument)
            return True
        if member == "isArray":
            ctx.advance_by(offset + 1)
            argument = self._transform_subtokens(ctx, self._call_arguments(ctx))
            ctx.emit(f'(type({argument}) == "table")')
            return True
        return False


__all__ = [
    "ArrowFunction",
    "CHAIN_METHODS",
    "ExpressionRules",
    "MethodRewrite",
    "comment_to_lua",
    "js_string_body_to_lua",
    "keys_closure",
    "method_rewrite_for",
    "string_token_to_lua",
]
