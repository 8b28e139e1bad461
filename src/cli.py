"""
Command-line interface for converting JavaScript query code to Lua.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from emitter import EmitOptions, emit_chunk
from frontend import FrontEndResult, find_query_blocks, run_frontend
from transformer import TranspileResult, transpile, transpile_inline_expression

logger = logging.getLogger(__name__)


def _format_location(line: int | None, column: int | None) -> str:
    if line is None:
        return ""
    if column is None:
        return f":{line}"
    return f":{line}:{column}"


def _print_diagnostics(messages: List[str]) -> None:
    for message in messages:
        sys.stderr.write(message + "\n")


def _collect_diagnostics(
    source_name: str,
    frontend_result: Optional[FrontEndResult],
    transpile_result: TranspileResult,
) -> List[str]:
    diagnostics: List[str] = []

    if frontend_result is not None:
        for error in frontend_result.parse.errors:
            loc = _format_location(error.line, error.column)
            diagnostics.append(f"ERROR {source_name}{loc}: {error.description}")
        if frontend_result.analysis:
            for issue in frontend_result.analysis.issues:
                loc = _format_location(issue.loc.line, issue.loc.column)
                diagnostics.append(f"WARNING {source_name}{loc}: {issue.message}")

    for message in transpile_result.diagnostics:
        diagnostics.append(f"INFO {source_name}: {message}")

    return diagnostics


def _read_input(path: Path) -> Optional[str]:
    if not path.exists():
        sys.stderr.write(f"ERROR: Input file not found: {path}\n")
        return None
    try:
        return path.read_text(encoding="utf-8")
    except OSError as exc:
        sys.stderr.write(f"ERROR: Failed to read {path}: {exc}\n")
        return None


def convert_command(args: argparse.Namespace) -> int:
    input_path = Path(args.input).resolve()
    source = _read_input(input_path)
    if source is None:
        return 1

    frontend_result: Optional[FrontEndResult] = None
    if args.check:
        frontend_result = run_frontend(source, source_name=str(input_path), tolerant=not args.strict)
        if not frontend_result.has_ast:
            sys.stderr.write("ERROR: Parsing failed; no AST produced.\n")
            for error in frontend_result.parse.errors:
                loc = _format_location(error.line, error.column)
                sys.stderr.write(f"  {error.description}{loc}\n")
            return 1

    result = transpile(source)
    if not result.ok:
        sys.stderr.write(f"ERROR {input_path}: {result.error}\n")
        return 1

    emit_options = EmitOptions(
        header=f"Generated by js2lua from {input_path.name}" if args.header else None,
        include_runtime=args.runtime == "include",
    )
    emit_result = emit_chunk(result.code or "", emit_options)

    output_path = Path(args.out) if args.out else input_path.with_suffix(".lua")
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(emit_result.source, encoding="utf-8")
    logger.debug("wrote %s", output_path)

    diagnostics = _collect_diagnostics(str(input_path), frontend_result, result)
    _print_diagnostics(diagnostics)

    has_errors = frontend_result is not None and bool(frontend_result.parse.errors)
    if args.strict and frontend_result is not None and frontend_result.diagnostics:
        has_errors = True
    if args.strict and result.diagnostics:
        has_errors = True

    return 1 if has_errors else 0


def note_command(args: argparse.Namespace) -> int:
    note_path = Path(args.note).resolve()
    markdown = _read_input(note_path)
    if markdown is None:
        return 1

    chunks: List[str] = []
    failed = False
    for block in find_query_blocks(markdown):
        source_name = f"{note_path}:{block.line}"
        if block.is_inline:
            lua = transpile_inline_expression(block.source)
            chunks.append(f"-- inline expression at line {block.line}\n{lua}")
            continue
        result = transpile(block.source)
        if not result.ok:
            sys.stderr.write(f"ERROR {source_name}: {result.error}\n")
            failed = True
            continue
        _print_diagnostics(_collect_diagnostics(source_name, None, result))
        if args.strict and result.diagnostics:
            failed = True
        chunks.append(f"-- dataviewjs block at line {block.line}\n{result.code}")

    logger.debug("found %d query blocks in %s", len(chunks), note_path)
    output = "\n\n".join(chunks) + ("\n" if chunks else "")
    if args.out:
        Path(args.out).write_text(output, encoding="utf-8")
    else:
        sys.stdout.write(output)
    return 1 if failed else 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="js2lua", description="Convert dataviewjs JavaScript to Lua")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    subparsers = parser.add_subparsers(dest="command")

    convert_parser = subparsers.add_parser("convert", help="Convert a single JS file to Lua")
    convert_parser.add_argument("input", help="Path to the JavaScript file")
    convert_parser.add_argument(
        "--out",
        help="Output Lua file path (defaults to same directory with .lua extension)",
    )
    convert_parser.add_argument(
        "--runtime",
        choices=["include", "skip"],
        default="skip",
        help="Prepend the string.split/slice runtime prelude",
    )
    convert_parser.add_argument(
        "--strict",
        action="store_true",
        help="Treat warnings as errors and disable tolerant parsing.",
    )
    convert_parser.add_argument(
        "--check",
        action="store_true",
        help="Parse the input with esprima first and report unsupported constructs.",
    )
    convert_parser.add_argument(
        "--header",
        action="store_true",
        help="Start the output with a comment naming the source file.",
    )
    convert_parser.set_defaults(func=convert_command)

    note_parser = subparsers.add_parser("note", help="Transpile every query block of a Markdown note")
    note_parser.add_argument("note", help="Path to the Markdown note")
    note_parser.add_argument("--out", help="Write the Lua chunks to a file instead of stdout")
    note_parser.add_argument(
        "--strict",
        action="store_true",
        help="Exit non-zero when any block produced diagnostics.",
    )
    note_parser.set_defaults(func=note_command)

    return parser


def main(argv: List[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    if not hasattr(args, "func"):
        parser.print_help()
        return 1
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
