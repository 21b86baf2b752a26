"""Command-line interface for rendering pest grammars as railroad diagrams."""
from __future__ import annotations

import argparse
import json
import logging
import os
import sys
import traceback
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

from .assembler import DiagramAssembler
from .config import DiagramConfig, load_config
from .errors import (
    ConfigError,
    DiagramWarning,
    DuplicateNameError,
    GrammarSyntaxError,
    RailgramError,
)
from .grammar import Grammar, parse_grammar
from .registry import RULE_ORDERS, RuleRegistry

SUBCOMMANDS_HINT = "Use one of: render, split, rules."


@dataclass
class CliError(Exception):
    code: str
    message: str
    hint: Optional[str] = None
    exit_code: int = 1
    file: Optional[str] = None
    line: Optional[int] = None
    column: Optional[int] = None
    retryable: bool = True


class UsageError(Exception):
    pass


class FriendlyArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> None:  # pragma: no cover - argparse callback
        raise UsageError(message)


def _add_diagram_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("input", nargs="?", help="Input .pest grammar file")
    parser.add_argument("--text", help="Raw pest grammar source")
    parser.add_argument("--config", help="JSON diagram configuration file")
    parser.add_argument("--order", choices=RULE_ORDERS, help="Rule iteration order")
    silent = parser.add_mutually_exclusive_group()
    silent.add_argument(
        "--include-silent", dest="include_silent", action="store_true", default=None,
        help="Draw silent rules",
    )
    silent.add_argument(
        "--exclude-silent", dest="include_silent", action="store_false",
        help="Skip silent rules",
    )
    parser.add_argument("--no-titles", action="store_true", help="Omit rule name headers")


def _build_parser() -> argparse.ArgumentParser:
    parser = FriendlyArgumentParser(
        prog="railgram",
        description="Render pest grammars as railroad (syntax) diagrams in SVG.",
    )
    parser.add_argument("--error-format", choices=["text", "json"], default="text")
    parser.add_argument("--debug", action="store_true")

    subparsers = parser.add_subparsers(dest="command")

    render_parser = subparsers.add_parser("render", help="Render all rules into one SVG")
    _add_diagram_options(render_parser)
    render_parser.add_argument("--stdout", action="store_true", help="Write SVG to stdout")
    render_parser.add_argument("-o", "--output", help="Output .svg path")

    split_parser = subparsers.add_parser("split", help="Render one SVG file per rule")
    _add_diagram_options(split_parser)
    split_parser.add_argument("-d", "--directory", help="Output directory")

    rules_parser = subparsers.add_parser("rules", help="List rules and unresolved references")
    rules_parser.add_argument("input", nargs="?", help="Input .pest grammar file")
    rules_parser.add_argument("--text", help="Raw pest grammar source")
    rules_parser.add_argument("--order", choices=RULE_ORDERS, default="declaration")

    return parser


def _read_input(path: Optional[str], text: Optional[str]) -> Tuple[str, str, Optional[Path]]:
    if path and text is not None:
        raise CliError(
            "E_ARGS",
            "--text cannot be combined with file input",
            hint="Use either FILE or --text.",
            exit_code=2,
        )

    if text is not None:
        return text, "<text>", None

    if path:
        input_path = Path(path)
        if not input_path.exists():
            raise CliError(
                "E_IO_READ",
                f"input file not found: {input_path}",
                exit_code=2,
                file=str(input_path),
            )
        try:
            return input_path.read_text(encoding="utf-8"), str(input_path), input_path
        except OSError as exc:
            raise CliError(
                "E_IO_READ",
                f"failed to read input file: {input_path}",
                hint=str(exc),
                exit_code=2,
                file=str(input_path),
            )

    if sys.stdin.isatty():
        raise CliError(
            "E_ARGS",
            "no input provided",
            hint="Use a subcommand with FILE, --text, or pipe stdin.",
            exit_code=2,
        )

    data = sys.stdin.read()
    if not data.strip():
        raise CliError(
            "E_ARGS",
            "stdin was empty",
            hint="Pipe pest grammar source into stdin.",
            exit_code=2,
        )
    return data, "<stdin>", None


def _load_grammar(source: str, source_name: str) -> Tuple[Grammar, RuleRegistry]:
    try:
        grammar = parse_grammar(source)
        return grammar, RuleRegistry.build(grammar.rules)
    except (GrammarSyntaxError, DuplicateNameError) as exc:
        exc.file = source_name
        raise


def _resolve_config(args: argparse.Namespace) -> DiagramConfig:
    if args.config:
        config_path = Path(args.config)
        try:
            config = load_config(config_path)
        except OSError as exc:
            raise CliError(
                "E_IO_READ",
                f"failed to read config file: {config_path}",
                hint=str(exc),
                exit_code=2,
                file=str(config_path),
            )
    else:
        config = DiagramConfig()

    overrides = {}
    if args.order:
        overrides["rule_order"] = args.order
    if args.include_silent is not None:
        overrides["include_silent_rules"] = args.include_silent
    if args.no_titles:
        overrides["title_per_rule"] = False
    return config.with_overrides(**overrides) if overrides else config


def _write_text(path: Path, content: str) -> None:
    try:
        path.write_text(content, encoding="utf-8")
    except OSError as exc:
        raise CliError(
            "E_IO_WRITE",
            f"failed to write output file: {path}",
            hint=str(exc),
            exit_code=4,
            file=str(path),
        )


def _safe_filename(name: str) -> str:
    return "".join(ch if ch.isalnum() or ch in "-_" else "_" for ch in name) or "rule"


def _error_from_exception(exc: Exception) -> CliError:
    if isinstance(exc, CliError):
        return exc
    if isinstance(exc, GrammarSyntaxError):
        return CliError(
            exc.code,
            exc.message,
            hint="Check the pest grammar syntax near the reported position.",
            exit_code=3,
            file=getattr(exc, "file", None),
            line=exc.line,
            column=exc.column,
        )
    if isinstance(exc, DuplicateNameError):
        return CliError(
            exc.code,
            exc.message,
            hint="Rename or remove the duplicated rules.",
            exit_code=3,
            file=getattr(exc, "file", None),
        )
    if isinstance(exc, ConfigError):
        return CliError(
            exc.code,
            exc.message,
            hint="Check option names and value types in the config file.",
            exit_code=3,
        )
    if isinstance(exc, RailgramError):
        return CliError(exc.code, exc.message, exit_code=3)
    return CliError(
        "E_INTERNAL",
        str(exc) or exc.__class__.__name__,
        hint="Re-run with --debug to see traceback.",
        exit_code=1,
        retryable=False,
    )


def _emit_error(err: CliError, *, error_format: str) -> None:
    if error_format == "json":
        payload = {
            "ok": False,
            "code": err.code,
            "message": err.message,
            "file": err.file,
            "line": err.line,
            "column": err.column,
            "hint": err.hint,
            "retryable": err.retryable,
        }
        sys.stderr.write(json.dumps(payload) + "\n")
        return

    sys.stderr.write(f"error[{err.code}]: {err.message}\n")
    if err.hint:
        sys.stderr.write(f"hint: {err.hint}\n")


def _emit_warnings(warnings: List[DiagramWarning], *, error_format: str) -> None:
    for warning in warnings:
        if error_format == "json":
            payload = {
                "ok": True,
                "code": warning.code,
                "rule": warning.rule,
                "message": warning.message,
            }
            sys.stderr.write(json.dumps(payload) + "\n")
        else:
            sys.stderr.write(f"warning[{warning.code}]: {warning}\n")


def _handle_render(args: argparse.Namespace) -> int:
    if args.stdout and args.output:
        raise CliError(
            "E_ARGS",
            "--stdout and --output are mutually exclusive",
            hint="Choose either --stdout or --output.",
            exit_code=2,
        )

    source, source_name, source_path = _read_input(args.input, args.text)
    config = _resolve_config(args)
    grammar, registry = _load_grammar(source, source_name)
    assembly = DiagramAssembler(registry, config).assemble()
    svg_text = assembly.document(grammar.docs)
    _emit_warnings(assembly.warnings, error_format=args.error_format)

    if args.stdout or (source_path is None and not args.output):
        sys.stdout.write(svg_text)
        if not svg_text.endswith("\n"):
            sys.stdout.write("\n")
        return 0

    output_path = Path(args.output) if args.output else source_path.with_suffix(".svg")
    _write_text(output_path, svg_text)
    print(f"Wrote {output_path}")
    return 0


def _handle_split(args: argparse.Namespace) -> int:
    source, source_name, source_path = _read_input(args.input, args.text)
    if args.directory:
        directory = Path(args.directory)
    elif source_path is not None:
        directory = source_path.with_suffix("")
    else:
        raise CliError(
            "E_ARGS",
            "split needs an output directory",
            hint="Pass -d DIRECTORY when reading from --text or stdin.",
            exit_code=2,
        )

    config = _resolve_config(args)
    _grammar, registry = _load_grammar(source, source_name)
    assembly = DiagramAssembler(registry, config).assemble()
    _emit_warnings(assembly.warnings, error_format=args.error_format)

    try:
        directory.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise CliError(
            "E_IO_WRITE",
            f"failed to create output directory: {directory}",
            hint=str(exc),
            exit_code=4,
            file=str(directory),
        )
    for name in assembly.diagrams:
        target = directory / f"{_safe_filename(name)}.svg"
        _write_text(target, assembly.svg(name))
    print(f"Wrote {len(assembly.diagrams)} diagram(s) to {directory}")
    return 0


def _handle_rules(args: argparse.Namespace) -> int:
    source, source_name, _source_path = _read_input(args.input, args.text)
    _grammar, registry = _load_grammar(source, source_name)
    for name in registry.names(args.order):
        rule = registry.lookup(name)
        print(f"{name}\t{rule.visibility.value}")
    for rule_name, ref in registry.unresolved_references():
        sys.stderr.write(f"warning[W_UNRESOLVED_REFERENCE]: rule '{rule_name}': '{ref}' is not defined\n")
    return 0


def main(argv: Optional[Iterable[str]] = None) -> int:
    raw_argv = list(argv) if argv is not None else sys.argv[1:]
    parser = _build_parser()

    if not raw_argv:
        err = CliError("E_ARGS", "missing subcommand", hint=SUBCOMMANDS_HINT, exit_code=2)
        _emit_error(err, error_format="text")
        return err.exit_code

    debug_enabled = "--debug" in raw_argv or os.getenv("RAILGRAM_DEBUG") == "1"
    if debug_enabled:
        logging.basicConfig(
            level=logging.DEBUG, stream=sys.stderr, format="%(levelname)s %(name)s: %(message)s"
        )
    error_format = "text"
    if "--error-format" in raw_argv:
        idx = raw_argv.index("--error-format")
        if idx + 1 < len(raw_argv):
            error_format = raw_argv[idx + 1]

    try:
        args = parser.parse_args(raw_argv)
        error_format = args.error_format

        if args.command == "render":
            return _handle_render(args)
        if args.command == "split":
            return _handle_split(args)
        if args.command == "rules":
            return _handle_rules(args)

        raise CliError("E_ARGS", "missing subcommand", hint=SUBCOMMANDS_HINT, exit_code=2)
    except UsageError as exc:
        err = CliError("E_ARGS", str(exc), hint=SUBCOMMANDS_HINT, exit_code=2)
        _emit_error(err, error_format=error_format)
        return err.exit_code
    except Exception as exc:  # pragma: no cover - exercised in integration tests
        err = _error_from_exception(exc)
        _emit_error(err, error_format=error_format)
        if debug_enabled:
            traceback.print_exc(file=sys.stderr)
        return err.exit_code


if __name__ == "__main__":
    raise SystemExit(main())
