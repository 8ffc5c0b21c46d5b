"""linecalc CLI - evaluate calculator documents from the command line.

Usage:
    linecalc eval [--input PATH] [--format text|json] [--no-live] [--log-level LEVEL]
    linecalc units [--category NAME]

Each text line of the input is one document line. Settings are read from
LINECALC_* environment variables.

Exit codes:
    0: Every line evaluated without error
    1: At least one line produced an error result / Internal error
    2: Usage, input or settings error
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any

from linecalc.config import SettingsConfigError, load_settings_from_env
from linecalc.document.models import LineRecord
from linecalc.document.orchestrator import DocumentOrchestrator
from linecalc.units.registry import UnitRegistry

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


def _output_json(data: dict[str, Any]) -> None:
    """Output JSON to stdout with deterministic ordering."""
    print(json.dumps(data, sort_keys=True, indent=2))


def _make_error_result(code: str, message: str) -> dict[str, Any]:
    return {"error": {"code": code, "message": message}}


def _read_lines(input_path: str | None) -> tuple[list[str] | None, str | None]:
    """Read document lines from a file or stdin.

    Returns:
        Tuple of (lines, error_message). If error_message is not None, lines
        should be ignored.
    """
    try:
        if input_path:
            with open(input_path, encoding="utf-8") as f:
                content = f.read()
        else:
            content = sys.stdin.read()
    except FileNotFoundError:
        return None, f"File not found: {input_path}"
    except OSError as e:
        return None, f"Cannot read input: {e}"
    return content.splitlines(), None


def cmd_eval(args: argparse.Namespace) -> int:
    """Evaluate a document.

    Exit codes:
        0: no line errored
        1: at least one error result
        2: unreadable input or invalid settings
    """
    try:
        settings = load_settings_from_env()
        if args.no_live:
            settings = settings.with_overrides(live_result_enabled=False)
    except SettingsConfigError as e:
        _output_json(_make_error_result("INVALID_SETTINGS", str(e)))
        return 2

    lines, error_msg = _read_lines(args.input)
    if error_msg is not None or lines is None:
        _output_json(_make_error_result("INVALID_INPUT", error_msg or "No input"))
        return 2

    orchestrator = DocumentOrchestrator()
    result = orchestrator.run_pass(LineRecord.from_texts(lines), settings)

    if args.format == "json":
        payload = result.to_dict(settings)
        payload["live_metrics"] = orchestrator.metrics.to_dict()
        _output_json(payload)
    else:
        for number in sorted(result.results):
            print(f"{number}: {result.results[number].display_text}")

    return 1 if result.has_errors else 0


def cmd_units(args: argparse.Namespace) -> int:
    """List built-in units, optionally for one category.

    Exit codes:
        0: listed
        2: unknown category
    """
    registry = UnitRegistry.get_instance()
    if args.category is not None and args.category not in registry.categories():
        _output_json(
            _make_error_result(
                "INVALID_CATEGORY",
                f"Unknown category: '{args.category}'. Valid options: {registry.categories()}",
            )
        )
        return 2

    units = [
        {
            "symbol": unit.symbol,
            "name": unit.name,
            "category": unit.category,
            "aliases": list(unit.aliases),
            "prefixable": unit.prefixable,
        }
        for unit in registry.list_units(args.category)
    ]
    _output_json({"count": len(units), "units": units})
    return 0


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="linecalc",
        description="linecalc - unit-aware line calculator",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    eval_parser = subparsers.add_parser("eval", help="Evaluate a document, one line per text line")
    eval_parser.add_argument(
        "--input",
        required=False,
        default=None,
        metavar="PATH",
        help="Path to the document (reads from stdin if omitted)",
    )
    eval_parser.add_argument(
        "--format",
        choices=("text", "json"),
        default="text",
        help="Output format (default: text)",
    )
    eval_parser.add_argument(
        "--no-live",
        action="store_true",
        default=False,
        help="Only evaluate lines with an explicit => trigger",
    )
    eval_parser.add_argument(
        "--log-level",
        choices=LOG_LEVELS,
        default="WARNING",
        help="Logging level written to stderr (default: WARNING)",
    )

    units_parser = subparsers.add_parser("units", help="List built-in units")
    units_parser.add_argument(
        "--category",
        default=None,
        help="Only list units in this category (e.g. length, mass)",
    )

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point.

    Exit codes:
        0: Success
        1: Error results / Internal error (unexpected)
        2: Usage, input or settings error
    """
    parser = create_parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit as e:
        return 0 if e.code in (0, None) else 2

    try:
        if args.command is None:
            parser.print_help()
            return 0

        if args.command == "eval":
            logging.basicConfig(
                level=getattr(logging, args.log_level),
                format="%(levelname)s %(name)s: %(message)s",
                stream=sys.stderr,
            )
            return cmd_eval(args)

        if args.command == "units":
            return cmd_units(args)

        return 0

    except Exception as e:
        # Unexpected errors return exit code 1
        _output_json(_make_error_result("INTERNAL_ERROR", str(e)))
        return 1


if __name__ == "__main__":
    sys.exit(main())
