"""Link preview CLI with on-demand command loading."""

from __future__ import annotations

import argparse
import importlib
import logging
import sys
from collections.abc import Callable

logger = logging.getLogger(__name__)

CommandHandler = Callable[[argparse.Namespace], int]

# command name -> module under linkpreview.cli.commands
COMMAND_MODULES: dict[str, str] = {
    "extract-url": "extract_url",
    "check-quality": "check_quality",
    "add-link": "links",
    "refresh": "links",
}


def create_parser() -> argparse.ArgumentParser:
    """Create minimal parser - commands loaded on-demand in main()."""
    parser = argparse.ArgumentParser(
        prog="link-preview",
        description="Extract and cache rich link-preview metadata",
        add_help=False,
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        help="Logging level (e.g. INFO, DEBUG)",
    )
    parser.add_argument(
        "command",
        nargs="?",
        help="Command to run (use 'COMMAND --help' for command-specific help)",
    )
    return parser


def _load_command_parser(command: str) -> tuple[Callable, CommandHandler] | None:
    """Load parser and handler for a specific command on-demand.

    Returns: (add_parser_func, handle_command_func) or None if not found
    """
    module_name = COMMAND_MODULES.get(command)
    if not module_name:
        return None

    try:
        module = importlib.import_module(f"linkpreview.cli.commands.{module_name}")
    except ImportError as e:
        logger.warning(f"Failed to load command '{command}': {e}")
        return None

    stem = command.replace("-", "_")
    parser_func = getattr(module, f"add_{stem}_parser", None)
    handler_func = getattr(module, f"handle_{stem}_command", None)
    if parser_func and handler_func:
        return parser_func, handler_func
    return None


def main(
    argv: list[str] | None = None,
    *,
    setup_logging_func: Callable[[str], None] | None = None,
) -> int:
    """Main CLI entry point with on-demand command loading."""
    parser = create_parser()
    args, remaining = parser.parse_known_args(argv)

    log_level = getattr(args, "log_level", "WARNING") or "WARNING"
    if setup_logging_func is None:
        from .context import setup_logging as default_setup_logging

        setup_logging_func = default_setup_logging

    setup_logging_func(log_level)

    command = args.command
    if not command:
        print("Available commands:", file=sys.stderr)
        print("  extract-url    - Extract preview metadata for one URL", file=sys.stderr)
        print("  check-quality  - Extract and report whether metadata is weak", file=sys.stderr)
        print("  add-link       - Register a short code in the link database", file=sys.stderr)
        print("  refresh        - Force re-extraction for a stored short code", file=sys.stderr)
        print("Use: link-preview COMMAND --help for more info", file=sys.stderr)
        return 1

    result = _load_command_parser(command)
    if result is None:
        print(f"Unknown command: {command}", file=sys.stderr)
        return 1

    add_parser_func, handle_func = result

    full_parser = argparse.ArgumentParser(
        prog=f"link-preview {command}",
        description=f"Run {command} command",
    )
    full_parser.add_argument("--log-level", default=log_level)
    subparsers = full_parser.add_subparsers(dest="command")
    add_parser_func(subparsers)

    full_args = full_parser.parse_args([command] + remaining)
    return handle_func(full_args)


if __name__ == "__main__":
    sys.exit(main())
