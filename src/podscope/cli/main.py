"""Podscope command line entry point."""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Sequence

from podscope import __version__
from podscope.cli.config import handle_config_command, register_config_parser
from podscope.cli.history import handle_history_command, register_history_parser
from podscope.cli.queries import handle_queries_command, register_queries_parser
from podscope.cli.queue import handle_queue_command, register_queue_parser
from podscope.config.settings import get_settings
from podscope.core.errors import ExitCode, main_with_error_handling
from podscope.logging import bind_command_context, configure_logging

HANDLERS = {
    "queries": handle_queries_command,
    "queue": handle_queue_command,
    "history": handle_history_command,
    "config": handle_config_command,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="podscope",
        description="Query library, job queues and configuration history for the Podscope dashboard",
    )
    parser.add_argument("--version", action="version", version=f"podscope {__version__}")
    parser.add_argument("--config", "-c", help="Dashboard configuration file")
    parser.add_argument("--debug", action="store_true", help="Verbose logging and tracebacks")
    subparsers = parser.add_subparsers(dest="command")

    register_queries_parser(subparsers)
    register_queue_parser(subparsers)
    register_history_parser(subparsers)
    register_config_parser(subparsers)

    return parser


def _dispatch(args: argparse.Namespace) -> int:
    return HANDLERS[args.command](args)


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    debug = args.debug or get_settings().debug
    configure_logging(
        logging.DEBUG if debug else get_settings().log_level.upper(),
        json_output=False,
    )

    if args.command is None:
        parser.print_help()
        return ExitCode.WARNING

    bind_command_context(command=args.command, config=args.config)

    dispatch = main_with_error_handling(show_traceback=debug)(_dispatch)
    return int(dispatch(args))


if __name__ == "__main__":
    sys.exit(main())
