#!/usr/bin/env python3
"""
procpipe - Main Entry Point

Runs an external command under a process supervisor and relays its output.
"""

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from procpipe import __version__
from procpipe.console import echo, sample_runner
from procpipe.utils.config import Config, parse_size
from procpipe.utils.error_handler import LaunchError, ProcPipeError
from procpipe.utils.logging_setup import get_logger, setup_logging

LAUNCH_FAILED_EXIT_CODE = 127


def load_config(config_path: Optional[str] = None) -> Config:
    """Load configuration from file, or defaults when no file is given"""
    if config_path is None:
        return Config.default()

    config_file = Path(config_path)
    if not config_file.exists():
        print(f"Configuration file not found: {config_path}", file=sys.stderr)
        sys.exit(2)

    return Config.load_from_file(config_file)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="procpipe",
        description="procpipe - run a command and relay its output and error lines"
    )
    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"procpipe {__version__}"
    )
    subparsers = parser.add_subparsers(dest="action", required=True)

    run_parser = subparsers.add_parser("run", help="Run a command under supervision")
    run_parser.add_argument(
        "--config", "-c",
        help="Configuration file path",
        default=None
    )
    run_parser.add_argument(
        "--encoding", "-e",
        help="Encoding of the command's streams (e.g. cp850, cp1252, utf-16-le, utf-8)"
    )
    run_parser.add_argument(
        "--exit-timeout",
        type=float,
        help="Seconds to wait for the command to exit after its input is closed"
    )
    run_parser.add_argument(
        "--strict",
        action="store_true",
        help="Fail when an output stream cannot be read"
    )
    run_parser.add_argument(
        "--log-level",
        help="Logging level (DEBUG, INFO, WARNING, ERROR)"
    )
    run_parser.add_argument(
        "--stdin",
        action="store_true",
        help="Forward this program's input to the command"
    )
    run_parser.add_argument(
        "--stats",
        action="store_true",
        help="Log resource usage of the command after it starts"
    )
    run_parser.add_argument("command", nargs=argparse.REMAINDER, help="Command and arguments")

    echo_parser = subparsers.add_parser("echo", help="Print each argument as [arg]")
    echo_parser.add_argument("args", nargs=argparse.REMAINDER)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point"""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.action == "echo":
        return echo.main(args.args)

    command = args.command
    if command and command[0] == "--":
        command = command[1:]
    if not command:
        parser.error("run: a command is required")

    try:
        config = load_config(args.config)
        if args.encoding:
            config.supervisor.encoding = args.encoding
        if args.exit_timeout is not None:
            config.supervisor.exit_timeout = args.exit_timeout
        if args.strict:
            config.supervisor.strict = True
        if args.log_level:
            config.logging.level = args.log_level
        config.validate()
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    setup_logging(
        level=config.logging.level,
        log_file=config.logging.file,
        max_bytes=parse_size(config.logging.max_size),
        backup_count=config.logging.backup_count
    )
    logger = get_logger('main')

    try:
        return sample_runner.run(
            command,
            config=config.supervisor,
            input_stream=sys.stdin if args.stdin else None,
            show_stats=args.stats
        )
    except LaunchError as e:
        logger.error(str(e))
        return LAUNCH_FAILED_EXIT_CODE
    except ProcPipeError as e:
        logger.error(str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())
