"""
Metrix CLI entry point.
"""

import argparse
import asyncio
import logging
import sys
from typing import Dict, List, Optional

from metrix import __version__
from metrix.commands.setup import setup_command
from metrix.commands.status import status_command
from metrix.config import ExportFormat, MetrixConfig, parse_header, validate_endpoint
from metrix.exceptions import ConfigurationError
from metrix.logging_config import default_log_dir
from metrix.logging_config import setup_logging as setup_full_logging
from metrix.telemetry.service import run_agent


def setup_logging(verbose: bool = False) -> None:
    """Configure console logging plus rotating files when the state dir is writable."""
    console_level = "DEBUG" if verbose else "INFO"

    try:
        setup_full_logging(
            log_dir=default_log_dir(), console_level=console_level, file_level="DEBUG"
        )
    except OSError:
        # Fall back to basic logging if file logging fails
        logging.basicConfig(
            level=getattr(logging, console_level),
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            handlers=[logging.StreamHandler(sys.stderr)],
        )


def _add_run_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--interval", "-i", help="Collection interval in seconds (default: 10)")
    parser.add_argument("--endpoint", "-e", help="OTLP endpoint URL")
    parser.add_argument(
        "--header",
        "-H",
        action="append",
        metavar="KEY=VALUE",
        help="Add a request header (can be repeated)",
    )
    parser.add_argument("--config", "-c", help="Path to configuration file")
    parser.add_argument(
        "--format",
        "-f",
        choices=["json", "binary", "protobuf"],
        help="Wire encoding (default: json)",
    )
    parser.add_argument(
        "--dry-run",
        "-d",
        action="store_true",
        help="Print metrics to stdout instead of exporting",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Write a replayable curl command for every export",
    )
    parser.add_argument("--once", action="store_true", help="Run a single cycle and exit")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="metrix", description="Metrix - host metrics agent exporting OTLP"
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    _add_run_arguments(parser)

    subparsers = parser.add_subparsers(dest="command")
    run_parser = subparsers.add_parser(
        "run", help="Collect and export metrics (default)", argument_default=argparse.SUPPRESS
    )
    _add_run_arguments(run_parser)
    subparsers.add_parser("setup", help="Interactively write the configuration file")
    subparsers.add_parser("status", help="Show service status and collector availability")

    return parser


def parse_interval(text: str) -> int:
    """
    Parse a positive integer interval.

    Raises:
        ValueError: If the value is not a positive integer
    """
    try:
        value = int(text)
    except ValueError:
        value = 0
    if value <= 0:
        raise ValueError(f'Invalid interval: "{text}". Must be a positive integer.')
    return value


def parse_header_args(values: Optional[List[str]]) -> Dict[str, str]:
    """
    Parse repeated -H KEY=VALUE arguments; later values win.

    Raises:
        ValueError: On the first malformed header
    """
    headers: Dict[str, str] = {}
    for text in values or []:
        key, value = parse_header(text)
        headers[key] = value
    return headers


def resolve_config(args: argparse.Namespace) -> MetrixConfig:
    """
    Validate CLI values and merge them over the configuration file.

    Raises:
        ValueError: If a CLI value is malformed
        ConfigurationError: If the file or the merged result is invalid
    """
    interval = parse_interval(args.interval) if args.interval is not None else None
    if args.endpoint is not None:
        validate_endpoint(args.endpoint)
    headers = parse_header_args(args.header)
    export_format = ExportFormat.BINARY if args.format == "protobuf" else args.format

    return MetrixConfig.from_file(args.config).with_overrides(
        interval=interval,
        endpoint=args.endpoint,
        headers=headers,
        export_format=export_format,
    )


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point."""
    args = build_parser().parse_args(argv)

    if args.command == "setup":
        return setup_command()

    setup_logging(getattr(args, "verbose", False))
    logger = logging.getLogger(__name__)

    if args.command == "status":
        return asyncio.run(status_command())

    try:
        config = resolve_config(args)
    except ValueError as e:
        print(str(e), file=sys.stderr)
        return 1
    except ConfigurationError as e:
        print(f"Configuration invalid: {e}", file=sys.stderr)
        return 1

    try:
        return asyncio.run(
            run_agent(config, dry_run=args.dry_run, debug=args.debug, once=args.once)
        )
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 0
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        print(f"Error running metrix: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
