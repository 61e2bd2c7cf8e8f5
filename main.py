import argparse
import csv
import logging
import sys
from pathlib import Path
from typing import IO, List, Optional

import structlog

from config import Settings, get_settings, get_settings_for_environment
from csv_io import replay, write_report
from errors import LedgerError
from models import ReplaySummary
from services import get_action_processor

logger = structlog.get_logger()


def configure_logging(log_level: str = "INFO", log_format: str = "json") -> None:
    """Configure structured logging. Logs go to stderr, stdout carries the report."""
    logging.basicConfig(
        stream=sys.stderr,
        level=getattr(logging, log_level.upper(), logging.INFO),
        format="%(message)s",
        force=True,
    )

    renderer = (
        structlog.dev.ConsoleRenderer(colors=False)
        if log_format == "text"
        else structlog.processors.JSONRenderer()
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def run(input_path: Path, settings: Settings, output: IO[str]) -> ReplaySummary:
    """Replay the actions in input_path and write the final account report."""
    logger.info(
        "Reading data",
        app=settings.app_name,
        version=settings.app_version,
        input_path=str(input_path),
    )

    processor = get_action_processor(verify_transfer_owner=settings.verify_transfer_owner)
    with open(input_path, newline="", encoding="utf-8-sig") as stream:
        summary = replay(stream, processor, stop_on_error=settings.stop_on_error)

    write_report(output, processor.snapshot())

    logger.info("Replay completed", **summary.model_dump())
    return summary


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="payments-engine",
        description="Replay a CSV of transactions and print final client balances as CSV.",
    )
    p.add_argument("input", type=Path, help="Path to the input transactions CSV.")
    p.add_argument("--env", choices=["development", "production", "testing"], help="Settings preset to start from.")
    p.add_argument("--log-level", help="Override the log level (e.g. DEBUG, INFO, WARNING).")
    p.add_argument("--log-format", choices=["json", "text"], help="Override the log format.")
    p.add_argument(
        "--no-verify-owner",
        action="store_true",
        help="Allow disputes and settlements from a client other than the transfer's owner.",
    )
    p.add_argument("--fail-fast", action="store_true", help="Abort on the first rejected action.")
    return p


def resolve_settings(args: argparse.Namespace) -> Settings:
    settings = get_settings_for_environment(args.env) if args.env else get_settings()

    updates = {}
    if args.log_level:
        updates["log_level"] = args.log_level
    if args.log_format:
        updates["log_format"] = args.log_format
    if args.no_verify_owner:
        updates["verify_transfer_owner"] = False
    if args.fail_fast:
        updates["stop_on_error"] = True

    return settings.model_copy(update=updates)


def main(argv: Optional[List[str]] = None, output: Optional[IO[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = resolve_settings(args)
    configure_logging(settings.log_level, settings.log_format)

    try:
        run(args.input, settings, output if output is not None else sys.stdout)
    except OSError as e:
        logger.error("Cannot read input", input_path=str(args.input), error=str(e))
        return 1
    except (UnicodeDecodeError, csv.Error) as e:
        logger.error("Cannot parse input", input_path=str(args.input), error=str(e))
        return 1
    except LedgerError as e:
        logger.error("Replay aborted", error=str(e), error_code=e.error_code)
        return 1

    return 0


def cli() -> None:
    sys.exit(main())


if __name__ == "__main__":
    cli()
