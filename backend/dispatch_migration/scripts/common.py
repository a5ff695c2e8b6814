from __future__ import annotations

import argparse
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy.orm import Session

from dispatch_migration.core.config import MAX_BATCH_SIZE, settings
from dispatch_migration.core.errors import ConfigurationError
from dispatch_migration.core.logging import configure_logging
from dispatch_migration.services.reports import OUTPUT_FORMATS


def entity_list(value: str) -> list[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


def batch_size(value: str) -> int:
    size = int(value)
    if size < 1 or size > MAX_BATCH_SIZE:
        raise argparse.ArgumentTypeError(f"batch size must be between 1 and {MAX_BATCH_SIZE}")
    return size


def add_entities_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--entities",
        type=entity_list,
        default=["all"],
        help="Comma separated entities (default: all)",
    )


def add_output_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--output",
        choices=OUTPUT_FORMATS,
        default="table",
        help="Output format (default: table)",
    )


def setup(verbose: bool = False) -> None:
    """Configure logging and fail fast on invalid settings."""
    configure_logging("DEBUG" if verbose else settings.log_level, settings.log_json)
    problems = settings.validate()
    if problems:
        raise ConfigurationError(problems)


@contextmanager
def open_sessions() -> Iterator[tuple[Session, Session]]:
    from dispatch_migration.db.session import SourceSession, TargetSession

    source = SourceSession()
    target = TargetSession()
    try:
        yield source, target
    finally:
        source.close()
        target.close()
