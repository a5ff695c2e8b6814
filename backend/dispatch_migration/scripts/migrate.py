# Run entity migrations in dependency order:
# PYTHONPATH=backend python -m dispatch_migration.scripts.migrate --entities offices,doctors --batch-size 500
# PYTHONPATH=backend python -m dispatch_migration.scripts.migrate --resume

from __future__ import annotations

import argparse
import sys

from dispatch_migration.core.config import settings
from dispatch_migration.core.errors import ConfigurationError, MigrationError
from dispatch_migration.models import RunStatus
from dispatch_migration.scripts.common import (
    add_entities_argument,
    add_output_argument,
    batch_size,
    open_sessions,
    setup,
)
from dispatch_migration.services.executor import MigrationExecutor
from dispatch_migration.services.registry import parse_entities
from dispatch_migration.services.reports import render_migration
from dispatch_migration.services.supabase import SupabaseRestClient
from dispatch_migration.services.writers import RestWriter, SqlWriter


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Copy missing legacy records into the target database."
    )
    add_entities_argument(parser)
    add_output_argument(parser)
    parser.add_argument("--batch-size", type=batch_size, default=settings.batch_size)
    parser.add_argument(
        "--delay-ms",
        type=int,
        default=settings.batch_delay_ms,
        help="Pause between batches in milliseconds",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Read and transform without writing target rows",
    )
    parser.add_argument(
        "--resume",
        action="store_true",
        help="Continue each entity after its last checkpoint",
    )
    parser.add_argument(
        "--writer",
        choices=("sql", "rest"),
        default="sql",
        help="Write through SQLAlchemy (default) or the Supabase REST API",
    )
    parser.add_argument("--verbose", action="store_true")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        setup(args.verbose)
        names = parse_entities(args.entities)
        if args.delay_ms < 0:
            raise ConfigurationError(["--delay-ms must not be negative"])
        if args.writer == "rest" and not settings.rest_enabled:
            raise ConfigurationError(
                ["--writer rest needs SUPABASE_URL and SUPABASE_SERVICE_ROLE"]
            )
    except MigrationError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    rest_client = None
    with open_sessions() as (source, target):
        if args.writer == "rest":
            rest_client = SupabaseRestClient(
                settings.supabase_url, settings.supabase_service_role
            )
            writer = RestWriter(rest_client)
        else:
            writer = SqlWriter(target)
        try:
            executor = MigrationExecutor(
                source,
                target,
                writer=writer,
                batch_size=args.batch_size,
                delay_ms=args.delay_ms,
                dry_run=args.dry_run,
            )
            summary = executor.run(names, resume=args.resume)
        finally:
            if rest_client is not None:
                rest_client.close()

    print(render_migration(summary, args.output))
    return 0 if summary.status == RunStatus.COMPLETED.value else 1


if __name__ == "__main__":
    raise SystemExit(main())
