# Check migrated counts, duplicate legacy ids and lineage coverage:
# PYTHONPATH=backend python -m dispatch_migration.scripts.validate --entities all

from __future__ import annotations

import argparse
import sys

from dispatch_migration.core.errors import MigrationError
from dispatch_migration.scripts.common import (
    add_entities_argument,
    add_output_argument,
    open_sessions,
    setup,
)
from dispatch_migration.services.registry import parse_entities
from dispatch_migration.services.reports import render_validation
from dispatch_migration.services.validation import MigrationValidator


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Validate migrated entities.")
    add_entities_argument(parser)
    add_output_argument(parser)
    parser.add_argument(
        "--no-record",
        action="store_true",
        help="Do not write results to migration_execution_logs",
    )
    parser.add_argument("--verbose", action="store_true")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        setup(args.verbose)
        names = parse_entities(args.entities)
    except MigrationError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    with open_sessions() as (source, target):
        results = MigrationValidator(source, target).validate_all(
            names, record=not args.no_record
        )

    print(render_validation(results, args.output))
    return 0 if all(result.passed for result in results) else 1


if __name__ == "__main__":
    raise SystemExit(main())
