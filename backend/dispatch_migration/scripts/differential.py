# Detect new, modified and deleted legacy ids per entity:
# PYTHONPATH=backend python -m dispatch_migration.scripts.differential --entities patients --since 2024-01-01 --save

from __future__ import annotations

import argparse
import sys
from datetime import datetime

from dispatch_migration.core.errors import MigrationError
from dispatch_migration.scripts.common import (
    add_entities_argument,
    add_output_argument,
    open_sessions,
    setup,
)
from dispatch_migration.services.differential import DifferentialDetector
from dispatch_migration.services.registry import parse_entities
from dispatch_migration.services.reports import render_differential


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Compare legacy ids between source and target to find records to backfill."
    )
    add_entities_argument(parser)
    add_output_argument(parser)
    parser.add_argument(
        "--since",
        type=datetime.fromisoformat,
        help="ISO timestamp; source rows updated after it count as modified",
    )
    parser.add_argument(
        "--save",
        action="store_true",
        help="Store the results in differential_analysis_results",
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
        detector = DifferentialDetector(source, target)
        results = [detector.detect(name, since=args.since) for name in names]
        if args.save:
            for result in results:
                detector.save(result)

    print(render_differential(results, args.output))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
