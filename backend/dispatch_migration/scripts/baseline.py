# Compare legacy and target record counts per entity:
# PYTHONPATH=backend python -m dispatch_migration.scripts.baseline --entities offices,doctors --output json

from __future__ import annotations

import argparse
import sys
from collections.abc import Callable
from contextlib import ExitStack

from dispatch_migration.core.errors import MigrationError
from dispatch_migration.scripts.common import (
    add_entities_argument,
    add_output_argument,
    open_sessions,
    setup,
)
from dispatch_migration.services.baseline import BaselineAnalyzer, ConnectionCheck
from dispatch_migration.services.registry import parse_entities
from dispatch_migration.services.reports import render_baseline

EXIT_OK = 0
EXIT_INVALID = 1
EXIT_CONNECTION = 2
EXIT_CRITICAL = 3


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description=(
            "Establish the migration baseline: record counts, gaps and optional "
            "schema mapping checks per entity."
        )
    )
    add_entities_argument(parser)
    add_output_argument(parser)
    parser.add_argument(
        "--include-mappings",
        action="store_true",
        help="Check source and target columns against the entity mappings",
    )
    parser.add_argument("--verbose", action="store_true", help="Show detailed analysis")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Only test connections and list the entities that would be analyzed",
    )
    return parser


def _connections_ok(checks: list[ConnectionCheck], echo: bool) -> bool:
    ok = True
    for check in checks:
        if check.ok:
            if echo:
                print(f"- {check.name} database connected ({check.latency_ms}ms)")
        else:
            ok = False
            print(f"- {check.name} database unreachable: {check.error}", file=sys.stderr)
    return ok


def main(
    argv: list[str] | None = None,
    analyzer_factory: Callable[[], BaselineAnalyzer] | None = None,
) -> int:
    args = build_parser().parse_args(argv)
    try:
        setup(args.verbose)
        names = parse_entities(args.entities)
    except MigrationError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_INVALID

    with ExitStack() as stack:
        if analyzer_factory is None:
            source, target = stack.enter_context(open_sessions())
            analyzer = BaselineAnalyzer(source, target)
        else:
            analyzer = analyzer_factory()

        if args.dry_run:
            print("Dry run: testing connections and configuration")
            if not _connections_ok(analyzer.test_connections(), echo=True):
                return EXIT_CONNECTION
            print(f"Entities: {', '.join(names)}")
            print("Configuration and connections verified")
            return EXIT_OK

        if not _connections_ok(analyzer.test_connections(), echo=False):
            return EXIT_CONNECTION
        report = analyzer.generate_report(names, include_mappings=args.include_mappings)

    print(render_baseline(report, args.output, verbose=args.verbose))
    if report.overall_status == "critical_issues":
        return EXIT_CRITICAL
    return EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())
