# Show recent migration runs, pending checkpoints and execution logs:
# PYTHONPATH=backend python -m dispatch_migration.scripts.status --logs 20

from __future__ import annotations

import argparse
import sys

from dispatch_migration.core.errors import MigrationError
from dispatch_migration.scripts.common import open_sessions, setup
from dispatch_migration.services import checkpoints, runs


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Show migration status.")
    parser.add_argument("--limit", type=int, default=10, help="Runs to show")
    parser.add_argument("--logs", type=int, default=0, help="Execution log entries to show")
    parser.add_argument("--entity", help="Only show logs for this entity")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        setup()
    except MigrationError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    with open_sessions() as (_, target):
        latest = runs.latest_runs(target, limit=args.limit)
        pending = checkpoints.list_checkpoints(target)
        logs = (
            runs.recent_logs(target, limit=args.logs, entity=args.entity)
            if args.logs
            else []
        )

    print("Runs:")
    if not latest:
        print("- none")
    for run in latest:
        finished = run.completed_at.isoformat() if run.completed_at else "-"
        print(
            f"- {run.id} {run.status} started {run.started_at.isoformat()} "
            f"finished {finished} inserted {run.records_inserted} "
            f"failed {run.records_failed} entities {', '.join(run.entities)}"
        )
        if run.error_message:
            print(f"  error: {run.error_message}")

    print("Checkpoints:")
    if not pending:
        print("- none")
    for checkpoint in pending:
        print(
            f"- {checkpoint.entity_type}: last id {checkpoint.last_processed_id} "
            f"(batch {checkpoint.batch_number}, {checkpoint.records_processed} processed)"
        )

    if args.logs:
        print("Logs:")
        for entry in logs:
            entity = entry.entity_type or "-"
            message = f" {entry.message}" if entry.message else ""
            print(
                f"- {entry.created_at.isoformat()} {entry.operation_type} {entity} "
                f"{entry.status} processed {entry.records_processed}{message}"
            )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
