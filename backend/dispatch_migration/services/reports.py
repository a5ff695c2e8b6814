"""Text rendering of analysis and run results for the console."""

from __future__ import annotations

import csv
import io
import json
from collections.abc import Sequence
from typing import Any

from pydantic_core import to_jsonable_python

from dispatch_migration.services.baseline import BaselineReport
from dispatch_migration.services.differential import DifferentialResult
from dispatch_migration.services.executor import MigrationSummary
from dispatch_migration.services.validation import ValidationResult

OUTPUT_FORMATS = ("table", "json", "csv")


def _format_table(headers: Sequence[str], rows: Sequence[Sequence[Any]]) -> str:
    cells = [[str(value) for value in row] for row in rows]
    widths = [len(h) for h in headers]
    for row in cells:
        for index, value in enumerate(row):
            widths[index] = max(widths[index], len(value))
    lines = [
        "  ".join(h.ljust(widths[i]) for i, h in enumerate(headers)).rstrip(),
        "  ".join("-" * w for w in widths),
    ]
    for row in cells:
        lines.append("  ".join(v.ljust(widths[i]) for i, v in enumerate(row)).rstrip())
    return "\n".join(lines)


def _format_csv(headers: Sequence[str], rows: Sequence[Sequence[Any]]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(headers)
    writer.writerows(rows)
    return buffer.getvalue().rstrip("\n")


def _format_json(payload: Any) -> str:
    return json.dumps(to_jsonable_python(payload), indent=2)


def _timestamp(value) -> str:
    return value.isoformat() if value else "never"


def render_baseline(report: BaselineReport, fmt: str = "table", verbose: bool = False) -> str:
    headers = ["Entity", "Source", "Destination", "Gap", "Status", "Last Migration"]
    rows = [
        [
            e.entity,
            e.source_count,
            e.destination_count,
            e.record_gap,
            e.status,
            _timestamp(e.last_migration_at),
        ]
        for e in report.entities
    ]
    summary = report.summary

    if fmt == "json":
        return _format_json(
            {
                "analysis_id": report.analysis_id,
                "timestamp": report.generated_at,
                "entity_summary": [
                    {
                        "entity": e.entity,
                        "source_count": e.source_count,
                        "destination_count": e.destination_count,
                        "record_gap": e.record_gap,
                        "gap_percentage": e.gap_percentage,
                        "status": e.status,
                        "last_migration_at": e.last_migration_at,
                    }
                    for e in report.entities
                ],
                "mapping_validation": [
                    {
                        "entity": v.entity,
                        "is_valid": v.is_valid,
                        "missing_columns": v.missing_columns,
                        "orphaned_columns": v.orphaned_columns,
                    }
                    for v in report.mapping_validation
                ],
                "overall_status": report.overall_status,
                "total_source_records": summary.total_source_records,
                "total_destination_records": summary.total_destination_records,
                "overall_gap": summary.overall_gap,
                "average_gap_percentage": summary.average_gap_percentage,
                "recommendations": report.recommendations,
                "duration_ms": report.duration_ms,
            }
        )
    if fmt == "csv":
        rows.append(
            [
                "TOTAL",
                summary.total_source_records,
                summary.total_destination_records,
                summary.overall_gap,
                report.overall_status,
                "",
            ]
        )
        return _format_csv(headers, rows)

    lines = ["Entity Analysis Summary", "", _format_table(headers, rows), ""]
    lines.append(f"Overall status: {report.overall_status}")
    lines.append(f"Records behind: {summary.overall_gap}")
    lines.append(
        f"Total records: {summary.total_source_records} source, "
        f"{summary.total_destination_records} destination"
    )
    if verbose:
        lines.append(f"Average gap: {summary.average_gap_percentage}%")
        lines.append(f"Analysis duration: {report.duration_ms}ms")
        for e in report.entities:
            lines.append(
                f"- {e.entity}: {e.source_count} -> {e.destination_count} "
                f"({e.gap_percentage}% gap), data available: {'yes' if e.has_data else 'no'}"
            )
    issues = [v for v in report.mapping_validation if not v.is_valid]
    if issues:
        lines.append("")
        lines.append("Mapping validation issues:")
        for v in issues:
            lines.append(
                f"- {v.entity}: {len(v.missing_columns)} missing columns "
                f"({', '.join(v.missing_columns)}), {len(v.orphaned_columns)} orphaned"
            )
    lines.append("")
    lines.append("Recommendations:")
    for index, recommendation in enumerate(report.recommendations, start=1):
        lines.append(f"  {index}. {recommendation}")
    return "\n".join(lines)


def render_differential(results: list[DifferentialResult], fmt: str = "table") -> str:
    headers = ["Entity", "Source", "Destination", "New", "Modified", "Deleted"]
    rows = [
        [
            r.entity,
            r.source_count,
            r.destination_count,
            r.new_count,
            r.modified_count,
            r.deleted_count,
        ]
        for r in results
    ]
    if fmt == "json":
        return _format_json(
            [
                {
                    "entity": r.entity,
                    "source_count": r.source_count,
                    "destination_count": r.destination_count,
                    "new_ids": r.new_ids,
                    "modified_ids": r.modified_ids,
                    "deleted_ids": r.deleted_ids,
                    "since": r.since,
                    "analyzed_at": r.analyzed_at,
                }
                for r in results
            ]
        )
    if fmt == "csv":
        return _format_csv(headers, rows)
    return _format_table(headers, rows)


def render_migration(summary: MigrationSummary, fmt: str = "table") -> str:
    headers = [
        "Entity",
        "Processed",
        "Inserted",
        "Existing",
        "Skipped",
        "Errors",
        "Batches",
        "Seconds",
    ]
    rows = [
        [
            s.entity,
            s.processed,
            s.inserted,
            s.skipped_existing,
            s.skipped,
            s.errors if s.succeeded else "FAILED",
            s.batches,
            s.duration,
        ]
        for s in summary.entities
    ]
    if fmt == "json":
        return _format_json(
            {
                "run_id": summary.run_id,
                "status": summary.status,
                "dry_run": summary.dry_run,
                "duration": summary.duration,
                "entities": [s.as_dict() for s in summary.entities],
            }
        )
    if fmt == "csv":
        return _format_csv(headers, rows)

    title = f"Migration run {summary.run_id} ({summary.status})"
    if summary.dry_run:
        title += " [dry run, nothing written]"
    lines = [title, "", _format_table(headers, rows)]
    for s in summary.entities:
        if s.error:
            lines.append(f"- {s.entity} failed: {s.error}")
        for reason, count in sorted(s.skip_reasons.items()):
            lines.append(f"- {s.entity} skipped {count}: {reason}")
    return "\n".join(lines)


def render_validation(results: list[ValidationResult], fmt: str = "table") -> str:
    headers = ["Entity", "Source", "Migrated", "Missing", "Duplicates", "Lineage", "Result"]
    rows = [
        [
            r.entity,
            r.source_count,
            r.migrated_count,
            r.missing_count,
            len(r.duplicate_legacy_ids),
            r.lineage_count,
            "PASS" if r.passed else "FAIL",
        ]
        for r in results
    ]
    if fmt == "json":
        return _format_json(
            [
                {
                    "entity": r.entity,
                    "source_count": r.source_count,
                    "migrated_count": r.migrated_count,
                    "missing_count": r.missing_count,
                    "duplicate_legacy_ids": r.duplicate_legacy_ids,
                    "lineage_count": r.lineage_count,
                    "passed": r.passed,
                }
                for r in results
            ]
        )
    if fmt == "csv":
        return _format_csv(headers, rows)
    return _format_table(headers, rows)
