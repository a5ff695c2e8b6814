from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from dispatch_migration.core.clock import utc_now
from dispatch_migration.models import (
    LogStatus,
    MigrationExecutionLog,
    MigrationRun,
    OperationType,
    RunStatus,
)


def create_run(
    session: Session,
    entities: list[str],
    batch_size: int,
    dry_run: bool = False,
    writer: str = "sql",
) -> MigrationRun:
    run = MigrationRun(
        status=RunStatus.PENDING.value,
        entities=list(entities),
        dry_run=dry_run,
        writer=writer,
        batch_size=batch_size,
        records_processed=0,
        records_inserted=0,
        records_skipped=0,
        records_failed=0,
        started_at=utc_now(),
    )
    session.add(run)
    session.commit()
    return run


def mark_running(session: Session, run: MigrationRun) -> None:
    run.status = RunStatus.RUNNING.value
    run.started_at = utc_now()
    session.commit()


def finish_run(
    session: Session,
    run: MigrationRun,
    entity_stats: dict[str, dict[str, Any]],
    error_message: str | None = None,
) -> MigrationRun:
    run.entity_stats = entity_stats
    run.records_processed = sum(s.get("processed", 0) for s in entity_stats.values())
    run.records_inserted = sum(s.get("inserted", 0) for s in entity_stats.values())
    run.records_skipped = sum(
        s.get("skipped", 0) + s.get("skipped_existing", 0) for s in entity_stats.values()
    )
    run.records_failed = sum(s.get("errors", 0) for s in entity_stats.values())
    run.error_message = error_message
    run.status = (RunStatus.FAILED if error_message else RunStatus.COMPLETED).value
    run.completed_at = utc_now()
    session.commit()
    return run


def get_run(session: Session, run_id: uuid.UUID) -> MigrationRun | None:
    return session.get(MigrationRun, run_id)


def latest_runs(session: Session, limit: int = 10) -> list[MigrationRun]:
    return list(
        session.execute(
            select(MigrationRun).order_by(MigrationRun.started_at.desc()).limit(limit)
        ).scalars()
    )


def log_operation(
    session: Session,
    operation_type: OperationType,
    status: LogStatus,
    entity: str | None = None,
    run_id: uuid.UUID | None = None,
    records_processed: int = 0,
    records_failed: int = 0,
    duration_ms: int | None = None,
    message: str | None = None,
    details: dict[str, Any] | None = None,
) -> MigrationExecutionLog:
    entry = MigrationExecutionLog(
        run_id=run_id,
        entity_type=entity,
        operation_type=operation_type.value,
        status=status.value,
        records_processed=records_processed,
        records_failed=records_failed,
        duration_ms=duration_ms,
        message=message,
        details=details,
    )
    session.add(entry)
    session.commit()
    return entry


def recent_logs(
    session: Session,
    limit: int = 50,
    entity: str | None = None,
    run_id: uuid.UUID | None = None,
) -> list[MigrationExecutionLog]:
    stmt = select(MigrationExecutionLog)
    if entity:
        stmt = stmt.where(MigrationExecutionLog.entity_type == entity)
    if run_id:
        stmt = stmt.where(MigrationExecutionLog.run_id == run_id)
    stmt = stmt.order_by(
        MigrationExecutionLog.created_at.desc(), MigrationExecutionLog.id.desc()
    ).limit(limit)
    return list(session.execute(stmt).scalars())
