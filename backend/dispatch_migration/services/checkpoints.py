from __future__ import annotations

import uuid

import structlog
from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from dispatch_migration.models import MigrationCheckpoint

logger = structlog.get_logger(__name__)


def save_checkpoint(
    session: Session,
    entity: str,
    last_processed_id: int,
    batch_number: int,
    records_processed: int,
    records_inserted: int,
    records_failed: int,
    run_id: uuid.UUID | None = None,
) -> MigrationCheckpoint:
    """Stage a checkpoint in ``session``; it is committed with the batch."""
    checkpoint = MigrationCheckpoint(
        entity_type=entity,
        run_id=run_id,
        last_processed_id=last_processed_id,
        batch_number=batch_number,
        records_processed=records_processed,
        records_inserted=records_inserted,
        records_failed=records_failed,
    )
    session.add(checkpoint)
    return checkpoint


def load_checkpoint(session: Session, entity: str) -> MigrationCheckpoint | None:
    return session.execute(
        select(MigrationCheckpoint)
        .where(MigrationCheckpoint.entity_type == entity)
        .order_by(
            MigrationCheckpoint.last_processed_id.desc(),
            MigrationCheckpoint.id.desc(),
        )
        .limit(1)
    ).scalar_one_or_none()


def clear_checkpoints(session: Session, entity: str) -> int:
    result = session.execute(
        delete(MigrationCheckpoint).where(MigrationCheckpoint.entity_type == entity)
    )
    session.commit()
    if result.rowcount:
        logger.info("checkpoints_cleared", entity=entity, count=result.rowcount)
    return result.rowcount or 0


def list_checkpoints(session: Session) -> list[MigrationCheckpoint]:
    return list(
        session.execute(
            select(MigrationCheckpoint).order_by(
                MigrationCheckpoint.entity_type, MigrationCheckpoint.created_at
            )
        ).scalars()
    )
