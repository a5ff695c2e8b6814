"""Legacy id set comparison between source and target."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

import structlog
from sqlalchemy import select
from sqlalchemy.orm import Session

from dispatch_migration.core.clock import utc_now
from dispatch_migration.models import (
    DifferentialAnalysisResult,
    LogStatus,
    OperationType,
)
from dispatch_migration.services import runs
from dispatch_migration.services.registry import get_entity

logger = structlog.get_logger(__name__)

# ids stored per category in differential_analysis_results.details
SAMPLE_SIZE = 1000


@dataclass
class DifferentialResult:
    entity: str
    source_count: int
    destination_count: int
    new_ids: list[int] = field(default_factory=list)
    modified_ids: list[int] = field(default_factory=list)
    deleted_ids: list[int] = field(default_factory=list)
    since: datetime | None = None
    analyzed_at: datetime = field(default_factory=utc_now)

    @property
    def new_count(self) -> int:
        return len(self.new_ids)

    @property
    def modified_count(self) -> int:
        return len(self.modified_ids)

    @property
    def deleted_count(self) -> int:
        return len(self.deleted_ids)

    @property
    def has_changes(self) -> bool:
        return bool(self.new_ids or self.modified_ids or self.deleted_ids)


class DifferentialDetector:
    def __init__(self, source: Session, target: Session):
        self.source = source
        self.target = target

    def detect(self, name: str, since: datetime | None = None) -> DifferentialResult:
        entity = get_entity(name)
        subquery = entity.source_select().subquery()
        source_ids = set(self.source.execute(select(subquery.c.legacy_id)).scalars())

        column = entity.legacy_id_column
        target_ids = set(
            self.target.execute(select(column).where(column.is_not(None))).scalars()
        )

        modified: list[int] = []
        if since is not None and entity.tracks_updates:
            changed = (
                entity.source_select()
                .where(entity.source_table.c.updated_at > since)
                .subquery()
            )
            modified = sorted(
                legacy_id
                for legacy_id in self.source.execute(select(changed.c.legacy_id)).scalars()
                if legacy_id in target_ids
            )

        result = DifferentialResult(
            entity=name,
            source_count=len(source_ids),
            destination_count=len(target_ids),
            new_ids=sorted(source_ids - target_ids),
            modified_ids=modified,
            deleted_ids=sorted(target_ids - source_ids),
            since=since,
        )
        logger.info(
            "differential_detected",
            entity=name,
            new=result.new_count,
            modified=result.modified_count,
            deleted=result.deleted_count,
        )
        return result

    def save(self, result: DifferentialResult) -> DifferentialAnalysisResult:
        row = DifferentialAnalysisResult(
            entity_type=result.entity,
            source_count=result.source_count,
            destination_count=result.destination_count,
            new_records=result.new_count,
            modified_records=result.modified_count,
            deleted_records=result.deleted_count,
            since=result.since,
            details={
                "new_ids": result.new_ids[:SAMPLE_SIZE],
                "modified_ids": result.modified_ids[:SAMPLE_SIZE],
                "deleted_ids": result.deleted_ids[:SAMPLE_SIZE],
            },
            analyzed_at=result.analyzed_at,
        )
        self.target.add(row)
        self.target.commit()
        runs.log_operation(
            self.target,
            OperationType.DIFFERENTIAL_DETECTION,
            LogStatus.COMPLETED,
            entity=result.entity,
            records_processed=result.source_count,
            details={
                "new": result.new_count,
                "modified": result.modified_count,
                "deleted": result.deleted_count,
            },
        )
        return row
