"""Post-migration checks: counts, duplicate legacy ids and lineage coverage."""

from __future__ import annotations

from dataclasses import dataclass, field

import structlog
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from dispatch_migration.models import LogStatus, MigrationMapping, OperationType
from dispatch_migration.services import runs
from dispatch_migration.services.registry import get_entity

logger = structlog.get_logger(__name__)


@dataclass
class ValidationResult:
    entity: str
    source_count: int
    migrated_count: int
    missing_count: int
    duplicate_legacy_ids: list[int] = field(default_factory=list)
    lineage_count: int = 0

    @property
    def passed(self) -> bool:
        if self.duplicate_legacy_ids:
            return False
        if self.lineage_count < self.migrated_count:
            return False
        return self.missing_count == 0


class MigrationValidator:
    def __init__(self, source: Session, target: Session):
        self.source = source
        self.target = target

    def validate_entity(self, name: str) -> ValidationResult:
        entity = get_entity(name)
        subquery = entity.source_select().subquery()
        source_ids = set(self.source.execute(select(subquery.c.legacy_id)).scalars())

        column = entity.legacy_id_column
        migrated_ids = set(
            self.target.execute(select(column).where(column.is_not(None))).scalars()
        )
        duplicates = list(
            self.target.execute(
                select(column)
                .where(column.is_not(None))
                .group_by(column)
                .having(func.count() > 1)
                .order_by(column)
            ).scalars()
        )
        lineage_count = self.target.execute(
            select(func.count())
            .select_from(MigrationMapping)
            .where(MigrationMapping.entity_type == name)
        ).scalar_one()

        result = ValidationResult(
            entity=name,
            source_count=len(source_ids),
            migrated_count=len(migrated_ids & source_ids),
            missing_count=len(source_ids - migrated_ids),
            duplicate_legacy_ids=duplicates,
            lineage_count=lineage_count,
        )
        logger.info(
            "entity_validated",
            entity=name,
            passed=result.passed,
            missing=result.missing_count,
            duplicates=len(duplicates),
        )
        return result

    def validate_all(self, names: list[str], record: bool = True) -> list[ValidationResult]:
        results = [self.validate_entity(name) for name in names]
        if record:
            for result in results:
                runs.log_operation(
                    self.target,
                    OperationType.VALIDATION,
                    LogStatus.COMPLETED if result.passed else LogStatus.FAILED,
                    entity=result.entity,
                    records_processed=result.source_count,
                    records_failed=result.missing_count,
                    details={
                        "migrated": result.migrated_count,
                        "lineage": result.lineage_count,
                        "duplicates": result.duplicate_legacy_ids[:100],
                    },
                )
        return results
