"""Source/target record counts and schema checks ahead of a migration."""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime

import structlog
from sqlalchemy import Table, func, inspect, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from dispatch_migration.core.clock import utc_now
from dispatch_migration.entities.base import EntityMigration
from dispatch_migration.models import MigrationMapping
from dispatch_migration.services.registry import get_entity

logger = structlog.get_logger(__name__)

CRITICAL_AVERAGE_GAP = 15
SIGNIFICANT_AVERAGE_GAP = 5
HIGH_AVERAGE_GAP = 10
CRITICAL_MISSING_COLUMNS = 5
LARGE_OVERALL_GAP = 100_000


def gap_status(record_gap: int, gap_percentage: float) -> str:
    if record_gap == 0:
        return "synced"
    if gap_percentage < 1:
        return "minor_gap"
    if gap_percentage < 5:
        return "behind"
    return "major_gap"


@dataclass
class EntityAnalysis:
    entity: str
    source_count: int
    destination_count: int
    record_gap: int
    gap_percentage: float
    has_data: bool
    last_migration_at: datetime | None = None

    @property
    def status(self) -> str:
        return gap_status(self.record_gap, self.gap_percentage)


@dataclass
class MappingValidation:
    entity: str
    missing_columns: list[str] = field(default_factory=list)
    orphaned_columns: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.missing_columns


@dataclass
class BaselineSummary:
    total_source_records: int
    total_destination_records: int
    overall_gap: int
    average_gap_percentage: float
    entities_with_gaps: int


@dataclass
class BaselineReport:
    analysis_id: uuid.UUID
    generated_at: datetime
    entities: list[EntityAnalysis]
    mapping_validation: list[MappingValidation]
    summary: BaselineSummary
    overall_status: str
    recommendations: list[str]
    duration_ms: int


@dataclass
class ConnectionCheck:
    name: str
    ok: bool
    latency_ms: int | None = None
    error: str | None = None


def _source_columns(entity: EntityMigration) -> set[tuple[str, str]]:
    columns = set()
    for column in entity.source_select().selected_columns:
        base = getattr(column, "element", column)
        table = getattr(base, "table", None)
        if isinstance(table, Table):
            columns.add((table.name, base.name))
    return columns


class BaselineAnalyzer:
    def __init__(self, source: Session, target: Session):
        self.source = source
        self.target = target

    def test_connections(self) -> list[ConnectionCheck]:
        checks = []
        for name, session in (("source", self.source), ("destination", self.target)):
            started = time.monotonic()
            try:
                session.execute(select(1)).scalar_one()
            except SQLAlchemyError as exc:
                session.rollback()
                logger.error("connection_failed", database=name, error=str(exc))
                checks.append(ConnectionCheck(name=name, ok=False, error=str(exc)))
                continue
            latency = int((time.monotonic() - started) * 1000)
            checks.append(ConnectionCheck(name=name, ok=True, latency_ms=latency))
        return checks

    def source_count(self, entity: EntityMigration) -> int:
        subquery = entity.source_select().subquery()
        return self.source.execute(
            select(func.count()).select_from(subquery)
        ).scalar_one()

    def destination_count(self, entity: EntityMigration) -> int:
        column = entity.legacy_id_column
        return self.target.execute(
            select(func.count()).select_from(entity.target_model).where(column.is_not(None))
        ).scalar_one()

    def last_migration_at(self, name: str) -> datetime | None:
        return self.target.execute(
            select(func.max(MigrationMapping.migrated_at)).where(
                MigrationMapping.entity_type == name
            )
        ).scalar_one_or_none()

    def analyze_entity(self, name: str) -> EntityAnalysis:
        entity = get_entity(name)
        source_count = self.source_count(entity)
        destination_count = self.destination_count(entity)
        record_gap = source_count - destination_count
        gap_percentage = (
            round(record_gap / source_count * 100, 2) if source_count > 0 else 0.0
        )
        analysis = EntityAnalysis(
            entity=name,
            source_count=source_count,
            destination_count=destination_count,
            record_gap=record_gap,
            gap_percentage=gap_percentage,
            has_data=source_count > 0,
            last_migration_at=self.last_migration_at(name),
        )
        logger.info(
            "entity_analyzed",
            entity=name,
            source=source_count,
            destination=destination_count,
            gap=record_gap,
        )
        return analysis

    def validate_mappings(self, name: str) -> MappingValidation:
        entity = get_entity(name)
        validation = MappingValidation(entity=name)

        source_inspector = inspect(self.source.get_bind())
        live_source: dict[str, set[str]] = {}
        for table_name, column_name in sorted(_source_columns(entity)):
            if table_name not in live_source:
                live_source[table_name] = (
                    {c["name"] for c in source_inspector.get_columns(table_name)}
                    if source_inspector.has_table(table_name)
                    else set()
                )
            if column_name not in live_source[table_name]:
                validation.missing_columns.append(f"{table_name}.{column_name}")

        target_inspector = inspect(self.target.get_bind())
        table = entity.target_model.__table__
        expected = {column.name for column in table.columns}
        if target_inspector.has_table(table.name):
            live = {c["name"] for c in target_inspector.get_columns(table.name)}
        else:
            live = set()
        validation.missing_columns.extend(
            f"{table.name}.{column}" for column in sorted(expected - live)
        )
        validation.orphaned_columns.extend(
            f"{table.name}.{column}" for column in sorted(live - expected)
        )
        return validation

    def generate_report(
        self, names: list[str], include_mappings: bool = False
    ) -> BaselineReport:
        started = time.monotonic()
        entities = [self.analyze_entity(name) for name in names]
        mapping_validation = (
            [self.validate_mappings(name) for name in names] if include_mappings else []
        )

        total_source = sum(e.source_count for e in entities)
        total_destination = sum(e.destination_count for e in entities)
        overall_gap = total_source - total_destination
        average_gap = (
            round(sum(e.gap_percentage for e in entities) / len(entities), 2)
            if entities
            else 0.0
        )
        entities_with_gaps = sum(1 for e in entities if e.record_gap > 0)
        invalid_mappings = [v for v in mapping_validation if not v.is_valid]

        if average_gap > CRITICAL_AVERAGE_GAP or any(
            len(v.missing_columns) > CRITICAL_MISSING_COLUMNS for v in mapping_validation
        ):
            overall_status = "critical_issues"
        elif (entities_with_gaps and average_gap > SIGNIFICANT_AVERAGE_GAP) or invalid_mappings:
            overall_status = "gaps_detected"
        else:
            overall_status = "healthy"

        recommendations = []
        if entities_with_gaps:
            recommendations.append(
                f"{entities_with_gaps} entities have record gaps - investigate missing data"
            )
        if invalid_mappings:
            recommendations.append(
                f"{len(invalid_mappings)} entities have mapping validation issues"
                " - review schema changes"
            )
        if average_gap > HIGH_AVERAGE_GAP:
            recommendations.append(
                "High average gap percentage - consider full re-sync for affected entities"
            )
        if overall_gap > LARGE_OVERALL_GAP:
            recommendations.append("Large overall gap detected - verify migration completeness")
        if not recommendations:
            recommendations.append(
                "All entities appear healthy - ready for differential migration"
            )

        report = BaselineReport(
            analysis_id=uuid.uuid4(),
            generated_at=utc_now(),
            entities=entities,
            mapping_validation=mapping_validation,
            summary=BaselineSummary(
                total_source_records=total_source,
                total_destination_records=total_destination,
                overall_gap=overall_gap,
                average_gap_percentage=average_gap,
                entities_with_gaps=entities_with_gaps,
            ),
            overall_status=overall_status,
            recommendations=recommendations,
            duration_ms=int((time.monotonic() - started) * 1000),
        )
        logger.info("baseline_completed", status=overall_status, gap=overall_gap)
        return report
