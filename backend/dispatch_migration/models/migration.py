import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from dispatch_migration.core.clock import utc_now
from dispatch_migration.db.base import Base
from dispatch_migration.db.types import JSONType


class MigrationMapping(Base):
    __tablename__ = "migration_mappings"
    __table_args__ = (
        UniqueConstraint("entity_type", "legacy_id", name="uq_migration_mappings_entity_legacy"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    entity_type: Mapped[str] = mapped_column(String(50), index=True)
    legacy_id: Mapped[int] = mapped_column(Integer)
    new_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    migration_batch: Mapped[str | None] = mapped_column(String(100), nullable=True)
    migrated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)


class MigrationRun(Base):
    __tablename__ = "migration_runs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    status: Mapped[str] = mapped_column(String(20), default="pending", index=True)
    entities: Mapped[list[str]] = mapped_column(JSONType)
    dry_run: Mapped[bool] = mapped_column(Boolean, default=False)
    writer: Mapped[str] = mapped_column(String(10), default="sql")
    batch_size: Mapped[int] = mapped_column(Integer)
    records_processed: Mapped[int] = mapped_column(Integer, default=0)
    records_inserted: Mapped[int] = mapped_column(Integer, default=0)
    records_skipped: Mapped[int] = mapped_column(Integer, default=0)
    records_failed: Mapped[int] = mapped_column(Integer, default=0)
    entity_stats: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )


class MigrationCheckpoint(Base):
    __tablename__ = "migration_checkpoints"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    entity_type: Mapped[str] = mapped_column(String(50), index=True)
    run_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("migration_runs.id"), nullable=True
    )
    last_processed_id: Mapped[int] = mapped_column(Integer)
    batch_number: Mapped[int] = mapped_column(Integer, default=0)
    records_processed: Mapped[int] = mapped_column(Integer, default=0)
    records_inserted: Mapped[int] = mapped_column(Integer, default=0)
    records_failed: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)


class DifferentialAnalysisResult(Base):
    __tablename__ = "differential_analysis_results"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    entity_type: Mapped[str] = mapped_column(String(50), index=True)
    source_count: Mapped[int] = mapped_column(Integer)
    destination_count: Mapped[int] = mapped_column(Integer)
    new_records: Mapped[int] = mapped_column(Integer, default=0)
    modified_records: Mapped[int] = mapped_column(Integer, default=0)
    deleted_records: Mapped[int] = mapped_column(Integer, default=0)
    since: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    details: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    analyzed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)


class MigrationExecutionLog(Base):
    __tablename__ = "migration_execution_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    run_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("migration_runs.id"), nullable=True, index=True
    )
    entity_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    operation_type: Mapped[str] = mapped_column(String(30))
    status: Mapped[str] = mapped_column(String(20))
    records_processed: Mapped[int] = mapped_column(Integer, default=0)
    records_failed: Mapped[int] = mapped_column(Integer, default=0)
    duration_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)
    message: Mapped[str | None] = mapped_column(Text, nullable=True)
    details: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
