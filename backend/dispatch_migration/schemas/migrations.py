import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from dispatch_migration.core.config import MAX_BATCH_SIZE


class EntityInfo(BaseModel):
    name: str
    source_table: str
    target_table: str
    legacy_id_column: str
    depends_on: list[str]
    lookups: list[str]


class BaselineRequest(BaseModel):
    entities: list[str] = Field(default_factory=lambda: ["all"])
    include_mappings: bool = False


class EntityAnalysisRead(BaseModel):
    entity: str
    source_count: int
    destination_count: int
    record_gap: int
    gap_percentage: float
    has_data: bool
    status: str
    last_migration_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class MappingValidationRead(BaseModel):
    entity: str
    missing_columns: list[str]
    orphaned_columns: list[str]
    is_valid: bool

    model_config = ConfigDict(from_attributes=True)


class BaselineSummaryRead(BaseModel):
    total_source_records: int
    total_destination_records: int
    overall_gap: int
    average_gap_percentage: float
    entities_with_gaps: int

    model_config = ConfigDict(from_attributes=True)


class BaselineReportRead(BaseModel):
    analysis_id: uuid.UUID
    generated_at: datetime
    entities: list[EntityAnalysisRead]
    mapping_validation: list[MappingValidationRead]
    summary: BaselineSummaryRead
    overall_status: str
    recommendations: list[str]
    duration_ms: int

    model_config = ConfigDict(from_attributes=True)


class DifferentialRead(BaseModel):
    entity: str
    source_count: int
    destination_count: int
    new_count: int
    modified_count: int
    deleted_count: int
    new_ids: list[int]
    modified_ids: list[int]
    deleted_ids: list[int]
    since: datetime | None = None
    analyzed_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ExecuteRequest(BaseModel):
    entities: list[str] = Field(default_factory=lambda: ["all"])
    batch_size: int | None = Field(default=None, ge=1, le=MAX_BATCH_SIZE)
    delay_ms: int | None = Field(default=None, ge=0)
    dry_run: bool = False
    resume: bool = False


class ExecuteResponse(BaseModel):
    run_id: uuid.UUID
    status: str
    entities: list[str]


class MigrationRunRead(BaseModel):
    id: uuid.UUID
    status: str
    entities: list[str]
    dry_run: bool
    writer: str
    batch_size: int
    records_processed: int
    records_inserted: int
    records_skipped: int
    records_failed: int
    entity_stats: dict | None = None
    error_message: str | None = None
    started_at: datetime
    completed_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class ExecutionLogRead(BaseModel):
    id: int
    run_id: uuid.UUID | None = None
    entity_type: str | None = None
    operation_type: str
    status: str
    records_processed: int
    records_failed: int
    duration_ms: int | None = None
    message: str | None = None
    details: dict | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ValidateRequest(BaseModel):
    entities: list[str] = Field(default_factory=lambda: ["all"])


class ValidationResultRead(BaseModel):
    entity: str
    source_count: int
    migrated_count: int
    missing_count: int
    duplicate_legacy_ids: list[int]
    lineage_count: int
    passed: bool

    model_config = ConfigDict(from_attributes=True)
