"""Create migration control tables.

Revision ID: 0001_control_tables
Revises:
Create Date: 2026-10-17
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "0001_control_tables"
down_revision = None
branch_labels = None
depends_on = None

OPERATION_TYPES = (
    "baseline_analysis",
    "differential_detection",
    "record_migration",
    "validation",
    "checkpoint_save",
    "checkpoint_restore",
)


def upgrade() -> None:
    bind = op.get_bind()
    inspector = sa.inspect(bind)
    table_names = set(inspector.get_table_names())

    if "migration_runs" not in table_names:
        op.create_table(
            "migration_runs",
            sa.Column("id", sa.Uuid(), primary_key=True),
            sa.Column("status", sa.String(length=20), nullable=False),
            sa.Column("entities", postgresql.JSONB(), nullable=False),
            sa.Column("dry_run", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("writer", sa.String(length=10), nullable=False, server_default="sql"),
            sa.Column("batch_size", sa.Integer(), nullable=False),
            sa.Column("records_processed", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("records_inserted", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("records_skipped", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("records_failed", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("entity_stats", postgresql.JSONB(), nullable=True),
            sa.Column("error_message", sa.Text(), nullable=True),
            sa.Column(
                "started_at",
                sa.DateTime(timezone=True),
                nullable=False,
                server_default=sa.func.now(),
            ),
            sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        )
        op.create_index("ix_migration_runs_status", "migration_runs", ["status"])

    if "migration_mappings" not in table_names:
        op.create_table(
            "migration_mappings",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("entity_type", sa.String(length=50), nullable=False),
            sa.Column("legacy_id", sa.Integer(), nullable=False),
            sa.Column("new_id", sa.Uuid(), nullable=False),
            sa.Column("migration_batch", sa.String(length=100), nullable=True),
            sa.Column(
                "migrated_at",
                sa.DateTime(timezone=True),
                nullable=False,
                server_default=sa.func.now(),
            ),
            sa.UniqueConstraint(
                "entity_type", "legacy_id", name="uq_migration_mappings_entity_legacy"
            ),
        )
        op.create_index(
            "ix_migration_mappings_entity_type", "migration_mappings", ["entity_type"]
        )

    if "migration_checkpoints" not in table_names:
        op.create_table(
            "migration_checkpoints",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("entity_type", sa.String(length=50), nullable=False),
            sa.Column(
                "run_id", sa.Uuid(), sa.ForeignKey("migration_runs.id"), nullable=True
            ),
            sa.Column("last_processed_id", sa.Integer(), nullable=False),
            sa.Column("batch_number", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("records_processed", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("records_inserted", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("records_failed", sa.Integer(), nullable=False, server_default="0"),
            sa.Column(
                "created_at",
                sa.DateTime(timezone=True),
                nullable=False,
                server_default=sa.func.now(),
            ),
        )
        op.create_index(
            "ix_migration_checkpoints_entity_type",
            "migration_checkpoints",
            ["entity_type"],
        )

    if "differential_analysis_results" not in table_names:
        op.create_table(
            "differential_analysis_results",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("entity_type", sa.String(length=50), nullable=False),
            sa.Column("source_count", sa.Integer(), nullable=False),
            sa.Column("destination_count", sa.Integer(), nullable=False),
            sa.Column("new_records", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("modified_records", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("deleted_records", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("since", sa.DateTime(timezone=True), nullable=True),
            sa.Column("details", postgresql.JSONB(), nullable=True),
            sa.Column(
                "analyzed_at",
                sa.DateTime(timezone=True),
                nullable=False,
                server_default=sa.func.now(),
            ),
        )
        op.create_index(
            "ix_differential_analysis_results_entity_type",
            "differential_analysis_results",
            ["entity_type"],
        )

    if "migration_execution_logs" not in table_names:
        op.create_table(
            "migration_execution_logs",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column(
                "run_id", sa.Uuid(), sa.ForeignKey("migration_runs.id"), nullable=True
            ),
            sa.Column("entity_type", sa.String(length=50), nullable=True),
            sa.Column("operation_type", sa.String(length=30), nullable=False),
            sa.Column("status", sa.String(length=20), nullable=False),
            sa.Column("records_processed", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("records_failed", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("duration_ms", sa.Integer(), nullable=True),
            sa.Column("message", sa.Text(), nullable=True),
            sa.Column("details", postgresql.JSONB(), nullable=True),
            sa.Column(
                "created_at",
                sa.DateTime(timezone=True),
                nullable=False,
                server_default=sa.func.now(),
            ),
            sa.CheckConstraint(
                "operation_type IN ({})".format(
                    ", ".join(f"'{value}'" for value in OPERATION_TYPES)
                ),
                name="ck_migration_execution_logs_operation_type",
            ),
        )
        op.create_index(
            "ix_migration_execution_logs_run_id", "migration_execution_logs", ["run_id"]
        )


def downgrade() -> None:
    bind = op.get_bind()
    inspector = sa.inspect(bind)
    table_names = set(inspector.get_table_names())
    for table in (
        "migration_execution_logs",
        "differential_analysis_results",
        "migration_checkpoints",
        "migration_mappings",
        "migration_runs",
    ):
        if table in table_names:
            op.drop_table(table)
