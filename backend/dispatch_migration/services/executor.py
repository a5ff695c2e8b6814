"""Shared batch loop for every entity migration.

Pages are read from the source by ascending legacy id (keyset pagination).
Rows whose legacy id already exists in the target are skipped, the rest are
transformed by the entity and written together with their lineage rows and a
checkpoint in one target transaction per page. When a page fails as a whole it
is replayed one record at a time so a single bad record only costs itself.
Writers that are not atomic (each REST call commits on its own) cannot be
rolled back, so their pages always go one record at a time.
"""

from __future__ import annotations

import time
import uuid
from collections.abc import Callable
from dataclasses import asdict, dataclass, field
from typing import Any

import structlog
from sqlalchemy import delete, func, insert, select
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from dispatch_migration.core.config import settings
from dispatch_migration.core.errors import CheckpointError, MigrationError
from dispatch_migration.entities.base import (
    EntityMigration,
    MigrationContext,
    TargetRow,
)
from dispatch_migration.models import (
    LogStatus,
    MigrationMapping,
    MigrationRun,
    OperationType,
    RunStatus,
)
from dispatch_migration.services import checkpoints, runs
from dispatch_migration.services.lookups import LookupSet
from dispatch_migration.services.registry import get_entity, resolve_order
from dispatch_migration.services.writers import SqlWriter

logger = structlog.get_logger(__name__)


@dataclass
class EntityStats:
    entity: str
    processed: int = 0
    inserted: int = 0
    skipped_existing: int = 0
    skipped: int = 0
    errors: int = 0
    batches: int = 0
    duration: float = 0.0
    last_legacy_id: int | None = None
    skip_reasons: dict[str, int] = field(default_factory=dict)
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class MigrationSummary:
    run_id: uuid.UUID
    status: str
    dry_run: bool
    entities: list[EntityStats]
    duration: float = 0.0

    @property
    def processed(self) -> int:
        return sum(s.processed for s in self.entities)

    @property
    def inserted(self) -> int:
        return sum(s.inserted for s in self.entities)

    @property
    def errors(self) -> int:
        return sum(s.errors for s in self.entities)

    @property
    def failed_entities(self) -> list[str]:
        return [s.entity for s in self.entities if not s.succeeded]


class MigrationExecutor:
    def __init__(
        self,
        source: Session,
        target: Session,
        writer=None,
        batch_size: int | None = None,
        delay_ms: int | None = None,
        dry_run: bool = False,
        sleep: Callable[[float], None] = time.sleep,
        max_retry_attempts: int | None = None,
        retry_sleep_seconds: float | None = None,
    ):
        self.source = source
        self.target = target
        self.writer = writer or SqlWriter(target)
        self.batch_size = batch_size or settings.batch_size
        self.delay_ms = settings.batch_delay_ms if delay_ms is None else delay_ms
        self.dry_run = dry_run
        self.sleep = sleep
        self.max_retry_attempts = (
            settings.max_retry_attempts
            if max_retry_attempts is None
            else max_retry_attempts
        )
        self.retry_sleep_seconds = (
            settings.retry_sleep_seconds
            if retry_sleep_seconds is None
            else retry_sleep_seconds
        )

    def run(
        self,
        names: list[str],
        resume: bool = False,
        run: MigrationRun | None = None,
    ) -> MigrationSummary:
        ordered = resolve_order(names)
        if run is None:
            run = runs.create_run(
                self.target,
                ordered,
                batch_size=self.batch_size,
                dry_run=self.dry_run,
                writer=self.writer.name,
            )
        runs.mark_running(self.target, run)
        started = time.monotonic()
        logger.info("run_started", run_id=str(run.id), entities=ordered, dry_run=self.dry_run)

        results: list[EntityStats] = []
        for name in ordered:
            try:
                stats = self.migrate_entity(name, run.id, resume=resume)
            except (MigrationError, SQLAlchemyError) as exc:
                self.target.rollback()
                logger.error("entity_failed", entity=name, run_id=str(run.id), exc_info=True)
                stats = EntityStats(entity=name, error=str(exc))
                runs.log_operation(
                    self.target,
                    OperationType.RECORD_MIGRATION,
                    LogStatus.FAILED,
                    entity=name,
                    run_id=run.id,
                    message=str(exc),
                )
            results.append(stats)

        failures = [s for s in results if not s.succeeded]
        error_message = "; ".join(f"{s.entity}: {s.error}" for s in failures) or None
        runs.finish_run(
            self.target,
            run,
            {s.entity: s.as_dict() for s in results},
            error_message=error_message,
        )
        summary = MigrationSummary(
            run_id=run.id,
            status=RunStatus.FAILED.value if failures else RunStatus.COMPLETED.value,
            dry_run=self.dry_run,
            entities=results,
            duration=round(time.monotonic() - started, 3),
        )
        logger.info(
            "run_finished",
            run_id=str(run.id),
            status=summary.status,
            inserted=summary.inserted,
            errors=summary.errors,
        )
        return summary

    def migrate_entity(
        self,
        name: str,
        run_id: uuid.UUID | None = None,
        resume: bool = False,
    ) -> EntityStats:
        entity = get_entity(name)
        log = logger.bind(entity=name, run_id=str(run_id) if run_id else None)
        stats = EntityStats(entity=name)
        started = time.monotonic()

        ctx = MigrationContext(lookups=LookupSet.load(self.target, entity.lookups))
        entity.prepare(ctx, self.target)
        existing = self._existing_ids(entity)
        log.info(
            "entity_started",
            existing=len(existing),
            lookups=ctx.lookups.sizes(),
            dry_run=self.dry_run,
        )

        after_id = self._resume_point(entity, run_id, log) if resume else None
        runs.log_operation(
            self.target,
            OperationType.RECORD_MIGRATION,
            LogStatus.STARTED,
            entity=name,
            run_id=run_id,
            details={"resume_from": after_id, "dry_run": self.dry_run},
        )

        while True:
            rows = self._fetch_page(entity, after_id, log)
            if not rows:
                break
            stats.batches += 1
            pending = self._transform_page(entity, rows, ctx, existing, stats, log)
            after_id = rows[-1].legacy_id
            stats.last_legacy_id = after_id

            if self.dry_run:
                stats.inserted += len(pending)
            else:
                written = self._write_page(entity, pending, run_id, stats, after_id, log)
                for legacy_id, target_rows in written:
                    existing.add(legacy_id)
                    for model, values in target_rows:
                        ctx.lookups.absorb(model, values)

            log.info(
                "batch_completed",
                batch=stats.batches,
                last_legacy_id=after_id,
                processed=stats.processed,
                inserted=stats.inserted,
                errors=stats.errors,
            )
            if len(rows) < self.batch_size:
                break
            if self.delay_ms:
                self.sleep(self.delay_ms / 1000)

        if not self.dry_run:
            checkpoints.clear_checkpoints(self.target, name)

        stats.skip_reasons = dict(ctx.skip_reasons)
        stats.duration = round(time.monotonic() - started, 3)
        runs.log_operation(
            self.target,
            OperationType.RECORD_MIGRATION,
            LogStatus.COMPLETED,
            entity=name,
            run_id=run_id,
            records_processed=stats.processed,
            records_failed=stats.errors,
            duration_ms=int(stats.duration * 1000),
            details=stats.as_dict(),
        )
        log.info(
            "entity_completed",
            processed=stats.processed,
            inserted=stats.inserted,
            skipped_existing=stats.skipped_existing,
            skipped=stats.skipped,
            errors=stats.errors,
            duration=stats.duration,
        )
        return stats

    def _existing_ids(self, entity: EntityMigration) -> set[int]:
        column = entity.legacy_id_column
        return set(
            self.target.execute(select(column).where(column.is_not(None))).scalars()
        )

    def _resume_point(self, entity: EntityMigration, run_id, log) -> int | None:
        checkpoint = checkpoints.load_checkpoint(self.target, entity.name)
        if checkpoint is None:
            log.info("no_checkpoint")
            return None
        max_source_id = self.source.execute(
            select(func.max(entity.source_key))
        ).scalar_one_or_none()
        if max_source_id is not None and checkpoint.last_processed_id > max_source_id:
            raise CheckpointError(
                f"Checkpoint for {entity.name} is past the last source id "
                f"({checkpoint.last_processed_id} > {max_source_id})"
            )
        runs.log_operation(
            self.target,
            OperationType.CHECKPOINT_RESTORE,
            LogStatus.COMPLETED,
            entity=entity.name,
            run_id=run_id,
            details={
                "last_processed_id": checkpoint.last_processed_id,
                "batch_number": checkpoint.batch_number,
            },
        )
        log.info("resuming", last_processed_id=checkpoint.last_processed_id)
        return checkpoint.last_processed_id

    def _fetch_page(self, entity: EntityMigration, after_id: int | None, log) -> list:
        key = entity.source_key
        stmt = entity.source_select()
        if after_id is not None:
            stmt = stmt.where(key > after_id)
        stmt = stmt.order_by(key).limit(self.batch_size)

        attempt = 0
        while True:
            try:
                return self.source.execute(stmt).all()
            except OperationalError as exc:
                self.source.rollback()
                attempt += 1
                if attempt > self.max_retry_attempts:
                    raise
                log.warning(
                    "page_read_retry",
                    attempt=attempt,
                    after_id=after_id,
                    error=str(exc.orig or exc),
                )
                self.sleep(self.retry_sleep_seconds)

    def _transform_page(
        self,
        entity: EntityMigration,
        rows: list,
        ctx: MigrationContext,
        existing: set[int],
        stats: EntityStats,
        log,
    ) -> list[tuple[int, list[TargetRow]]]:
        pending: list[tuple[int, list[TargetRow]]] = []
        for row in rows:
            stats.processed += 1
            legacy_id = row.legacy_id
            if legacy_id in existing:
                stats.skipped_existing += 1
                continue
            try:
                target_rows = entity.transform(row, ctx)
            except Exception:
                stats.errors += 1
                log.error("transform_failed", legacy_id=legacy_id, exc_info=True)
                continue
            if target_rows is None:
                stats.skipped += 1
                log.debug("record_skipped", legacy_id=legacy_id)
                continue
            pending.append((legacy_id, target_rows))
        return pending

    def _write_page(
        self,
        entity: EntityMigration,
        pending: list[tuple[int, list[TargetRow]]],
        run_id: uuid.UUID | None,
        stats: EntityStats,
        last_id: int,
        log,
    ) -> list[tuple[int, list[TargetRow]]]:
        batch_label = f"{run_id or 'adhoc'}:{stats.batches}"
        if self.writer.atomic:
            try:
                self._write_records(entity, pending, batch_label)
                stats.inserted += len(pending)
                self._stage_checkpoint(entity, run_id, stats, last_id)
                self.target.commit()
                return pending
            except (SQLAlchemyError, MigrationError) as exc:
                self.target.rollback()
                log.warning(
                    "batch_failed_retrying_rows",
                    batch=stats.batches,
                    records=len(pending),
                    error=str(exc),
                )

        written: list[tuple[int, list[TargetRow]]] = []
        for record in pending:
            try:
                self._write_records(entity, [record], batch_label)
                self.target.commit()
            except (SQLAlchemyError, MigrationError) as exc:
                self.target.rollback()
                stats.errors += 1
                log.error("record_failed", legacy_id=record[0], error=str(exc))
                continue
            stats.inserted += 1
            written.append(record)
        self._stage_checkpoint(entity, run_id, stats, last_id)
        self.target.commit()
        return written

    def _write_records(
        self,
        entity: EntityMigration,
        records: list[tuple[int, list[TargetRow]]],
        batch_label: str,
    ) -> None:
        if not records:
            return
        # profile rows must land before the doctor/patient rows that point at them
        grouped: dict[type, list[dict[str, Any]]] = {}
        for _, target_rows in records:
            for model, values in target_rows:
                grouped.setdefault(model, []).append(values)
        for model, rows in grouped.items():
            self.writer.insert(model, rows)

        lineage = []
        for legacy_id, target_rows in records:
            new_id = next(
                values["id"] for model, values in target_rows if model is entity.target_model
            )
            lineage.append(
                {
                    "entity_type": entity.name,
                    "legacy_id": legacy_id,
                    "new_id": new_id,
                    "migration_batch": batch_label,
                }
            )
        self.target.execute(
            delete(MigrationMapping).where(
                MigrationMapping.entity_type == entity.name,
                MigrationMapping.legacy_id.in_([r["legacy_id"] for r in lineage]),
            )
        )
        self.target.execute(insert(MigrationMapping), lineage)

    def _stage_checkpoint(self, entity, run_id, stats: EntityStats, last_id: int) -> None:
        checkpoints.save_checkpoint(
            self.target,
            entity.name,
            last_processed_id=last_id,
            batch_number=stats.batches,
            records_processed=stats.processed,
            records_inserted=stats.inserted,
            records_failed=stats.errors,
            run_id=run_id,
        )
