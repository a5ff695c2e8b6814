import uuid
from datetime import datetime

import structlog
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from dispatch_migration.api.deps import get_session_factories, get_source_db, get_target_db
from dispatch_migration.core.config import settings
from dispatch_migration.core.errors import MigrationError, UnknownEntityError
from dispatch_migration.models import MigrationExecutionLog, MigrationRun
from dispatch_migration.schemas.migrations import (
    BaselineReportRead,
    BaselineRequest,
    DifferentialRead,
    EntityInfo,
    ExecuteRequest,
    ExecuteResponse,
    ExecutionLogRead,
    MigrationRunRead,
    ValidateRequest,
    ValidationResultRead,
)
from dispatch_migration.services import runs
from dispatch_migration.services.baseline import BaselineAnalyzer
from dispatch_migration.services.differential import DifferentialDetector
from dispatch_migration.services.executor import MigrationExecutor
from dispatch_migration.services.registry import (
    entity_names,
    get_entity,
    parse_entities,
    resolve_order,
)
from dispatch_migration.services.validation import MigrationValidator

router = APIRouter()
logger = structlog.get_logger(__name__)


def _resolve_entities(names: list[str]) -> list[str]:
    try:
        return parse_entities(names)
    except UnknownEntityError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


def run_migration(
    run_id: uuid.UUID,
    names: list[str],
    factories: tuple[sessionmaker, sessionmaker],
    batch_size: int,
    delay_ms: int | None,
    dry_run: bool,
    resume: bool,
) -> None:
    source_factory, target_factory = factories
    source = source_factory()
    target = target_factory()
    try:
        run = target.get(MigrationRun, run_id)
        if run is None:
            logger.error("run_missing", run_id=str(run_id))
            return
        executor = MigrationExecutor(
            source,
            target,
            batch_size=batch_size,
            delay_ms=delay_ms,
            dry_run=dry_run,
        )
        try:
            executor.run(names, resume=resume, run=run)
        except (MigrationError, SQLAlchemyError) as exc:
            target.rollback()
            logger.error("background_run_failed", run_id=str(run_id), exc_info=True)
            runs.finish_run(target, run, run.entity_stats or {}, error_message=str(exc))
    finally:
        source.close()
        target.close()


@router.get("/entities", response_model=list[EntityInfo])
def list_entities() -> list[EntityInfo]:
    entities = []
    for name in entity_names():
        entity = get_entity(name)
        entities.append(
            EntityInfo(
                name=entity.name,
                source_table=entity.source_table.name,
                target_table=entity.target_model.__tablename__,
                legacy_id_column=entity.legacy_id_attr,
                depends_on=list(entity.depends_on),
                lookups=list(entity.lookups),
            )
        )
    return entities


@router.post("/baseline", response_model=BaselineReportRead)
def run_baseline(
    payload: BaselineRequest,
    source: Session = Depends(get_source_db),
    target: Session = Depends(get_target_db),
) -> BaselineReportRead:
    names = _resolve_entities(payload.entities)
    report = BaselineAnalyzer(source, target).generate_report(
        names, include_mappings=payload.include_mappings
    )
    return BaselineReportRead.model_validate(report)


@router.get("/differential/{entity}", response_model=DifferentialRead)
def get_differential(
    entity: str,
    since: datetime | None = None,
    save: bool = False,
    source: Session = Depends(get_source_db),
    target: Session = Depends(get_target_db),
) -> DifferentialRead:
    name = _resolve_entities([entity])[0]
    detector = DifferentialDetector(source, target)
    result = detector.detect(name, since=since)
    if save:
        detector.save(result)
    return DifferentialRead.model_validate(result)


@router.post(
    "/execute", response_model=ExecuteResponse, status_code=status.HTTP_202_ACCEPTED
)
def execute_migration(
    payload: ExecuteRequest,
    background_tasks: BackgroundTasks,
    target: Session = Depends(get_target_db),
    factories: tuple[sessionmaker, sessionmaker] = Depends(get_session_factories),
) -> ExecuteResponse:
    names = resolve_order(_resolve_entities(payload.entities))
    batch_size = payload.batch_size or settings.batch_size
    run = runs.create_run(target, names, batch_size=batch_size, dry_run=payload.dry_run)
    background_tasks.add_task(
        run_migration,
        run.id,
        names,
        factories,
        batch_size,
        payload.delay_ms,
        payload.dry_run,
        payload.resume,
    )
    return ExecuteResponse(run_id=run.id, status=run.status, entities=names)


@router.get("/runs", response_model=list[MigrationRunRead])
def list_runs(
    limit: int = Query(20, ge=1, le=200),
    target: Session = Depends(get_target_db),
) -> list[MigrationRun]:
    return runs.latest_runs(target, limit=limit)


@router.get("/runs/{run_id}", response_model=MigrationRunRead)
def get_run(run_id: uuid.UUID, target: Session = Depends(get_target_db)) -> MigrationRun:
    run = runs.get_run(target, run_id)
    if not run:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Run not found")
    return run


@router.get("/logs", response_model=list[ExecutionLogRead])
def list_logs(
    limit: int = Query(50, ge=1, le=500),
    entity: str | None = None,
    run_id: uuid.UUID | None = None,
    target: Session = Depends(get_target_db),
) -> list[MigrationExecutionLog]:
    return runs.recent_logs(target, limit=limit, entity=entity, run_id=run_id)


@router.post("/validate", response_model=list[ValidationResultRead])
def run_validation(
    payload: ValidateRequest,
    source: Session = Depends(get_source_db),
    target: Session = Depends(get_target_db),
) -> list[ValidationResultRead]:
    names = _resolve_entities(payload.entities)
    results = MigrationValidator(source, target).validate_all(names)
    return [ValidationResultRead.model_validate(result) for result in results]
