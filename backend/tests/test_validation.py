from sqlalchemy import delete, select

from dispatch_migration.models import MigrationExecutionLog, MigrationMapping
from dispatch_migration.services.executor import MigrationExecutor
from dispatch_migration.services.validation import MigrationValidator


def migrate(source_session, target_session, names):
    MigrationExecutor(source_session, target_session, sleep=lambda _: None).run(names)


def test_complete_entity_passes(source_session, target_session):
    migrate(source_session, target_session, ["offices"])

    result = MigrationValidator(source_session, target_session).validate_entity("offices")

    assert result.passed is True
    assert result.source_count == result.migrated_count == result.lineage_count == 2
    assert result.missing_count == 0
    assert result.duplicate_legacy_ids == []


def test_skipped_records_count_as_missing(source_session, target_session):
    migrate(source_session, target_session, ["offices", "doctors", "doctor_offices"])

    result = MigrationValidator(source_session, target_session).validate_entity(
        "doctor_offices"
    )

    assert result.migrated_count == 1
    assert result.missing_count == 1
    assert result.passed is False


def test_missing_lineage_fails(source_session, target_session):
    migrate(source_session, target_session, ["offices"])
    target_session.execute(delete(MigrationMapping))
    target_session.commit()

    result = MigrationValidator(source_session, target_session).validate_entity("offices")

    assert result.lineage_count == 0
    assert result.passed is False


def test_validate_all_records_logs(source_session, target_session):
    migrate(source_session, target_session, ["offices"])
    validator = MigrationValidator(source_session, target_session)

    results = validator.validate_all(["offices", "doctors"])

    assert [r.passed for r in results] == [True, False]
    logs = target_session.execute(
        select(MigrationExecutionLog.entity_type, MigrationExecutionLog.status).where(
            MigrationExecutionLog.operation_type == "validation"
        )
    ).all()
    assert sorted(tuple(row) for row in logs) == [("doctors", "failed"), ("offices", "completed")]


def test_validate_all_without_recording(source_session, target_session):
    MigrationValidator(source_session, target_session).validate_all(
        ["offices"], record=False
    )
    assert target_session.execute(select(MigrationExecutionLog)).first() is None
