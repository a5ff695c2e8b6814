from datetime import datetime

from sqlalchemy import select

from dispatch_migration.models import DifferentialAnalysisResult, MigrationExecutionLog, Office
from dispatch_migration.services.differential import DifferentialDetector
from dispatch_migration.services.executor import MigrationExecutor


def test_new_and_deleted_ids(source_session, target_session):
    target_session.add(Office(name="gone", legacy_office_id=77))
    target_session.add(Office(name="kept", legacy_office_id=1))
    target_session.commit()

    result = DifferentialDetector(source_session, target_session).detect("offices")

    assert result.source_count == 2
    assert result.destination_count == 2
    assert result.new_ids == [3]
    assert result.deleted_ids == [77]
    assert result.modified_ids == []
    assert result.has_changes is True


def test_modified_ids_need_since_and_updated_at(source_session, target_session):
    MigrationExecutor(source_session, target_session, sleep=lambda _: None).run(
        ["offices", "doctors", "patients"]
    )
    detector = DifferentialDetector(source_session, target_session)

    assert detector.detect("patients").modified_ids == []
    changed = detector.detect("patients", since=datetime(2024, 1, 1))
    assert changed.modified_ids == [100]
    assert changed.new_ids == []
    assert detector.detect("offices", since=datetime(2024, 1, 1)).modified_ids == []


def test_save_records_result_and_log(source_session, target_session):
    detector = DifferentialDetector(source_session, target_session)
    result = detector.detect("payments")
    detector.save(result)

    saved = target_session.execute(select(DifferentialAnalysisResult)).scalar_one()
    assert saved.entity_type == "payments"
    assert saved.new_records == 3
    assert saved.details["new_ids"] == [1, 2, 3]
    log = target_session.execute(select(MigrationExecutionLog)).scalar_one()
    assert log.operation_type == "differential_detection"
    assert log.details == {"new": 3, "modified": 0, "deleted": 0}
