import json
import uuid
from collections import defaultdict
from datetime import datetime, timezone

import httpx
import pytest
from sqlalchemy import func, insert, select, update
from sqlalchemy.exc import OperationalError

from dispatch_migration.core.errors import CheckpointError
from dispatch_migration.legacy import tables as legacy
from dispatch_migration.models import (
    Case,
    CaseState,
    Doctor,
    DoctorOffice,
    File,
    Message,
    MigrationCheckpoint,
    MigrationExecutionLog,
    MigrationMapping,
    MigrationRun,
    Office,
    Order,
    Patient,
    Payment,
    Profile,
    TemplateViewGroup,
    TemplateViewRole,
)
from dispatch_migration.services import checkpoints
from dispatch_migration.services.executor import MigrationExecutor
from dispatch_migration.services.registry import entity_names
from dispatch_migration.services.supabase import SupabaseRestClient
from dispatch_migration.services.writers import RestWriter


def count(session, model):
    return session.execute(select(func.count()).select_from(model)).scalar_one()


def make_executor(source_session, target_session, no_sleep, **kwargs):
    sleep, _ = no_sleep
    kwargs.setdefault("batch_size", 2)
    kwargs.setdefault("delay_ms", 0)
    kwargs.setdefault("retry_sleep_seconds", 0.5)
    kwargs.setdefault("max_retry_attempts", 2)
    return MigrationExecutor(source_session, target_session, sleep=sleep, **kwargs)


def test_full_run_migrates_every_entity(source_session, target_session, no_sleep):
    executor = make_executor(source_session, target_session, no_sleep)
    summary = executor.run(entity_names())

    assert summary.status == "completed"
    assert summary.failed_entities == []
    assert count(target_session, Office) == 2
    assert count(target_session, Profile) == 4
    assert count(target_session, Doctor) == 2
    assert count(target_session, DoctorOffice) == 1
    assert count(target_session, Patient) == 2
    assert count(target_session, Order) == 2
    assert count(target_session, Case) == 2
    assert count(target_session, CaseState) == 2
    assert count(target_session, Payment) == 2
    assert count(target_session, File) == 2
    assert count(target_session, Message) == 3
    assert count(target_session, TemplateViewGroup) == 1
    assert count(target_session, TemplateViewRole) == 1

    stats = {s.entity: s for s in summary.entities}
    assert stats["doctor_offices"].skip_reasons == {"office not migrated": 1}
    assert stats["payments"].skipped == 1
    assert stats["case_states"].skip_reasons == {
        "order not migrated": 1,
        "unmapped status code 5": 1,
    }

    run = target_session.get(MigrationRun, summary.run_id)
    assert run.status == "completed"
    assert run.records_inserted == summary.inserted
    assert run.completed_at is not None
    assert count(target_session, MigrationCheckpoint) == 0


def test_lineage_points_at_new_rows(source_session, target_session, no_sleep):
    make_executor(source_session, target_session, no_sleep).run(["offices"])

    mappings = target_session.execute(
        select(MigrationMapping.legacy_id, MigrationMapping.new_id).where(
            MigrationMapping.entity_type == "offices"
        )
    ).all()
    offices = dict(
        target_session.execute(select(Office.legacy_office_id, Office.id)).all()
    )
    assert dict(mappings) == offices


def test_related_rows_resolve_to_migrated_parents(source_session, target_session, no_sleep):
    make_executor(source_session, target_session, no_sleep).run(entity_names())

    doctor_profile = target_session.execute(
        select(Profile).where(Profile.legacy_user_id == 10)
    ).scalar_one()
    assert doctor_profile.profile_type == "doctor"
    assert doctor_profile.email == "jane@example.com"

    patient = target_session.execute(
        select(Patient).where(Patient.legacy_patient_id == 100)
    ).scalar_one()
    doctor = target_session.execute(
        select(Doctor).where(Doctor.legacy_user_id == 10)
    ).scalar_one()
    assert patient.primary_doctor_id == doctor.id

    order = target_session.execute(
        select(Order).where(Order.legacy_instruction_id == 500)
    ).scalar_one()
    assert order.patient_id == patient.id
    assert order.course_type == "refinement"

    states = target_session.execute(
        select(CaseState).order_by(CaseState.legacy_state_id)
    ).scalars().all()
    case = target_session.execute(
        select(Case).where(Case.legacy_patient_id == 100)
    ).scalar_one()
    assert [s.case_id for s in states] == [case.id, case.id]
    assert [s.previous_state for s in states] == [None, "treatment_active"]
    assert states[0].changed_by_id == doctor_profile.id


def test_rerun_is_idempotent(source_session, target_session, no_sleep):
    executor = make_executor(source_session, target_session, no_sleep)
    executor.run(entity_names())
    before = count(target_session, Message)

    summary = executor.run(entity_names())

    assert summary.inserted == 0
    offices = next(s for s in summary.entities if s.entity == "offices")
    assert offices.skipped_existing == offices.processed == 2
    assert count(target_session, Message) == before
    assert count(target_session, Office) == 2


def test_dry_run_writes_nothing(source_session, target_session, no_sleep):
    executor = make_executor(source_session, target_session, no_sleep, dry_run=True)
    summary = executor.run(["offices", "doctors"])

    assert summary.dry_run is True
    assert {s.entity: s.inserted for s in summary.entities} == {"offices": 2, "doctors": 2}
    assert count(target_session, Office) == 0
    assert count(target_session, Profile) == 0
    assert count(target_session, MigrationMapping) == 0
    run = target_session.get(MigrationRun, summary.run_id)
    assert run.dry_run is True


def test_pages_by_batch_size_and_pauses_between_batches(
    source_session, target_session, no_sleep
):
    _, sleeps = no_sleep
    executor = make_executor(
        source_session, target_session, no_sleep, batch_size=1, delay_ms=250
    )
    stats = executor.migrate_entity("offices")

    assert stats.batches == 2
    assert stats.inserted == 2
    assert stats.last_legacy_id == 3
    assert sleeps == [0.25, 0.25]


def test_resume_starts_after_checkpoint(source_session, target_session, no_sleep):
    checkpoints.save_checkpoint(
        target_session,
        "offices",
        last_processed_id=1,
        batch_number=1,
        records_processed=1,
        records_inserted=1,
        records_failed=0,
    )
    target_session.commit()

    stats = make_executor(source_session, target_session, no_sleep).migrate_entity(
        "offices", resume=True
    )

    assert stats.processed == 1
    legacy_ids = target_session.execute(select(Office.legacy_office_id)).scalars().all()
    assert legacy_ids == [3]
    assert count(target_session, MigrationCheckpoint) == 0
    restore = target_session.execute(
        select(MigrationExecutionLog).where(
            MigrationExecutionLog.operation_type == "checkpoint_restore"
        )
    ).scalar_one()
    assert restore.details["last_processed_id"] == 1


def test_resume_rejects_checkpoint_past_source(source_session, target_session, no_sleep):
    checkpoints.save_checkpoint(
        target_session,
        "offices",
        last_processed_id=99,
        batch_number=3,
        records_processed=10,
        records_inserted=10,
        records_failed=0,
    )
    target_session.commit()

    executor = make_executor(source_session, target_session, no_sleep)
    with pytest.raises(CheckpointError):
        executor.migrate_entity("offices", resume=True)

    summary = executor.run(["offices"], resume=True)
    assert summary.status == "failed"
    assert summary.failed_entities == ["offices"]
    run = target_session.get(MigrationRun, summary.run_id)
    assert "past the last source id" in run.error_message


def test_failed_batch_falls_back_to_single_records(source_session, target_session, no_sleep):
    executor = make_executor(source_session, target_session, no_sleep)
    executor.run(["offices", "doctors", "patients"])

    # an unrelated order already holds the number the first legacy order maps to
    target_session.add(
        Order(
            order_number="AB-500",
            patient_id=uuid.uuid4(),
            doctor_id=uuid.uuid4(),
        )
    )
    target_session.commit()

    stats = executor.migrate_entity("orders")

    assert stats.inserted == 1
    assert stats.errors == 1
    migrated = target_session.execute(
        select(Order.legacy_instruction_id).where(
            Order.legacy_instruction_id.is_not(None)
        )
    ).scalars().all()
    assert migrated == [501]
    lineage = target_session.execute(
        select(MigrationMapping.legacy_id).where(MigrationMapping.entity_type == "orders")
    ).scalars().all()
    assert lineage == [501]


class FlakySource:
    """Session stand-in whose first ``failures`` executes drop the connection."""

    def __init__(self, session, failures):
        self.session = session
        self.failures = failures
        self.rollbacks = 0

    def execute(self, *args, **kwargs):
        if self.failures:
            self.failures -= 1
            raise OperationalError("SELECT", {}, Exception("server closed the connection"))
        return self.session.execute(*args, **kwargs)

    def rollback(self):
        self.rollbacks += 1
        self.session.rollback()


def test_page_read_is_retried(source_session, target_session, no_sleep):
    _, sleeps = no_sleep
    flaky = FlakySource(source_session, failures=2)
    executor = make_executor(flaky, target_session, no_sleep)

    stats = executor.migrate_entity("offices")

    assert stats.inserted == 2
    assert flaky.rollbacks == 2
    assert sleeps == [0.5, 0.5]


def test_page_read_gives_up_after_max_attempts(source_session, target_session, no_sleep):
    flaky = FlakySource(source_session, failures=5)
    executor = make_executor(flaky, target_session, no_sleep)

    with pytest.raises(OperationalError):
        executor.migrate_entity("offices")

    flaky.failures = 5
    summary = executor.run(["offices"])
    assert summary.failed_entities == ["offices"]
    failed_log = target_session.execute(
        select(MigrationExecutionLog).where(MigrationExecutionLog.status == "failed")
    ).scalar_one()
    assert failed_log.entity_type == "offices"


def test_states_on_unmigrated_orders_are_skipped(
    source_session, target_session, no_sleep
):
    # instruction 502 is deleted, so it never becomes an order
    source_session.execute(
        insert(legacy.dispatch_state),
        {
            "id": 50,
            "status": 11,
            "on": True,
            "changed_at": datetime(2022, 5, 1, 9, 0),
            "instruction_id": 502,
        },
    )
    source_session.commit()

    summary = make_executor(source_session, target_session, no_sleep).run(entity_names())

    stats = {s.entity: s for s in summary.entities}
    assert stats["case_states"].skip_reasons["order not migrated"] == 2
    states = target_session.execute(
        select(CaseState).order_by(CaseState.legacy_state_id)
    ).scalars().all()
    assert [s.legacy_state_id for s in states] == [1, 2]
    assert [s.previous_state for s in states] == [None, "treatment_active"]


def test_cases_fall_back_to_earliest_doctor(source_session, target_session, no_sleep):
    source_session.execute(
        update(legacy.dispatch_patient)
        .where(legacy.dispatch_patient.c.id == 101)
        .values(doctor_id=999)
    )
    source_session.commit()
    executor = make_executor(source_session, target_session, no_sleep)
    executor.run(["offices", "doctors", "patients"])
    target_session.execute(
        update(Doctor)
        .where(Doctor.legacy_user_id == 11)
        .values(created_at=datetime(2000, 1, 1, tzinfo=timezone.utc))
    )
    target_session.commit()

    executor.migrate_entity("cases")

    doctors = dict(target_session.execute(select(Doctor.legacy_user_id, Doctor.id)).all())
    cases = dict(
        target_session.execute(select(Case.legacy_patient_id, Case.primary_doctor_id)).all()
    )
    assert cases == {100: doctors[10], 101: doctors[11]}


def test_files_are_uploaded_by_earliest_master_profile(
    source_session, target_session, no_sleep
):
    system = Profile(
        profile_type="master",
        first_name="System",
        last_name="Admin",
        created_at=datetime(2019, 1, 1, tzinfo=timezone.utc),
    )
    target_session.add_all(
        [
            system,
            Profile(profile_type="master", first_name="Later", last_name="Admin"),
        ]
    )
    target_session.commit()

    make_executor(source_session, target_session, no_sleep).run(["files"])

    uploaders = set(target_session.execute(select(File.uploaded_by)).scalars())
    assert uploaders == {system.id}


def test_files_without_master_profile_have_no_uploader(
    source_session, target_session, no_sleep
):
    make_executor(source_session, target_session, no_sleep).run(["files"])

    uploaders = target_session.execute(select(File.uploaded_by)).scalars().all()
    assert uploaders == [None, None]


def test_doctors_reuse_existing_profile(source_session, target_session, no_sleep):
    existing = Profile(
        profile_type="doctor",
        first_name="Jane",
        last_name="Doe",
        legacy_user_id=10,
    )
    target_session.add(existing)
    target_session.commit()

    stats = make_executor(source_session, target_session, no_sleep).migrate_entity("doctors")

    assert stats.inserted == 2
    assert count(target_session, Profile) == 2
    doctor = target_session.execute(
        select(Doctor).where(Doctor.legacy_user_id == 10)
    ).scalar_one()
    assert doctor.profile_id == existing.id


class FakePostgrest:
    """In-memory PostgREST that rejects duplicate legacy ids and can fail a table."""

    def __init__(self, fail_first=()):
        self.tables = defaultdict(list)
        self.fail_first = set(fail_first)
        self.conflicts = 0

    def __call__(self, request):
        table = request.url.path.rsplit("/", 1)[-1]
        rows = json.loads(request.content)
        if table in self.fail_first:
            self.fail_first.discard(table)
            return httpx.Response(503, text="upstream unavailable")
        seen = {r.get("legacy_user_id") for r in self.tables[table]}
        if any(r.get("legacy_user_id") in seen for r in rows):
            self.conflicts += 1
            return httpx.Response(409, text='{"code":"23505"}')
        self.tables[table].extend(rows)
        return httpx.Response(201)


def test_rest_writer_writes_one_record_at_a_time(
    source_session, target_session, no_sleep
):
    postgrest = FakePostgrest(fail_first={"doctors"})
    client = SupabaseRestClient(
        "https://example.supabase.co", "service-key", transport=httpx.MockTransport(postgrest)
    )
    with client:
        executor = make_executor(
            source_session, target_session, no_sleep, writer=RestWriter(client)
        )
        stats = executor.migrate_entity("doctors")

    assert stats.inserted == 1
    assert stats.errors == 1
    assert postgrest.conflicts == 0
    assert [d["legacy_user_id"] for d in postgrest.tables["doctors"]] == [11]
    lineage = target_session.execute(
        select(MigrationMapping.legacy_id).where(MigrationMapping.entity_type == "doctors")
    ).scalars().all()
    assert lineage == [11]
    assert count(target_session, Doctor) == 0
