import uuid

from sqlalchemy import select

from dispatch_migration.core.clock import utc_now
from dispatch_migration.entities.base import EntityMigration, clean_text
from dispatch_migration.legacy.tables import dispatch_patient
from dispatch_migration.models import Case, CaseStatus, Doctor

CASE_STATUSES = {
    1: CaseStatus.CONSULTATION,
    2: CaseStatus.DIAGNOSIS,
    3: CaseStatus.TREATMENT_PLAN,
    4: CaseStatus.ACTIVE,
    5: CaseStatus.REFINEMENT,
    6: CaseStatus.RETENTION,
    7: CaseStatus.COMPLETED,
    8: CaseStatus.CANCELLED,
    9: CaseStatus.ON_HOLD,
    10: CaseStatus.TRANSFERRED,
    11: CaseStatus.REVISION,
}


def map_case_status(status: int | None) -> str:
    return CASE_STATUSES.get(status, CaseStatus.CONSULTATION).value


class CaseMigration(EntityMigration):
    name = "cases"
    source_table = dispatch_patient
    target_model = Case
    legacy_id_attr = "legacy_patient_id"
    depends_on = ("patients",)
    lookups = ("patient", "doctor", "office")

    def source_select(self):
        p = dispatch_patient.c
        return select(
            p.id.label("legacy_id"),
            p.user_id,
            p.doctor_id,
            p.office_id,
            p.status,
            p.suffix,
            p.sex,
            p.archived,
            p.suspended,
            p.submitted_at,
            p.updated_at,
        )

    def prepare(self, ctx, target):
        ctx.state["default_doctor_id"] = target.execute(
            select(Doctor.id).order_by(Doctor.created_at, Doctor.id).limit(1)
        ).scalar_one_or_none()

    def transform(self, row, ctx):
        patient_id = ctx.lookups["patient"].get(row.legacy_id)
        if patient_id is None:
            return self.skip(ctx, "patient not migrated")
        doctor_id = ctx.lookups["doctor"].get(row.doctor_id) or ctx.state.get(
            "default_doctor_id"
        )
        values = {
            "id": uuid.uuid4(),
            "patient_id": patient_id,
            "primary_doctor_id": doctor_id,
            "office_id": ctx.lookups["office"].get(row.office_id),
            "case_number": f"CASE-{clean_text(row.suffix) or ''}-{row.legacy_id}",
            "status": map_case_status(row.status),
            "deleted": bool(row.archived or row.suspended),
            "metadata_": {
                "legacy_status": row.status,
                "legacy_sex": row.sex,
                "legacy_archived": row.archived,
                "legacy_suspended": row.suspended,
                "original_suffix": row.suffix,
                "legacy_doctor_id": row.doctor_id,
                "legacy_user_id": row.user_id,
            },
            "legacy_patient_id": row.legacy_id,
        }
        values["created_at"] = row.submitted_at or utc_now()
        values["updated_at"] = row.updated_at or values["created_at"]
        return [(Case, values)]
