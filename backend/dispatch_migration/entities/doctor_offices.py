import uuid

from sqlalchemy import select

from dispatch_migration.entities.base import EntityMigration
from dispatch_migration.legacy.tables import dispatch_office_doctors
from dispatch_migration.models import DoctorOffice


class DoctorOfficeMigration(EntityMigration):
    name = "doctor_offices"
    source_table = dispatch_office_doctors
    target_model = DoctorOffice
    legacy_id_attr = "legacy_doctor_office_id"
    depends_on = ("doctors", "offices")
    lookups = ("doctor", "office")

    def source_select(self):
        j = dispatch_office_doctors.c
        return select(j.id.label("legacy_id"), j.office_id, j.user_id)

    def transform(self, row, ctx):
        doctor_id = ctx.lookups["doctor"].get(row.user_id)
        if doctor_id is None:
            return self.skip(ctx, "doctor not migrated")
        office_id = ctx.lookups["office"].get(row.office_id)
        if office_id is None:
            return self.skip(ctx, "office not migrated")
        return [
            (
                DoctorOffice,
                {
                    "id": uuid.uuid4(),
                    "doctor_id": doctor_id,
                    "office_id": office_id,
                    "is_primary": False,
                    "is_active": True,
                    "legacy_doctor_office_id": row.legacy_id,
                },
            )
        ]
