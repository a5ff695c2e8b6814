import uuid

from sqlalchemy import select

from dispatch_migration.core.clock import utc_now
from dispatch_migration.entities.base import (
    EntityMigration,
    as_date,
    clean_text,
    name_or_unknown,
    normalize_email,
    parse_json_text,
)
from dispatch_migration.legacy.tables import auth_user, dispatch_patient
from dispatch_migration.models import Gender, Patient, Profile, ProfileType

SEX_CODES = {1: Gender.MALE, 2: Gender.FEMALE, 0: Gender.OTHER}


def map_sex(code: int | None) -> str:
    return SEX_CODES.get(code, Gender.UNKNOWN).value


class PatientMigration(EntityMigration):
    name = "patients"
    source_table = dispatch_patient
    target_model = Patient
    legacy_id_attr = "legacy_patient_id"
    depends_on = ("doctors", "offices")
    lookups = ("profile", "doctor", "office")

    def source_select(self):
        p = dispatch_patient.c
        u = auth_user.c
        return select(
            p.id.label("legacy_id"),
            p.user_id,
            p.doctor_id,
            p.office_id,
            p.birthdate,
            p.archived,
            p.suspended,
            p.status,
            p.suffix,
            p.sex,
            p.schemes,
            p.submitted_at,
            p.updated_at,
            u.username,
            u.first_name,
            u.last_name,
            u.email,
            u.is_active,
            u.date_joined,
            u.last_login,
        ).select_from(dispatch_patient.join(auth_user, u.id == p.user_id))

    def transform(self, row, ctx):
        sex = map_sex(row.sex)
        suffix = clean_text(row.suffix)
        birth_date = as_date(row.birthdate)
        rows = []
        profile_id = ctx.lookups["profile"].get(row.user_id)
        if profile_id is None:
            profile_id = uuid.uuid4()
            rows.append(
                (
                    Profile,
                    {
                        "id": profile_id,
                        "profile_type": ProfileType.PATIENT.value,
                        "first_name": name_or_unknown(row.first_name),
                        "last_name": name_or_unknown(row.last_name),
                        "email": normalize_email(row.email),
                        "username": clean_text(row.username),
                        "is_active": bool(row.is_active),
                        "archived": bool(row.archived),
                        "suspended": bool(row.suspended),
                        "date_of_birth": birth_date,
                        "gender": sex,
                        "patient_suffix": suffix,
                        "last_login_at": row.last_login,
                        "legacy_user_id": row.user_id,
                        "legacy_patient_id": row.legacy_id,
                        "created_at": row.date_joined or utc_now(),
                    },
                )
            )
        rows.append(
            (
                Patient,
                {
                    "id": uuid.uuid4(),
                    "profile_id": profile_id,
                    "primary_doctor_id": ctx.lookups["doctor"].get(row.doctor_id),
                    "office_id": ctx.lookups["office"].get(row.office_id),
                    "patient_suffix": suffix,
                    "date_of_birth": birth_date,
                    "sex": sex,
                    "archived": bool(row.archived),
                    "suspended": bool(row.suspended),
                    "schemes": parse_json_text(row.schemes),
                    "metadata_": {
                        "legacy_status": row.status,
                        "legacy_doctor_id": row.doctor_id,
                        "legacy_office_id": row.office_id,
                        "submitted_at": (
                            row.submitted_at.isoformat() if row.submitted_at else None
                        ),
                    },
                    "legacy_patient_id": row.legacy_id,
                    "legacy_user_id": row.user_id,
                },
            )
        )
        return rows
