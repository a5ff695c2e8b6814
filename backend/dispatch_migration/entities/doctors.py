import uuid

from sqlalchemy import exists, select

from dispatch_migration.core.clock import utc_now
from dispatch_migration.entities.base import (
    EntityMigration,
    clean_text,
    name_or_unknown,
    normalize_email,
)
from dispatch_migration.legacy.tables import (
    auth_user,
    dispatch_doctorsetting,
    dispatch_patient,
)
from dispatch_migration.models import Doctor, Profile, ProfileType


class DoctorMigration(EntityMigration):
    """Users with a doctor settings row become a doctor profile plus a doctor.

    Users that also appear as a patient's login are left to the patients entity.
    """

    name = "doctors"
    source_table = auth_user
    target_model = Doctor
    legacy_id_attr = "legacy_user_id"
    lookups = ("profile",)

    def source_select(self):
        u = auth_user.c
        s = dispatch_doctorsetting.c
        is_patient = exists().where(dispatch_patient.c.user_id == u.id)
        return (
            select(
                u.id.label("legacy_id"),
                u.username,
                u.first_name,
                u.last_name,
                u.email,
                u.password,
                u.is_active,
                u.is_staff,
                u.date_joined,
                u.last_login,
                s.sq_customer_id,
                s.credit,
                s.tier_type,
                s.company_account,
                s.clinical_preferences,
                s.baa_agreed_at,
                s.eula_agreed_at,
            )
            .select_from(auth_user.join(dispatch_doctorsetting, s.user_id == u.id))
            .where(~is_patient)
        )

    def transform(self, row, ctx):
        rows = []
        profile_id = ctx.lookups["profile"].get(row.legacy_id)
        if profile_id is None:
            profile_id = uuid.uuid4()
            rows.append(
                (
                    Profile,
                    {
                        "id": profile_id,
                        "profile_type": ProfileType.DOCTOR.value,
                        "first_name": name_or_unknown(row.first_name),
                        "last_name": name_or_unknown(row.last_name),
                        "email": normalize_email(row.email),
                        "username": clean_text(row.username),
                        "password_hash": row.password,
                        "is_active": bool(row.is_active),
                        "is_verified": True,
                        "last_login_at": row.last_login,
                        "legacy_user_id": row.legacy_id,
                        "created_at": row.date_joined or utc_now(),
                    },
                )
            )
        rows.append(
            (
                Doctor,
                {
                    "id": uuid.uuid4(),
                    "profile_id": profile_id,
                    "square_customer_id": clean_text(row.sq_customer_id),
                    "credit": row.credit,
                    "tier": row.tier_type,
                    "company_account": bool(row.company_account),
                    "is_staff": bool(row.is_staff),
                    "joined_at": row.date_joined,
                    "baa_agreed_at": row.baa_agreed_at,
                    "eula_agreed_at": row.eula_agreed_at,
                    "metadata_": {
                        "clinical_preferences": row.clinical_preferences,
                        "original_email": row.email,
                    },
                    "legacy_user_id": row.legacy_id,
                },
            )
        )
        return rows
