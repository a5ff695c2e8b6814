import re
import uuid
from decimal import Decimal

from sqlalchemy import select

from dispatch_migration.entities.base import (
    EntityMigration,
    clean_text,
    digits_only,
)
from dispatch_migration.legacy.tables import dispatch_office
from dispatch_migration.models import Office

MAX_TAX_RATE = Decimal("0.9999")


def normalize_office_name(name: str | None, legacy_id: int) -> str:
    cleaned = re.sub(r"\s+", " ", (name or "").strip().lower())
    return cleaned or f"Office {legacy_id}"


def normalize_tax_rate(value) -> Decimal | None:
    # legacy rows mix fractions (0.0825) and percentages (8.25)
    if value is None:
        return None
    rate = Decimal(str(value))
    if rate > 1:
        rate = rate / 100
    return min(rate, MAX_TAX_RATE)


class OfficeMigration(EntityMigration):
    name = "offices"
    source_table = dispatch_office
    target_model = Office
    legacy_id_attr = "legacy_office_id"

    def source_select(self):
        o = dispatch_office.c
        return select(
            o.id.label("legacy_id"),
            o.name,
            o.address,
            o.apt,
            o.city,
            o.state,
            o.zip,
            o.phone,
            o.tax_rate,
            o.sq_customer_id,
            o.emails,
        ).where(o.valid.is_(True))

    def transform(self, row, ctx):
        state = clean_text(row.state)
        return [
            (
                Office,
                {
                    "id": uuid.uuid4(),
                    "name": normalize_office_name(row.name, row.legacy_id),
                    "address": clean_text(row.address),
                    "apartment": clean_text(row.apt),
                    "city": clean_text(row.city),
                    "state": state.upper() if state else None,
                    "zip_code": digits_only(row.zip),
                    "country": "US",
                    "phone": digits_only(row.phone),
                    "tax_rate": normalize_tax_rate(row.tax_rate),
                    "square_customer_id": clean_text(row.sq_customer_id),
                    "is_active": True,
                    "email_notifications": bool(row.emails),
                    "metadata_": {
                        "original_name": row.name,
                        "original_tax_rate": (
                            str(row.tax_rate) if row.tax_rate is not None else None
                        ),
                    },
                    "legacy_office_id": row.legacy_id,
                },
            )
        ]
