import uuid
from decimal import Decimal

from sqlalchemy import select

from dispatch_migration.entities.base import EntityMigration
from dispatch_migration.legacy.tables import dispatch_payment
from dispatch_migration.models import Payment, PaymentStatus


def map_payment_status(canceled: bool | None, paid: bool | None) -> str:
    if canceled:
        return PaymentStatus.CANCELLED.value
    if paid:
        return PaymentStatus.COMPLETED.value
    return PaymentStatus.PENDING.value


def _decimal_str(value) -> str | None:
    return str(value) if value is not None else None


class PaymentMigration(EntityMigration):
    name = "payments"
    source_table = dispatch_payment
    target_model = Payment
    legacy_id_attr = "legacy_payment_id"
    depends_on = ("orders",)
    lookups = ("order",)

    def source_select(self):
        p = dispatch_payment.c
        return select(
            p.id.label("legacy_id"),
            p.instruction_id,
            p.order_id,
            p.doctor_id,
            p.office_id,
            p.paid_price,
            p.total_price,
            p.subtotal_price,
            p.tax_rate,
            p.tax_value,
            p.used_credit,
            p.additional_price,
            p.custom_price,
            p.paid,
            p.canceled,
            p.free,
            p.made_at,
        )

    def transform(self, row, ctx):
        order_id = ctx.lookups["order"].get(row.instruction_id)
        if order_id is None:
            return self.skip(ctx, "order not migrated")
        return [
            (
                Payment,
                {
                    "id": uuid.uuid4(),
                    "order_id": order_id,
                    "amount": row.total_price if row.total_price is not None else Decimal("0"),
                    "currency": "USD",
                    "payment_method": "other",
                    "status": map_payment_status(row.canceled, row.paid),
                    "processed_at": row.made_at,
                    "metadata_": {
                        "paid_price": _decimal_str(row.paid_price),
                        "subtotal_price": _decimal_str(row.subtotal_price),
                        "tax_rate": _decimal_str(row.tax_rate),
                        "tax_value": _decimal_str(row.tax_value),
                        "used_credit": _decimal_str(row.used_credit),
                        "additional_price": _decimal_str(row.additional_price),
                        "custom_price": _decimal_str(row.custom_price),
                        "free": row.free,
                        "legacy_order_id": row.order_id,
                        "legacy_doctor_id": row.doctor_id,
                        "legacy_office_id": row.office_id,
                    },
                    "legacy_payment_id": row.legacy_id,
                },
            )
        ]
