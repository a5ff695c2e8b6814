import uuid

from sqlalchemy import select

from dispatch_migration.entities.base import (
    EntityMigration,
    clean_text,
    parse_json_text,
)
from dispatch_migration.legacy.tables import dispatch_instruction, dispatch_patient
from dispatch_migration.models import CourseType, Order, OrderStatus

COURSE_TYPES = {
    1: CourseType.MAIN,
    2: CourseType.REFINEMENT,
    3: CourseType.REPLACEMENT,
    4: CourseType.ANY,
    7: CourseType.INVOICE,
    8: CourseType.MERCHANDISE,
}

ORDER_STATUSES = {
    0: OrderStatus.NO_PRODUCT,
    1: OrderStatus.SUBMITTED,
    2: OrderStatus.APPROVED,
    4: OrderStatus.SHIPPED,
}


def map_course_type(course_id: int | None) -> str:
    return COURSE_TYPES.get(course_id, CourseType.MAIN).value


def map_order_status(status: int | None) -> str:
    return ORDER_STATUSES.get(status, OrderStatus.NO_PRODUCT).value


class OrderMigration(EntityMigration):
    name = "orders"
    source_table = dispatch_instruction
    target_model = Order
    legacy_id_attr = "legacy_instruction_id"
    depends_on = ("patients",)
    lookups = ("patient", "doctor", "office")

    def source_select(self):
        i = dispatch_instruction.c
        p = dispatch_patient.c
        return (
            select(
                i.id.label("legacy_id"),
                i.patient_id,
                i.course_id,
                i.status,
                i.notes,
                i.complaint,
                i.price,
                i.submitted_at,
                i.updated_at,
                i.exports,
                i.model,
                i.scanner,
                p.doctor_id,
                p.office_id,
                p.suffix,
            )
            .select_from(dispatch_instruction.join(dispatch_patient, p.id == i.patient_id))
            .where(i.deleted.is_(False))
        )

    def transform(self, row, ctx):
        patient_id = ctx.lookups["patient"].get(row.patient_id)
        if patient_id is None:
            return self.skip(ctx, "patient not migrated")
        doctor_id = ctx.lookups["doctor"].get(row.doctor_id)
        if doctor_id is None:
            return self.skip(ctx, "doctor not migrated")

        status = row.status if row.status is not None else 0
        suffix = clean_text(row.suffix) or "X"
        return [
            (
                Order,
                {
                    "id": uuid.uuid4(),
                    "order_number": f"{suffix}-{row.legacy_id}",
                    "patient_id": patient_id,
                    "doctor_id": doctor_id,
                    "office_id": ctx.lookups["office"].get(row.office_id),
                    "course_type": map_course_type(row.course_id),
                    "status": map_order_status(row.status),
                    "notes": row.notes,
                    "complaint": row.complaint,
                    "amount": row.price,
                    "submitted_at": row.submitted_at,
                    "approved_at": row.updated_at if status >= 2 else None,
                    "shipped_at": row.updated_at if status == 4 else None,
                    "exports": parse_json_text(row.exports),
                    "deleted": False,
                    "metadata_": {
                        "legacy_status": row.status,
                        "legacy_course_id": row.course_id,
                        "model": row.model,
                        "scanner": row.scanner,
                    },
                    "legacy_instruction_id": row.legacy_id,
                },
            )
        ]
