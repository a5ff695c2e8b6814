import uuid

from sqlalchemy import select

from dispatch_migration.core.clock import utc_now
from dispatch_migration.entities.base import EntityMigration
from dispatch_migration.legacy.tables import dispatch_record
from dispatch_migration.models import Message, MessageType, RecipientType

MESSAGE_TYPES = {
    1: MessageType.NOTIFICATION,
    2: MessageType.UPDATE,
    3: MessageType.COMMENT,
    4: MessageType.SYSTEM,
    5: MessageType.ALERT,
}

PATIENT_TARGET_TYPE = 1
DOCTOR_TARGET_TYPE = 2
TITLE_MAX_LENGTH = 50


def map_message_type(code: int | None) -> str:
    return MESSAGE_TYPES.get(code, MessageType.COMMENT).value


def message_title(text: str | None) -> str:
    lines = (text or "").strip().splitlines()
    title = lines[0].strip() if lines else ""
    if not title:
        return "Message"
    if len(title) > TITLE_MAX_LENGTH:
        return title[: TITLE_MAX_LENGTH - 3] + "..."
    return title


class MessageMigration(EntityMigration):
    name = "messages"
    source_table = dispatch_record
    target_model = Message
    legacy_id_attr = "legacy_record_id"
    depends_on = ("doctors", "patients")
    lookups = ("profile", "patient_profile")

    def source_select(self):
        r = dispatch_record.c
        return select(
            r.id.label("legacy_id"),
            r.target_id,
            r.type,
            r.created_at,
            r.text,
            r.author_id,
            r.target_type_id,
            r.group_id,
            r.public,
        )

    def resolve_recipient(self, row, ctx):
        if row.target_type_id == PATIENT_TARGET_TYPE:
            return RecipientType.PATIENT, ctx.lookups["patient_profile"].get(row.target_id)
        if row.target_type_id == DOCTOR_TARGET_TYPE:
            return RecipientType.DOCTOR, ctx.lookups["profile"].get(row.target_id)
        return RecipientType.SYSTEM, None

    def transform(self, row, ctx):
        recipient_type, recipient_id = self.resolve_recipient(row, ctx)
        if recipient_type is not RecipientType.SYSTEM and recipient_id is None:
            return self.skip(ctx, f"{recipient_type.value} recipient not migrated")
        values = {
            "id": uuid.uuid4(),
            "message_type": map_message_type(row.type),
            "title": message_title(row.text),
            "content": row.text or "",
            "sender_id": ctx.lookups["profile"].get(row.author_id),
            "recipient_type": recipient_type.value,
            "recipient_id": recipient_id,
            "is_read": False,
            "metadata_": {
                "legacy_type": row.type,
                "legacy_target_type_id": row.target_type_id,
                "legacy_target_id": row.target_id,
                "legacy_group_id": row.group_id,
                "legacy_public": row.public,
            },
            "legacy_record_id": row.legacy_id,
        }
        values["created_at"] = values["updated_at"] = row.created_at or utc_now()
        return [(Message, values)]
