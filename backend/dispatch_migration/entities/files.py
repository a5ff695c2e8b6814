import uuid

from sqlalchemy import select

from dispatch_migration.core.clock import utc_now
from dispatch_migration.entities.base import EntityMigration, parse_json_text
from dispatch_migration.legacy.tables import dispatch_file
from dispatch_migration.models import File, Profile, ProfileType

MIME_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".stl": "model/stl",
    ".zip": "application/zip",
    ".dxf": "application/dxf",
    ".dcm": "application/dicom",
    ".pdf": "application/pdf",
    ".txt": "text/plain",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
}
DEFAULT_MIME_TYPE = "application/octet-stream"


def mime_type_for(ext: str | None) -> str:
    if not ext:
        return DEFAULT_MIME_TYPE
    ext = ext.lower()
    if not ext.startswith("."):
        ext = f".{ext}"
    return MIME_TYPES.get(ext, DEFAULT_MIME_TYPE)


class FileMigration(EntityMigration):
    name = "files"
    source_table = dispatch_file
    target_model = File
    legacy_id_attr = "legacy_file_id"
    depends_on = ("orders",)
    lookups = ("order",)

    def source_select(self):
        f = dispatch_file.c
        return select(
            f.id.label("legacy_id"),
            f.uid,
            f.name,
            f.ext,
            f.size,
            f.type,
            f.instruction_id,
            f.created_at,
            f.description,
            f.product_id,
            f.parameters,
            f.record_id,
            f.status,
        )

    def prepare(self, ctx, target):
        ctx.state["system_profile_id"] = target.execute(
            select(Profile.id)
            .where(Profile.profile_type == ProfileType.MASTER.value)
            .order_by(Profile.created_at, Profile.id)
            .limit(1)
        ).scalar_one_or_none()

    def transform(self, row, ctx):
        values = {
            "id": uuid.uuid4(),
            "file_uid": row.uid,
            "order_id": ctx.lookups["order"].get(row.instruction_id),
            "uploaded_by": ctx.state.get("system_profile_id"),
            "filename": row.name or f"file_{row.legacy_id}{row.ext or ''}",
            "file_type": row.ext,
            "file_size_bytes": row.size,
            "mime_type": mime_type_for(row.ext),
            "metadata_": {
                "original_type": row.type,
                "original_status": row.status,
                "description": row.description,
                "product_id": row.product_id,
                "record_id": row.record_id,
                "parameters": parse_json_text(row.parameters),
            },
            "legacy_file_id": row.legacy_id,
        }
        values["uploaded_at"] = row.created_at or utc_now()
        return [(File, values)]
