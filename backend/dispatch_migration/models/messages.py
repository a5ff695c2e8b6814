import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from dispatch_migration.core.clock import utc_now
from dispatch_migration.db.base import Base
from dispatch_migration.db.types import JSONType


class Message(Base):
    __tablename__ = "messages"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    message_type: Mapped[str] = mapped_column(String(20), default="comment")
    title: Mapped[str] = mapped_column(String(50))
    subject: Mapped[str | None] = mapped_column(String(255), nullable=True)
    content: Mapped[str] = mapped_column(Text, default="")
    sender_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("profiles.id"), nullable=True
    )
    recipient_type: Mapped[str] = mapped_column(String(20), default="system")
    recipient_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("profiles.id"), nullable=True
    )
    is_read: Mapped[bool] = mapped_column(Boolean, default=False)
    metadata_: Mapped[dict | None] = mapped_column("metadata", JSONType, nullable=True)
    legacy_record_id: Mapped[int | None] = mapped_column(
        Integer, unique=True, nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )


class TemplateViewGroup(Base):
    __tablename__ = "template_view_groups"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    template_name: Mapped[str] = mapped_column(String(255))
    group_name: Mapped[str] = mapped_column(String(150))
    permission_level: Mapped[str] = mapped_column(String(20), default="view")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    legacy_template_id: Mapped[int] = mapped_column(Integer, index=True)
    legacy_group_id: Mapped[int] = mapped_column(Integer)
    legacy_junction_id: Mapped[int | None] = mapped_column(
        Integer, unique=True, nullable=True
    )
    metadata_: Mapped[dict | None] = mapped_column("metadata", JSONType, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)


class TemplateViewRole(Base):
    __tablename__ = "template_view_roles"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    template_name: Mapped[str] = mapped_column(String(255))
    role_name: Mapped[str] = mapped_column(String(150))
    permission_level: Mapped[str] = mapped_column(String(20), default="view")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    legacy_template_id: Mapped[int] = mapped_column(Integer, index=True)
    legacy_role_id: Mapped[int] = mapped_column(Integer)
    legacy_junction_id: Mapped[int | None] = mapped_column(
        Integer, unique=True, nullable=True
    )
    metadata_: Mapped[dict | None] = mapped_column("metadata", JSONType, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
