from __future__ import annotations

import json
import re
from collections import Counter
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import Select, Table
from sqlalchemy.engine import Row
from sqlalchemy.orm import InstrumentedAttribute, Session

from dispatch_migration.db.base import Base
from dispatch_migration.services.lookups import LookupSet

TargetRow = tuple[type[Base], dict[str, Any]]

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


@dataclass
class MigrationContext:
    lookups: LookupSet = field(default_factory=LookupSet)
    skip_reasons: Counter = field(default_factory=Counter)
    state: dict[str, Any] = field(default_factory=dict)

    def skip(self, reason: str) -> None:
        self.skip_reasons[reason] += 1


class EntityMigration:
    """One legacy table (or join) copied into one target table.

    Subclasses declare where rows come from and how they are reshaped; the
    executor owns paging, existence checks, writes and lineage.
    """

    name: str
    source_table: Table
    target_model: type[Base]
    legacy_id_attr: str
    depends_on: tuple[str, ...] = ()
    lookups: tuple[str, ...] = ()

    @property
    def legacy_id_column(self) -> InstrumentedAttribute:
        return getattr(self.target_model, self.legacy_id_attr)

    @property
    def source_key(self):
        return self.source_table.c.id

    @property
    def tracks_updates(self) -> bool:
        return "updated_at" in self.source_table.c

    def source_select(self) -> Select:
        raise NotImplementedError

    def prepare(self, ctx: MigrationContext, target: Session) -> None:
        """Load per-run state before the first batch."""

    def transform(self, row: Row, ctx: MigrationContext) -> list[TargetRow] | None:
        raise NotImplementedError

    def skip(self, ctx: MigrationContext, reason: str) -> None:
        ctx.skip(reason)
        return None

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"


def clean_text(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


def name_or_unknown(value: str | None) -> str:
    return clean_text(value) or "Unknown"


def normalize_email(value: str | None) -> str | None:
    value = clean_text(value)
    if not value:
        return None
    value = value.lower()
    return value if _EMAIL_RE.match(value) else None


def digits_only(value: str | None) -> str | None:
    if not value:
        return None
    digits = re.sub(r"\D", "", value)
    return digits or None


def parse_json_text(value: str | None) -> Any:
    """Decode a legacy text column holding JSON; non-JSON text is kept as is."""
    if value is None or value == "":
        return None
    try:
        return json.loads(value)
    except (TypeError, ValueError):
        return value


def as_date(value):
    if value is None:
        return None
    return value.date() if hasattr(value, "date") else value
