"""Legacy id to UUID maps read from the target database.

Each named map is loaded with one SELECT and kept in memory for the rest of the
entity run. Rows committed during the run are folded back in with ``absorb`` so
later batches see them without reloading.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Any

import structlog
from sqlalchemy import select
from sqlalchemy.orm import Session

from dispatch_migration.db.base import Base
from dispatch_migration.models import (
    Case,
    Doctor,
    Office,
    Order,
    Patient,
    Profile,
)

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class LookupSpec:
    model: type[Base]
    key_attr: str
    value_attr: str = "id"


LOOKUP_SPECS: dict[str, LookupSpec] = {
    "office": LookupSpec(Office, "legacy_office_id"),
    "profile": LookupSpec(Profile, "legacy_user_id"),
    "doctor": LookupSpec(Doctor, "legacy_user_id"),
    "patient": LookupSpec(Patient, "legacy_patient_id"),
    "patient_profile": LookupSpec(Patient, "legacy_patient_id", "profile_id"),
    "order": LookupSpec(Order, "legacy_instruction_id"),
    "case": LookupSpec(Case, "legacy_patient_id"),
}


class LegacyIdMap:
    def __init__(self, name: str, spec: LookupSpec):
        self.name = name
        self.spec = spec
        self._values: dict[int, uuid.UUID] = {}

    def load(self, session: Session) -> "LegacyIdMap":
        key_col = getattr(self.spec.model, self.spec.key_attr)
        value_col = getattr(self.spec.model, self.spec.value_attr)
        rows = session.execute(
            select(key_col, value_col).where(key_col.is_not(None))
        ).all()
        self._values = {int(key): value for key, value in rows}
        logger.debug("lookup_loaded", lookup=self.name, size=len(self._values))
        return self

    def get(self, legacy_id: int | None) -> uuid.UUID | None:
        if legacy_id is None:
            return None
        return self._values.get(int(legacy_id))

    def add(self, legacy_id: int, new_id: uuid.UUID) -> None:
        self._values[int(legacy_id)] = new_id

    def __len__(self) -> int:
        return len(self._values)


class LookupSet:
    """The maps one entity needs, addressed by name."""

    def __init__(self, maps: dict[str, LegacyIdMap] | None = None):
        self._maps = maps or {}

    @classmethod
    def load(cls, session: Session, names: tuple[str, ...] | list[str]) -> "LookupSet":
        maps = {}
        for name in names:
            spec = LOOKUP_SPECS.get(name)
            if spec is None:
                raise KeyError(f"Unknown lookup: {name}")
            maps[name] = LegacyIdMap(name, spec).load(session)
        return cls(maps)

    def __getitem__(self, name: str) -> LegacyIdMap:
        return self._maps[name]

    def sizes(self) -> dict[str, int]:
        return {name: len(values) for name, values in self._maps.items()}

    def absorb(self, model: type[Base], values: dict[str, Any]) -> None:
        for legacy_map in self._maps.values():
            spec = legacy_map.spec
            if spec.model is not model:
                continue
            key = values.get(spec.key_attr)
            value = values.get(spec.value_attr)
            if key is not None and value is not None:
                legacy_map.add(key, value)
