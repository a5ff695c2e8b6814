"""Entity registration and dependency ordering."""

from __future__ import annotations

from dispatch_migration.core.errors import UnknownEntityError
from dispatch_migration.entities.base import EntityMigration
from dispatch_migration.entities.case_states import CaseStateMigration
from dispatch_migration.entities.cases import CaseMigration
from dispatch_migration.entities.doctor_offices import DoctorOfficeMigration
from dispatch_migration.entities.doctors import DoctorMigration
from dispatch_migration.entities.files import FileMigration
from dispatch_migration.entities.messages import MessageMigration
from dispatch_migration.entities.offices import OfficeMigration
from dispatch_migration.entities.orders import OrderMigration
from dispatch_migration.entities.patients import PatientMigration
from dispatch_migration.entities.payments import PaymentMigration
from dispatch_migration.entities.templates import (
    TemplateViewGroupMigration,
    TemplateViewRoleMigration,
)

ALL = "all"

_REGISTRY: dict[str, EntityMigration] = {}


def register(migration: EntityMigration) -> EntityMigration:
    _REGISTRY[migration.name] = migration
    return migration


for _migration in (
    OfficeMigration(),
    DoctorMigration(),
    DoctorOfficeMigration(),
    PatientMigration(),
    OrderMigration(),
    CaseMigration(),
    CaseStateMigration(),
    PaymentMigration(),
    FileMigration(),
    MessageMigration(),
    TemplateViewGroupMigration(),
    TemplateViewRoleMigration(),
):
    register(_migration)


def entity_names() -> list[str]:
    return list(_REGISTRY)


def get_entity(name: str) -> EntityMigration:
    try:
        return _REGISTRY[name]
    except KeyError:
        raise UnknownEntityError(name, entity_names()) from None


def parse_entities(value: str | list[str] | None) -> list[str]:
    """Expand ``all`` or a comma separated list into validated entity names."""
    if value is None:
        return entity_names()
    parts = value if isinstance(value, list) else value.split(",")
    names: list[str] = []
    for part in parts:
        for name in str(part).split(","):
            name = name.strip()
            if not name:
                continue
            if name == ALL:
                return entity_names()
            get_entity(name)
            if name not in names:
                names.append(name)
    return names or entity_names()


def resolve_order(names: list[str]) -> list[str]:
    """Order ``names`` so each entity follows the entities it depends on.

    Dependencies outside ``names`` are assumed already migrated. Ties keep
    registration order.
    """
    requested = set(names)
    for name in requested:
        get_entity(name)
    ordered: list[str] = []
    visiting: set[str] = set()

    def visit(name: str) -> None:
        if name in ordered:
            return
        if name in visiting:
            raise ValueError(f"Dependency cycle at entity {name}")
        visiting.add(name)
        for dependency in _REGISTRY[name].depends_on:
            if dependency in requested:
                visit(dependency)
        visiting.discard(name)
        ordered.append(name)

    for name in entity_names():
        if name in requested:
            visit(name)
    return ordered
