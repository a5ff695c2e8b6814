"""
Shared fixtures: a seeded legacy database and an empty target database,
both in-memory SQLite.
"""
import logging
from datetime import datetime
from decimal import Decimal

import pytest
from sqlalchemy import create_engine, insert
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from dispatch_migration.db.base import Base
from dispatch_migration.legacy import tables as legacy
from dispatch_migration.models import *  # noqa: F403


LEGACY_ROWS = {
    legacy.auth_user: [
        {
            "id": 10,
            "username": "jdoe",
            "first_name": "Jane",
            "last_name": "Doe",
            "email": " JANE@Example.com ",
            "password": "pbkdf2_sha256$hash",
            "is_staff": True,
            "is_active": True,
            "date_joined": datetime(2020, 1, 5, 9, 0),
        },
        {
            "id": 11,
            "username": "smith",
            "first_name": "",
            "last_name": None,
            "email": "not-an-email",
            "password": "pbkdf2_sha256$hash",
            "is_active": True,
            "date_joined": datetime(2020, 3, 1, 9, 0),
        },
        {
            "id": 20,
            "username": "patient-one",
            "first_name": "Pat",
            "last_name": "One",
            "email": "pat@example.com",
            "password": "",
            "is_active": True,
            "date_joined": datetime(2021, 6, 1, 12, 0),
        },
        {
            "id": 21,
            "username": "patient-two",
            "first_name": "Sam",
            "last_name": "Two",
            "email": None,
            "password": "",
            "is_active": False,
            "date_joined": datetime(2021, 7, 1, 12, 0),
        },
    ],
    legacy.auth_group: [{"id": 1, "name": "Doctors"}],
    legacy.dispatch_doctorsetting: [
        {
            "id": 1,
            "user_id": 10,
            "sq_customer_id": "SQ-10",
            "credit": Decimal("25.00"),
            "tier_type": 2,
            "company_account": False,
        },
        {"id": 2, "user_id": 11, "tier_type": 1, "company_account": True},
    ],
    legacy.dispatch_office: [
        {
            "id": 1,
            "name": "  Main   Street Dental ",
            "address": "1 Main St",
            "city": "Austin",
            "state": "tx",
            "zip": "78701-1234",
            "phone": "(512) 555-0100",
            "tax_rate": Decimal("8.25"),
            "valid": True,
            "emails": True,
        },
        {"id": 2, "name": "Closed Office", "valid": False, "emails": False},
        {
            "id": 3,
            "name": "Lakeside",
            "tax_rate": Decimal("0.0625"),
            "valid": True,
            "emails": False,
        },
    ],
    legacy.dispatch_office_doctors: [
        {"id": 1, "office_id": 1, "user_id": 10},
        {"id": 2, "office_id": 2, "user_id": 10},
    ],
    legacy.dispatch_patient: [
        {
            "id": 100,
            "doctor_id": 10,
            "user_id": 20,
            "office_id": 1,
            "birthdate": datetime(1990, 4, 2),
            "archived": False,
            "status": 4,
            "submitted_at": datetime(2022, 1, 10, 8, 0),
            "suffix": "AB",
            "updated_at": datetime(2024, 2, 1, 10, 0),
            "sex": 1,
            "suspended": False,
            "schemes": '{"upper": [1, 2]}',
        },
        {
            "id": 101,
            "doctor_id": 11,
            "user_id": 21,
            "office_id": None,
            "archived": True,
            "status": 99,
            "suffix": "",
            "updated_at": datetime(2023, 5, 1, 10, 0),
            "sex": 2,
            "suspended": False,
        },
    ],
    legacy.dispatch_instruction: [
        {
            "id": 500,
            "patient_id": 100,
            "course_id": 2,
            "status": 4,
            "notes": "upper only",
            "price": Decimal("100.00"),
            "submitted_at": datetime(2022, 2, 1, 9, 0),
            "updated_at": datetime(2022, 3, 1, 9, 0),
            "deleted": False,
            "exports": "[1, 2]",
        },
        {
            "id": 501,
            "patient_id": 101,
            "course_id": 7,
            "status": 1,
            "deleted": False,
        },
        {"id": 502, "patient_id": 100, "course_id": 1, "deleted": True},
    ],
    legacy.dispatch_state: [
        {
            "id": 1,
            "status": 11,
            "on": True,
            "changed_at": datetime(2022, 2, 2, 9, 0),
            "actor_id": 10,
            "instruction_id": 500,
        },
        {
            "id": 2,
            "status": 12,
            "on": False,
            "changed_at": datetime(2022, 4, 2, 9, 0),
            "actor_id": None,
            "instruction_id": 500,
        },
        {
            "id": 3,
            "status": 5,
            "on": True,
            "changed_at": datetime(2022, 4, 3, 9, 0),
            "instruction_id": 500,
        },
        {
            "id": 4,
            "status": 11,
            "on": True,
            "changed_at": datetime(2022, 4, 4, 9, 0),
            "instruction_id": 999,
        },
    ],
    legacy.dispatch_payment: [
        {
            "id": 1,
            "instruction_id": 500,
            "total_price": Decimal("100.00"),
            "paid_price": Decimal("100.00"),
            "paid": True,
            "canceled": False,
            "made_at": datetime(2022, 2, 3, 9, 0),
        },
        {"id": 2, "instruction_id": 501, "paid": False, "canceled": True},
        {"id": 3, "instruction_id": 999, "paid": True, "canceled": False},
    ],
    legacy.dispatch_file: [
        {
            "id": 1,
            "uid": "f-1",
            "name": "scan.stl",
            "ext": "stl",
            "size": 2048,
            "type": 1,
            "instruction_id": 500,
            "created_at": datetime(2022, 2, 1, 10, 0),
            "parameters": '{"jaw": "upper"}',
        },
        {"id": 2, "uid": "f-2", "name": None, "ext": ".PDF", "instruction_id": None},
    ],
    legacy.dispatch_record: [
        {
            "id": 1,
            "target_id": 100,
            "type": 3,
            "created_at": datetime(2022, 2, 5, 9, 0),
            "text": "Aligners shipped\nTracking to follow",
            "author_id": 10,
            "target_type_id": 1,
            "public": True,
        },
        {
            "id": 2,
            "target_id": 10,
            "type": 1,
            "created_at": datetime(2022, 2, 6, 9, 0),
            "text": "Invoice ready",
            "author_id": None,
            "target_type_id": 2,
        },
        {
            "id": 3,
            "target_id": 999,
            "type": 1,
            "created_at": datetime(2022, 2, 7, 9, 0),
            "text": "Lost",
            "target_type_id": 2,
        },
        {
            "id": 4,
            "target_id": 0,
            "type": 4,
            "created_at": datetime(2022, 2, 8, 9, 0),
            "text": "",
            "target_type_id": None,
        },
    ],
    legacy.dispatch_template: [{"id": 1, "text_name": None, "task_name": "Task A"}],
    legacy.dispatch_role: [{"id": 1, "name": "Admin"}],
    legacy.dispatch_template_view_groups: [{"id": 1, "template_id": 1, "group_id": 1}],
    legacy.dispatch_template_view_roles: [{"id": 1, "template_id": 1, "role_id": 1}],
}


def _memory_engine():
    return create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )


@pytest.fixture
def source_engine():
    engine = _memory_engine()
    legacy.legacy_metadata.create_all(engine)
    with engine.begin() as conn:
        for table, rows in LEGACY_ROWS.items():
            for row in rows:
                conn.execute(insert(table), row)
    yield engine
    engine.dispose()


@pytest.fixture
def target_engine():
    engine = _memory_engine()
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def source_factory(source_engine):
    return sessionmaker(bind=source_engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def target_factory(target_engine):
    return sessionmaker(bind=target_engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def source_session(source_factory):
    session = source_factory()
    yield session
    session.close()


@pytest.fixture
def target_session(target_factory):
    session = target_factory()
    yield session
    session.close()


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    root = logging.getLogger()
    # drop the stderr handler configure_logging installs; its stream may be a closed capture
    for handler in root.handlers[:]:
        if type(handler) is logging.StreamHandler:
            root.removeHandler(handler)


@pytest.fixture
def no_sleep():
    calls = []
    return calls.append, calls
