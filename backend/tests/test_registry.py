import pytest

from dispatch_migration.core.errors import UnknownEntityError
from dispatch_migration.services.registry import (
    entity_names,
    get_entity,
    parse_entities,
    resolve_order,
)


def test_all_entities_registered():
    assert entity_names() == [
        "offices",
        "doctors",
        "doctor_offices",
        "patients",
        "orders",
        "cases",
        "case_states",
        "payments",
        "files",
        "messages",
        "template_view_groups",
        "template_view_roles",
    ]


def test_parse_entities_expands_all():
    assert parse_entities("all") == entity_names()
    assert parse_entities(None) == entity_names()
    assert parse_entities(["offices", "all"]) == entity_names()


def test_parse_entities_dedupes_and_strips():
    assert parse_entities(" offices, doctors ,offices") == ["offices", "doctors"]
    assert parse_entities(["payments,files"]) == ["payments", "files"]


def test_parse_entities_rejects_unknown():
    with pytest.raises(UnknownEntityError) as excinfo:
        parse_entities("offices,widgets")
    assert excinfo.value.name == "widgets"
    assert "offices" in excinfo.value.known


def test_resolve_order_puts_dependencies_first():
    order = resolve_order(["payments", "orders", "patients", "offices", "doctors"])
    assert order.index("offices") < order.index("patients")
    assert order.index("doctors") < order.index("patients")
    assert order.index("patients") < order.index("orders")
    assert order.index("orders") < order.index("payments")


def test_resolve_order_ignores_unrequested_dependencies():
    assert resolve_order(["case_states"]) == ["case_states"]


def test_every_dependency_is_registered():
    for name in entity_names():
        for dependency in get_entity(name).depends_on:
            assert dependency in entity_names()
