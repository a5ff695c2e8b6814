import json
import uuid

import httpx
import pytest

from dispatch_migration.core.errors import RestClientError
from dispatch_migration.models import Office
from dispatch_migration.services.supabase import SupabaseRestClient
from dispatch_migration.services.writers import RestWriter


def make_client(handler):
    return SupabaseRestClient(
        "https://example.supabase.co/", "service-key", transport=httpx.MockTransport(handler)
    )


def test_insert_posts_minimal_rows():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["prefer"] = request.headers["Prefer"]
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(201)

    with make_client(handler) as client:
        assert client.insert("offices", [{"name": "a"}, {"name": "b"}]) == 2

    assert seen["url"] == "https://example.supabase.co/rest/v1/offices"
    assert seen["prefer"] == "return=minimal"
    assert seen["auth"] == "Bearer service-key"
    assert seen["body"] == [{"name": "a"}, {"name": "b"}]


def test_count_reads_content_range():
    def handler(request):
        assert request.headers["Prefer"] == "count=exact"
        assert request.url.params["legacy_office_id"] == "not.is.null"
        return httpx.Response(206, headers={"Content-Range": "0-0/42"}, json=[{}])

    with make_client(handler) as client:
        assert client.count("offices", {"legacy_office_id": "not.is.null"}) == 42


def test_select_pages_through_results():
    pages = {"0-1": [{"id": 1}, {"id": 2}], "2-3": [{"id": 3}]}

    def handler(request):
        return httpx.Response(200, json=pages[request.headers["Range"]])

    with make_client(handler) as client:
        rows = list(client.select("offices", columns="id", page_size=2))

    assert rows == [{"id": 1}, {"id": 2}, {"id": 3}]


def test_error_status_raises():
    def handler(request):
        return httpx.Response(409, text='{"code":"23505"}')

    with make_client(handler) as client, pytest.raises(RestClientError) as excinfo:
        client.insert("offices", [{"name": "a"}])

    assert excinfo.value.status_code == 409
    assert excinfo.value.table == "offices"
    assert "23505" in str(excinfo.value)


def test_transport_error_raises():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with make_client(handler) as client, pytest.raises(RestClientError) as excinfo:
        client.count("offices")

    assert excinfo.value.status_code is None
    assert "no response" in str(excinfo.value)


def test_rest_writer_uses_column_names_and_json_values():
    bodies = []

    def handler(request):
        bodies.append(json.loads(request.content))
        return httpx.Response(201)

    office_id = uuid.uuid4()
    with make_client(handler) as client:
        written = RestWriter(client).insert(
            Office,
            [{"id": office_id, "name": "x", "metadata_": {"a": 1}, "legacy_office_id": 5}],
        )

    assert written == 1
    assert bodies == [
        [{"id": str(office_id), "name": "x", "metadata": {"a": 1}, "legacy_office_id": 5}]
    ]
