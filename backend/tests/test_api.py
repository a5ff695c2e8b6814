import uuid

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from dispatch_migration.api.deps import get_session_factories, get_source_db, get_target_db
from dispatch_migration.api.routes.migrations import run_migration
from dispatch_migration.main import app
from dispatch_migration.models import MigrationRun
from dispatch_migration.services import runs


@pytest.fixture
def client(source_factory, target_factory):
    def source_db():
        db = source_factory()
        try:
            yield db
        finally:
            db.close()

    def target_db():
        db = target_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_source_db] = source_db
    app.dependency_overrides[get_target_db] = target_db
    app.dependency_overrides[get_session_factories] = lambda: (source_factory, target_factory)
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_list_entities(client):
    resp = client.get("/api/migrations/entities")
    assert resp.status_code == 200
    entities = {e["name"]: e for e in resp.json()}
    assert len(entities) == 12
    assert entities["orders"]["source_table"] == "dispatch_instruction"
    assert entities["orders"]["target_table"] == "orders"
    assert entities["orders"]["depends_on"] == ["patients"]


def test_baseline(client):
    resp = client.post(
        "/api/migrations/baseline", json={"entities": ["offices"], "include_mappings": True}
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["overall_status"] == "critical_issues"
    assert body["entities"][0]["status"] == "major_gap"
    assert body["mapping_validation"][0]["is_valid"] is True


def test_unknown_entity_is_404(client):
    assert client.get("/api/migrations/differential/widgets").status_code == 404
    resp = client.post("/api/migrations/validate", json={"entities": ["widgets"]})
    assert resp.status_code == 404


def test_differential(client):
    resp = client.get("/api/migrations/differential/offices", params={"save": True})
    assert resp.status_code == 200
    body = resp.json()
    assert body["new_ids"] == [1, 3]
    assert body["new_count"] == 2
    logs = client.get("/api/migrations/logs", params={"entity": "offices"}).json()
    assert logs[0]["operation_type"] == "differential_detection"


def test_execute_runs_in_background(client):
    resp = client.post(
        "/api/migrations/execute", json={"entities": ["doctors", "offices"], "batch_size": 1}
    )
    assert resp.status_code == 202
    body = resp.json()
    assert body["entities"] == ["offices", "doctors"]

    run = client.get(f"/api/migrations/runs/{body['run_id']}").json()
    assert run["status"] == "completed"
    assert run["records_inserted"] == 4
    assert run["batch_size"] == 1
    assert set(run["entity_stats"]) == {"offices", "doctors"}

    listed = client.get("/api/migrations/runs").json()
    assert [r["id"] for r in listed] == [body["run_id"]]

    validation = client.post(
        "/api/migrations/validate", json={"entities": ["offices", "doctors"]}
    ).json()
    assert [v["passed"] for v in validation] == [True, True]


def test_execute_rejects_bad_batch_size(client):
    resp = client.post("/api/migrations/execute", json={"batch_size": 0})
    assert resp.status_code == 422


def test_unknown_run_is_404(client):
    assert client.get(f"/api/migrations/runs/{uuid.uuid4()}").status_code == 404


def test_background_run_marked_failed_on_database_error(
    monkeypatch, source_factory, target_factory, target_session
):
    run = runs.create_run(target_session, ["offices"], batch_size=2)

    def lost_connection(session, run):
        raise OperationalError("UPDATE migration_runs", {}, Exception("connection lost"))

    monkeypatch.setattr(runs, "mark_running", lost_connection)
    run_migration(run.id, ["offices"], (source_factory, target_factory), 2, 0, False, False)

    target_session.expire_all()
    stored = target_session.get(MigrationRun, run.id)
    assert stored.status == "failed"
    assert "connection lost" in stored.error_message
    assert stored.completed_at is not None
