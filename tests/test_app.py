"""Tests for the admin HTTP API."""

import pytest
from fastapi.testclient import TestClient
from redis.exceptions import ConnectionError

from namespace_cleanup.app import app, get_evictor, get_redis_connection
from namespace_cleanup.services.namespace_evictor import NamespaceEvictor
from namespace_cleanup.services.redis_service import EvictionSettings


@pytest.fixture
def client(scenario_store):
    app.dependency_overrides[get_redis_connection] = lambda: scenario_store
    app.dependency_overrides[get_evictor] = lambda: NamespaceEvictor(
        scenario_store, settings=EvictionSettings(scan_count=1, batch_size=1)
    )
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_delete_namespace(client, scenario_store):
    resp = client.delete("/admin/namespace/ns")
    assert resp.status_code == 200

    body = resp.json()
    assert body["state"] is True
    assert body["status"] == "complete"
    assert body["deleted"] == 3
    assert body["summary"]["counter_removed"] is True
    assert body["summary"]["index_removed"] is False
    assert scenario_store.keys_present() == ["other:1"]


def test_delete_partial_reports_progress(client, scenario_store):
    scenario_store.fail_delete_on = {2}
    body = client.delete("/admin/namespace/ns").json()

    assert body["state"] is False
    assert body["status"] == "partial"
    assert body["deleted"] == 1
    assert body["error"]


@pytest.mark.parametrize("namespace", ["*", "%20"])
def test_delete_rejects_unsafe_namespace(client, scenario_store, namespace):
    resp = client.delete(f"/admin/namespace/{namespace}")
    assert resp.status_code == 400
    assert len(scenario_store.keys_present()) == 5


def test_preview(client, scenario_store):
    resp = client.get("/admin/namespace/ns", params={"sample_size": 2})
    assert resp.status_code == 200

    body = resp.json()
    assert body["total"] == 3
    assert body["sample_keys"] == ["ns:1", "ns:2"]
    assert body["counter_key"] == "ns-vec_num"
    assert body["counter_exists"] is True
    assert len(scenario_store.keys_present()) == 5


def test_preview_scan_failure(client, scenario_store):
    scenario_store.fail_scan_on = {1}
    assert client.get("/admin/namespace/ns").status_code == 503


def test_preview_rejects_wildcard(client):
    assert client.get("/admin/namespace/*").status_code == 400


def test_health(client):
    assert client.get("/health").json()["status"] == "healthy"


def test_preview_counter_check_failure(client, scenario_store):
    scenario_store.exists_error = ConnectionError("Connection refused")
    resp = client.get("/admin/namespace/ns")
    assert resp.status_code == 200

    body = resp.json()
    assert body["total"] == 3
    assert body["counter_exists"] is False
    assert "Connection refused" in body["counter_error"]
