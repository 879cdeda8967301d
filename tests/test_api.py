"""
Tests for the table listener API.
"""

import inspect

import pytest
from fastapi.testclient import TestClient

import src.main as main_module
from src.database.config import config


class FakePostgresClient:
    """Scripted data access with the health/disconnect surface of PostgreSQLClient."""

    def __init__(self, data_access):
        self._data_access = data_access
        self.disconnected = False

    def fetch_all(self, table):
        return self._data_access.fetch_all(table)

    def health_check(self):
        return {"is_connected": True, "connection_info": {"type": "fake"}}

    def disconnect(self):
        self.disconnected = True


@pytest.fixture
def fake_client(data_access, monkeypatch):
    data_access.script("users", [{"id": 1, "name": "a"}])
    client = FakePostgresClient(data_access)
    monkeypatch.setattr(main_module, "get_postgresql_client", lambda: client)
    monkeypatch.setattr(config, "WATCH_TABLES", "users")
    monkeypatch.setattr(config, "POLLING_INTERVAL_MS", 10)
    monkeypatch.setattr(config, "POLLING_STRICT_STOP", False)
    return client


@pytest.fixture
def client(fake_client):
    """Create test client (runs the app lifespan)."""
    with TestClient(main_module.app) as test_client:
        yield test_client


class TestHealth:
    """Health check tests."""

    def test_health_check(self, client):
        response = client.get("/health")
        assert response.status_code == 200

        data = response.json()
        assert data["status"] == "healthy"
        assert data["services"]["postgres"]["is_connected"] is True
        assert "users" in data["services"]["polling_scheduler"]

    def test_root_lists_watched_tables(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["listening_tables"] == ["users"]


class TestTables:
    """Polling control endpoint tests."""

    def test_snapshot_of_watched_table(self, client, data_access, wait_until):
        assert data_access.wait_for_calls("users", 2)

        response = client.get("/tables/users/snapshot")
        assert response.status_code == 200
        data = response.json()
        assert data["rows"] == [{"id": 1, "name": "a"}]
        assert data["count"] == 1

    def test_snapshot_of_unknown_table(self, client):
        response = client.get("/tables/missing/snapshot")
        assert response.status_code == 404

    def test_start_and_stop(self, client, data_access):
        data_access.script("orders", [{"order_id": 1}])

        response = client.post("/tables/orders/listen", params={"interval_ms": 20})
        assert response.status_code == 200
        assert response.json() == {"table": "orders", "interval_ms": 20, "is_running": True}

        status = client.get("/tables").json()["tables"]
        assert set(status) == {"users", "orders"}

        response = client.delete("/tables/orders/listen")
        assert response.status_code == 200
        assert client.get("/tables/orders/status").json()["is_running"] is False

    def test_start_uses_default_interval(self, client):
        response = client.post("/tables/orders/listen")
        assert response.status_code == 200
        assert response.json()["interval_ms"] == 10

    def test_invalid_interval(self, client):
        response = client.post("/tables/orders/listen", params={"interval_ms": 0})
        assert response.status_code == 400

    def test_stop_unknown_table_is_noop(self, client):
        response = client.delete("/tables/missing/listen")
        assert response.status_code == 200

    def test_restart_keeps_registered_listeners(self, client, data_access, recorder, wait_until):
        assert data_access.wait_for_calls("users", 1)
        main_module.polling_scheduler.on_all_values("users", recorder.listener("all"))

        response = client.post("/tables/users/listen", params={"interval_ms": 20})
        assert response.status_code == 200

        # restart resets the snapshot, so the custom listener sees every row
        assert wait_until(lambda: len(recorder.of("all")) >= 1)
        assert recorder.of("all")[0] == [{"id": 1, "name": "a"}]
        assert client.get("/tables/users/status").json()["has_listeners"] is True

    @pytest.mark.parametrize("handler", ["health_check", "start_listening", "stop_listening"])
    def test_blocking_handlers_run_in_threadpool(self, handler):
        # sync handlers are run by FastAPI in a worker thread, off the event loop
        assert not inspect.iscoroutinefunction(getattr(main_module, handler))


def test_stop_unknown_table_strict(fake_client, monkeypatch):
    monkeypatch.setattr(config, "POLLING_STRICT_STOP", True)
    with TestClient(main_module.app) as test_client:
        response = test_client.delete("/tables/missing/listen")
    assert response.status_code == 404


def test_lifespan_releases_resources(fake_client):
    with TestClient(main_module.app):
        assert main_module.polling_scheduler.is_listening("users")
    assert fake_client.disconnected is True
    assert main_module.polling_scheduler.listening_tables() == []
