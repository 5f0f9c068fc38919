"""Tests for the REST API."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from sqlsandbox.core.config import SandboxConfig, SecurityConfig
from sqlsandbox.core.exceptions import SandboxError
from sqlsandbox.services.middleware import REQUEST_ID_HEADER
from sqlsandbox.services.rest_api import create_rest_app


@pytest.fixture
def app(config, connector):
    return create_rest_app(config, connector)


@pytest.fixture
def client(app):
    with TestClient(app, raise_server_exceptions=False) as c:
        yield c


def execute(client, query):
    return client.post("/api/v1/execute", json={"query": query})


class TestExecute:
    def test_success(self, client, connector):
        response = execute(client, "CREATE TABLE t (id INT); SELECT 1")
        assert response.status_code == 200
        body = response.json()
        assert set(body) == {"success", "output", "execution_time_ms", "error"}
        assert body["success"] is True
        assert body["error"] == ""
        assert body["output"].endswith("1 row in set")
        assert connector.databases == set()

    def test_empty_query(self, client):
        response = execute(client, "")
        assert response.status_code == 400
        assert response.json()["error"] == "query cannot be empty"

    def test_malformed_json(self, client):
        response = client.post(
            "/api/v1/execute",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )
        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["error"].startswith("Invalid request format")

    def test_missing_query_field(self, client):
        response = client.post("/api/v1/execute", json={"sql": "SELECT 1"})
        assert response.status_code == 400
        assert response.json()["error"].startswith("Invalid request format")

    def test_rejected(self, client, connector):
        response = execute(client, "drop database mysql")
        assert response.status_code == 403
        assert response.json() == {
            "success": False,
            "output": "",
            "execution_time_ms": 0,
            "error": "Security validation failed: DROP DATABASE command is not allowed",
        }
        assert connector.created == []

    def test_create_failed(self, client, connector):
        connector.fail_create = True
        response = execute(client, "SELECT 1")
        assert response.status_code == 500
        assert response.json()["error"].startswith("Failed to create sandbox")

    def test_statement_error_is_200(self, client, connector):
        connector.fail_on["nope"] = "Error 1146: Table 'x.nope' doesn't exist"
        response = execute(client, "SELECT * FROM nope")
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is False
        assert body["error"].startswith("Query execution failed: error in statement 1")

    def test_request_id_echoed(self, client):
        response = client.post(
            "/api/v1/execute",
            json={"query": "SELECT 1"},
            headers={REQUEST_ID_HEADER: "req-123"},
        )
        assert response.headers[REQUEST_ID_HEADER] == "req-123"

    def test_wrong_method(self, client):
        assert client.get("/api/v1/execute").status_code == 405

    def test_only_reachable_exception_handlers(self, app):
        # Executor failures are mapped to responses inside the route
        assert SandboxError not in app.exception_handlers


class TestHealth:
    @pytest.mark.parametrize("path", ["/health", "/api/v1/health"])
    def test_healthy(self, client, path):
        response = client.get(path)
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["message"] == "Server is running"
        assert "time" in body

    def test_unhealthy(self, client, connector):
        connector.fail_connect = True
        connector.ping_ok = False
        response = client.get("/health")
        assert response.status_code == 503
        body = response.json()
        assert body["status"] == "unhealthy"
        assert body["message"] == "MySQL connection failed"
        assert body["error"]


class TestRateLimiting:
    @pytest.fixture
    def limited_client(self, connector):
        config = SandboxConfig(environment="test", security=SecurityConfig(rate_limit="2/minute"))
        with TestClient(create_rest_app(config, connector), raise_server_exceptions=False) as c:
            yield c

    def test_limit_enforced(self, limited_client):
        statuses = [execute(limited_client, "SELECT 1").status_code for _ in range(3)]
        assert statuses == [200, 200, 429]
        response = execute(limited_client, "SELECT 1")
        assert response.json() == {"error": "Rate limit exceeded. Please slow down your requests."}

    def test_health_not_limited(self, limited_client):
        for _ in range(5):
            assert limited_client.get("/health").status_code == 200

    def test_disabled(self, connector):
        config = SandboxConfig(
            security=SecurityConfig(rate_limit="1/minute", rate_limit_enabled=False)
        )
        with TestClient(create_rest_app(config, connector)) as c:
            assert all(execute(c, "SELECT 1").status_code == 200 for _ in range(3))

    def test_forwarded_for_ignored_by_default(self, limited_client):
        for _ in range(2):
            execute(limited_client, "SELECT 1")
        response = limited_client.post(
            "/api/v1/execute",
            json={"query": "SELECT 1"},
            headers={"X-Forwarded-For": "10.9.8.7"},
        )
        assert response.status_code == 429

    def test_forwarded_for_trusted(self, connector):
        config = SandboxConfig(
            security=SecurityConfig(rate_limit="1/minute", trust_forwarded_for=True)
        )
        with TestClient(create_rest_app(config, connector)) as c:
            first = c.post("/api/v1/execute", json={"query": "SELECT 1"},
                           headers={"X-Forwarded-For": "10.0.0.1"})
            second = c.post("/api/v1/execute", json={"query": "SELECT 1"},
                            headers={"X-Forwarded-For": "10.0.0.2"})
        assert first.status_code == 200
        assert second.status_code == 200
