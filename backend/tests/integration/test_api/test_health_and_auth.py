"""Integration tests: health endpoints, authentication and correlation ids"""

import inspect

from fastapi.routing import APIRoute


class TestHealth:

    def test_health(self, client) -> None:
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_root(self, client) -> None:
        assert client.get("/").status_code == 200


class TestAuthentication:

    def test_missing_token(self, client) -> None:
        response = client.get("/api/v1/workflows", params={"organization_id": "org_test"})
        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"
        assert response.json()["detail"]["error"]["code"] == "AUTHENTICATION_ERROR"

    def test_bad_token(self, client) -> None:
        response = client.get(
            "/api/v1/workflows",
            params={"organization_id": "org_test"},
            headers={"Authorization": "Bearer nonsense"},
        )
        assert response.status_code == 401


class TestCorrelationId:

    def test_echoes_client_id(self, client, auth_headers) -> None:
        headers = dict(auth_headers("admin"), **{"X-Correlation-Id": "corr-123"})
        response = client.get("/api/v1/workflows", params={"organization_id": "org_test"}, headers=headers)
        assert response.headers["X-Correlation-Id"] == "corr-123"

    def test_generates_id(self, client) -> None:
        assert client.get("/health").headers.get("X-Correlation-Id")


class TestOutboxBacklog:

    def test_health_reports_backlog(self, client) -> None:
        backlog = client.get("/health").json()["outbox_backlog"]
        assert set(backlog) == {
            "workflow_definitions", "workflow_instances", "missions", "recommendations", "telemetry_events"
        }
        assert all(count == 0 for count in backlog.values())


class TestHandlerConcurrency:
    """Handlers that reach MongoDB run in the threadpool, not on the event loop."""

    def test_storage_handlers_are_sync(self, client) -> None:
        io_free = {"/", "/api/v1/workflows/validate"}
        for route in client.app.routes:
            if isinstance(route, APIRoute) and route.path not in io_free:
                assert not inspect.iscoroutinefunction(route.endpoint), route.path
