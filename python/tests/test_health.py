"""Tests for the health endpoints.

- GET /health is a liveness check that never touches the database
- GET /health/ready answers 503 when the database does not respond
- Both are public, even with auth enforced
"""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from folio.errors import ApiError, ApiErrorCode
from folio.services.health import check_database
from tests.helpers import data_of, error_code


class TestHealthEndpoint:
    """Tests for GET /health"""

    def test_health_returns_ok_envelope(self, client: TestClient):
        """Health endpoint returns 200 with the success envelope."""
        response = client.get("/health")

        assert response.status_code == 200
        assert data_of(response) == {"status": "ok"}

    def test_health_content_type_is_json(self, client: TestClient):
        """Health endpoint returns JSON content type."""
        response = client.get("/health")
        assert response.headers["content-type"] == "application/json"

    def test_health_is_public_with_auth_middleware(self, authenticated_client: TestClient):
        """Health does not require a bearer token even when auth is enforced."""
        response = authenticated_client.get("/health")
        assert response.status_code == 200


class TestReadinessEndpoint:
    """Tests for GET /health/ready"""

    def test_ready_when_database_answers(self, authenticated_client: TestClient):
        """Readiness is public and reports the database."""
        response = authenticated_client.get("/health/ready")

        assert response.status_code == 200
        assert data_of(response) == {"status": "ok", "database": "ok"}

    def test_database_down_is_unavailable(
        self, authenticated_client: TestClient, db_session, monkeypatch
    ):
        """A failing database query maps to 503 E_DATABASE_UNAVAILABLE."""

        def broken_execute(*args, **kwargs):
            raise OperationalError("SELECT 1", {}, Exception("connection refused"))

        monkeypatch.setattr(db_session, "execute", broken_execute)

        response = authenticated_client.get("/health/ready")

        assert response.status_code == 503
        assert error_code(response) == "E_DATABASE_UNAVAILABLE"


class TestCheckDatabase:
    def test_passes_on_live_session(self, db_session):
        check_database(db_session)

    def test_wraps_driver_errors(self):
        class DeadSession:
            def execute(self, *args, **kwargs):
                raise OperationalError("SELECT 1", {}, Exception("gone"))

        with pytest.raises(ApiError) as exc_info:
            check_database(DeadSession())

        assert exc_info.value.code == ApiErrorCode.E_DATABASE_UNAVAILABLE
