"""Tests for the health check endpoint and basic app setup."""

from __future__ import annotations

from unittest.mock import AsyncMock


class TestHealthEndpoint:
    """Tests for the /health endpoint."""

    def test_health_returns_200(self, app_client):
        response = app_client.get("/health")
        assert response.status_code == 200

    def test_health_response_body(self, app_client):
        response = app_client.get("/health")
        data = response.json()
        assert data["status"] == "healthy"
        assert data["version"] == "0.1.0"
        assert "env" in data


class TestAuthRequired:
    def test_dashboard_without_session_is_401(self, app_client):
        from exitosx.api.deps import get_db
        from exitosx.main import app

        async def fake_db():
            yield AsyncMock()

        app.dependency_overrides[get_db] = fake_db
        response = app_client.get("/api/companies/12345678-1234-5678-1234-567812345678/dashboard")
        assert response.status_code == 401
        assert response.json()["detail"] == "You must be logged in to access this resource"
