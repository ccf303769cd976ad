"""Tests for health check endpoints."""

from unittest.mock import AsyncMock, patch


class TestHealthEndpoint:
    """Tests for /health endpoint."""

    async def test_returns_healthy_with_db_connected(self, client):
        with patch(
            "apptime_api.routers.health.check_database_connection",
            new_callable=AsyncMock,
        ) as mock_db:
            mock_db.return_value = True

            response = await client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "database": "connected"}

    async def test_returns_degraded_when_db_disconnected(self, client):
        with patch(
            "apptime_api.routers.health.check_database_connection",
            new_callable=AsyncMock,
        ) as mock_db:
            mock_db.return_value = False

            response = await client.get("/health")

        assert response.status_code == 503
        assert response.json()["status"] == "degraded"

    async def test_real_database_is_reachable(self, client):
        response = await client.get("/health")

        assert response.status_code == 200


class TestProbes:
    """Tests for liveness and readiness probes."""

    async def test_liveness_never_touches_database(self, client):
        with patch(
            "apptime_api.routers.health.check_database_connection",
            new_callable=AsyncMock,
        ) as mock_db:
            response = await client.get("/health/live")

        assert response.status_code == 200
        assert response.json() == {"status": "alive"}
        mock_db.assert_not_called()

    async def test_readiness_follows_database(self, client):
        with patch(
            "apptime_api.routers.health.check_database_connection",
            new_callable=AsyncMock,
        ) as mock_db:
            mock_db.return_value = False
            not_ready = await client.get("/health/ready")
            mock_db.return_value = True
            ready = await client.get("/health/ready")

        assert not_ready.status_code == 503
        assert ready.status_code == 200


class TestRootAndMiddleware:
    """Tests for the root endpoint and correlation IDs."""

    async def test_root(self, client):
        response = await client.get("/")

        assert response.status_code == 200
        assert response.json()["name"] == "AppTime Access API"

    async def test_correlation_id_echoed(self, client):
        response = await client.get(
            "/health/live", headers={"X-Correlation-ID": "trace-abc-123"}
        )

        assert response.headers["X-Correlation-ID"] == "trace-abc-123"

    async def test_correlation_id_generated(self, client):
        response = await client.get("/health/live")

        assert response.headers.get("X-Correlation-ID")
