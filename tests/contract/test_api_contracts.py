"""API contract tests focusing on operational endpoints and the error envelope."""

import pytest


ENVELOPE_KEYS = {"error", "detail", "message", "code", "correlation_id"}


@pytest.mark.contract
class TestOperationalEndpoints:
    """Test health, info and metrics endpoints."""

    async def test_health_endpoint_contract(self, client):
        """Test health endpoint returns expected format."""
        response = await client.get("/healthz")
        assert response.status_code == 200

        data = response.json()
        assert data["status"] == "ok"
        assert "timestamp" in data
        assert "service" in data

    async def test_readiness_endpoint_contract(self, client):
        response = await client.get("/readyz")
        assert response.status_code == 200

        data = response.json()
        assert data["status"] == "ready"
        assert data["environment"] == "test"

    async def test_info_endpoint_contract(self, client):
        """Test info endpoint reports the database connection."""
        response = await client.get("/info")
        assert response.status_code == 200

        data = response.json()
        assert data["service"]
        assert data["version"] == "0.1.0"
        assert data["environment"] == "test"
        assert data["database_status"] == "connected"
        assert data["tracing"] == "local"

    async def test_metrics_endpoint_contract(self, client):
        """Test metrics endpoint is accessible."""
        await client.get("/healthz")

        response = await client.get("/metrics")
        assert response.status_code == 200
        # Prometheus metrics format
        assert "text/plain" in response.headers.get("content-type", "")
        assert "http_request_latency_seconds" in response.text

    async def test_health_preflight(self, client):
        response = await client.options("/healthz")

        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "*"


@pytest.mark.contract
class TestErrorEnvelope:
    """Test every error shares one response shape."""

    async def test_missing_token(self, client):
        response = await client.get("/api/quotes")

        assert response.status_code == 401
        body = response.json()
        assert set(body) == ENVELOPE_KEYS
        assert body["error"] == "Unauthorized"
        assert body["code"] == "UNAUTHORIZED"
        assert body["message"] == "Authorization header required"

    async def test_unknown_route(self, client):
        response = await client.get("/api/does-not-exist")

        assert response.status_code == 404
        body = response.json()
        assert set(body) == ENVELOPE_KEYS
        assert body["code"] == "NOT_FOUND"

    async def test_method_not_allowed(self, client):
        response = await client.delete("/healthz")

        assert response.status_code == 405
        assert response.json()["code"] == "METHOD_NOT_ALLOWED"

    async def test_correlation_id_echoed(self, client):
        """Test a caller supplied correlation id is echoed and used in errors."""
        response = await client.get("/api/quotes", headers={"X-Correlation-Id": "corr-123"})

        assert response.headers["X-Correlation-Id"] == "corr-123"
        assert response.json()["correlation_id"] == "corr-123"

    async def test_correlation_id_generated(self, client):
        response = await client.get("/healthz")

        assert response.headers.get("X-Correlation-Id")

    async def test_missing_domain_row(self, client, world):
        response = await client.get("/api/orders/9999", headers=world.admin_headers)

        assert response.status_code == 404
        assert response.json()["message"] == "Order not found"

    async def test_request_validation(self, client, world):
        response = await client.post("/api/quotes", headers=world.buyer_headers, json={"title": ""})

        assert response.status_code == 422


@pytest.mark.contract
class TestTenantHeader:
    """Test X-Tenant-Id handling."""

    async def test_invalid_tenant_rejected(self, client):
        response = await client.get("/api/quotes", headers={"X-Tenant-Id": "bad tenant!"})

        assert response.status_code == 400
        body = response.json()
        assert body["code"] == "INVALID_TENANT"
        assert set(body) == ENVELOPE_KEYS

    async def test_operational_paths_exempt(self, client):
        response = await client.get("/healthz", headers={"X-Tenant-Id": "bad tenant!"})

        assert response.status_code == 200

    async def test_missing_header_uses_default(self, client, world):
        response = await client.get("/api/auth/me", headers=world.admin_headers)

        assert response.status_code == 200
