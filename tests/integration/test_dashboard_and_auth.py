"""Integration tests for the caller profile and the role dashboards."""

from decimal import Decimal

import pytest

from app.security.auth import create_access_token
from tests.factories.data_factories import quote_payload
from tests.factories.workflows import invoiced_order


@pytest.mark.integration
class TestCurrentUser:
    """Test resolving the caller from the bearer token."""

    async def test_me(self, client, world):
        response = await client.get("/api/auth/me", headers=world.buyer_headers)

        body = response.json()
        assert response.status_code == 200
        assert body["id"] == world.buyer.id
        assert body["role"] == "member"
        assert body["member_id"] == world.member.id
        assert body["member_name"] == "Sakura Dining"

    async def test_unregistered_subject(self, client, world):
        """Test a valid token for an unknown identity is rejected."""
        token = create_access_token("sb-unknown", "ghost@example.com")

        response = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401

    async def test_expired_token(self, client, world):
        token = create_access_token(world.buyer.supabase_user_id, world.buyer.email, expires_in_hours=-1)

        response = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401
        assert response.json()["message"] == "Token has expired"

    async def test_garbage_token(self, client, world):
        response = await client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-jwt"})

        assert response.status_code == 401
        assert response.json()["code"] == "UNAUTHORIZED"

    async def test_wrong_scheme(self, client, world):
        response = await client.get("/api/auth/me", headers={"Authorization": "Basic abc"})

        assert response.status_code == 401


@pytest.mark.integration
class TestDashboard:
    """Test role specific dashboard counters."""

    async def test_member_dashboard(self, client, world):
        draft = await client.post(
            "/api/quotes", headers=world.buyer_headers, json=quote_payload(world.category.id, [world.partner.id])
        )
        submitted = await client.post(
            "/api/quotes", headers=world.buyer_headers, json=quote_payload(world.category.id, [world.partner.id])
        )
        await client.post(f"/api/quotes/{submitted.json()['id']}/submit", headers=world.buyer_headers)
        await invoiced_order(client, world, "1000")
        assert draft.status_code == 201

        body = (await client.get("/api/dashboard", headers=world.buyer_headers)).json()

        assert body["role"] == "member"
        assert body["draft_quotes"] == 1
        assert body["pending_quotes"] == 1
        assert body["unpaid_invoices"] == 1
        assert body["monthly_order_count"] == 1
        assert Decimal(str(body["monthly_order_amount"])) == Decimal("1000")

    async def test_partner_dashboard(self, client, world):
        await invoiced_order(client, world, "1000")

        body = (await client.get("/api/dashboard", headers=world.seller_headers)).json()
        other = (await client.get("/api/dashboard", headers=world.other_seller_headers)).json()

        assert body["role"] == "partner"
        assert body["unpaid_invoices"] == 1
        assert body["monthly_invoice_count"] == 1
        assert Decimal(str(body["monthly_invoice_amount"])) == Decimal("1100")
        assert other["unpaid_invoices"] == 0
        assert other["monthly_invoice_count"] == 0

    async def test_admin_dashboard(self, client, world):
        data = await invoiced_order(client, world, "1000")
        await client.post(
            "/api/admin/payments",
            headers=world.admin_headers,
            json={"invoice_id": data["invoice"]["id"], "amount": "1100"},
        )

        body = (await client.get("/api/dashboard", headers=world.admin_headers)).json()

        assert body["role"] == "admin"
        assert body["members"] == 2
        assert body["partners"] == 2
        assert body["unpaid_invoices"] == 0
        assert body["monthly_payment_count"] == 1
        assert Decimal(str(body["monthly_payment_amount"])) == Decimal("1100")
        assert body["monthly_order_count"] == 1
