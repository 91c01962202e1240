"""Integration tests for payment registration, approval and the settlement cascade."""

from decimal import Decimal

import pytest
from httpx import ASGITransport, AsyncClient

from app.services import payments as payment_service
from tests.factories.workflows import create_bundle, invoiced_order, place_order


async def register_payment(client, world, **payload):
    return await client.post("/api/admin/payments", headers=world.admin_headers, json=payload)


@pytest.mark.integration
class TestManualPayment:
    """Test payments registered by an administrator."""

    async def test_exact_payment_settles_invoice(self, client, world):
        """Test the cascade: invoice paid, order confirmed, pending lines confirmed."""
        data = await invoiced_order(client, world, "1000")
        invoice = data["invoice"]

        response = await register_payment(client, world, invoice_id=invoice["id"], amount="1100")

        assert response.status_code == 201, response.text
        payment = response.json()
        assert payment["status"] == "matched"
        assert payment["match_type"] == "manual"
        assert Decimal(payment["difference"]) == Decimal("0")

        invoice = (await client.get(f"/api/invoices/{invoice['id']}", headers=world.admin_headers)).json()
        assert invoice["status"] == "paid"
        assert invoice["paid_at"] is not None
        assert len(invoice["payments"]) == 1

        order = (await client.get(f"/api/orders/{data['order']['id']}", headers=world.admin_headers)).json()
        assert order["status"] == "confirmed"
        assert order["confirmed_at"] is not None
        assert all(item["status"] == "confirmed" for item in order["items"])

    async def test_difference_leaves_payment_pending(self, client, world):
        data = await invoiced_order(client, world, "1000")

        response = await register_payment(client, world, invoice_id=data["invoice"]["id"], amount="1000")

        payment = response.json()
        assert payment["status"] == "pending"
        assert Decimal(payment["difference"]) == Decimal("-100")

        invoice = (await client.get(f"/api/invoices/{data['invoice']['id']}", headers=world.admin_headers)).json()
        assert invoice["status"] == "issued"

    async def test_approve_pending_payment(self, client, world):
        data = await invoiced_order(client, world, "1000")
        pending = (await register_payment(client, world, invoice_id=data["invoice"]["id"], amount="1090")).json()

        response = await client.post(
            f"/api/admin/payments/{pending['id']}/approve", headers=world.admin_headers
        )

        assert response.status_code == 200
        payment = response.json()
        assert payment["status"] == "approved"
        assert payment["approved_by"] == world.admin.id
        assert payment["approved_at"] is not None

        order = (await client.get(f"/api/orders/{data['order']['id']}", headers=world.admin_headers)).json()
        assert order["status"] == "confirmed"

    async def test_only_pending_payments_approved(self, client, world):
        data = await invoiced_order(client, world, "1000")
        matched = (await register_payment(client, world, invoice_id=data["invoice"]["id"], amount="1100")).json()

        response = await client.post(
            f"/api/admin/payments/{matched['id']}/approve", headers=world.admin_headers
        )

        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_STATE"

    async def test_second_pending_payment_not_approved(self, client, world):
        """Test approving a payment for an invoice another payment already settled."""
        data = await invoiced_order(client, world, "1000")
        first = (await register_payment(client, world, invoice_id=data["invoice"]["id"], amount="1000")).json()
        second = (await register_payment(client, world, invoice_id=data["invoice"]["id"], amount="1050")).json()

        approved = await client.post(f"/api/admin/payments/{first['id']}/approve", headers=world.admin_headers)
        rejected = await client.post(f"/api/admin/payments/{second['id']}/approve", headers=world.admin_headers)
        history = await client.get("/api/payments", headers=world.buyer_headers)

        assert approved.status_code == 200
        assert rejected.status_code == 400
        assert rejected.json()["code"] == "INVALID_STATE"
        assert history.json()["summary"]["count"] == 1

    async def test_paid_invoice_rejected(self, client, world):
        data = await invoiced_order(client, world, "1000")
        await register_payment(client, world, invoice_id=data["invoice"]["id"], amount="1100")

        response = await register_payment(client, world, invoice_id=data["invoice"]["id"], amount="1100")

        assert response.status_code == 400

    async def test_exactly_one_target(self, client, world):
        data = await invoiced_order(client, world, "1000")
        bundle = await create_bundle(client, world.buyer_headers, [data["invoice"]["id"]])

        neither = await register_payment(client, world, amount="1100")
        both = await register_payment(
            client, world, invoice_id=data["invoice"]["id"], bundle_id=bundle["id"], amount="1100"
        )

        assert neither.status_code == 422
        assert both.status_code == 422

    async def test_admin_only(self, client, world):
        data = await invoiced_order(client, world, "1000")

        response = await client.post(
            "/api/admin/payments",
            headers=world.buyer_headers,
            json={"invoice_id": data["invoice"]["id"], "amount": "1100"},
        )

        assert response.status_code == 403

    async def test_shipped_progress_is_kept(self, client, world):
        """Test the cascade neither moves a shipped order back nor touches shipped lines."""
        order = await place_order(client, world, [
            {"partner_id": world.partner.id, "unit_price": "1000"},
            {"partner_id": world.partner.id, "unit_price": "500"},
        ])
        shipped_id, pending_id = sorted(item["id"] for item in order["items"])
        await client.put(
            f"/api/orders/{order['id']}/items/{shipped_id}",
            headers=world.seller_headers,
            json={"status": "shipped"},
        )
        invoice = (await client.post(
            "/api/invoices", headers=world.seller_headers, json={"order_id": order["id"]}
        )).json()
        await client.put(f"/api/orders/{order['id']}", headers=world.admin_headers, json={"status": "shipped"})

        await register_payment(client, world, invoice_id=invoice["id"], amount=invoice["total_amount"])

        order = (await client.get(f"/api/orders/{order['id']}", headers=world.admin_headers)).json()
        statuses = {item["id"]: item["status"] for item in order["items"]}
        assert order["status"] == "shipped"
        assert statuses[shipped_id] == "shipped"
        assert statuses[pending_id] == "confirmed"

    async def test_bank_transaction_claimed(self, client, world, factory):
        data = await invoiced_order(client, world, "1000")
        tx = await factory.bank_transaction(Decimal("1100"), "SAKURA DINING")

        response = await register_payment(
            client, world, invoice_id=data["invoice"]["id"], amount="1100", bank_transaction_id=tx.id
        )
        assert response.status_code == 201
        assert response.json()["bank_transaction"]["id"] == tx.id

        other = await invoiced_order(client, world, "1000")
        reused = await register_payment(
            client, world, invoice_id=other["invoice"]["id"], amount="1100", bank_transaction_id=tx.id
        )
        assert reused.status_code == 400


@pytest.mark.integration
class TestBundlePayment:
    """Test settling a bundle settles every invoice in it."""

    async def test_bundle_cascade(self, client, world):
        first = await invoiced_order(client, world, "1000")
        second = await invoiced_order(client, world, "2000")
        bundle = await create_bundle(
            client, world.buyer_headers, [first["invoice"]["id"], second["invoice"]["id"]]
        )

        response = await register_payment(client, world, bundle_id=bundle["id"], amount="3300")

        assert response.json()["status"] == "matched"
        for data in (first, second):
            invoice = (await client.get(f"/api/invoices/{data['invoice']['id']}", headers=world.admin_headers)).json()
            order = (await client.get(f"/api/orders/{data['order']['id']}", headers=world.admin_headers)).json()
            assert invoice["status"] == "paid"
            assert order["status"] == "confirmed"

        unpaid = await client.get("/api/admin/bundles/unpaid", headers=world.admin_headers)
        assert unpaid.json() == []


@pytest.mark.integration
class TestSettlementRollback:
    """Test a failure during approval leaves every row of the cascade untouched."""

    @pytest.fixture
    def failing_event_log(self, monkeypatch):
        """Fail right after the cascade has been flushed."""
        def explode(*args, **kwargs):
            raise RuntimeError("event sink unavailable")

        monkeypatch.setattr(payment_service, "log_business_event", explode)

    async def test_bundle_approval_rolls_back(self, app, client, world, failing_event_log):
        first = await invoiced_order(client, world, "1000")
        second = await invoiced_order(client, world, "2000")
        bundle = await create_bundle(
            client, world.buyer_headers, [first["invoice"]["id"], second["invoice"]["id"]]
        )
        pending = (await register_payment(client, world, bundle_id=bundle["id"], amount="3000")).json()
        assert pending["status"] == "pending"

        transport = ASGITransport(app=app, raise_app_exceptions=False)
        async with AsyncClient(transport=transport, base_url="http://test") as failing_client:
            response = await failing_client.post(
                f"/api/admin/payments/{pending['id']}/approve", headers=world.admin_headers
            )

        assert response.status_code == 500

        payments = (await client.get("/api/admin/payments", headers=world.admin_headers)).json()
        assert payments["items"][0]["status"] == "pending"
        assert payments["items"][0]["approved_at"] is None

        unpaid = (await client.get("/api/admin/bundles/unpaid", headers=world.admin_headers)).json()
        assert [row["id"] for row in unpaid] == [bundle["id"]]

        for data in (first, second):
            invoice = (await client.get(f"/api/invoices/{data['invoice']['id']}", headers=world.admin_headers)).json()
            order = (await client.get(f"/api/orders/{data['order']['id']}", headers=world.admin_headers)).json()
            assert invoice["status"] == "issued"
            assert invoice["paid_at"] is None
            assert order["status"] == "invoiced"
            assert order["confirmed_at"] is None
            assert all(item["status"] == "pending" for item in order["items"])


@pytest.mark.integration
class TestPaymentHistory:
    """Test the payment history of members and partners."""

    async def test_member_and_partner_history(self, client, world):
        data = await invoiced_order(client, world, "1000")
        await register_payment(client, world, invoice_id=data["invoice"]["id"], amount="1100")

        member = (await client.get("/api/payments", headers=world.buyer_headers)).json()
        partner = (await client.get("/api/payments", headers=world.seller_headers)).json()
        other_member = (await client.get("/api/payments", headers=world.other_buyer_headers)).json()

        assert member["summary"]["count"] == 1
        assert Decimal(member["summary"]["total_amount"]) == Decimal("1100")
        assert partner["summary"]["count"] == 1
        assert other_member["summary"]["count"] == 0

    async def test_pending_payments_excluded(self, client, world):
        data = await invoiced_order(client, world, "1000")
        await register_payment(client, world, invoice_id=data["invoice"]["id"], amount="900")

        member = (await client.get("/api/payments", headers=world.buyer_headers)).json()

        assert member["payments"] == []

    async def test_year_filter(self, client, world):
        data = await invoiced_order(client, world, "1000")
        await register_payment(
            client, world,
            invoice_id=data["invoice"]["id"],
            amount="1100",
            payment_date="2024-03-15T10:00:00",
        )

        hit = (await client.get("/api/payments?year=2024&month=3", headers=world.buyer_headers)).json()
        miss = (await client.get("/api/payments?year=2024&month=4", headers=world.buyer_headers)).json()

        assert hit["summary"]["count"] == 1
        assert miss["summary"]["count"] == 0

    async def test_admins_use_admin_listing(self, client, world):
        history = await client.get("/api/payments", headers=world.admin_headers)
        listing = await client.get("/api/admin/payments", headers=world.admin_headers)

        assert history.status_code == 403
        assert listing.status_code == 200
