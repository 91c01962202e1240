"""Integration tests for direct orders, fulfilment, invoicing and bundles."""

import re
from decimal import Decimal

import pytest

from tests.factories.data_factories import order_payload
from tests.factories.workflows import create_bundle, invoiced_order, issue_invoice, place_order


@pytest.mark.integration
class TestDirectOrders:
    """Test catalogue orders placed without a quote."""

    async def test_member_places_order(self, client, world):
        order = await place_order(client, world, [
            {"partner_id": world.partner.id, "quantity": 3, "unit_price": "250"},
            {"partner_id": world.other_partner.id, "quantity": 2, "unit_price": "99.99"},
        ])

        assert order["status"] == "ordered"
        assert order["quote_id"] is None
        assert re.fullmatch(r"O\d{8}-\d{4}", order["order_number"])
        assert Decimal(order["total_amount"]) == Decimal("949.98")

    async def test_partner_cannot_order(self, client, world):
        response = await client.post(
            "/api/orders",
            headers=world.seller_headers,
            json=order_payload([{"partner_id": world.partner.id, "unit_price": "10"}]),
        )

        assert response.status_code == 403

    async def test_unknown_partner(self, client, world):
        response = await client.post(
            "/api/orders",
            headers=world.buyer_headers,
            json=order_payload([{"partner_id": 9999, "unit_price": "10"}]),
        )

        assert response.status_code == 400

    async def test_only_admin_changes_status(self, client, world):
        order = await place_order(client, world, [{"partner_id": world.partner.id, "unit_price": "10"}])

        by_member = await client.put(
            f"/api/orders/{order['id']}", headers=world.buyer_headers, json={"status": "confirmed"}
        )
        by_admin = await client.put(
            f"/api/orders/{order['id']}", headers=world.admin_headers, json={"status": "confirmed"}
        )

        assert by_member.status_code == 403
        assert by_admin.status_code == 200
        assert by_admin.json()["status"] == "confirmed"
        assert by_admin.json()["confirmed_at"] is not None

    async def test_member_edits_note(self, client, world):
        order = await place_order(client, world, [{"partner_id": world.partner.id, "unit_price": "10"}])

        response = await client.put(
            f"/api/orders/{order['id']}", headers=world.buyer_headers, json={"note": "Back door"}
        )

        assert response.status_code == 200
        assert response.json()["note"] == "Back door"

    async def test_partner_sees_only_its_orders(self, client, world):
        await place_order(client, world, [{"partner_id": world.partner.id, "unit_price": "10"}])

        own = await client.get("/api/orders", headers=world.seller_headers)
        other = await client.get("/api/orders", headers=world.other_seller_headers)

        assert own.json()["total"] == 1
        assert other.json()["total"] == 0


@pytest.mark.integration
class TestFulfilment:
    """Test order line updates and the status roll-up."""

    async def test_shipping_and_delivery_roll_up(self, client, world):
        order = await place_order(client, world, [
            {"partner_id": world.partner.id, "unit_price": "10"},
            {"partner_id": world.other_partner.id, "unit_price": "20"},
        ])
        own = next(i for i in order["items"] if i["partner_id"] == world.partner.id)
        other = next(i for i in order["items"] if i["partner_id"] == world.other_partner.id)

        response = await client.put(
            f"/api/orders/{order['id']}/items/{own['id']}",
            headers=world.seller_headers,
            json={"status": "shipped"},
        )
        assert response.status_code == 200
        assert response.json()["status"] == "shipped"
        shipped = next(i for i in response.json()["items"] if i["id"] == own["id"])
        assert shipped["shipped_at"] is not None

        await client.put(
            f"/api/orders/{order['id']}/items/{own['id']}",
            headers=world.seller_headers,
            json={"status": "delivered"},
        )
        response = await client.put(
            f"/api/orders/{order['id']}/items/{other['id']}",
            headers=world.other_seller_headers,
            json={"status": "delivered"},
        )

        assert response.json()["status"] == "delivered"

    async def test_foreign_partner_cannot_update_line(self, client, world):
        order = await place_order(client, world, [{"partner_id": world.partner.id, "unit_price": "10"}])
        item = order["items"][0]

        response = await client.put(
            f"/api/orders/{order['id']}/items/{item['id']}",
            headers=world.other_seller_headers,
            json={"status": "shipped"},
        )

        assert response.status_code == 403

    async def test_line_from_another_order(self, client, world):
        first = await place_order(client, world, [{"partner_id": world.partner.id, "unit_price": "10"}])
        second = await place_order(client, world, [{"partner_id": world.partner.id, "unit_price": "10"}])

        response = await client.put(
            f"/api/orders/{first['id']}/items/{second['items'][0]['id']}",
            headers=world.seller_headers,
            json={"status": "shipped"},
        )

        assert response.status_code == 404

    async def test_invoiced_order_delivered(self, client, world):
        """Test delivering every line of an invoiced order delivers the order."""
        data = await invoiced_order(client, world)
        order_id = data["order"]["id"]
        item = data["order"]["items"][0]

        response = await client.put(
            f"/api/orders/{order_id}/items/{item['id']}",
            headers=world.seller_headers,
            json={"status": "delivered"},
        )
        order = await client.get(f"/api/orders/{order_id}", headers=world.buyer_headers)

        assert response.status_code == 200
        assert order.json()["status"] == "delivered"


@pytest.mark.integration
class TestInvoices:
    """Test invoice issuing and manual status changes."""

    async def test_invoice_bills_own_lines(self, client, world):
        """Test amount, truncated tax and the order moving to invoiced."""
        order = await place_order(client, world, [
            {"partner_id": world.partner.id, "quantity": 3, "unit_price": "333"},
            {"partner_id": world.other_partner.id, "unit_price": "5000"},
        ])

        invoice = await issue_invoice(client, world.seller_headers, order["id"])

        assert re.fullmatch(r"INV\d{6}-\d{5}", invoice["invoice_number"])
        assert invoice["status"] == "issued"
        assert Decimal(invoice["amount"]) == Decimal("999")
        assert Decimal(invoice["tax_amount"]) == Decimal("99")
        assert Decimal(invoice["total_amount"]) == Decimal("1098")
        assert [item["partner_id"] for item in invoice["items"]] == [world.partner.id]
        assert invoice["partner"]["bank_account_number"] == world.partner.bank_account_number

        current = await client.get(f"/api/orders/{order['id']}", headers=world.buyer_headers)
        assert current.json()["status"] == "invoiced"

    async def test_duplicate_invoice(self, client, world):
        data = await invoiced_order(client, world)

        response = await client.post(
            "/api/invoices", headers=world.seller_headers, json={"order_id": data["order"]["id"]}
        )

        assert response.status_code == 400
        assert response.json()["code"] == "DUPLICATE"

    async def test_partner_without_lines(self, client, world):
        order = await place_order(client, world, [{"partner_id": world.partner.id, "unit_price": "10"}])

        response = await client.post(
            "/api/invoices", headers=world.other_seller_headers, json={"order_id": order["id"]}
        )

        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_FAILED"

    async def test_only_partners_issue(self, client, world):
        order = await place_order(client, world, [{"partner_id": world.partner.id, "unit_price": "10"}])

        response = await client.post("/api/invoices", headers=world.buyer_headers, json={"order_id": order["id"]})

        assert response.status_code == 403

    async def test_detail_visibility(self, client, world):
        data = await invoiced_order(client, world)
        invoice_id = data["invoice"]["id"]

        member = await client.get(f"/api/invoices/{invoice_id}", headers=world.buyer_headers)
        other_member = await client.get(f"/api/invoices/{invoice_id}", headers=world.other_buyer_headers)
        other_partner = await client.get(f"/api/invoices/{invoice_id}", headers=world.other_seller_headers)

        assert member.status_code == 200
        assert len(member.json()["items"]) == 1
        assert other_member.status_code == 403
        assert other_partner.status_code == 403

    async def test_mark_sent(self, client, world):
        data = await invoiced_order(client, world)

        response = await client.put(
            f"/api/invoices/{data['invoice']['id']}", headers=world.seller_headers, json={"status": "sent"}
        )

        assert response.status_code == 200
        assert response.json()["status"] == "sent"

    async def test_paid_only_through_payments(self, client, world):
        data = await invoiced_order(client, world)

        response = await client.put(
            f"/api/invoices/{data['invoice']['id']}", headers=world.seller_headers, json={"status": "paid"}
        )

        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_STATE"


@pytest.mark.integration
class TestBundles:
    """Test grouping invoices into one payable bundle."""

    async def test_bundle_sums_invoices(self, client, world):
        first = await invoiced_order(client, world, "1000")
        second = await invoiced_order(client, world, "2000")

        bundle = await create_bundle(
            client, world.buyer_headers, [first["invoice"]["id"], second["invoice"]["id"]]
        )

        assert re.fullmatch(r"BDL\d{6}-\d{4}", bundle["bundle_number"])
        assert bundle["status"] == "created"
        assert Decimal(bundle["total_amount"]) == Decimal("3300")
        assert len(bundle["invoices"]) == 2

        listed = await client.get("/api/invoices/bundle", headers=world.buyer_headers)
        assert listed.json()["total"] == 1

    async def test_invoice_bundled_once(self, client, world):
        data = await invoiced_order(client, world)
        await create_bundle(client, world.buyer_headers, [data["invoice"]["id"]])

        response = await client.post(
            "/api/invoices/bundle", headers=world.buyer_headers, json={"invoice_ids": [data["invoice"]["id"]]}
        )

        assert response.status_code == 400
        assert response.json()["code"] == "DUPLICATE"

    async def test_foreign_invoice(self, client, world):
        data = await invoiced_order(client, world)

        response = await client.post(
            "/api/invoices/bundle",
            headers=world.other_buyer_headers,
            json={"invoice_ids": [data["invoice"]["id"]]},
        )

        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_FAILED"

    async def test_missing_invoice(self, client, world):
        response = await client.post(
            "/api/invoices/bundle", headers=world.buyer_headers, json={"invoice_ids": [9999]}
        )

        assert response.status_code == 400

    async def test_partners_cannot_bundle(self, client, world):
        data = await invoiced_order(client, world)

        response = await client.post(
            "/api/invoices/bundle", headers=world.seller_headers, json={"invoice_ids": [data["invoice"]["id"]]}
        )

        assert response.status_code == 403
