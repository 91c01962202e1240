"""API shortcuts that drive a workflow to a given stage."""

from typing import Any, Dict, List

from tests.factories.data_factories import order_payload


async def place_order(client, world, lines: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Direct order by the world's buyer."""
    response = await client.post("/api/orders", headers=world.buyer_headers, json=order_payload(lines))
    assert response.status_code == 201, response.text
    return response.json()


async def issue_invoice(client, headers: Dict[str, str], order_id: int) -> Dict[str, Any]:
    response = await client.post("/api/invoices", headers=headers, json={"order_id": order_id})
    assert response.status_code == 201, response.text
    return response.json()


async def invoiced_order(client, world, unit_price: str = "1000") -> Dict[str, Any]:
    """
    One order with a single line from the world's partner, invoiced.

    Returns:
        Dict with ``order`` and ``invoice`` as returned by the API
    """
    order = await place_order(client, world, [
        {"partner_id": world.partner.id, "unit_price": unit_price},
    ])
    invoice = await issue_invoice(client, world.seller_headers, order["id"])
    return {"order": order, "invoice": invoice}


async def create_bundle(client, headers: Dict[str, str], invoice_ids: List[int]) -> Dict[str, Any]:
    response = await client.post("/api/invoices/bundle", headers=headers, json={"invoice_ids": invoice_ids})
    assert response.status_code == 201, response.text
    return response.json()
