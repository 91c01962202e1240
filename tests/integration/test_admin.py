"""Integration tests for master data, user management, audit log and settings."""

import pytest


@pytest.mark.integration
class TestMasterData:
    """Test member, partner, category and product administration."""

    async def test_create_member(self, client, world):
        response = await client.post(
            "/api/admin/members",
            headers=world.admin_headers,
            json={"code": "M900", "name": "Bay Cafe", "email": "bay@example.com", "payer_name": "BAY CAFE"},
        )
        listed = await client.get("/api/admin/members", headers=world.admin_headers)

        assert response.status_code == 201
        assert response.json()["code"] == "M900"
        assert "M900" in [member["code"] for member in listed.json()]

    async def test_duplicate_code(self, client, world):
        response = await client.post(
            "/api/admin/partners",
            headers=world.admin_headers,
            json={"code": world.partner.code, "name": "Copycat", "email": "copy@example.com"},
        )

        assert response.status_code == 400
        assert response.json()["code"] == "DUPLICATE"

    async def test_category_and_product(self, client, world):
        category = await client.post(
            "/api/admin/categories",
            headers=world.admin_headers,
            json={"code": "BEV", "name": "Beverages", "flow_type": "B"},
        )
        product = await client.post(
            "/api/admin/products",
            headers=world.admin_headers,
            json={
                "code": "BEV-001",
                "name": "Green tea 500ml",
                "partner_id": world.partner.id,
                "category_id": category.json()["id"],
                "product_type": "stock",
                "unit_price": "120",
            },
        )

        assert category.status_code == 201
        assert product.status_code == 201
        assert product.json()["partner"]["id"] == world.partner.id
        assert product.json()["category"]["code"] == "BEV"

    async def test_product_needs_existing_partner(self, client, world):
        response = await client.post(
            "/api/admin/products",
            headers=world.admin_headers,
            json={
                "code": "X-1",
                "name": "Ghost",
                "partner_id": 9999,
                "category_id": world.category.id,
                "product_type": "stock",
            },
        )

        assert response.status_code == 400

    async def test_non_admin_rejected(self, client, world):
        response = await client.get("/api/admin/members", headers=world.buyer_headers)

        assert response.status_code == 403
        assert response.json()["code"] == "FORBIDDEN"


@pytest.mark.integration
class TestUserManagement:
    """Test user administration and its audit trail."""

    async def test_list_with_stats(self, client, world):
        response = await client.get("/api/admin/users", headers=world.admin_headers)

        body = response.json()
        assert body["total"] == 5
        assert body["stats"] == {"total": 5, "admin": 1, "active": 5}

    async def test_create_user_is_audited(self, client, world):
        response = await client.post(
            "/api/admin/users",
            headers=world.admin_headers,
            json={"email": "chef@example.com", "name": "Chef", "role": "member", "member_id": world.member.id},
        )
        audit = await client.get(
            "/api/admin/audit-logs?entity_type=user&action=create", headers=world.admin_headers
        )

        assert response.status_code == 201
        assert response.json()["member"]["id"] == world.member.id
        entries = audit.json()["items"]
        assert len(entries) == 1
        assert entries[0]["entity_id"] == str(response.json()["id"])
        assert entries[0]["user"]["id"] == world.admin.id
        assert entries[0]["new_value"]["email"] == "chef@example.com"
        assert audit.json()["page_size"] == 50

    async def test_duplicate_email(self, client, world):
        response = await client.post(
            "/api/admin/users",
            headers=world.admin_headers,
            json={"email": world.buyer.email, "name": "Twin", "role": "member", "member_id": world.member.id},
        )

        assert response.status_code == 400
        assert response.json()["code"] == "DUPLICATE"

    async def test_affiliation_required(self, client, world):
        member = await client.post(
            "/api/admin/users",
            headers=world.admin_headers,
            json={"email": "nomember@example.com", "name": "No Member", "role": "member"},
        )
        partner = await client.post(
            "/api/admin/users",
            headers=world.admin_headers,
            json={"email": "nopartner@example.com", "name": "No Partner", "role": "partner"},
        )

        assert member.status_code == 400
        assert partner.status_code == 400

    async def test_cannot_change_own_role(self, client, world):
        response = await client.put(
            f"/api/admin/users/{world.admin.id}", headers=world.admin_headers, json={"role": "member"}
        )

        assert response.status_code == 400

    async def test_update_user(self, client, world):
        response = await client.put(
            f"/api/admin/users/{world.buyer.id}", headers=world.admin_headers, json={"name": "Head Buyer"}
        )

        assert response.status_code == 200
        assert response.json()["name"] == "Head Buyer"

    async def test_deactivate_blocks_login(self, client, world):
        """Test a deactivated user can no longer authenticate."""
        response = await client.delete(f"/api/admin/users/{world.buyer.id}", headers=world.admin_headers)
        me = await client.get("/api/auth/me", headers=world.buyer_headers)
        audit = await client.get("/api/admin/audit-logs?action=delete", headers=world.admin_headers)

        assert response.status_code == 200
        assert me.status_code == 401
        assert audit.json()["total"] == 1
        assert audit.json()["items"][0]["new_value"] == {"status": "inactive"}

    async def test_cannot_delete_self(self, client, world):
        response = await client.delete(f"/api/admin/users/{world.admin.id}", headers=world.admin_headers)

        assert response.status_code == 400


@pytest.mark.integration
class TestSystemSettings:
    """Test the key/value system settings."""

    async def test_update_and_read(self, client, world):
        response = await client.put(
            "/api/admin/settings",
            headers=world.admin_headers,
            json={"settings": {"company_name": "Procurement Co", "invoice_due_days": "30"}},
        )
        current = await client.get("/api/admin/settings", headers=world.admin_headers)
        audit = await client.get("/api/admin/audit-logs?entity_type=system_setting", headers=world.admin_headers)

        assert response.status_code == 200
        assert current.json()["settings"]["company_name"] == "Procurement Co"
        assert current.json()["settings"]["invoice_due_days"] == "30"
        assert audit.json()["items"][0]["entity_id"] == "bulk"

    async def test_empty_update(self, client, world):
        response = await client.put("/api/admin/settings", headers=world.admin_headers, json={"settings": {}})

        assert response.status_code == 400
