"""Integration tests for onboarding applications and their forms."""

import pytest


APPLICATION = {
    "applicant_email": "new.hire@example.com",
    "applicant_name": "Yamada Taro",
    "hire_date": "2025-10-01",
    "deadline": "2025-09-15",
    "department": "Kitchen",
    "position": "Line cook",
}


async def open_application(client, world, tenant_headers):
    response = await client.post(
        "/api/onboarding/applications",
        headers={**world.admin_headers, **tenant_headers},
        json=APPLICATION,
    )
    assert response.status_code == 201, response.text
    return response.json()


def applicant_headers(application, tenant_headers):
    return {"X-Onboarding-Token": application["access_token"], **tenant_headers}


def form_url(application, slug):
    return f"/api/onboarding/applications/{application['id']}/{slug}"


@pytest.mark.integration
class TestApplications:
    """Test application management by HR administrators."""

    async def test_create_prefills_forms(self, client, world, tenant_headers):
        application = await open_application(client, world, tenant_headers)

        assert application["status"] == "draft"
        assert application["tenant_id"] == "test-tenant"
        assert len(application["access_token"]) == 48
        assert application["basic_info"]["email"] == "new.hire@example.com"
        assert application["basic_info"]["hire_date"] == "2025-10-01"
        assert application["bank_account"]["full_name"] == "Yamada Taro"
        assert application["commute_route"]["name"] == "Yamada Taro"
        assert application["family_info"]["status"] == "draft"

    async def test_applications_scoped_to_tenant(self, client, world, tenant_headers):
        application = await open_application(client, world, tenant_headers)

        same = await client.get(
            f"/api/onboarding/applications/{application['id']}",
            headers={**world.admin_headers, **tenant_headers},
        )
        other = await client.get(
            f"/api/onboarding/applications/{application['id']}",
            headers={**world.admin_headers, "X-Tenant-Id": "other-tenant"},
        )
        listed = await client.get(
            "/api/onboarding/applications", headers={**world.admin_headers, "X-Tenant-Id": "other-tenant"}
        )

        assert same.status_code == 200
        assert other.status_code == 404
        assert listed.json()["total"] == 0

    async def test_admin_only(self, client, world, tenant_headers):
        response = await client.post(
            "/api/onboarding/applications",
            headers={**world.buyer_headers, **tenant_headers},
            json=APPLICATION,
        )

        assert response.status_code == 403

    async def test_update_and_status(self, client, world, tenant_headers):
        application = await open_application(client, world, tenant_headers)
        headers = {**world.admin_headers, **tenant_headers}
        url = f"/api/onboarding/applications/{application['id']}"

        updated = await client.patch(url, headers=headers, json={"employee_id": "E-1001"})
        approved = await client.patch(f"{url}/status", headers=headers, json={"status": "approved"})

        assert updated.json()["employee_id"] == "E-1001"
        assert approved.json()["status"] == "approved"
        assert approved.json()["approved_by"] == world.admin.id
        assert approved.json()["approved_at"] is not None

    async def test_delete(self, client, world, tenant_headers):
        application = await open_application(client, world, tenant_headers)
        headers = {**world.admin_headers, **tenant_headers}
        url = f"/api/onboarding/applications/{application['id']}"

        deleted = await client.delete(url, headers=headers)
        missing = await client.get(url, headers=headers)

        assert deleted.status_code == 200
        assert missing.status_code == 404


@pytest.mark.integration
class TestApplicantForms:
    """Test the applicant filling in forms with the access token."""

    async def test_token_grants_access(self, client, world, tenant_headers):
        application = await open_application(client, world, tenant_headers)

        response = await client.get(
            form_url(application, "basic-info"), headers=applicant_headers(application, tenant_headers)
        )

        assert response.status_code == 200
        assert response.json()["email"] == "new.hire@example.com"

    async def test_wrong_token(self, client, world, tenant_headers):
        application = await open_application(client, world, tenant_headers)

        response = await client.get(
            form_url(application, "basic-info"),
            headers={"X-Onboarding-Token": "not-the-token", **tenant_headers},
        )

        assert response.status_code == 403

    async def test_no_credentials(self, client, world, tenant_headers):
        application = await open_application(client, world, tenant_headers)

        response = await client.get(form_url(application, "basic-info"), headers=tenant_headers)

        assert response.status_code == 401

    async def test_non_admin_user(self, client, world, tenant_headers):
        application = await open_application(client, world, tenant_headers)

        response = await client.get(
            form_url(application, "basic-info"), headers={**world.buyer_headers, **tenant_headers}
        )

        assert response.status_code == 403

    async def test_full_save_and_submit(self, client, world, tenant_headers):
        """Test a full save replaces the form and submits it."""
        application = await open_application(client, world, tenant_headers)
        headers = applicant_headers(application, tenant_headers)

        response = await client.post(
            form_url(application, "family-info"),
            headers=headers,
            json={
                "status": "submitted",
                "last_name_kanji": "山田",
                "first_name_kanji": "太郎",
                "family_members": [{"name": "Yamada Hanako", "relationship": "mother"}],
            },
        )

        assert response.status_code == 200, response.text
        form = response.json()
        assert form["status"] == "submitted"
        assert form["submitted_at"] is not None
        assert form["has_spouse"] is False
        assert form["email"] is None
        assert form["family_members"][0]["relationship"] == "mother"

    async def test_partial_save_keeps_other_fields(self, client, world, tenant_headers):
        application = await open_application(client, world, tenant_headers)
        headers = applicant_headers(application, tenant_headers)

        response = await client.patch(
            form_url(application, "bank-account"),
            headers=headers,
            json={"bank_name": "Harbor Bank", "bank_code": "0001", "branch_code": "123"},
        )

        form = response.json()
        assert form["bank_name"] == "Harbor Bank"
        assert form["full_name"] == "Yamada Taro"
        assert form["status"] == "draft"

    async def test_applicant_cannot_approve(self, client, world, tenant_headers):
        application = await open_application(client, world, tenant_headers)

        response = await client.patch(
            form_url(application, "commute-route"),
            headers=applicant_headers(application, tenant_headers),
            json={"status": "approved"},
        )

        assert response.status_code == 403

    @pytest.mark.parametrize("field,value", [
        ("bank_code", "12345"),
        ("branch_code", "12"),
        ("account_number", "123456789"),
        ("account_number", "12a4"),
    ])
    async def test_bank_account_formats(self, client, world, tenant_headers, field, value):
        application = await open_application(client, world, tenant_headers)

        response = await client.patch(
            form_url(application, "bank-account"),
            headers=applicant_headers(application, tenant_headers),
            json={field: value},
        )

        assert response.status_code == 422

    async def test_unknown_fields_rejected(self, client, world, tenant_headers):
        application = await open_application(client, world, tenant_headers)

        response = await client.patch(
            form_url(application, "basic-info"),
            headers=applicant_headers(application, tenant_headers),
            json={"salary": "1000000"},
        )

        assert response.status_code == 422


@pytest.mark.integration
class TestFormReview:
    """Test HR approving and returning submitted forms."""

    async def submit(self, client, application, tenant_headers, slug="basic-info"):
        response = await client.patch(
            form_url(application, slug),
            headers=applicant_headers(application, tenant_headers),
            json={"status": "submitted", "phone_number": "090-0000-0000"},
        )
        assert response.status_code == 200, response.text

    async def test_approve_locks_form(self, client, world, tenant_headers):
        application = await open_application(client, world, tenant_headers)
        await self.submit(client, application, tenant_headers)

        approved = await client.post(
            f"{form_url(application, 'basic-info')}/approve",
            headers={**world.admin_headers, **tenant_headers},
        )
        edit = await client.patch(
            form_url(application, "basic-info"),
            headers=applicant_headers(application, tenant_headers),
            json={"phone_number": "080-1111-1111"},
        )

        assert approved.status_code == 200
        assert approved.json()["status"] == "approved"
        assert approved.json()["approved_by"] == world.admin.id
        assert edit.status_code == 400

    async def test_return_with_comment(self, client, world, tenant_headers):
        application = await open_application(client, world, tenant_headers)
        await self.submit(client, application, tenant_headers, "commute-route")

        returned = await client.post(
            f"{form_url(application, 'commute-route')}/return",
            headers={**world.admin_headers, **tenant_headers},
            json={"review_comment": "Please add the bus segment"},
        )
        resubmitted = await client.patch(
            form_url(application, "commute-route"),
            headers=applicant_headers(application, tenant_headers),
            json={"status": "submitted", "commute_method": "train+bus"},
        )

        assert returned.json()["status"] == "returned"
        assert returned.json()["review_comment"] == "Please add the bus segment"
        assert resubmitted.json()["status"] == "submitted"

    async def test_review_requires_submission(self, client, world, tenant_headers):
        application = await open_application(client, world, tenant_headers)

        response = await client.post(
            f"{form_url(application, 'basic-info')}/approve",
            headers={**world.admin_headers, **tenant_headers},
        )

        assert response.status_code == 400

    async def test_review_admin_only(self, client, world, tenant_headers):
        application = await open_application(client, world, tenant_headers)
        await self.submit(client, application, tenant_headers)

        response = await client.post(
            f"{form_url(application, 'basic-info')}/approve",
            headers=applicant_headers(application, tenant_headers),
        )

        assert response.status_code == 401
