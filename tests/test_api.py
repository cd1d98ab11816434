"""
BettsTax Practice - API Tests

End-to-end HTTP tests through the FastAPI application.
"""

import pytest
from datetime import date, timedelta
from decimal import Decimal

from app.models.tax_filing import FilingStatus
from tests.factories import TEST_PASSWORD, auth_headers, make_filing


def _filing_payload(client_id, **overrides):
    payload = {
        "client_id": str(client_id),
        "tax_type": "gst",
        "tax_year": 2024,
        "due_date": (date.today() + timedelta(days=15)).isoformat(),
        "taxable_amount": "1000.00",
        "tax_liability": "150.00",
        "schedules": [
            {"description": "Standard-rated sales", "amount": "1000.00", "taxable_amount": "1000.00"},
        ],
    }
    payload.update(overrides)
    return payload


class TestHealthAndAuth:
    """Public endpoints and authentication."""

    @pytest.mark.asyncio
    async def test_health_check(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert response.json()["tax_authority_configured"] is False

    @pytest.mark.asyncio
    async def test_login_and_me(self, client, client_user):
        response = await client.post(
            "/api/auth/login",
            json={"email": "owner@freetowntrading.com", "password": TEST_PASSWORD},
        )

        assert response.status_code == 200
        token = response.json()["tokens"]["access_token"]

        me = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert me.status_code == 200
        assert me.json()["role"] == "client"
        assert me.json()["client_id"] == str(client_user.client_id)

    @pytest.mark.asyncio
    async def test_login_wrong_password(self, client, client_user):
        response = await client.post(
            "/api/auth/login",
            json={"email": "owner@freetowntrading.com", "password": "WrongPassword!"},
        )

        assert response.status_code == 401
        assert response.json()["success"] is False

    @pytest.mark.asyncio
    async def test_unauthenticated_request(self, client):
        response = await client.get("/api/tax-filings")

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "UNAUTHORIZED"

    @pytest.mark.asyncio
    async def test_invalid_token(self, client):
        response = await client.get(
            "/api/auth/me", headers={"Authorization": "Bearer not-a-real-token"}
        )

        assert response.status_code == 401
        body = response.json()
        assert body["success"] is False
        assert body["error"]["code"] == "UNAUTHORIZED"
        assert body["message"] == "Invalid or expired token"
        assert response.headers["www-authenticate"] == "Bearer"


class TestTaxFilingWorkflow:
    """Filing lifecycle over HTTP."""

    @pytest.mark.asyncio
    async def test_client_files_and_admin_approves(self, client, client_user, admin_user, test_client_record):
        """Create, submit and approve a GST return."""
        created = await client.post(
            "/api/tax-filings",
            json=_filing_payload(test_client_record.id),
            headers=auth_headers(client_user),
        )
        assert created.status_code == 201
        filing = created.json()["data"]
        assert filing["status"] == "draft"
        assert filing["filing_reference"].startswith("GST-2024-000042-")
        assert Decimal(filing["schedules"][0]["taxable_amount"]) == Decimal("1000")

        validation = await client.get(
            f"/api/tax-filings/{filing['id']}/validate", headers=auth_headers(client_user)
        )
        assert validation.json()["data"]["is_valid"] is True

        submitted = await client.post(
            f"/api/tax-filings/{filing['id']}/submit", headers=auth_headers(client_user)
        )
        assert submitted.status_code == 200
        assert submitted.json()["data"]["status"] == "submitted"

        reviewed = await client.post(
            f"/api/tax-filings/{filing['id']}/review",
            json={"decision": "approved", "comments": "Agreed to ledger"},
            headers=auth_headers(admin_user),
        )
        assert reviewed.status_code == 200
        assert reviewed.json()["data"]["status"] == "approved"
        assert reviewed.json()["data"]["version"] == 3

    @pytest.mark.asyncio
    async def test_read_only_associate_cannot_submit(
        self, client, associate_user, admin_user, client_user, draft_filing, read_permission
    ):
        filing_id, client_id = draft_filing.id, draft_filing.client_id
        admin_headers, owner_headers = auth_headers(admin_user), auth_headers(client_user)
        response = await client.post(
            f"/api/tax-filings/{filing_id}/submit", headers=auth_headers(associate_user)
        )

        assert response.status_code == 403
        body = response.json()
        assert body["success"] is False
        assert body["error"]["code"] == "DELEGATION_REQUIRED"

        current = await client.get(f"/api/tax-filings/{filing_id}", headers=admin_headers)
        assert current.json()["data"]["status"] == "draft"
        assert current.json()["data"]["version"] == 1

        log = await client.get(
            f"/api/on-behalf-actions/client/{client_id}", headers=owner_headers
        )
        assert log.status_code == 200
        assert log.json()["data"] == []

    @pytest.mark.asyncio
    async def test_expired_associate_cannot_update(
        self, client, associate_user, draft_filing, expired_permission
    ):
        response = await client.put(
            f"/api/tax-filings/{draft_filing.id}",
            json={"notes": "Should not be saved"},
            headers=auth_headers(associate_user),
        )

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_second_submit_is_rejected(self, client, client_user, draft_filing):
        first = await client.post(
            f"/api/tax-filings/{draft_filing.id}/submit", headers=auth_headers(client_user)
        )
        second = await client.post(
            f"/api/tax-filings/{draft_filing.id}/submit", headers=auth_headers(client_user)
        )

        assert first.status_code == 200
        assert second.status_code == 400
        assert second.json()["error"]["code"] == "INVALID_STATE_TRANSITION"

    @pytest.mark.asyncio
    async def test_stale_version_returns_conflict(self, client, admin_user, draft_filing):
        response = await client.put(
            f"/api/tax-filings/{draft_filing.id}",
            json={"notes": "Late edit", "version": 7},
            headers=auth_headers(admin_user),
        )

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "VERSION_CONFLICT"

    @pytest.mark.asyncio
    async def test_negative_amount_rejected(self, client, admin_user, test_client_record):
        response = await client.post(
            "/api/tax-filings",
            json=_filing_payload(test_client_record.id, taxable_amount="-1"),
            headers=auth_headers(admin_user),
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    @pytest.mark.asyncio
    async def test_unknown_filing(self, client, admin_user):
        response = await client.get(
            "/api/tax-filings/00000000-0000-0000-0000-000000000000", headers=auth_headers(admin_user)
        )

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "FILING_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_list_pagination_envelope(self, client, db_session, admin_user, test_client_record):
        for _ in range(3):
            await make_filing(db_session, test_client_record)

        response = await client.get(
            "/api/tax-filings", params={"page": 1, "pageSize": 2}, headers=auth_headers(admin_user)
        )

        assert response.status_code == 200
        body = response.json()
        assert len(body["data"]) == 2
        assert body["pagination"] == {"currentPage": 1, "pageSize": 2, "totalCount": 3, "totalPages": 2}

    @pytest.mark.asyncio
    async def test_authority_submission_not_configured(self, client, db_session, admin_user, test_client_record):
        filing = await make_filing(db_session, test_client_record, status=FilingStatus.APPROVED)

        response = await client.post(
            f"/api/tax-filings/{filing.id}/authority-submission", headers=auth_headers(admin_user)
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is False
        assert body["message"] == "Tax authority not configured"
        assert body["data"]["submitted"] is False


class TestDelegationApi:
    """Permission administration and the on-behalf log over HTTP."""

    @pytest.mark.asyncio
    async def test_admin_grants_and_associate_works(
        self, client, admin_user, associate_user, client_user, draft_filing, test_client_record
    ):
        grant = await client.post(
            "/api/associate-permissions/grant",
            json={
                "associate_id": str(associate_user.id),
                "client_id": str(test_client_record.id),
                "area": "TaxFilings",
                "level": "update",
            },
            headers=auth_headers(admin_user),
        )
        assert grant.status_code == 201
        assert grant.json()["data"]["area"] == "tax_filings"

        update = await client.put(
            f"/api/tax-filings/{draft_filing.id}/on-behalf",
            json={"updates": {"notes": "Added import schedule"}, "reason": "Client emailed documents"},
            headers=auth_headers(associate_user),
        )
        assert update.status_code == 200

        unnotified = await client.get(
            f"/api/on-behalf-actions/client/{test_client_record.id}/unnotified",
            headers=auth_headers(client_user),
        )
        actions = unnotified.json()["data"]
        assert len(actions) == 1
        assert actions[0]["action"] == "update"
        assert actions[0]["reason"] == "Client emailed documents"

        notified = await client.post(
            f"/api/on-behalf-actions/{actions[0]['id']}/notify", headers=auth_headers(client_user)
        )
        assert notified.status_code == 200
        assert notified.json()["data"]["client_notified"] is True

    @pytest.mark.asyncio
    async def test_associate_cannot_grant(self, client, associate_user, second_associate, test_client_record):
        response = await client.post(
            "/api/associate-permissions/grant",
            json={
                "associate_id": str(second_associate.id),
                "client_id": str(test_client_record.id),
                "area": "tax_filings",
                "level": "read",
            },
            headers=auth_headers(associate_user),
        )

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_associate_cannot_read_other_associate_log(
        self, client, associate_user, second_associate
    ):
        response = await client.get(
            f"/api/on-behalf-actions/associate/{second_associate.id}", headers=auth_headers(associate_user)
        )

        assert response.status_code == 403
