"""
AuditHub - Scope API Tests

End-to-end tests for /scope routes, including the signature gate.
"""

import uuid

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select

from audithub.models.audit import Audit
from audithub.models.scope import Scope
from conftest import as_user, scope_payload, signed


async def create_scope(client: AsyncClient, client_user, auditor_company, **overrides) -> dict:
    response = await client.post(
        "/scope/create",
        json=signed(client_user.public_address, scopeData=scope_payload(auditor_company.id, **overrides)),
    )
    assert response.status_code == 201, response.text
    return response.json()["scope"]


class TestCreateScopeAPI:

    @pytest.mark.asyncio
    async def test_create_scope(self, client: AsyncClient, verifier, client_user, client_company, auditor_company):
        scope = await create_scope(client, client_user, auditor_company)

        assert scope["status"] == "pending"
        assert scope["protocol"] == "Ekubo"
        assert scope["cairoVer"] == "2.6.3"
        assert scope["clientCompanyId"] == str(client_company.id)
        assert scope["auditorCompanyId"] == str(auditor_company.id)
        assert scope["createdBy"] == str(client_user.id)
        assert scope["approvedBy"] is None
        assert verifier.calls[0][0] == client_user.public_address

    @pytest.mark.asyncio
    async def test_invalid_fields_are_400(self, client: AsyncClient, client_user, auditor_company):
        response = await client.post(
            "/scope/create",
            json=signed(
                client_user.public_address,
                scopeData=scope_payload(auditor_company.id, cairoVer="two", website="not a url"),
            ),
        )

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "VALIDATION_ERROR"

    @pytest.mark.asyncio
    async def test_missing_signature_is_401(self, client: AsyncClient, client_user, auditor_company):
        response = await client.post(
            "/scope/create",
            json={"publicAddress": client_user.public_address, "scopeData": scope_payload(auditor_company.id)},
        )

        assert response.status_code == 401
        assert response.json()["detail"]["code"] == "UNAUTHORIZED"

    @pytest.mark.asyncio
    async def test_bad_signature_is_401(self, client: AsyncClient, verifier, client_user, auditor_company):
        verifier.valid = False
        response = await client.post(
            "/scope/create",
            json=signed(client_user.public_address, scopeData=scope_payload(auditor_company.id)),
        )

        assert response.status_code == 401
        assert response.json()["detail"]["code"] == "SIGNATURE_INVALID"

    @pytest.mark.asyncio
    async def test_unregistered_signer_is_401(self, client: AsyncClient, auditor_company):
        response = await client.post(
            "/scope/create",
            json=signed("0x" + "9" * 64, scopeData=scope_payload(auditor_company.id)),
        )

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_auditor_cannot_create(self, client: AsyncClient, auditor_user, auditor_company):
        response = await client.post(
            "/scope/create",
            json=signed(auditor_user.public_address, scopeData=scope_payload(auditor_company.id)),
        )

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_unknown_auditor_company_is_404(self, client: AsyncClient, client_user):
        response = await client.post(
            "/scope/create",
            json=signed(client_user.public_address, scopeData=scope_payload(uuid.uuid4())),
        )

        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "COMPANY_NOT_FOUND"


class TestReviewScopeAPI:

    @pytest.mark.asyncio
    async def test_assigned_auditor_approves(
        self, client: AsyncClient, session_maker, client_user, auditor_user, auditor_company,
    ):
        scope = await create_scope(client, client_user, auditor_company)

        response = await client.post(
            f"/scope/{scope['id']}/approve",
            json=signed(auditor_user.public_address),
        )

        assert response.status_code == 200, response.text
        data = response.json()
        assert data["scope"]["status"] == "audit_created"
        assert data["scope"]["approvedBy"] == str(auditor_user.id)
        assert data["scope"]["auditId"] == data["audit"]["id"]
        audit = data["audit"]
        assert audit["status"] == "Draft"
        assert audit["scope"] == ["https://github.com/ekuboprotocol/abis"]
        assert audit["summary"]["protocol"] == "Ekubo"
        assert audit["summary"]["initialCommit"] == "a1b2c3d4e5f6"
        for bucket in ("critical", "high", "medium", "low", "info", "bestPractices"):
            assert audit["issues"][bucket] == []

        async with session_maker() as session:
            stored = await session.get(Scope, uuid.UUID(scope["id"]))
            assert stored.status.value == "audit_created"

    @pytest.mark.asyncio
    async def test_auditor_of_other_company_gets_403(
        self, client: AsyncClient, session_maker, client_user, outside_auditor_user, auditor_company,
    ):
        scope = await create_scope(client, client_user, auditor_company)

        response = await client.post(
            f"/scope/{scope['id']}/approve",
            json=signed(outside_auditor_user.public_address),
        )

        assert response.status_code == 403
        assert response.json()["detail"]["code"] == "FORBIDDEN"
        async with session_maker() as session:
            stored = await session.get(Scope, uuid.UUID(scope["id"]))
            assert stored.status.value == "pending"
            assert await session.scalar(select(func.count(Audit.id))) == 0

    @pytest.mark.asyncio
    async def test_blank_rejection_reason_is_400(
        self, client: AsyncClient, session_maker, client_user, auditor_user, auditor_company,
    ):
        scope = await create_scope(client, client_user, auditor_company)

        response = await client.post(
            f"/scope/{scope['id']}/reject",
            json=signed(auditor_user.public_address, rejectionReason=""),
        )

        assert response.status_code == 400
        assert response.json()["detail"]["field"] == "rejectionReason"
        async with session_maker() as session:
            stored = await session.get(Scope, uuid.UUID(scope["id"]))
            assert stored.status.value == "pending"

    @pytest.mark.asyncio
    async def test_reject_with_reason(self, client: AsyncClient, client_user, auditor_user, auditor_company):
        scope = await create_scope(client, client_user, auditor_company)

        response = await client.post(
            f"/scope/{scope['id']}/reject",
            json=signed(auditor_user.public_address, rejectionReason="Fully booked this quarter"),
        )

        assert response.status_code == 200
        data = response.json()["scope"]
        assert data["status"] == "rejected"
        assert data["rejectionReason"] == "Fully booked this quarter"
        assert data["auditId"] is None

    @pytest.mark.asyncio
    async def test_approving_twice_is_409(self, client: AsyncClient, client_user, auditor_user, auditor_company):
        scope = await create_scope(client, client_user, auditor_company)
        first = await client.post(f"/scope/{scope['id']}/approve", json=signed(auditor_user.public_address))
        assert first.status_code == 200

        second = await client.post(f"/scope/{scope['id']}/approve", json=signed(auditor_user.public_address))

        assert second.status_code == 409
        assert second.json()["detail"]["code"] == "INVALID_TRANSITION"

    @pytest.mark.asyncio
    async def test_unknown_scope_is_404(self, client: AsyncClient, auditor_user):
        response = await client.post(f"/scope/{uuid.uuid4()}/approve", json=signed(auditor_user.public_address))

        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "SCOPE_NOT_FOUND"


class TestReadScopeAPI:

    @pytest.mark.asyncio
    async def test_missing_header_is_401(self, client: AsyncClient):
        response = await client.get("/scope/")

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_lists_follow_company_visibility(
        self, client: AsyncClient, client_user, auditor_user, outside_auditor_user, admin_user, auditor_company,
    ):
        scope = await create_scope(client, client_user, auditor_company)

        for user in (client_user, auditor_user, admin_user):
            response = await client.get("/scope/", headers=as_user(user))
            assert [s["id"] for s in response.json()] == [scope["id"]]

        response = await client.get("/scope/", headers=as_user(outside_auditor_user))
        assert response.json() == []

        response = await client.get(f"/scope/{scope['id']}", headers=as_user(outside_auditor_user))
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_pending_and_company_lists(
        self, client: AsyncClient, client_user, auditor_user, client_company, auditor_company,
    ):
        scope = await create_scope(client, client_user, auditor_company)

        pending = await client.get("/scope/pending", headers=as_user(auditor_user))
        assert [s["id"] for s in pending.json()] == [scope["id"]]

        by_company = await client.get(f"/scope/company/{client_company.id}", headers=as_user(client_user))
        assert by_company.status_code == 200
        assert len(by_company.json()) == 1

        foreign = await client.get(f"/scope/company/{client_company.id}", headers=as_user(auditor_user))
        assert foreign.status_code == 403

    @pytest.mark.asyncio
    async def test_detail_embeds_audit_after_approval(
        self, client: AsyncClient, client_user, auditor_user, auditor_company,
    ):
        scope = await create_scope(client, client_user, auditor_company)

        before = await client.get(f"/scope/{scope['id']}", headers=as_user(client_user))
        assert before.json()["audit"] is None

        await client.post(f"/scope/{scope['id']}/approve", json=signed(auditor_user.public_address))

        after = await client.get(f"/scope/{scope['id']}", headers=as_user(client_user))
        assert after.status_code == 200
        assert after.json()["audit"]["status"] == "Draft"

    @pytest.mark.asyncio
    async def test_user_scopes(self, client: AsyncClient, client_user, auditor_user, auditor_company):
        scope = await create_scope(client, client_user, auditor_company)

        own = await client.get(f"/scope/user/{client_user.id}", headers=as_user(client_user))
        assert [s["id"] for s in own.json()] == [scope["id"]]

        other = await client.get(f"/scope/user/{client_user.id}", headers=as_user(auditor_user))
        assert other.status_code == 403
