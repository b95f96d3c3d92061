"""
AuditHub - Scope Workflow Tests

Service-level tests for the scope state machine: transitions, the
approval unit of work, and racing reviewers.
"""

import asyncio
import random
import uuid

import pytest
import pytest_asyncio
from sqlalchemy import event, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from audithub.models.audit import Audit, AuditStatus
from audithub.models.company import company_reports
from audithub.models.scope import Scope, ScopeStatus
from audithub.models.user import user_reports
from audithub.schemas.scope import ScopeData
from audithub.services import scope_workflow
from audithub.services.scope_workflow import (
    SCOPE_TRANSITIONS,
    ScopeWorkflowService,
    can_transition,
    ensure_transition,
)
from audithub.services.user_service import UserService
from audithub.utils.error_handling import (
    AuthorizationException,
    CompanyNotFoundException,
    ConflictException,
    InvalidTransitionException,
    ScopeNotFoundException,
    ValidationException,
)


def make_scope_data(auditor_company_id, **overrides) -> ScopeData:
    data = {
        "protocol": "Ekubo",
        "repo": "https://github.com/ekuboprotocol/abis",
        "cairo_ver": "2.6.3",
        "auditor_company_id": auditor_company_id,
    }
    data.update(overrides)
    return ScopeData(**data)


async def count_audits(session: AsyncSession) -> int:
    return await session.scalar(select(func.count(Audit.id)))


async def fetch_scope(session_maker, scope_id) -> Scope:
    async with session_maker() as session:
        return await session.get(Scope, scope_id)


# =============================================================================
# TRANSITION TABLE
# =============================================================================

class TestTransitionTable:
    """The state machine only moves forward."""

    def test_pending_edges(self):
        assert can_transition(ScopeStatus.PENDING, ScopeStatus.APPROVED)
        assert can_transition(ScopeStatus.PENDING, ScopeStatus.REJECTED)
        assert not can_transition(ScopeStatus.PENDING, ScopeStatus.AUDIT_CREATED)

    def test_approved_only_leads_to_audit_created(self):
        assert can_transition(ScopeStatus.APPROVED, ScopeStatus.AUDIT_CREATED)
        assert not can_transition(ScopeStatus.APPROVED, ScopeStatus.REJECTED)

    @pytest.mark.parametrize("terminal", [ScopeStatus.REJECTED, ScopeStatus.AUDIT_CREATED])
    def test_terminal_states_have_no_exits(self, terminal):
        assert terminal not in SCOPE_TRANSITIONS
        for target in ScopeStatus:
            assert not can_transition(terminal, target)

    def test_ensure_transition_raises_conflict(self):
        with pytest.raises(InvalidTransitionException) as exc_info:
            ensure_transition(ScopeStatus.REJECTED, ScopeStatus.APPROVED)
        assert exc_info.value.status_code == 409


class TestScopeRowConstraints:
    """The table refuses rows whose links disagree with their status."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status, rejection_reason",
        [
            (ScopeStatus.REJECTED, None),
            (ScopeStatus.PENDING, "Leftover reason"),
            (ScopeStatus.AUDIT_CREATED, None),
        ],
    )
    async def test_inconsistent_row_is_refused(
        self, session_maker, client_user, client_company, auditor_company, status, rejection_reason,
    ):
        async with session_maker() as session:
            session.add(
                Scope(
                    protocol="Ekubo",
                    status=status,
                    rejection_reason=rejection_reason,
                    client_company_id=client_company.id,
                    auditor_company_id=auditor_company.id,
                    created_by_id=client_user.id,
                )
            )
            with pytest.raises(IntegrityError):
                await session.commit()

    @pytest.mark.asyncio
    async def test_consistent_rejected_row_is_stored(
        self, session_maker, client_user, client_company, auditor_company,
    ):
        async with session_maker() as session:
            scope = Scope(
                protocol="Ekubo",
                status=ScopeStatus.REJECTED,
                rejection_reason="No capacity",
                client_company_id=client_company.id,
                auditor_company_id=auditor_company.id,
                created_by_id=client_user.id,
            )
            session.add(scope)
            await session.commit()

        stored = await fetch_scope(session_maker, scope.id)
        assert stored.status == ScopeStatus.REJECTED


# =============================================================================
# CREATE
# =============================================================================

class TestCreateScope:

    @pytest.mark.asyncio
    async def test_client_creates_pending_scope(self, db_session, client_user, client_company, auditor_company):
        service = ScopeWorkflowService(db_session)
        scope = await service.create_scope(make_scope_data(auditor_company.id), client_user)

        assert scope.status == ScopeStatus.PENDING
        assert not scope.is_terminal
        assert scope.client_company_id == client_company.id
        assert scope.auditor_company_id == auditor_company.id
        assert scope.created_by_id == client_user.id
        assert scope.approved_by_id is None
        assert scope.audit_id is None

    @pytest.mark.asyncio
    async def test_auditor_cannot_create_scope(self, db_session, auditor_user, auditor_company):
        service = ScopeWorkflowService(db_session)
        with pytest.raises(AuthorizationException):
            await service.create_scope(make_scope_data(auditor_company.id), auditor_user)

    @pytest.mark.asyncio
    async def test_target_must_be_auditor_company(self, db_session, client_user, client_company):
        service = ScopeWorkflowService(db_session)
        with pytest.raises(AuthorizationException):
            await service.create_scope(make_scope_data(client_company.id), client_user)

    @pytest.mark.asyncio
    async def test_unknown_auditor_company(self, db_session, client_user):
        service = ScopeWorkflowService(db_session)
        with pytest.raises(CompanyNotFoundException):
            await service.create_scope(make_scope_data(uuid.uuid4()), client_user)


# =============================================================================
# APPROVE / REJECT
# =============================================================================

class TestApproveScope:

    @pytest.mark.asyncio
    async def test_approval_creates_draft_audit(
        self, db_session, client_user, auditor_user, client_company, auditor_company,
    ):
        service = ScopeWorkflowService(db_session)
        scope = await service.create_scope(make_scope_data(auditor_company.id), client_user)

        scope, audit = await service.approve_scope(scope.id, auditor_user)

        assert scope.status == ScopeStatus.AUDIT_CREATED
        assert scope.audit_id == audit.id
        assert scope.approved_by_id == auditor_user.id
        assert scope.approval_date is not None
        assert audit.status == AuditStatus.DRAFT
        assert audit.scope == ["https://github.com/ekuboprotocol/abis"]
        assert audit.protocol == "Ekubo"
        assert audit.issues == []

        company_ids = await db_session.scalars(
            select(company_reports.c.company_id).where(company_reports.c.audit_id == audit.id)
        )
        participant_ids = await db_session.scalars(
            select(user_reports.c.user_id).where(user_reports.c.audit_id == audit.id)
        )
        assert set(company_ids) == {client_company.id, auditor_company.id}
        assert set(participant_ids) == {client_user.id, auditor_user.id}

    @pytest.mark.asyncio
    async def test_audit_scope_falls_back_to_protocol(self, db_session, client_user, auditor_user, auditor_company):
        service = ScopeWorkflowService(db_session)
        scope = await service.create_scope(make_scope_data(auditor_company.id, repo=None), client_user)

        _, audit = await service.approve_scope(scope.id, auditor_user)

        assert audit.scope == ["Ekubo"]

    @pytest.mark.asyncio
    async def test_client_cannot_approve(self, db_session, client_user, auditor_company):
        service = ScopeWorkflowService(db_session)
        scope = await service.create_scope(make_scope_data(auditor_company.id), client_user)

        with pytest.raises(AuthorizationException):
            await service.approve_scope(scope.id, client_user)

    @pytest.mark.asyncio
    async def test_auditor_of_other_company_cannot_approve(
        self, db_session, session_maker, client_user, outside_auditor_user, auditor_company,
    ):
        service = ScopeWorkflowService(db_session)
        scope = await service.create_scope(make_scope_data(auditor_company.id), client_user)

        with pytest.raises(AuthorizationException):
            await service.approve_scope(scope.id, outside_auditor_user)

        stored = await fetch_scope(session_maker, scope.id)
        assert stored.status == ScopeStatus.PENDING
        assert await count_audits(db_session) == 0

    @pytest.mark.asyncio
    async def test_unknown_scope(self, db_session, auditor_user):
        with pytest.raises(ScopeNotFoundException):
            await ScopeWorkflowService(db_session).approve_scope(uuid.uuid4(), auditor_user)

    @pytest.mark.asyncio
    async def test_second_approval_conflicts(self, db_session, client_user, auditor_user, auditor_company):
        service = ScopeWorkflowService(db_session)
        scope = await service.create_scope(make_scope_data(auditor_company.id), client_user)
        await service.approve_scope(scope.id, auditor_user)

        with pytest.raises(ConflictException):
            await service.approve_scope(scope.id, auditor_user)
        assert await count_audits(db_session) == 1

    @pytest.mark.asyncio
    async def test_failure_after_flush_rolls_back_everything(
        self, db_session, session_maker, client_user, auditor_user, auditor_company, monkeypatch,
    ):
        service = ScopeWorkflowService(db_session)
        scope = await service.create_scope(make_scope_data(auditor_company.id), client_user)

        def boom():
            raise RuntimeError("clock unavailable")

        monkeypatch.setattr(scope_workflow, "utcnow", boom)
        with pytest.raises(RuntimeError):
            await service.approve_scope(scope.id, auditor_user)

        stored = await fetch_scope(session_maker, scope.id)
        assert stored.status == ScopeStatus.PENDING
        assert stored.audit_id is None
        async with session_maker() as session:
            assert await count_audits(session) == 0

    @pytest.mark.asyncio
    async def test_scope_rejected_mid_approval_loses_race(
        self, db_session, session_maker, client_user, auditor_user, second_auditor_user,
        auditor_company, monkeypatch,
    ):
        """A reviewer whose scope changes under it gets a conflict and no audit is kept."""
        service = ScopeWorkflowService(db_session)
        scope = await service.create_scope(make_scope_data(auditor_company.id), client_user)

        original = service._participants

        async def racing_participants(target, approver):
            async with session_maker() as other:
                rival = await UserService(other).get_user(second_auditor_user.id)
                await ScopeWorkflowService(other).reject_scope(target.id, "Taken elsewhere", rival)
            return await original(target, approver)

        monkeypatch.setattr(service, "_participants", racing_participants)

        with pytest.raises(ConflictException):
            await service.approve_scope(scope.id, auditor_user)

        stored = await fetch_scope(session_maker, scope.id)
        assert stored.status == ScopeStatus.REJECTED
        assert stored.audit_id is None
        async with session_maker() as session:
            assert await count_audits(session) == 0


class TestRejectScope:

    @pytest.mark.asyncio
    async def test_reject_records_reason(self, db_session, client_user, auditor_user, auditor_company):
        service = ScopeWorkflowService(db_session)
        scope = await service.create_scope(make_scope_data(auditor_company.id), client_user)

        scope = await service.reject_scope(scope.id, "  Out of our expertise  ", auditor_user)

        assert scope.status == ScopeStatus.REJECTED
        assert scope.rejection_reason == "Out of our expertise"
        assert scope.is_terminal
        assert scope.approved_by_id == auditor_user.id
        assert scope.audit_id is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("reason", [None, "", "   ", "x" * 501])
    async def test_invalid_reason_is_rejected(
        self, db_session, session_maker, client_user, auditor_user, auditor_company, reason,
    ):
        service = ScopeWorkflowService(db_session)
        scope = await service.create_scope(make_scope_data(auditor_company.id), client_user)

        with pytest.raises(ValidationException) as exc_info:
            await service.reject_scope(scope.id, reason, auditor_user)
        assert exc_info.value.status_code == 400

        stored = await fetch_scope(session_maker, scope.id)
        assert stored.status == ScopeStatus.PENDING

    @pytest.mark.asyncio
    async def test_cannot_reject_approved_scope(self, db_session, client_user, auditor_user, auditor_company):
        service = ScopeWorkflowService(db_session)
        scope = await service.create_scope(make_scope_data(auditor_company.id), client_user)
        await service.approve_scope(scope.id, auditor_user)

        with pytest.raises(ConflictException):
            await service.reject_scope(scope.id, "Changed our mind", auditor_user)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("reason", [None, "   "])
    async def test_decided_scope_conflicts_before_reason_check(
        self, db_session, client_user, auditor_user, auditor_company, reason,
    ):
        service = ScopeWorkflowService(db_session)
        scope = await service.create_scope(make_scope_data(auditor_company.id), client_user)
        await service.reject_scope(scope.id, "No capacity", auditor_user)

        with pytest.raises(ConflictException) as exc_info:
            await service.reject_scope(scope.id, reason, auditor_user)
        assert exc_info.value.status_code == 409

    @pytest.mark.asyncio
    async def test_outsider_cannot_reject(self, db_session, client_user, outside_auditor_user, auditor_company):
        service = ScopeWorkflowService(db_session)
        scope = await service.create_scope(make_scope_data(auditor_company.id), client_user)

        with pytest.raises(AuthorizationException):
            await service.reject_scope(scope.id, "Not ours", outside_auditor_user)


# =============================================================================
# QUERIES
# =============================================================================

class TestScopeQueries:

    @pytest.mark.asyncio
    async def test_visibility_is_limited_to_involved_companies(
        self, db_session, client_user, auditor_user, outside_auditor_user, admin_user, auditor_company,
    ):
        service = ScopeWorkflowService(db_session)
        scope = await service.create_scope(make_scope_data(auditor_company.id), client_user)

        assert [s.id for s in await service.list_scopes(client_user)] == [scope.id]
        assert [s.id for s in await service.list_scopes(auditor_user)] == [scope.id]
        assert [s.id for s in await service.list_scopes(admin_user)] == [scope.id]
        assert await service.list_scopes(outside_auditor_user) == []

        with pytest.raises(AuthorizationException):
            await service.get_scope(scope.id, outside_auditor_user)

    @pytest.mark.asyncio
    async def test_pending_list_drops_decided_scopes(self, db_session, client_user, auditor_user, auditor_company):
        service = ScopeWorkflowService(db_session)
        kept = await service.create_scope(make_scope_data(auditor_company.id, protocol="Nostra"), client_user)
        decided = await service.create_scope(make_scope_data(auditor_company.id), client_user)
        await service.reject_scope(decided.id, "No capacity", auditor_user)

        pending = await service.list_pending_scopes(auditor_user)

        assert [s.id for s in pending] == [kept.id]

    @pytest.mark.asyncio
    async def test_user_scopes_include_reviewed(self, db_session, client_user, auditor_user, auditor_company):
        service = ScopeWorkflowService(db_session)
        scope = await service.create_scope(make_scope_data(auditor_company.id), client_user)
        await service.reject_scope(scope.id, "No capacity", auditor_user)

        assert [s.id for s in await service.list_user_scopes(auditor_user.id, auditor_user)] == [scope.id]
        with pytest.raises(AuthorizationException):
            await service.list_user_scopes(client_user.id, auditor_user)

    @pytest.mark.asyncio
    async def test_company_scopes_require_membership(
        self, db_session, client_user, outside_auditor_user, client_company, auditor_company,
    ):
        service = ScopeWorkflowService(db_session)
        await service.create_scope(make_scope_data(auditor_company.id), client_user)

        assert len(await service.list_company_scopes(client_company.id, client_user)) == 1
        with pytest.raises(AuthorizationException):
            await service.list_company_scopes(client_company.id, outside_auditor_user)


# =============================================================================
# RANDOM OPERATION SEQUENCES
# =============================================================================

class TestRandomSequences:
    """Whatever order reviewers act in, the stored state stays consistent."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("seed", [1, 7, 42, 1337])
    async def test_invariants_hold(
        self, db_session, session_maker, seed, client_user, auditor_user, second_auditor_user,
        outside_auditor_user, auditor_company,
    ):
        rng = random.Random(seed)
        service = ScopeWorkflowService(db_session)
        scopes = [
            await service.create_scope(make_scope_data(auditor_company.id, protocol=f"Protocol {i}"), client_user)
            for i in range(4)
        ]
        reviewers = [auditor_user, second_auditor_user, outside_auditor_user, client_user]
        expected = {scope.id: ScopeStatus.PENDING for scope in scopes}

        for _ in range(20):
            scope = rng.choice(scopes)
            reviewer = rng.choice(reviewers)
            action = rng.choice(["approve", "reject", "reject_blank"])
            allowed = reviewer in (auditor_user, second_auditor_user)
            try:
                if action == "approve":
                    await service.approve_scope(scope.id, reviewer)
                    outcome = ScopeStatus.AUDIT_CREATED
                elif action == "reject":
                    await service.reject_scope(scope.id, "Declined", reviewer)
                    outcome = ScopeStatus.REJECTED
                else:
                    await service.reject_scope(scope.id, " ", reviewer)
                    outcome = None
            except (AuthorizationException, ValidationException, ConflictException):
                outcome = None

            if outcome is not None:
                assert allowed
                assert expected[scope.id] == ScopeStatus.PENDING
                expected[scope.id] = outcome

        async with session_maker() as session:
            stored = (await session.execute(select(Scope))).scalars().all()
            audits = (await session.execute(select(Audit))).scalars().all()

        assert {s.id: s.status for s in stored} == expected
        created = [s for s in stored if s.status == ScopeStatus.AUDIT_CREATED]
        assert len(audits) == len(created)
        assert {s.audit_id for s in created} == {a.id for a in audits}
        protocols = {a.id: a.protocol for a in audits}
        for s in created:
            assert protocols[s.audit_id] == s.protocol
        for s in stored:
            assert s.status != ScopeStatus.APPROVED
            if s.status == ScopeStatus.REJECTED:
                assert s.rejection_reason
                assert s.audit_id is None
            if s.status == ScopeStatus.PENDING:
                assert s.approved_by_id is None


# =============================================================================
# CONCURRENT APPROVALS
# =============================================================================

@pytest_asyncio.fixture
async def serialized_session_maker(engine):
    """
    Sessions whose transactions take the SQLite write lock up front, so
    two concurrent approvals are serialized by the database.
    """
    url = engine.url
    locking_engine = create_async_engine(url, poolclass=NullPool)

    @event.listens_for(locking_engine.sync_engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(locking_engine.sync_engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    yield async_sessionmaker(locking_engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)
    await locking_engine.dispose()


class TestConcurrentApprovals:

    @pytest.mark.asyncio
    async def test_exactly_one_approval_wins(
        self, db_session, session_maker, serialized_session_maker, client_user, auditor_user,
        second_auditor_user, auditor_company,
    ):
        scope = await ScopeWorkflowService(db_session).create_scope(
            make_scope_data(auditor_company.id), client_user
        )

        sessions = [serialized_session_maker(), serialized_session_maker()]
        reviewers = []
        for session, user in zip(sessions, [auditor_user, second_auditor_user]):
            reviewers.append(await UserService(session).get_user(user.id))
            await session.commit()

        try:
            results = await asyncio.gather(
                ScopeWorkflowService(sessions[0]).approve_scope(scope.id, reviewers[0]),
                ScopeWorkflowService(sessions[1]).approve_scope(scope.id, reviewers[1]),
                return_exceptions=True,
            )
        finally:
            for session in sessions:
                await session.close()

        successes = [r for r in results if not isinstance(r, BaseException)]
        failures = [r for r in results if isinstance(r, BaseException)]
        assert len(successes) == 1
        assert len(failures) == 1
        assert isinstance(failures[0], ConflictException)

        async with session_maker() as session:
            assert await count_audits(session) == 1
            stored = await session.get(Scope, scope.id)
            assert stored.status == ScopeStatus.AUDIT_CREATED
            assert stored.audit_id == successes[0][1].id
