"""
AuditHub - Scope Workflow Service

Forward-only state machine for audit requests:

    pending --approve--> approved --(same transaction)--> audit_created
    pending --reject---> rejected

Approval synthesizes the Audit report, links it to both companies and both
participating users, and flips the scope in one unit of work. The flip is a
compare-and-set on ``status = 'pending'`` so two racing reviewers cannot
both win.
"""

import logging
import uuid
from typing import List, Optional, Tuple

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from audithub.models.audit import Audit, AuditStatus
from audithub.models.base import utcnow
from audithub.models.company import Company, CompanyRole
from audithub.models.scope import Scope, ScopeStatus
from audithub.models.user import User, UserRole
from audithub.schemas.scope import ScopeData
from audithub.utils.error_handling import (
    AuthorizationException,
    CompanyNotFoundException,
    ConflictException,
    ErrorCode,
    InvalidTransitionException,
    ScopeNotFoundException,
    UserNotFoundException,
    ValidationException,
)

logger = logging.getLogger(__name__)


SCOPE_TRANSITIONS = {
    ScopeStatus.PENDING: frozenset({ScopeStatus.APPROVED, ScopeStatus.REJECTED}),
    ScopeStatus.APPROVED: frozenset({ScopeStatus.AUDIT_CREATED}),
}

REJECTION_REASON_MAX_LENGTH = 500


def can_transition(current: ScopeStatus, target: ScopeStatus) -> bool:
    return target in SCOPE_TRANSITIONS.get(current, frozenset())


def ensure_transition(current: ScopeStatus, target: ScopeStatus) -> None:
    """Raise InvalidTransitionException unless current -> target is a legal edge."""
    if not can_transition(current, target):
        raise InvalidTransitionException("Scope", current.value, target.value)


class ScopeWorkflowService:
    """Service for the scope request lifecycle."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ===========================================
    # LOADING / ACCESS HELPERS
    # ===========================================

    def _scope_query(self):
        return select(Scope).options(
            selectinload(Scope.audit).selectinload(Audit.issues)
        )

    async def _get_scope(self, scope_id: uuid.UUID, refresh: bool = False) -> Scope:
        query = self._scope_query().where(Scope.id == scope_id)
        if refresh:
            query = query.execution_options(populate_existing=True)
        result = await self.db.execute(query)
        scope = result.scalar_one_or_none()
        if scope is None:
            raise ScopeNotFoundException(scope_id)
        return scope

    @staticmethod
    def _require_role(requester: User, role: UserRole, action: str) -> None:
        if requester.role != role:
            logger.warning(f"User {requester.id} ({requester.role.value}) denied: {action}")
            raise AuthorizationException(
                f"Only {role.value} users can {action}",
                required_permission=role.value,
            )

    async def _get_scope_for_review(
        self,
        scope_id: uuid.UUID,
        requester: User,
        action: str,
        target: ScopeStatus,
    ) -> Scope:
        """Identity, ownership and transition checks shared by approve and reject."""
        self._require_role(requester, UserRole.AUDITOR, action)
        scope = await self._get_scope(scope_id, refresh=True)
        if requester.company_id is None or requester.company_id != scope.auditor_company_id:
            logger.warning(
                f"Auditor {requester.id} of company {requester.company_id} tried to {action} "
                f"scope {scope.id} assigned to {scope.auditor_company_id}"
            )
            raise AuthorizationException(
                f"Only auditors of the assigned company can {action} this scope"
            )
        if scope.is_terminal:
            logger.warning(f"Scope {scope.id} is already {scope.status.value}; {action} refused")
        ensure_transition(scope.status, target)
        return scope

    @staticmethod
    def _visible_to(scope: Scope, requester: User) -> bool:
        return requester.is_admin or scope.involves_company(requester.company_id)

    # ===========================================
    # TRANSITIONS
    # ===========================================

    async def create_scope(self, scope_data: ScopeData, requester: User) -> Scope:
        """Persist a new pending scope on behalf of a client user."""
        self._require_role(requester, UserRole.CLIENT, "create scopes")

        client_company = None
        if requester.company_id is not None:
            client_company = await self.db.get(Company, requester.company_id)
        if client_company is None or client_company.role != CompanyRole.CLIENT:
            raise AuthorizationException("Requester does not belong to a client company")

        auditor_company = await self.db.get(Company, scope_data.auditor_company_id)
        if auditor_company is None:
            raise CompanyNotFoundException(scope_data.auditor_company_id)
        if auditor_company.role != CompanyRole.AUDITOR:
            raise AuthorizationException(
                f"Company '{auditor_company.name}' is not an auditor company"
            )

        scope = Scope(
            protocol=scope_data.protocol,
            website=scope_data.website,
            description=scope_data.description,
            cairo_ver=scope_data.cairo_ver,
            repo=scope_data.repo,
            initial_commit=scope_data.initial_commit,
            docs=scope_data.docs,
            status=ScopeStatus.PENDING,
            client_company_id=client_company.id,
            auditor_company_id=auditor_company.id,
            created_by_id=requester.id,
        )
        self.db.add(scope)
        await self.db.commit()

        logger.info(
            f"Scope {scope.id} ({scope.protocol}) requested by {client_company.name} "
            f"from {auditor_company.name}"
        )
        return await self._get_scope(scope.id, refresh=True)

    def _build_audit(self, scope: Scope) -> Audit:
        """Draft report seeded from the scope's project details."""
        return Audit(
            status=AuditStatus.DRAFT,
            scope=[scope.repo or scope.protocol],
            protocol=scope.protocol,
            website=scope.website or "",
            description=scope.description or "",
            cairo_ver=scope.cairo_ver or "",
            repo=scope.repo or "",
            initial_commit=scope.initial_commit or "",
            final_commit="",
            docs=scope.docs or "",
            final_report_date="",
            test_suite_assesment="",
            test_compilation="",
            test_tests="",
            issues=[],
        )

    async def _participants(self, scope: Scope, approver: User) -> List[User]:
        participants = []
        creator = await self.db.get(User, scope.created_by_id)
        if creator is not None:
            participants.append(creator)
        if approver.id != scope.created_by_id:
            participants.append(approver)
        return participants

    async def approve_scope(self, scope_id: uuid.UUID, requester: User) -> Tuple[Scope, Audit]:
        """
        Approve a pending scope and create its audit.

        Raises:
            AuthorizationException: requester is not an auditor of the
                assigned company
            ScopeNotFoundException: unknown scope
            ConflictException: scope is not pending, including when another
                reviewer won the race
        """
        scope = await self._get_scope_for_review(scope_id, requester, "approve", ScopeStatus.APPROVED)
        ensure_transition(ScopeStatus.APPROVED, ScopeStatus.AUDIT_CREATED)

        try:
            audit = self._build_audit(scope)
            companies = await self.db.execute(
                select(Company).where(
                    Company.id.in_([scope.client_company_id, scope.auditor_company_id])
                )
            )
            audit.companies = list(companies.scalars().all())
            audit.participants = await self._participants(scope, requester)
            self.db.add(audit)
            await self.db.flush()

            now = utcnow()
            result = await self.db.execute(
                update(Scope)
                .where(Scope.id == scope.id, Scope.status == ScopeStatus.PENDING)
                .values(
                    status=ScopeStatus.AUDIT_CREATED,
                    approved_by_id=requester.id,
                    approval_date=now,
                    audit_id=audit.id,
                    updated_at=now,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise ConflictException(
                    f"Scope '{scope.id}' is no longer pending",
                    resource_type="Scope",
                    code=ErrorCode.INVALID_TRANSITION,
                )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(f"Scope {scope_id} approved by {requester.id}; audit {audit.id} created")
        scope = await self._get_scope(scope_id, refresh=True)
        return scope, scope.audit

    async def reject_scope(
        self,
        scope_id: uuid.UUID,
        reason: Optional[str],
        requester: User,
    ) -> Scope:
        """Reject a pending scope with a reason."""
        scope = await self._get_scope_for_review(scope_id, requester, "reject", ScopeStatus.REJECTED)

        reason = (reason or "").strip()
        if not reason or len(reason) > REJECTION_REASON_MAX_LENGTH:
            raise ValidationException(
                f"Rejection reason must be between 1 and {REJECTION_REASON_MAX_LENGTH} characters",
                field="rejectionReason",
            )

        try:
            now = utcnow()
            result = await self.db.execute(
                update(Scope)
                .where(Scope.id == scope.id, Scope.status == ScopeStatus.PENDING)
                .values(
                    status=ScopeStatus.REJECTED,
                    approved_by_id=requester.id,
                    approval_date=now,
                    rejection_reason=reason,
                    updated_at=now,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise ConflictException(
                    f"Scope '{scope.id}' is no longer pending",
                    resource_type="Scope",
                    code=ErrorCode.INVALID_TRANSITION,
                )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(f"Scope {scope_id} rejected by {requester.id}")
        return await self._get_scope(scope_id, refresh=True)

    # ===========================================
    # QUERIES
    # ===========================================

    async def list_scopes(self, requester: User) -> List[Scope]:
        """All scopes the requester may see."""
        query = self._scope_query().order_by(Scope.created_at.desc())
        if not requester.is_admin:
            if requester.company_id is None:
                return []
            query = query.where(
                or_(
                    Scope.client_company_id == requester.company_id,
                    Scope.auditor_company_id == requester.company_id,
                )
            )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def list_company_scopes(self, company_id: uuid.UUID, requester: User) -> List[Scope]:
        if not requester.is_admin and requester.company_id != company_id:
            raise AuthorizationException("Cannot view scopes of another company")
        if await self.db.get(Company, company_id) is None:
            raise CompanyNotFoundException(company_id)

        result = await self.db.execute(
            self._scope_query()
            .where(
                or_(
                    Scope.client_company_id == company_id,
                    Scope.auditor_company_id == company_id,
                )
            )
            .order_by(Scope.created_at.desc())
        )
        return list(result.scalars().all())

    async def list_pending_scopes(self, requester: User) -> List[Scope]:
        scopes = await self.list_scopes(requester)
        return [scope for scope in scopes if scope.status == ScopeStatus.PENDING]

    async def list_user_scopes(self, user_id: uuid.UUID, requester: User) -> List[Scope]:
        """Scopes the user created or reviewed."""
        if not requester.is_admin and requester.id != user_id:
            raise AuthorizationException("Cannot view scopes of another user")
        if await self.db.get(User, user_id) is None:
            raise UserNotFoundException(user_id)

        result = await self.db.execute(
            self._scope_query()
            .where(or_(Scope.created_by_id == user_id, Scope.approved_by_id == user_id))
            .order_by(Scope.created_at.desc())
        )
        return list(result.scalars().all())

    async def get_scope(self, scope_id: uuid.UUID, requester: User) -> Scope:
        scope = await self._get_scope(scope_id)
        if not self._visible_to(scope, requester):
            raise AuthorizationException("Cannot view scopes of unrelated companies")
        return scope
