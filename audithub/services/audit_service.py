"""
AuditHub - Audit Report Service

Reads are limited to admins and members of the two companies linked to a
report. Auditors of the report's auditor company edit it; clients of the
client company may only answer issues through ``clientUpdate``.

Report status only moves forward: Draft -> In Progress -> Completed.
Completed reports are read-only.
"""

import logging
import uuid
from typing import List, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from audithub.models.audit import (
    AUDIT_STATUS_ORDER,
    Audit,
    AuditIssue,
    AuditStatus,
)
from audithub.models.comment import Comment
from audithub.models.company import Company, CompanyRole
from audithub.models.user import User, UserRole
from audithub.schemas.audit import (
    AuditUpdateRequest,
    IssueCreateRequest,
    IssueUpdateRequest,
)
from audithub.utils.error_handling import (
    AuditNotFoundException,
    AuthorizationException,
    ConflictException,
    InvalidTransitionException,
    NotFoundException,
)

logger = logging.getLogger(__name__)


def ensure_audit_transition(current: AuditStatus, target: AuditStatus) -> None:
    if AUDIT_STATUS_ORDER.index(target) < AUDIT_STATUS_ORDER.index(current):
        raise InvalidTransitionException("Audit", current.value, target.value)


class AuditService:
    """Service for audit report operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    def _audit_query(self):
        return select(Audit).options(
            selectinload(Audit.issues),
            selectinload(Audit.companies),
        )

    async def load_audit(self, audit_id: uuid.UUID, refresh: bool = False) -> Audit:
        query = self._audit_query().where(Audit.id == audit_id)
        if refresh:
            query = query.execution_options(populate_existing=True)
        audit = (await self.db.execute(query)).scalar_one_or_none()
        if audit is None:
            raise AuditNotFoundException(audit_id)
        return audit

    @staticmethod
    def _company_of_role(audit: Audit, role: CompanyRole) -> Optional[Company]:
        for company in audit.companies:
            if company.role == role:
                return company
        return None

    @staticmethod
    def can_view(audit: Audit, requester: User) -> bool:
        if requester.is_admin:
            return True
        return requester.company_id is not None and any(
            company.id == requester.company_id for company in audit.companies
        )

    def is_editor(self, audit: Audit, requester: User) -> bool:
        auditor_company = self._company_of_role(audit, CompanyRole.AUDITOR)
        return (
            requester.role == UserRole.AUDITOR
            and auditor_company is not None
            and requester.company_id == auditor_company.id
        )

    def _require_editor(self, audit: Audit, requester: User) -> None:
        if not self.is_editor(audit, requester):
            logger.warning(f"User {requester.id} denied edit of audit {audit.id}")
            raise AuthorizationException("Only auditors of the assigned company can edit this audit")

    @staticmethod
    def _require_open(audit: Audit) -> None:
        if audit.is_completed:
            raise ConflictException(
                f"Audit '{audit.id}' is completed and can no longer be edited",
                resource_type="Audit",
            )

    def _visibility_filter(self, query, requester: User):
        if requester.is_admin:
            return query
        if requester.company_id is None:
            return None
        return query.where(Audit.companies.any(Company.id == requester.company_id))

    # ===========================================
    # QUERIES
    # ===========================================

    async def list_audits(self, requester: User) -> List[Audit]:
        query = self._visibility_filter(self._audit_query(), requester)
        if query is None:
            return []
        result = await self.db.execute(query.order_by(Audit.created_at.desc()))
        return list(result.scalars().all())

    async def get_audit(self, audit_id: uuid.UUID, requester: User) -> Audit:
        audit = await self.load_audit(audit_id)
        if not self.can_view(audit, requester):
            raise AuthorizationException("Cannot view audits of unrelated companies")
        return audit

    async def list_company_audits(self, company_id: uuid.UUID, requester: User) -> List[Audit]:
        if not requester.is_admin and requester.company_id != company_id:
            raise AuthorizationException("Cannot view audits of another company")
        result = await self.db.execute(
            self._audit_query()
            .where(Audit.companies.any(Company.id == company_id))
            .order_by(Audit.created_at.desc())
        )
        return list(result.scalars().all())

    async def list_user_audits(self, user_id: uuid.UUID, requester: User) -> List[Audit]:
        if not requester.is_admin and requester.id != user_id:
            raise AuthorizationException("Cannot view audits of another user")
        result = await self.db.execute(
            self._audit_query()
            .where(Audit.participants.any(User.id == user_id))
            .order_by(Audit.created_at.desc())
        )
        return list(result.scalars().all())

    async def search_audits(self, fragment: str, requester: User) -> List[Audit]:
        """Case-insensitive protocol name search."""
        query = self._visibility_filter(
            self._audit_query().where(Audit.protocol.ilike(f"%{fragment}%")),
            requester,
        )
        if query is None:
            return []
        result = await self.db.execute(query.order_by(Audit.protocol))
        return list(result.scalars().all())

    # ===========================================
    # REPORT EDITING
    # ===========================================

    async def update_audit(self, audit_id: uuid.UUID, data: AuditUpdateRequest, requester: User) -> Audit:
        audit = await self.load_audit(audit_id)
        self._require_editor(audit, requester)
        self._require_open(audit)

        if data.status is not None and data.status != audit.status:
            ensure_audit_transition(audit.status, data.status)
            logger.info(f"Audit {audit.id}: {audit.status.value} -> {data.status.value}")
            audit.status = data.status
        if data.scope is not None:
            audit.scope = list(data.scope)
        if data.summary is not None:
            for field, value in data.summary.model_dump(exclude_unset=True).items():
                if value is not None:
                    setattr(audit, field, value)
        if data.test is not None:
            if data.test.compilation is not None:
                audit.test_compilation = data.test.compilation
            if data.test.tests is not None:
                audit.test_tests = data.test.tests

        await self.db.commit()
        return await self.load_audit(audit_id, refresh=True)

    @staticmethod
    def _get_issue(audit: Audit, issue_id: uuid.UUID) -> AuditIssue:
        for issue in audit.issues:
            if issue.id == issue_id:
                return issue
        raise NotFoundException("Issue", issue_id)

    async def add_issue(self, audit_id: uuid.UUID, data: IssueCreateRequest, requester: User) -> AuditIssue:
        audit = await self.load_audit(audit_id)
        self._require_editor(audit, requester)
        self._require_open(audit)

        issue = AuditIssue(**data.model_dump())
        audit.issues.append(issue)
        await self.db.commit()
        logger.info(f"Added {issue.severity.value} issue {issue.id} to audit {audit.id}")
        return issue

    async def update_issue(
        self,
        audit_id: uuid.UUID,
        issue_id: uuid.UUID,
        data: IssueUpdateRequest,
        requester: User,
    ) -> AuditIssue:
        """Auditors edit any field; the client side may only set clientUpdate."""
        audit = await self.load_audit(audit_id)
        issue = self._get_issue(audit, issue_id)
        self._require_open(audit)

        changes = {
            field: value
            for field, value in data.model_dump(exclude_unset=True).items()
            if value is not None
        }
        if not self.is_editor(audit, requester):
            client_company = self._company_of_role(audit, CompanyRole.CLIENT)
            is_client = (
                requester.role == UserRole.CLIENT
                and client_company is not None
                and requester.company_id == client_company.id
            )
            if not is_client:
                raise AuthorizationException("Not allowed to edit issues of this audit")
            if set(changes) - {"client_update"}:
                raise AuthorizationException("Clients can only update the clientUpdate field")

        for field, value in changes.items():
            setattr(issue, field, value)
        await self.db.commit()
        return issue

    async def delete_issue(self, audit_id: uuid.UUID, issue_id: uuid.UUID, requester: User) -> None:
        audit = await self.load_audit(audit_id)
        self._require_editor(audit, requester)
        self._require_open(audit)
        issue = self._get_issue(audit, issue_id)

        await self.db.execute(delete(Comment).where(Comment.issue_id == issue.id))
        audit.issues.remove(issue)
        await self.db.commit()
        logger.info(f"Deleted issue {issue_id} from audit {audit.id}")
