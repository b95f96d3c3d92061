"""
AuditHub - Audits Router

Audit reports are created by scope approval only; this router reads and
edits them.
"""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from audithub.database import get_async_session
from audithub.dependencies import require_admin, require_any_user
from audithub.models.user import User
from audithub.schemas.audit import (
    AuditEnvelope,
    AuditResponse,
    AuditUpdateRequest,
    IssueCreateRequest,
    IssueEnvelope,
    IssueResponse,
    IssueUpdateRequest,
)
from audithub.schemas.common import MessageResponse
from audithub.services.audit_service import AuditService


router = APIRouter()


@router.get("/", response_model=List[AuditResponse], summary="List all audits")
async def list_audits(
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_async_session),
):
    return await AuditService(db).list_audits(current_user)


@router.get("/company/{company_id}", response_model=List[AuditResponse], summary="List company audits")
async def list_company_audits(
    company_id: UUID,
    current_user: User = Depends(require_any_user),
    db: AsyncSession = Depends(get_async_session),
):
    return await AuditService(db).list_company_audits(company_id, current_user)


@router.get("/user/{user_id}", response_model=List[AuditResponse], summary="List user audits")
async def list_user_audits(
    user_id: UUID,
    current_user: User = Depends(require_any_user),
    db: AsyncSession = Depends(get_async_session),
):
    return await AuditService(db).list_user_audits(user_id, current_user)


@router.get("/search/{name}", response_model=List[AuditResponse], summary="Search audits by protocol")
async def search_audits(
    name: str,
    current_user: User = Depends(require_any_user),
    db: AsyncSession = Depends(get_async_session),
):
    return await AuditService(db).search_audits(name, current_user)


@router.get("/{audit_id}", response_model=AuditResponse, summary="Get audit")
async def get_audit(
    audit_id: UUID,
    current_user: User = Depends(require_any_user),
    db: AsyncSession = Depends(get_async_session),
):
    return await AuditService(db).get_audit(audit_id, current_user)


@router.put("/{audit_id}", response_model=AuditEnvelope, summary="Update audit")
async def update_audit(
    audit_id: UUID,
    request: AuditUpdateRequest,
    current_user: User = Depends(require_any_user),
    db: AsyncSession = Depends(get_async_session),
):
    """Edit status, summary, scope or test notes. Status only moves forward."""
    audit = await AuditService(db).update_audit(audit_id, request, current_user)
    return AuditEnvelope(message="Audit updated successfully", audit=AuditResponse.model_validate(audit))


@router.post(
    "/{audit_id}/issues",
    response_model=IssueEnvelope,
    status_code=status.HTTP_201_CREATED,
    summary="Add issue",
)
async def add_issue(
    audit_id: UUID,
    request: IssueCreateRequest,
    current_user: User = Depends(require_any_user),
    db: AsyncSession = Depends(get_async_session),
):
    issue = await AuditService(db).add_issue(audit_id, request, current_user)
    return IssueEnvelope(message="Issue added", issue=IssueResponse.model_validate(issue))


@router.put("/{audit_id}/issues/{issue_id}", response_model=IssueEnvelope, summary="Update issue")
async def update_issue(
    audit_id: UUID,
    issue_id: UUID,
    request: IssueUpdateRequest,
    current_user: User = Depends(require_any_user),
    db: AsyncSession = Depends(get_async_session),
):
    issue = await AuditService(db).update_issue(audit_id, issue_id, request, current_user)
    return IssueEnvelope(message="Issue updated", issue=IssueResponse.model_validate(issue))


@router.delete("/{audit_id}/issues/{issue_id}", response_model=MessageResponse, summary="Delete issue")
async def delete_issue(
    audit_id: UUID,
    issue_id: UUID,
    current_user: User = Depends(require_any_user),
    db: AsyncSession = Depends(get_async_session),
):
    await AuditService(db).delete_issue(audit_id, issue_id, current_user)
    return MessageResponse(message="Issue deleted")
