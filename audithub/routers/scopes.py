"""
AuditHub - Scopes Router

Audit requests: created by clients, approved or rejected by the assigned
auditor company. Mutations are signature-gated; reads use the
x-public-address header.
"""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from audithub.database import get_async_session
from audithub.dependencies import get_signed_user, require_any_user
from audithub.models.user import User
from audithub.schemas.audit import AuditResponse
from audithub.schemas.scope import (
    ScopeApprovalResponse,
    ScopeCreateRequest,
    ScopeDetailResponse,
    ScopeEnvelope,
    ScopeRejectRequest,
    ScopeResponse,
)
from audithub.services.scope_workflow import ScopeWorkflowService


router = APIRouter()


@router.post(
    "/create",
    response_model=ScopeEnvelope,
    status_code=status.HTTP_201_CREATED,
    summary="Request an audit",
    description="A client user asks an auditor company to audit a protocol.",
)
async def create_scope(
    request: ScopeCreateRequest,
    current_user: User = Depends(get_signed_user),
    db: AsyncSession = Depends(get_async_session),
):
    service = ScopeWorkflowService(db)
    scope = await service.create_scope(request.scope_data, current_user)
    return ScopeEnvelope(
        message="Scope created successfully",
        scope=ScopeResponse.model_validate(scope),
    )


@router.post(
    "/{scope_id}/approve",
    response_model=ScopeApprovalResponse,
    summary="Approve a scope",
    description="Approve a pending scope and create its audit report.",
)
async def approve_scope(
    scope_id: UUID,
    current_user: User = Depends(get_signed_user),
    db: AsyncSession = Depends(get_async_session),
):
    service = ScopeWorkflowService(db)
    scope, audit = await service.approve_scope(scope_id, current_user)
    return ScopeApprovalResponse(
        message="Scope approved and audit created",
        scope=ScopeResponse.model_validate(scope),
        audit=AuditResponse.model_validate(audit),
    )


@router.post(
    "/{scope_id}/reject",
    response_model=ScopeEnvelope,
    summary="Reject a scope",
)
async def reject_scope(
    scope_id: UUID,
    request: ScopeRejectRequest,
    current_user: User = Depends(get_signed_user),
    db: AsyncSession = Depends(get_async_session),
):
    service = ScopeWorkflowService(db)
    scope = await service.reject_scope(scope_id, request.rejection_reason, current_user)
    return ScopeEnvelope(
        message="Scope rejected",
        scope=ScopeResponse.model_validate(scope),
    )


@router.get(
    "/",
    response_model=List[ScopeResponse],
    summary="List scopes",
    description="Admins see every scope; others see scopes of their company.",
)
async def list_scopes(
    current_user: User = Depends(require_any_user),
    db: AsyncSession = Depends(get_async_session),
):
    return await ScopeWorkflowService(db).list_scopes(current_user)


@router.get("/pending", response_model=List[ScopeResponse], summary="List pending scopes")
async def list_pending_scopes(
    current_user: User = Depends(require_any_user),
    db: AsyncSession = Depends(get_async_session),
):
    return await ScopeWorkflowService(db).list_pending_scopes(current_user)


@router.get("/company/{company_id}", response_model=List[ScopeResponse], summary="List company scopes")
async def list_company_scopes(
    company_id: UUID,
    current_user: User = Depends(require_any_user),
    db: AsyncSession = Depends(get_async_session),
):
    return await ScopeWorkflowService(db).list_company_scopes(company_id, current_user)


@router.get("/user/{user_id}", response_model=List[ScopeResponse], summary="List user scopes")
async def list_user_scopes(
    user_id: UUID,
    current_user: User = Depends(require_any_user),
    db: AsyncSession = Depends(get_async_session),
):
    """Scopes the user created or reviewed."""
    return await ScopeWorkflowService(db).list_user_scopes(user_id, current_user)


@router.get("/{scope_id}", response_model=ScopeDetailResponse, summary="Get scope")
async def get_scope(
    scope_id: UUID,
    current_user: User = Depends(require_any_user),
    db: AsyncSession = Depends(get_async_session),
):
    """Get a scope, including its audit once one exists."""
    scope = await ScopeWorkflowService(db).get_scope(scope_id, current_user)
    return ScopeDetailResponse.model_validate(scope)
