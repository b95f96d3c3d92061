"""
AuditHub - Companies Router

Company management, membership and manager assignment.
"""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from audithub.database import get_async_session
from audithub.dependencies import require_admin, require_any_user
from audithub.models.company import CompanyRole
from audithub.models.user import User
from audithub.schemas.common import MessageResponse
from audithub.schemas.company import (
    CompanyCreateRequest,
    CompanyEnvelope,
    CompanyResponse,
    CompanyUpdateRequest,
    CompanyUserRequest,
)
from audithub.schemas.user import UserResponse
from audithub.services.company_service import CompanyService


router = APIRouter()


def _envelope(message: str, company) -> CompanyEnvelope:
    return CompanyEnvelope(message=message, company=CompanyResponse.model_validate(company))


# ===========================================
# MUTATIONS
# ===========================================

@router.post(
    "/create",
    response_model=CompanyEnvelope,
    status_code=status.HTTP_201_CREATED,
    summary="Create company",
    description="Admin only.",
)
async def create_company(
    request: CompanyCreateRequest,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_async_session),
):
    company = await CompanyService(db).create_company(request.name, request.role)
    return _envelope("Company created successfully", company)


@router.put("/{company_id}", response_model=CompanyEnvelope, summary="Rename company")
async def update_company(
    company_id: UUID,
    request: CompanyUpdateRequest,
    current_user: User = Depends(require_any_user),
    db: AsyncSession = Depends(get_async_session),
):
    company = await CompanyService(db).update_company(company_id, request.name, current_user)
    return _envelope("Company updated successfully", company)


@router.delete("/{company_id}", response_model=MessageResponse, summary="Delete company")
async def delete_company(
    company_id: UUID,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_async_session),
):
    await CompanyService(db).delete_company(company_id)
    return MessageResponse(message="Company deleted successfully")


@router.post("/{company_id}/users", response_model=CompanyEnvelope, summary="Add member")
async def assign_user(
    company_id: UUID,
    request: CompanyUserRequest,
    current_user: User = Depends(require_any_user),
    db: AsyncSession = Depends(get_async_session),
):
    company = await CompanyService(db).assign_user(company_id, request.user_id, current_user)
    return _envelope("User added to company", company)


@router.delete("/{company_id}/users/{user_id}", response_model=CompanyEnvelope, summary="Remove member")
async def remove_user(
    company_id: UUID,
    user_id: UUID,
    current_user: User = Depends(require_any_user),
    db: AsyncSession = Depends(get_async_session),
):
    company = await CompanyService(db).remove_user(company_id, user_id, current_user)
    return _envelope("User removed from company", company)


@router.post("/{company_id}/managers", response_model=CompanyEnvelope, summary="Add manager")
async def assign_manager(
    company_id: UUID,
    request: CompanyUserRequest,
    current_user: User = Depends(require_any_user),
    db: AsyncSession = Depends(get_async_session),
):
    company = await CompanyService(db).assign_manager(company_id, request.user_id, current_user)
    return _envelope("Manager added to company", company)


@router.delete(
    "/{company_id}/managers/{user_id}",
    response_model=CompanyEnvelope,
    summary="Remove manager",
)
async def remove_manager(
    company_id: UUID,
    user_id: UUID,
    current_user: User = Depends(require_any_user),
    db: AsyncSession = Depends(get_async_session),
):
    company = await CompanyService(db).remove_manager(company_id, user_id, current_user)
    return _envelope("Manager removed from company", company)


# ===========================================
# QUERIES
# ===========================================

@router.get("/", response_model=List[CompanyResponse], summary="List companies")
async def list_companies(
    current_user: User = Depends(require_any_user),
    db: AsyncSession = Depends(get_async_session),
):
    return await CompanyService(db).list_companies()


@router.get("/auditors", response_model=List[CompanyResponse], summary="List auditor companies")
async def list_auditor_companies(
    current_user: User = Depends(require_any_user),
    db: AsyncSession = Depends(get_async_session),
):
    return await CompanyService(db).list_companies(CompanyRole.AUDITOR)


@router.get("/clients", response_model=List[CompanyResponse], summary="List client companies")
async def list_client_companies(
    current_user: User = Depends(require_any_user),
    db: AsyncSession = Depends(get_async_session),
):
    return await CompanyService(db).list_companies(CompanyRole.CLIENT)


@router.get("/user/{user_id}", response_model=CompanyResponse, summary="Company of a user")
async def get_company_for_user(
    user_id: UUID,
    current_user: User = Depends(require_any_user),
    db: AsyncSession = Depends(get_async_session),
):
    return await CompanyService(db).get_company_for_user(user_id)


@router.get("/{company_id}", response_model=CompanyResponse, summary="Get company")
async def get_company(
    company_id: UUID,
    current_user: User = Depends(require_any_user),
    db: AsyncSession = Depends(get_async_session),
):
    return await CompanyService(db).get_company(company_id)


@router.get("/{company_id}/users", response_model=List[UserResponse], summary="List members")
async def list_members(
    company_id: UUID,
    current_user: User = Depends(require_any_user),
    db: AsyncSession = Depends(get_async_session),
):
    return await CompanyService(db).list_members(company_id)


@router.get("/{company_id}/managers", response_model=List[UserResponse], summary="List managers")
async def list_managers(
    company_id: UUID,
    current_user: User = Depends(require_any_user),
    db: AsyncSession = Depends(get_async_session),
):
    return await CompanyService(db).list_managers(company_id)
