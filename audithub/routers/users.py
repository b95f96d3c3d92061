"""
AuditHub - Users Router

Registration is signature-gated: the caller signs with the account being
registered. Everything else uses the x-public-address header.
"""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from audithub.database import get_async_session
from audithub.dependencies import get_verified_address, require_admin, require_any_user
from audithub.models.user import User, UserRole
from audithub.schemas.common import MessageResponse
from audithub.schemas.user import (
    UserCreateRequest,
    UserEnvelope,
    UserResponse,
    UserUpdateRequest,
)
from audithub.services.user_service import UserService


router = APIRouter()


@router.post(
    "/create",
    response_model=UserEnvelope,
    status_code=status.HTTP_201_CREATED,
    summary="Register user",
    description="Register a client or auditor account signed by that account.",
)
async def create_user(
    request: UserCreateRequest,
    signer_address: str = Depends(get_verified_address),
    db: AsyncSession = Depends(get_async_session),
):
    user = await UserService(db).register_user(request.data, signer_address)
    return UserEnvelope(message="User created successfully", user=UserResponse.model_validate(user))


@router.put("/{user_id}", response_model=UserEnvelope, summary="Update user")
async def update_user(
    user_id: UUID,
    request: UserUpdateRequest,
    current_user: User = Depends(require_any_user),
    db: AsyncSession = Depends(get_async_session),
):
    user = await UserService(db).update_user(user_id, request.name, current_user)
    return UserEnvelope(message="User updated successfully", user=UserResponse.model_validate(user))


@router.delete("/{user_id}", response_model=MessageResponse, summary="Delete user")
async def delete_user(
    user_id: UUID,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_async_session),
):
    await UserService(db).delete_user(user_id, current_user)
    return MessageResponse(message="User deleted successfully")


@router.get("/", response_model=List[UserResponse], summary="List users")
async def list_users(
    current_user: User = Depends(require_any_user),
    db: AsyncSession = Depends(get_async_session),
):
    return await UserService(db).list_users()


@router.get("/auditors", response_model=List[UserResponse], summary="List auditors")
async def list_auditors(
    current_user: User = Depends(require_any_user),
    db: AsyncSession = Depends(get_async_session),
):
    return await UserService(db).list_users(UserRole.AUDITOR)


@router.get("/clients", response_model=List[UserResponse], summary="List clients")
async def list_clients(
    current_user: User = Depends(require_any_user),
    db: AsyncSession = Depends(get_async_session),
):
    return await UserService(db).list_users(UserRole.CLIENT)


@router.get("/admins", response_model=List[UserResponse], summary="List admins")
async def list_admins(
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_async_session),
):
    return await UserService(db).list_users(UserRole.ADMIN)


@router.get("/address/{public_address}", response_model=UserResponse, summary="Get user by address")
async def get_user_by_address(
    public_address: str,
    current_user: User = Depends(require_any_user),
    db: AsyncSession = Depends(get_async_session),
):
    return await UserService(db).get_user_by_address(public_address)


@router.get("/{user_id}", response_model=UserResponse, summary="Get user")
async def get_user(
    user_id: UUID,
    current_user: User = Depends(require_any_user),
    db: AsyncSession = Depends(get_async_session),
):
    return await UserService(db).get_user(user_id)
