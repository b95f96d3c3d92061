"""
AuditHub - Comments Router
"""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from audithub.database import get_async_session
from audithub.dependencies import require_admin, require_any_user
from audithub.models.user import User
from audithub.schemas.comment import (
    CommentCreateRequest,
    CommentEnvelope,
    CommentResponse,
    CommentUpdateRequest,
)
from audithub.schemas.common import MessageResponse
from audithub.services.comment_service import CommentService


router = APIRouter()


@router.post(
    "/",
    response_model=CommentEnvelope,
    status_code=status.HTTP_201_CREATED,
    summary="Post comment",
)
async def post_comment(
    request: CommentCreateRequest,
    current_user: User = Depends(require_any_user),
    db: AsyncSession = Depends(get_async_session),
):
    comment = await CommentService(db).post_comment(
        audit_id=request.audit_id,
        content=request.content,
        author=current_user,
        issue_id=request.issue_id,
    )
    return CommentEnvelope(message="Comment posted", comment=CommentResponse.model_validate(comment))


@router.put("/{comment_id}", response_model=CommentEnvelope, summary="Edit comment")
async def update_comment(
    comment_id: UUID,
    request: CommentUpdateRequest,
    current_user: User = Depends(require_any_user),
    db: AsyncSession = Depends(get_async_session),
):
    comment = await CommentService(db).update_comment(comment_id, request.content, current_user)
    return CommentEnvelope(message="Comment updated", comment=CommentResponse.model_validate(comment))


@router.delete("/{comment_id}", response_model=MessageResponse, summary="Delete comment")
async def delete_comment(
    comment_id: UUID,
    current_user: User = Depends(require_any_user),
    db: AsyncSession = Depends(get_async_session),
):
    await CommentService(db).delete_comment(comment_id, current_user)
    return MessageResponse(message="Comment deleted")


@router.get("/", response_model=List[CommentResponse], summary="List all comments")
async def list_comments(
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_async_session),
):
    return await CommentService(db).list_comments()


@router.get("/audit/{audit_id}", response_model=List[CommentResponse], summary="Comments on an audit")
async def list_audit_comments(
    audit_id: UUID,
    current_user: User = Depends(require_any_user),
    db: AsyncSession = Depends(get_async_session),
):
    return await CommentService(db).list_audit_comments(audit_id, current_user)


@router.get("/issue/{issue_id}", response_model=List[CommentResponse], summary="Comments on an issue")
async def list_issue_comments(
    issue_id: UUID,
    current_user: User = Depends(require_any_user),
    db: AsyncSession = Depends(get_async_session),
):
    return await CommentService(db).list_issue_comments(issue_id, current_user)


@router.get("/author/{author_id}", response_model=List[CommentResponse], summary="Comments by an author")
async def list_author_comments(
    author_id: UUID,
    current_user: User = Depends(require_any_user),
    db: AsyncSession = Depends(get_async_session),
):
    return await CommentService(db).list_author_comments(author_id, current_user)
