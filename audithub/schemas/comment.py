"""
AuditHub - Comment Schemas

An empty ``issueId`` means the comment is about the audit as a whole.
"""

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import Field, field_validator, model_validator

from audithub.models.comment import Comment
from audithub.schemas.common import CamelModel


class CommentCreateRequest(CamelModel):
    """Schema for posting a comment."""
    content: str = Field(..., min_length=1, max_length=1000)
    audit_id: UUID
    issue_id: Optional[UUID] = None

    @field_validator("issue_id", mode="before")
    @classmethod
    def empty_issue_id(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("content")
    @classmethod
    def strip_content(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Content is required")
        return v


class CommentUpdateRequest(CamelModel):
    content: str = Field(..., min_length=1, max_length=1000)

    @field_validator("content")
    @classmethod
    def strip_content(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Content is required")
        return v


class CommentAuthor(CamelModel):
    id: UUID
    name: str


class CommentResponse(CamelModel):
    """Schema for comment response."""
    id: UUID
    content: str
    author: CommentAuthor
    audit_id: UUID
    issue_id: str = ""
    created_at: datetime
    updated_at: datetime

    @model_validator(mode="before")
    @classmethod
    def from_comment_row(cls, data: Any) -> Any:
        if not isinstance(data, Comment):
            return data
        return {
            "id": data.id,
            "content": data.content,
            "author": {"id": data.author_id, "name": data.author_name},
            "audit_id": data.audit_id,
            "issue_id": str(data.issue_id) if data.issue_id else "",
            "created_at": data.created_at,
            "updated_at": data.updated_at,
        }


class CommentEnvelope(CamelModel):
    message: str
    comment: CommentResponse
