"""
AuditHub - Schemas Package

Pydantic schemas for request/response validation.
"""

from audithub.schemas.common import CamelModel, MessageResponse
from audithub.schemas.company import (
    CompanyCreateRequest,
    CompanyUpdateRequest,
    CompanyUserRequest,
    CompanyResponse,
    CompanyEnvelope,
)
from audithub.schemas.user import (
    UserCreateData,
    UserCreateRequest,
    UserUpdateRequest,
    UserResponse,
    UserEnvelope,
)
from audithub.schemas.audit import (
    IssueCreateRequest,
    IssueUpdateRequest,
    IssueResponse,
    IssueEnvelope,
    AuditUpdateRequest,
    AuditResponse,
    AuditEnvelope,
)
from audithub.schemas.scope import (
    ScopeData,
    ScopeCreateRequest,
    ScopeRejectRequest,
    ScopeResponse,
    ScopeDetailResponse,
    ScopeEnvelope,
    ScopeApprovalResponse,
)
from audithub.schemas.comment import (
    CommentCreateRequest,
    CommentUpdateRequest,
    CommentResponse,
    CommentEnvelope,
)

__all__ = [
    "CamelModel",
    "MessageResponse",
    # Company
    "CompanyCreateRequest",
    "CompanyUpdateRequest",
    "CompanyUserRequest",
    "CompanyResponse",
    "CompanyEnvelope",
    # User
    "UserCreateData",
    "UserCreateRequest",
    "UserUpdateRequest",
    "UserResponse",
    "UserEnvelope",
    # Audit
    "IssueCreateRequest",
    "IssueUpdateRequest",
    "IssueResponse",
    "IssueEnvelope",
    "AuditUpdateRequest",
    "AuditResponse",
    "AuditEnvelope",
    # Scope
    "ScopeData",
    "ScopeCreateRequest",
    "ScopeRejectRequest",
    "ScopeResponse",
    "ScopeDetailResponse",
    "ScopeEnvelope",
    "ScopeApprovalResponse",
    # Comment
    "CommentCreateRequest",
    "CommentUpdateRequest",
    "CommentResponse",
    "CommentEnvelope",
]
