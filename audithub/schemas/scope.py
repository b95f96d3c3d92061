"""
AuditHub - Scope Schemas

Field formats for scope requests are enforced here; any violation is a
400 before the workflow is reached.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import AliasChoices, Field, field_validator

from audithub.models.scope import ScopeStatus
from audithub.schemas.audit import AuditResponse
from audithub.schemas.common import (
    CamelModel,
    optional_cairo_version,
    optional_commit_hash,
    optional_url,
)


# ===========================================
# REQUEST SCHEMAS
# ===========================================

class ScopeData(CamelModel):
    """Project details submitted by a client."""
    protocol: str = Field(..., min_length=1, max_length=100)
    website: Optional[str] = Field(None, max_length=500)
    description: Optional[str] = Field(None, max_length=1000)
    cairo_ver: Optional[str] = Field(None, max_length=20, description="x.y.z")
    repo: Optional[str] = Field(None, max_length=500)
    initial_commit: Optional[str] = Field(None, max_length=40)
    docs: Optional[str] = Field(None, max_length=500)
    auditor_company_id: UUID

    @field_validator("protocol")
    @classmethod
    def strip_protocol(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Protocol is required")
        return v

    @field_validator("website", "repo", "docs")
    @classmethod
    def validate_url(cls, v: Optional[str]) -> Optional[str]:
        return optional_url(v)

    @field_validator("cairo_ver")
    @classmethod
    def validate_cairo_ver(cls, v: Optional[str]) -> Optional[str]:
        return optional_cairo_version(v)

    @field_validator("initial_commit")
    @classmethod
    def validate_commit(cls, v: Optional[str]) -> Optional[str]:
        return optional_commit_hash(v)

    @field_validator("description")
    @classmethod
    def empty_description(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            return None
        return v


class ScopeCreateRequest(CamelModel):
    """Body of POST /scope/create; signature fields are read by the gate."""
    scope_data: ScopeData


class ScopeRejectRequest(CamelModel):
    """The reason is checked by the workflow so a blank one is a 400 there."""
    rejection_reason: Optional[str] = None


# ===========================================
# RESPONSE SCHEMAS
# ===========================================

class ScopeResponse(CamelModel):
    """Schema for scope response."""
    id: UUID
    protocol: str
    website: Optional[str] = None
    description: Optional[str] = None
    cairo_ver: Optional[str] = None
    repo: Optional[str] = None
    initial_commit: Optional[str] = None
    docs: Optional[str] = None
    status: ScopeStatus
    client_company_id: UUID
    auditor_company_id: UUID
    # Columns are *_id; the wire names are createdBy and approvedBy
    created_by: UUID = Field(
        validation_alias=AliasChoices("created_by_id", "createdBy", "created_by"),
        serialization_alias="createdBy",
    )
    approved_by: Optional[UUID] = Field(
        None,
        validation_alias=AliasChoices("approved_by_id", "approvedBy", "approved_by"),
        serialization_alias="approvedBy",
    )
    approval_date: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    audit_id: Optional[UUID] = None
    created_at: datetime
    updated_at: datetime


class ScopeDetailResponse(ScopeResponse):
    """Scope with its audit report once one exists."""
    audit: Optional[AuditResponse] = None


class ScopeEnvelope(CamelModel):
    message: str
    scope: ScopeResponse


class ScopeApprovalResponse(CamelModel):
    message: str
    scope: ScopeResponse
    audit: AuditResponse
