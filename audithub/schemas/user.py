"""
AuditHub - User Schemas
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import Field, field_validator, model_validator

from audithub.models.user import UserRole
from audithub.schemas.common import CamelModel, normalize_address


# ===========================================
# REQUEST SCHEMAS
# ===========================================

class UserCreateData(CamelModel):
    """Profile submitted with a signed registration."""
    public_address: str
    name: str = Field(..., min_length=3, max_length=25)
    role: UserRole
    company_id: Optional[UUID] = None

    @field_validator("public_address")
    @classmethod
    def validate_address(cls, v: str) -> str:
        return normalize_address(v)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 3:
            raise ValueError("Name must be between 3 and 25 characters")
        return v

    @model_validator(mode="after")
    def validate_role_requirements(self):
        """Self-registration is for client and auditor accounts only."""
        if self.role == UserRole.ADMIN:
            raise ValueError("Admin accounts cannot self-register")
        if self.company_id is None:
            raise ValueError("companyId is required for client and auditor accounts")
        return self


class UserCreateRequest(CamelModel):
    """Body of POST /user/create; signature fields are read by the gate."""
    data: UserCreateData


class UserUpdateRequest(CamelModel):
    name: str = Field(..., min_length=3, max_length=25)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 3:
            raise ValueError("Name must be between 3 and 25 characters")
        return v


# ===========================================
# RESPONSE SCHEMAS
# ===========================================

class UserResponse(CamelModel):
    """Schema for user response."""
    id: UUID
    role: UserRole
    public_address: str
    name: str
    company_id: Optional[UUID] = None
    report_audit_ids: List[UUID] = []
    created_at: datetime
    updated_at: datetime


class UserEnvelope(CamelModel):
    message: str
    user: UserResponse
