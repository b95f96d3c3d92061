"""
AuditHub - Company Schemas
"""

from datetime import datetime
from typing import List
from uuid import UUID

from pydantic import Field, field_validator

from audithub.models.company import CompanyRole
from audithub.schemas.common import CamelModel


# ===========================================
# REQUEST SCHEMAS
# ===========================================

class CompanyCreateRequest(CamelModel):
    """Schema for creating a company."""
    name: str = Field(..., min_length=3, max_length=25)
    role: CompanyRole

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 3:
            raise ValueError("Name must be between 3 and 25 characters")
        return v


class CompanyUpdateRequest(CamelModel):
    """Schema for renaming a company. The role cannot change."""
    name: str = Field(..., min_length=3, max_length=25)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 3:
            raise ValueError("Name must be between 3 and 25 characters")
        return v


class CompanyUserRequest(CamelModel):
    """Target user for membership or manager assignment."""
    user_id: UUID


# ===========================================
# RESPONSE SCHEMAS
# ===========================================

class CompanyResponse(CamelModel):
    """Schema for company response."""
    id: UUID
    name: str
    role: CompanyRole
    manager_ids: List[UUID] = []
    member_ids: List[UUID] = []
    report_ids: List[UUID] = []
    created_at: datetime
    updated_at: datetime


class CompanyEnvelope(CamelModel):
    message: str
    company: CompanyResponse
