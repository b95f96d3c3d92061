"""
AuditHub - Audit Report Schemas

Issues are stored flat and regrouped into severity buckets on the wire.
"""

from datetime import datetime
from typing import Any, List, Optional
from uuid import UUID

from pydantic import Field, field_validator, model_validator

from audithub.models.audit import Audit, AuditStatus, IssueSeverity, IssueStatus
from audithub.schemas.common import (
    CamelModel,
    optional_cairo_version,
    optional_commit_hash,
    optional_url,
)


# ===========================================
# ISSUE SCHEMAS
# ===========================================

class IssueCreateRequest(CamelModel):
    """Schema for adding an issue to an audit."""
    severity: IssueSeverity
    title: str = Field(..., min_length=1, max_length=200)
    files: List[str] = []
    description: str = Field("", max_length=2000)
    recommendation: str = Field("", max_length=2000)
    status: IssueStatus = IssueStatus.OPEN
    client_update: str = Field("", max_length=1000)
    code: str = Field("", max_length=5000)


class IssueUpdateRequest(CamelModel):
    """Schema for updating an issue. Changing severity moves it to another bucket."""
    severity: Optional[IssueSeverity] = None
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    files: Optional[List[str]] = None
    description: Optional[str] = Field(None, max_length=2000)
    recommendation: Optional[str] = Field(None, max_length=2000)
    status: Optional[IssueStatus] = None
    client_update: Optional[str] = Field(None, max_length=1000)
    code: Optional[str] = Field(None, max_length=5000)


class IssueResponse(CamelModel):
    id: UUID
    severity: IssueSeverity
    title: str
    files: List[str] = []
    description: str = ""
    recommendation: str = ""
    status: IssueStatus
    client_update: str = ""
    code: str = ""


# ===========================================
# AUDIT SCHEMAS
# ===========================================

class AuditSummary(CamelModel):
    protocol: str
    website: str = ""
    description: str = ""
    cairo_ver: str = ""
    repo: str = ""
    initial_commit: str = ""
    final_commit: str = ""
    docs: str = ""
    final_report_date: str = ""
    test_suite_assesment: str = ""


class AuditSummaryUpdate(CamelModel):
    """
    Editable summary fields; omitted fields are left unchanged.

    The protocol name is fixed by the originating scope and is not editable.
    """
    website: Optional[str] = Field(None, max_length=500)
    description: Optional[str] = Field(None, max_length=1000)
    cairo_ver: Optional[str] = Field(None, max_length=20)
    repo: Optional[str] = Field(None, max_length=500)
    initial_commit: Optional[str] = Field(None, max_length=40)
    final_commit: Optional[str] = Field(None, max_length=40)
    docs: Optional[str] = Field(None, max_length=500)
    final_report_date: Optional[str] = Field(None, max_length=40)
    test_suite_assesment: Optional[str] = Field(None, max_length=500)

    @field_validator("website", "repo", "docs")
    @classmethod
    def validate_url(cls, v: Optional[str]) -> Optional[str]:
        return optional_url(v)

    @field_validator("cairo_ver")
    @classmethod
    def validate_cairo_ver(cls, v: Optional[str]) -> Optional[str]:
        return optional_cairo_version(v)

    @field_validator("initial_commit", "final_commit")
    @classmethod
    def validate_commit(cls, v: Optional[str]) -> Optional[str]:
        return optional_commit_hash(v)


class AuditTest(CamelModel):
    compilation: str = ""
    tests: str = ""


class AuditTestUpdate(CamelModel):
    compilation: Optional[str] = None
    tests: Optional[str] = None


class AuditIssues(CamelModel):
    critical: List[IssueResponse] = []
    high: List[IssueResponse] = []
    medium: List[IssueResponse] = []
    low: List[IssueResponse] = []
    info: List[IssueResponse] = []
    best_practices: List[IssueResponse] = []


class AuditUpdateRequest(CamelModel):
    """Schema for the auditor-side edit of an audit report."""
    status: Optional[AuditStatus] = None
    scope: Optional[List[str]] = None
    summary: Optional[AuditSummaryUpdate] = None
    test: Optional[AuditTestUpdate] = None


class AuditResponse(CamelModel):
    """Schema for audit report response."""
    id: UUID
    status: AuditStatus
    scope: List[str] = []
    summary: AuditSummary
    issues: AuditIssues = AuditIssues()
    test: AuditTest = AuditTest()
    created_at: datetime
    updated_at: datetime

    @model_validator(mode="before")
    @classmethod
    def from_audit_row(cls, data: Any) -> Any:
        """Regroup a loaded Audit row into the nested wire shape."""
        if not isinstance(data, Audit):
            return data
        buckets = data.issues_by_severity()
        return {
            "id": data.id,
            "status": data.status,
            "scope": list(data.scope or []),
            "summary": {
                "protocol": data.protocol,
                "website": data.website,
                "description": data.description,
                "cairo_ver": data.cairo_ver,
                "repo": data.repo,
                "initial_commit": data.initial_commit,
                "final_commit": data.final_commit,
                "docs": data.docs,
                "final_report_date": data.final_report_date,
                "test_suite_assesment": data.test_suite_assesment,
            },
            "issues": {
                "critical": buckets[IssueSeverity.CRITICAL.value],
                "high": buckets[IssueSeverity.HIGH.value],
                "medium": buckets[IssueSeverity.MEDIUM.value],
                "low": buckets[IssueSeverity.LOW.value],
                "info": buckets[IssueSeverity.INFO.value],
                "best_practices": buckets[IssueSeverity.BEST_PRACTICES.value],
            },
            "test": {
                "compilation": data.test_compilation,
                "tests": data.test_tests,
            },
            "created_at": data.created_at,
            "updated_at": data.updated_at,
        }


class AuditEnvelope(CamelModel):
    message: str
    audit: AuditResponse


class IssueEnvelope(CamelModel):
    message: str
    issue: IssueResponse
