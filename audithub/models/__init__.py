"""
AuditHub - SQLAlchemy Models Package

This package contains all database models for the application.
"""

from audithub.models.base import BaseModel, TimestampMixin
from audithub.models.company import Company, CompanyRole, company_managers, company_reports
from audithub.models.user import User, UserRole, user_reports
from audithub.models.audit import (
    Audit,
    AuditIssue,
    AuditStatus,
    AUDIT_STATUS_ORDER,
    IssueSeverity,
    IssueStatus,
)
from audithub.models.scope import Scope, ScopeStatus
from audithub.models.comment import Comment

__all__ = [
    "BaseModel",
    "TimestampMixin",
    "Company",
    "CompanyRole",
    "company_managers",
    "company_reports",
    "User",
    "UserRole",
    "user_reports",
    "Audit",
    "AuditIssue",
    "AuditStatus",
    "AUDIT_STATUS_ORDER",
    "IssueSeverity",
    "IssueStatus",
    "Scope",
    "ScopeStatus",
    "Comment",
]
