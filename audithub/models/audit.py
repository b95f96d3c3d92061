"""
AuditHub - Audit Report Models

An audit is created exactly once, when its scope is approved. It carries
the project summary copied from the scope, categorized issues and test
notes.

Issue buckets: critical, high, medium, low, info, bestPractices.
"""

import uuid
from enum import Enum
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import JSON, ForeignKey, String, Text, Uuid, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from audithub.models.base import BaseModel
from audithub.models.company import company_reports
from audithub.models.user import user_reports

if TYPE_CHECKING:
    from audithub.models.company import Company
    from audithub.models.scope import Scope
    from audithub.models.user import User


class AuditStatus(str, Enum):
    """Report lifecycle, forward only."""
    DRAFT = "Draft"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"


AUDIT_STATUS_ORDER = [AuditStatus.DRAFT, AuditStatus.IN_PROGRESS, AuditStatus.COMPLETED]


class IssueSeverity(str, Enum):
    """Issue buckets as they appear on the wire."""
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFO = "info"
    BEST_PRACTICES = "bestPractices"


class IssueStatus(str, Enum):
    OPEN = "Open"
    FIXED = "Fixed"
    ACKNOWLEDGED = "Acknowledged"


def _enum_values(enum) -> list:
    return [member.value for member in enum]


class Audit(BaseModel):
    """Audit report."""

    __tablename__ = "audits"

    status: Mapped[AuditStatus] = mapped_column(
        SQLEnum(AuditStatus, name="audit_status", values_callable=_enum_values),
        default=AuditStatus.DRAFT,
        nullable=False,
    )
    scope: Mapped[list] = mapped_column(JSON, default=list, nullable=False)

    # Summary
    protocol: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    website: Mapped[str] = mapped_column(String(500), default="", nullable=False)
    description: Mapped[str] = mapped_column(Text, default="", nullable=False)
    cairo_ver: Mapped[str] = mapped_column(String(20), default="", nullable=False)
    repo: Mapped[str] = mapped_column(String(500), default="", nullable=False)
    initial_commit: Mapped[str] = mapped_column(String(40), default="", nullable=False)
    final_commit: Mapped[str] = mapped_column(String(40), default="", nullable=False)
    docs: Mapped[str] = mapped_column(String(500), default="", nullable=False)
    final_report_date: Mapped[str] = mapped_column(String(40), default="", nullable=False)
    test_suite_assesment: Mapped[str] = mapped_column(String(500), default="", nullable=False)

    # Test notes
    test_compilation: Mapped[str] = mapped_column(Text, default="", nullable=False)
    test_tests: Mapped[str] = mapped_column(Text, default="", nullable=False)

    issues: Mapped[List["AuditIssue"]] = relationship(
        "AuditIssue",
        back_populates="audit",
        cascade="all, delete-orphan",
        order_by="AuditIssue.created_at",
    )
    companies: Mapped[List["Company"]] = relationship(
        "Company",
        secondary=company_reports,
        back_populates="reports",
    )
    participants: Mapped[List["User"]] = relationship(
        "User",
        secondary=user_reports,
        back_populates="reports",
    )
    source_scope: Mapped[Optional["Scope"]] = relationship(
        "Scope",
        back_populates="audit",
        foreign_keys="Scope.audit_id",
        uselist=False,
    )

    @property
    def is_completed(self) -> bool:
        return self.status == AuditStatus.COMPLETED

    def issues_by_severity(self) -> dict:
        buckets = {severity.value: [] for severity in IssueSeverity}
        for issue in self.issues:
            buckets[issue.severity.value].append(issue)
        return buckets

    def __repr__(self) -> str:
        return f"<Audit(id={self.id}, protocol={self.protocol}, status={self.status.value})>"


class AuditIssue(BaseModel):
    """One finding of an audit."""

    __tablename__ = "audit_issues"

    audit_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("audits.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    severity: Mapped[IssueSeverity] = mapped_column(
        SQLEnum(IssueSeverity, name="issue_severity", values_callable=_enum_values),
        nullable=False,
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    files: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    description: Mapped[str] = mapped_column(Text, default="", nullable=False)
    recommendation: Mapped[str] = mapped_column(Text, default="", nullable=False)
    status: Mapped[IssueStatus] = mapped_column(
        SQLEnum(IssueStatus, name="issue_status", values_callable=_enum_values),
        default=IssueStatus.OPEN,
        nullable=False,
    )
    client_update: Mapped[str] = mapped_column(Text, default="", nullable=False)
    code: Mapped[str] = mapped_column(Text, default="", nullable=False)

    audit: Mapped["Audit"] = relationship("Audit", back_populates="issues")
