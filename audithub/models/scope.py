"""
AuditHub - Scope Model

A scope is a client company's request for a named auditor company to
audit a protocol.

Status lifecycle:
- pending: awaiting the auditor company's decision
- approved: transient, never persisted (approval creates the audit in the
  same transaction)
- audit_created: terminal, audit_id points at the synthesized report
- rejected: terminal, rejection_reason is set
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Optional

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, String, Text, Uuid, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from audithub.models.base import BaseModel

if TYPE_CHECKING:
    from audithub.models.audit import Audit


class ScopeStatus(str, Enum):
    """Scope workflow states."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    AUDIT_CREATED = "audit_created"


class Scope(BaseModel):
    """Scope request submitted by a client user."""

    __tablename__ = "scopes"
    __table_args__ = (
        CheckConstraint(
            "(status = 'audit_created') = (audit_id IS NOT NULL)",
            name="audit_link_matches_status",
        ),
        CheckConstraint(
            "(status = 'rejected') = (rejection_reason IS NOT NULL)",
            name="rejection_reason_matches_status",
        ),
    )

    # Project details
    protocol: Mapped[str] = mapped_column(String(100), nullable=False)
    website: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    cairo_ver: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    repo: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    initial_commit: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    docs: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    # Workflow
    status: Mapped[ScopeStatus] = mapped_column(
        SQLEnum(
            ScopeStatus,
            name="scope_status",
            values_callable=lambda enum: [member.value for member in enum],
        ),
        default=ScopeStatus.PENDING,
        nullable=False,
        index=True,
    )
    client_company_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("companies.id"),
        nullable=False,
        index=True,
    )
    auditor_company_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("companies.id"),
        nullable=False,
        index=True,
    )
    created_by_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id"),
        nullable=False,
    )
    approved_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id"),
        nullable=True,
        comment="Reviewer; set on approval and on rejection",
    )
    approval_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    rejection_reason: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    audit_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("audits.id"),
        unique=True,
        nullable=True,
    )

    audit: Mapped[Optional["Audit"]] = relationship(
        "Audit",
        back_populates="source_scope",
        foreign_keys=[audit_id],
    )

    @property
    def is_terminal(self) -> bool:
        return self.status in (ScopeStatus.REJECTED, ScopeStatus.AUDIT_CREATED)

    def involves_company(self, company_id: Optional[uuid.UUID]) -> bool:
        return company_id is not None and company_id in (
            self.client_company_id,
            self.auditor_company_id,
        )

    def __repr__(self) -> str:
        return f"<Scope(id={self.id}, protocol={self.protocol}, status={self.status.value})>"
