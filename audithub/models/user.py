"""
AuditHub - User Model

Users authenticate with a Starknet account: the public address is the
identity key, so it is unique and stored lower-case.

Roles:
- Admin: platform operator, belongs to no company
- Client: member of a client company, creates scopes
- Auditor: member of an auditor company, approves or rejects scopes
"""

import uuid
from enum import Enum
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import Column, ForeignKey, String, Table, Uuid, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from audithub.database import Base
from audithub.models.base import BaseModel

if TYPE_CHECKING:
    from audithub.models.company import Company
    from audithub.models.audit import Audit


class UserRole(str, Enum):
    """Single role per user."""
    ADMIN = "admin"
    CLIENT = "client"
    AUDITOR = "auditor"


user_reports = Table(
    "user_reports",
    Base.metadata,
    Column("user_id", Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("audit_id", Uuid(as_uuid=True), ForeignKey("audits.id", ondelete="CASCADE"), primary_key=True),
)


class User(BaseModel):
    """User model for identity and role-based access."""

    __tablename__ = "users"

    role: Mapped[UserRole] = mapped_column(
        SQLEnum(
            UserRole,
            name="user_role",
            values_callable=lambda enum: [member.value for member in enum],
        ),
        nullable=False,
    )
    public_address: Mapped[str] = mapped_column(
        String(66),
        unique=True,
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(25), unique=True, nullable=False)

    # NULL only for admins
    company_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("companies.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    company: Mapped[Optional["Company"]] = relationship(
        "Company",
        back_populates="members",
        foreign_keys=[company_id],
    )
    reports: Mapped[List["Audit"]] = relationship(
        "Audit",
        secondary=user_reports,
        back_populates="participants",
    )

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def report_audit_ids(self) -> list:
        return [audit.id for audit in self.reports]

    def __repr__(self) -> str:
        return f"<User(id={self.id}, name={self.name}, role={self.role.value})>"
