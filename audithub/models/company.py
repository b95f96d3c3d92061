"""
AuditHub - Company Model

Client and auditor organizations.

Company Roles:
- Client: requests audits for its protocols
- Auditor: reviews scope requests and produces audit reports

Membership is the users.company_id foreign key; managers and linked
reports are association tables.
"""

from enum import Enum
from typing import TYPE_CHECKING, List

from sqlalchemy import Column, ForeignKey, String, Table, Uuid, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from audithub.database import Base
from audithub.models.base import BaseModel

if TYPE_CHECKING:
    from audithub.models.user import User
    from audithub.models.audit import Audit


class CompanyRole(str, Enum):
    """Which side of the marketplace a company is on."""
    CLIENT = "client"
    AUDITOR = "auditor"


company_managers = Table(
    "company_managers",
    Base.metadata,
    Column("company_id", Uuid(as_uuid=True), ForeignKey("companies.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
)

company_reports = Table(
    "company_reports",
    Base.metadata,
    Column("company_id", Uuid(as_uuid=True), ForeignKey("companies.id", ondelete="CASCADE"), primary_key=True),
    Column("audit_id", Uuid(as_uuid=True), ForeignKey("audits.id", ondelete="CASCADE"), primary_key=True),
)


class Company(BaseModel):
    """
    Company model.

    A company owns its member users and, through them, scopes and audits.
    Companies are never hard-deleted while a scope still references them.
    """

    __tablename__ = "companies"

    name: Mapped[str] = mapped_column(String(25), unique=True, nullable=False, index=True)
    role: Mapped[CompanyRole] = mapped_column(
        SQLEnum(
            CompanyRole,
            name="company_role",
            values_callable=lambda enum: [member.value for member in enum],
        ),
        nullable=False,
    )

    members: Mapped[List["User"]] = relationship(
        "User",
        back_populates="company",
        foreign_keys="User.company_id",
    )
    managers: Mapped[List["User"]] = relationship(
        "User",
        secondary=company_managers,
    )
    reports: Mapped[List["Audit"]] = relationship(
        "Audit",
        secondary=company_reports,
        back_populates="companies",
    )

    @property
    def member_ids(self) -> list:
        return [user.id for user in self.members]

    @property
    def manager_ids(self) -> list:
        return [user.id for user in self.managers]

    @property
    def report_ids(self) -> list:
        return [audit.id for audit in self.reports]

    def __repr__(self) -> str:
        return f"<Company(id={self.id}, name={self.name}, role={self.role.value})>"
