"""
AuditHub - Comment Model

Comments hang off an audit, optionally pinned to one of its issues.
The author's name is captured at posting time.
"""

import uuid
from typing import Optional

from sqlalchemy import ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from audithub.models.base import BaseModel


class Comment(BaseModel):
    """Comment on an audit or on one of its issues."""

    __tablename__ = "comments"

    content: Mapped[str] = mapped_column(Text, nullable=False)
    author_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    author_name: Mapped[str] = mapped_column(String(25), nullable=False)
    audit_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("audits.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    # NULL means the comment is about the audit as a whole
    issue_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("audit_issues.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
