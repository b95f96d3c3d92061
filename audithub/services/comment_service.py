"""
AuditHub - Comment Service

Comments are visible to whoever can see their audit.
"""

import logging
import uuid
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from audithub.models.audit import AuditIssue
from audithub.models.comment import Comment
from audithub.models.user import User
from audithub.services.audit_service import AuditService
from audithub.utils.error_handling import (
    AuthorizationException,
    NotFoundException,
    ValidationException,
)

logger = logging.getLogger(__name__)


class CommentService:
    """Service for comment operations."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.audits = AuditService(db)

    async def _get_comment(self, comment_id: uuid.UUID) -> Comment:
        comment = await self.db.get(Comment, comment_id)
        if comment is None:
            raise NotFoundException("Comment", comment_id)
        return comment

    async def _visible(self, comments: List[Comment], requester: User) -> List[Comment]:
        if requester.is_admin:
            return comments
        visible = []
        seen = {}
        for comment in comments:
            if comment.audit_id not in seen:
                audit = await self.audits.load_audit(comment.audit_id)
                seen[comment.audit_id] = self.audits.can_view(audit, requester)
            if seen[comment.audit_id]:
                visible.append(comment)
        return visible

    async def post_comment(
        self,
        audit_id: uuid.UUID,
        content: str,
        author: User,
        issue_id: Optional[uuid.UUID] = None,
    ) -> Comment:
        """Post a comment on an audit, or on one of its issues."""
        audit = await self.audits.get_audit(audit_id, author)
        if issue_id is not None and not any(issue.id == issue_id for issue in audit.issues):
            raise ValidationException("Issue does not belong to this audit", field="issueId")

        comment = Comment(
            content=content,
            author_id=author.id,
            author_name=author.name,
            audit_id=audit.id,
            issue_id=issue_id,
        )
        self.db.add(comment)
        await self.db.commit()
        logger.info(f"User {author.id} commented on audit {audit.id}")
        return comment

    async def update_comment(self, comment_id: uuid.UUID, content: str, requester: User) -> Comment:
        comment = await self._get_comment(comment_id)
        if comment.author_id != requester.id:
            raise AuthorizationException("Only the author can edit a comment")
        comment.content = content
        await self.db.commit()
        return comment

    async def delete_comment(self, comment_id: uuid.UUID, requester: User) -> None:
        comment = await self._get_comment(comment_id)
        if comment.author_id != requester.id and not requester.is_admin:
            raise AuthorizationException("Only the author or an admin can delete a comment")
        await self.db.delete(comment)
        await self.db.commit()
        logger.info(f"Comment {comment_id} deleted by {requester.id}")

    async def list_comments(self) -> List[Comment]:
        result = await self.db.execute(select(Comment).order_by(Comment.created_at))
        return list(result.scalars().all())

    async def list_audit_comments(self, audit_id: uuid.UUID, requester: User) -> List[Comment]:
        await self.audits.get_audit(audit_id, requester)
        result = await self.db.execute(
            select(Comment).where(Comment.audit_id == audit_id).order_by(Comment.created_at)
        )
        return list(result.scalars().all())

    async def list_issue_comments(self, issue_id: uuid.UUID, requester: User) -> List[Comment]:
        issue = await self.db.get(AuditIssue, issue_id)
        if issue is None:
            raise NotFoundException("Issue", issue_id)
        await self.audits.get_audit(issue.audit_id, requester)
        result = await self.db.execute(
            select(Comment).where(Comment.issue_id == issue_id).order_by(Comment.created_at)
        )
        return list(result.scalars().all())

    async def list_author_comments(self, author_id: uuid.UUID, requester: User) -> List[Comment]:
        result = await self.db.execute(
            select(Comment).where(Comment.author_id == author_id).order_by(Comment.created_at)
        )
        return await self._visible(list(result.scalars().all()), requester)
