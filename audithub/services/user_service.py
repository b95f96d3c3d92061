"""
AuditHub - User Service

Business logic for user accounts.

Users register themselves by signing with the Starknet account they
register; admins are seeded from configuration on startup.
"""

import logging
import uuid
from typing import List, Optional

from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from audithub.models.comment import Comment
from audithub.models.company import Company, company_managers
from audithub.models.scope import Scope
from audithub.models.user import User, UserRole
from audithub.schemas.common import normalize_address
from audithub.schemas.user import UserCreateData
from audithub.utils.error_handling import (
    AuthorizationException,
    CompanyNotFoundException,
    DuplicateEntryException,
    StillReferencedException,
    UserNotFoundException,
    ValidationException,
)

logger = logging.getLogger(__name__)


class UserService:
    """Service for user operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    def _user_query(self):
        return select(User).options(selectinload(User.reports))

    async def get_user(self, user_id: uuid.UUID, refresh: bool = False) -> User:
        query = self._user_query().where(User.id == user_id)
        if refresh:
            query = query.execution_options(populate_existing=True)
        user = (await self.db.execute(query)).scalar_one_or_none()
        if user is None:
            raise UserNotFoundException(user_id)
        return user

    async def find_by_address(self, public_address: str) -> Optional[User]:
        """Look a user up by address; the address is matched lower-cased."""
        result = await self.db.execute(
            self._user_query().where(User.public_address == public_address.lower())
        )
        return result.scalar_one_or_none()

    async def get_user_by_address(self, public_address: str) -> User:
        user = await self.find_by_address(public_address)
        if user is None:
            raise UserNotFoundException(public_address=public_address)
        return user

    async def list_users(self, role: Optional[UserRole] = None) -> List[User]:
        query = self._user_query().order_by(User.name)
        if role is not None:
            query = query.where(User.role == role)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def _ensure_unique(
        self,
        name: Optional[str] = None,
        public_address: Optional[str] = None,
        exclude_id: Optional[uuid.UUID] = None,
    ) -> None:
        if name is not None:
            query = select(User.id).where(func.lower(User.name) == name.lower())
            if exclude_id is not None:
                query = query.where(User.id != exclude_id)
            if (await self.db.execute(query)).first() is not None:
                raise DuplicateEntryException("User", "name", name)
        if public_address is not None:
            query = select(User.id).where(User.public_address == public_address)
            if (await self.db.execute(query)).first() is not None:
                raise DuplicateEntryException("User", "publicAddress", public_address)

    async def register_user(self, data: UserCreateData, signer_address: str) -> User:
        """
        Create a client or auditor account.

        The signature gate proves ``signer_address``; it must be the
        address being registered. The new user joins ``data.company_id``,
        whose role must match the user's role.
        """
        if signer_address.lower() != data.public_address:
            raise AuthorizationException("Users can only register their own address")
        if data.role == UserRole.ADMIN:
            raise AuthorizationException("Admin accounts cannot self-register")

        company = await self.db.get(Company, data.company_id)
        if company is None:
            raise CompanyNotFoundException(data.company_id)
        if company.role.value != data.role.value:
            raise ValidationException(
                f"A {data.role.value} user cannot join a {company.role.value} company",
                field="companyId",
            )

        await self._ensure_unique(name=data.name, public_address=data.public_address)

        user = User(
            role=data.role,
            public_address=data.public_address,
            name=data.name,
            company_id=company.id,
        )
        self.db.add(user)
        await self.db.commit()
        logger.info(f"Registered {data.role.value} user '{data.name}' in company {company.id}")
        return await self.get_user(user.id, refresh=True)

    async def bootstrap_admin(self, public_address: str, name: str) -> User:
        """Get or create the configured admin account."""
        public_address = normalize_address(public_address)
        existing = await self.find_by_address(public_address)
        if existing is not None:
            if existing.role != UserRole.ADMIN:
                raise ValidationException(
                    f"Bootstrap address already belongs to a {existing.role.value} user"
                )
            return existing

        await self._ensure_unique(name=name)
        admin = User(role=UserRole.ADMIN, public_address=public_address, name=name)
        self.db.add(admin)
        await self.db.commit()
        logger.info(f"Bootstrapped admin '{name}'")
        return await self.get_user(admin.id, refresh=True)

    async def update_user(self, user_id: uuid.UUID, name: str, requester: User) -> User:
        if not requester.is_admin and requester.id != user_id:
            raise AuthorizationException("Users can only update their own profile")

        user = await self.get_user(user_id)
        await self._ensure_unique(name=name, exclude_id=user.id)
        user.name = name
        await self.db.commit()
        logger.info(f"User {user.id} renamed to '{name}'")
        return await self.get_user(user_id, refresh=True)

    async def delete_user(self, user_id: uuid.UUID, requester: User) -> None:
        """Delete a user no scope refers to."""
        if requester.id == user_id:
            raise ValidationException("Admins cannot delete themselves")

        user = await self.get_user(user_id)
        referencing = await self.db.scalar(
            select(func.count(Scope.id)).where(
                or_(Scope.created_by_id == user_id, Scope.approved_by_id == user_id)
            )
        )
        if referencing:
            raise StillReferencedException("User", user_id, f"{referencing} scope(s)")

        await self.db.execute(delete(company_managers).where(company_managers.c.user_id == user_id))
        await self.db.execute(delete(Comment).where(Comment.author_id == user_id))
        await self.db.delete(user)
        await self.db.commit()
        logger.info(f"Deleted user '{user.name}' ({user_id})")
