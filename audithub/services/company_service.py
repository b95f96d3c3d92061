"""
AuditHub - Company Service

Business logic for companies, their members and managers.

A company is managed by the platform admins and by its own managers.
Managers are always members.
"""

import logging
import uuid
from typing import List, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from audithub.models.company import Company, CompanyRole, company_managers
from audithub.models.scope import Scope
from audithub.models.user import User, UserRole
from audithub.utils.error_handling import (
    AuthorizationException,
    CompanyNotFoundException,
    ConflictException,
    DuplicateEntryException,
    NotFoundException,
    StillReferencedException,
    UserNotFoundException,
    ValidationException,
)

logger = logging.getLogger(__name__)


class CompanyService:
    """Service for company operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    def _company_query(self):
        return select(Company).options(
            selectinload(Company.members),
            selectinload(Company.managers),
            selectinload(Company.reports),
        )

    async def get_company(self, company_id: uuid.UUID, refresh: bool = False) -> Company:
        """Get company by ID with members, managers and reports loaded."""
        query = self._company_query().where(Company.id == company_id)
        if refresh:
            query = query.execution_options(populate_existing=True)
        result = await self.db.execute(query)
        company = result.scalar_one_or_none()
        if company is None:
            raise CompanyNotFoundException(company_id)
        return company

    async def _get_user(self, user_id: uuid.UUID) -> User:
        user = await self.db.get(User, user_id)
        if user is None:
            raise UserNotFoundException(user_id)
        return user

    async def _ensure_name_free(self, name: str, exclude_id: Optional[uuid.UUID] = None) -> None:
        query = select(Company.id).where(func.lower(Company.name) == name.lower())
        if exclude_id is not None:
            query = query.where(Company.id != exclude_id)
        if (await self.db.execute(query)).first() is not None:
            raise DuplicateEntryException("Company", "name", name)

    @staticmethod
    def _require_admin_or_manager(company: Company, requester: User) -> None:
        if requester.is_admin or requester.id in company.manager_ids:
            return
        logger.warning(f"User {requester.id} is not allowed to manage company {company.id}")
        raise AuthorizationException("Only admins or company managers can manage this company")

    # ===========================================
    # QUERIES
    # ===========================================

    async def list_companies(self, role: Optional[CompanyRole] = None) -> List[Company]:
        query = self._company_query().order_by(Company.name)
        if role is not None:
            query = query.where(Company.role == role)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def list_members(self, company_id: uuid.UUID) -> List[User]:
        await self.get_company(company_id)
        result = await self.db.execute(
            select(User)
            .options(selectinload(User.reports))
            .where(User.company_id == company_id)
            .order_by(User.name)
        )
        return list(result.scalars().all())

    async def list_managers(self, company_id: uuid.UUID) -> List[User]:
        await self.get_company(company_id)
        result = await self.db.execute(
            select(User)
            .options(selectinload(User.reports))
            .join(company_managers, company_managers.c.user_id == User.id)
            .where(company_managers.c.company_id == company_id)
            .order_by(User.name)
        )
        return list(result.scalars().all())

    async def get_company_for_user(self, user_id: uuid.UUID) -> Company:
        user = await self._get_user(user_id)
        if user.company_id is None:
            raise NotFoundException(
                "Company",
                message=f"User '{user_id}' does not belong to a company",
            )
        return await self.get_company(user.company_id)

    # ===========================================
    # MUTATIONS
    # ===========================================

    async def create_company(self, name: str, role: CompanyRole) -> Company:
        await self._ensure_name_free(name)
        company = Company(name=name, role=role)
        self.db.add(company)
        await self.db.commit()
        logger.info(f"Created {role.value} company '{name}' ({company.id})")
        return await self.get_company(company.id, refresh=True)

    async def update_company(self, company_id: uuid.UUID, name: str, requester: User) -> Company:
        company = await self.get_company(company_id)
        self._require_admin_or_manager(company, requester)
        await self._ensure_name_free(name, exclude_id=company.id)

        company.name = name
        await self.db.commit()
        logger.info(f"Renamed company {company.id} to '{name}'")
        return await self.get_company(company_id, refresh=True)

    async def delete_company(self, company_id: uuid.UUID) -> None:
        """Delete a company no scope refers to. Members are detached."""
        company = await self.get_company(company_id)

        referencing = await self.db.scalar(
            select(func.count(Scope.id)).where(
                or_(
                    Scope.client_company_id == company_id,
                    Scope.auditor_company_id == company_id,
                )
            )
        )
        if referencing:
            raise StillReferencedException("Company", company_id, f"{referencing} scope(s)")

        # Loaded members are detached by the ORM on delete
        await self.db.delete(company)
        await self.db.commit()
        logger.info(f"Deleted company '{company.name}' ({company_id})")

    async def assign_user(self, company_id: uuid.UUID, user_id: uuid.UUID, requester: User) -> Company:
        """Make a user a member of the company."""
        company = await self.get_company(company_id)
        self._require_admin_or_manager(company, requester)
        user = await self._get_user(user_id)

        if user.role == UserRole.ADMIN or user.role.value != company.role.value:
            raise ValidationException(
                f"A {user.role.value} user cannot join a {company.role.value} company",
                field="userId",
            )
        if user.company_id == company.id:
            return company
        if user.company_id is not None:
            raise ConflictException(
                "User already belongs to another company; remove them first",
                resource_type="User",
            )

        user.company_id = company.id
        await self.db.commit()
        logger.info(f"User {user.id} joined company {company.id}")
        return await self.get_company(company_id, refresh=True)

    async def remove_user(self, company_id: uuid.UUID, user_id: uuid.UUID, requester: User) -> Company:
        """Remove a member; a removed member also loses manager status."""
        company = await self.get_company(company_id)
        self._require_admin_or_manager(company, requester)
        user = await self._get_user(user_id)
        if user.company_id != company.id:
            raise ValidationException("User is not a member of this company", field="userId")

        if user in company.managers:
            company.managers.remove(user)
        user.company_id = None
        await self.db.commit()
        logger.info(f"User {user.id} left company {company.id}")
        return await self.get_company(company_id, refresh=True)

    async def assign_manager(self, company_id: uuid.UUID, user_id: uuid.UUID, requester: User) -> Company:
        company = await self.get_company(company_id)
        self._require_admin_or_manager(company, requester)
        user = await self._get_user(user_id)
        if user.company_id != company.id:
            raise ValidationException("Managers must be members of the company", field="userId")

        if user not in company.managers:
            company.managers.append(user)
            await self.db.commit()
            logger.info(f"User {user.id} now manages company {company.id}")
        return await self.get_company(company_id, refresh=True)

    async def remove_manager(self, company_id: uuid.UUID, user_id: uuid.UUID, requester: User) -> Company:
        company = await self.get_company(company_id)
        self._require_admin_or_manager(company, requester)
        user = await self._get_user(user_id)
        if user not in company.managers:
            raise ValidationException("User is not a manager of this company", field="userId")

        company.managers.remove(user)
        await self.db.commit()
        logger.info(f"User {user.id} no longer manages company {company.id}")
        return await self.get_company(company_id, refresh=True)
