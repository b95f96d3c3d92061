"""
AuditHub - Test Configuration

Pytest fixtures and configuration.

Every test gets its own SQLite file database; API requests each get a
fresh session from the same engine, as they would in production.
"""

from typing import Any, AsyncGenerator, Dict, List, Sequence, Tuple, Union

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

import audithub.models  # noqa: F401
from audithub.database import Base, get_async_session
from audithub.dependencies import get_signature_verifier
from audithub.models.company import Company, CompanyRole
from audithub.models.user import User, UserRole
from audithub.services.signature_service import SignatureVerifier
from main import app


def make_address(n: int) -> str:
    """Deterministic Starknet address for test users."""
    return "0x" + format(n, "064x")


SIGN_DATA = "0x" + "ab" * 31


def signed(address: str, **payload: Any) -> Dict[str, Any]:
    """Request body carrying the signature fields the gate reads."""
    return {
        "signedMessage": ["0x1", "0x2"],
        "publicAddress": address,
        "signData": SIGN_DATA,
        **payload,
    }


def as_user(user: User) -> Dict[str, str]:
    """Header identifying ``user`` on header-gated endpoints."""
    return {"x-public-address": user.public_address}


class StubSignatureVerifier(SignatureVerifier):
    """Accepts (or refuses) every signature and records the calls."""

    def __init__(self):
        self.valid = True
        self.calls: List[Tuple[str, Any, Any]] = []

    async def verify(self, address: str, sign_data: Any, signature: Union[str, Sequence[Any]]) -> bool:
        self.calls.append((address, sign_data, signature))
        return self.valid


# ===========================================
# DATABASE FIXTURES
# ===========================================

@pytest_asyncio.fixture(scope="function")
async def engine(tmp_path):
    """Fresh SQLite database per test."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'audithub.db'}",
        poolclass=NullPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine) -> async_sessionmaker:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture(scope="function")
async def db_session(session_maker) -> AsyncGenerator[AsyncSession, None]:
    """Session used by fixtures and service-level tests."""
    async with session_maker() as session:
        yield session


@pytest.fixture
def verifier() -> StubSignatureVerifier:
    return StubSignatureVerifier()


@pytest_asyncio.fixture(scope="function")
async def client(session_maker, verifier) -> AsyncGenerator[AsyncClient, None]:
    """Create a test client with database and verifier overrides."""

    async def override_get_session():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_async_session] = override_get_session
    app.dependency_overrides[get_signature_verifier] = lambda: verifier

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ===========================================
# DATA FIXTURES
# ===========================================

async def _add(db_session: AsyncSession, obj):
    db_session.add(obj)
    await db_session.commit()
    return obj


@pytest_asyncio.fixture
async def client_company(db_session: AsyncSession) -> Company:
    return await _add(db_session, Company(name="Acme Protocol", role=CompanyRole.CLIENT))


@pytest_asyncio.fixture
async def auditor_company(db_session: AsyncSession) -> Company:
    return await _add(db_session, Company(name="Shield Audits", role=CompanyRole.AUDITOR))


@pytest_asyncio.fixture
async def other_auditor_company(db_session: AsyncSession) -> Company:
    return await _add(db_session, Company(name="Second Opinion", role=CompanyRole.AUDITOR))


@pytest_asyncio.fixture
async def admin_user(db_session: AsyncSession) -> User:
    return await _add(
        db_session,
        User(role=UserRole.ADMIN, public_address=make_address(1), name="Root Admin"),
    )


@pytest_asyncio.fixture
async def client_user(db_session: AsyncSession, client_company: Company) -> User:
    return await _add(
        db_session,
        User(
            role=UserRole.CLIENT,
            public_address=make_address(2),
            name="Alice Client",
            company_id=client_company.id,
        ),
    )


@pytest_asyncio.fixture
async def auditor_user(db_session: AsyncSession, auditor_company: Company) -> User:
    return await _add(
        db_session,
        User(
            role=UserRole.AUDITOR,
            public_address=make_address(3),
            name="Bob Auditor",
            company_id=auditor_company.id,
        ),
    )


@pytest_asyncio.fixture
async def second_auditor_user(db_session: AsyncSession, auditor_company: Company) -> User:
    return await _add(
        db_session,
        User(
            role=UserRole.AUDITOR,
            public_address=make_address(4),
            name="Carol Auditor",
            company_id=auditor_company.id,
        ),
    )


@pytest_asyncio.fixture
async def outside_auditor_user(db_session: AsyncSession, other_auditor_company: Company) -> User:
    return await _add(
        db_session,
        User(
            role=UserRole.AUDITOR,
            public_address=make_address(5),
            name="Dave Outsider",
            company_id=other_auditor_company.id,
        ),
    )


def scope_payload(auditor_company_id, **overrides: Any) -> Dict[str, Any]:
    data = {
        "protocol": "Ekubo",
        "website": "https://ekubo.org",
        "description": "Concentrated liquidity AMM",
        "cairoVer": "2.6.3",
        "repo": "https://github.com/ekuboprotocol/abis",
        "initialCommit": "a1b2c3d4e5f6",
        "docs": "https://docs.ekubo.org",
        "auditorCompanyId": str(auditor_company_id),
    }
    data.update(overrides)
    return data
