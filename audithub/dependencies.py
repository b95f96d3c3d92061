"""
AuditHub - FastAPI Dependencies

Shared dependencies for database sessions and the role/identity gate.

Two ways to identify a caller:
1. Signature path: the JSON body carries ``signedMessage``,
   ``publicAddress`` (or ``account``) and ``signData``; the signature is
   checked by the account contract on a Starknet node.
2. Header path: the ``x-public-address`` header names the caller.

The gate only proves who the caller is. Services re-check whether that
caller may act on a given scope, company or audit.
"""

from typing import Any, Dict, Optional

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from audithub.config import get_settings
from audithub.database import get_async_session
from audithub.models.user import User, UserRole
from audithub.schemas.common import ADDRESS_RE
from audithub.services.signature_service import SignatureVerifier, StarknetSignatureVerifier
from audithub.services.user_service import UserService
from audithub.utils.error_handling import (
    AuthenticationException,
    InsufficientPermissionsException,
    InvalidSignatureException,
)


PUBLIC_ADDRESS_HEADER = "x-public-address"


def get_signature_verifier() -> SignatureVerifier:
    """Signature verifier used by the signature path. Overridden in tests."""
    return StarknetSignatureVerifier(get_settings())


async def _read_json_body(request: Request) -> Dict[str, Any]:
    try:
        body = await request.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


async def get_verified_address(
    request: Request,
    verifier: SignatureVerifier = Depends(get_signature_verifier),
) -> str:
    """
    Verify the signature fields of the request body.

    Returns the lower-cased address that signed the request.

    Raises:
        AuthenticationException: missing fields or bad signature
    """
    body = await _read_json_body(request)
    signed_message = body.get("signedMessage")
    public_address: Optional[str] = body.get("publicAddress") or body.get("account")
    sign_data = body.get("signData")

    if not signed_message or not public_address or sign_data in (None, "", {}):
        raise AuthenticationException("signedMessage, publicAddress and signData are required")
    if not isinstance(public_address, str) or not ADDRESS_RE.match(public_address.strip()):
        raise AuthenticationException("publicAddress is not a valid Starknet address")

    public_address = public_address.strip().lower()
    if not await verifier.verify(public_address, sign_data, signed_message):
        raise InvalidSignatureException(public_address)
    return public_address


async def get_signed_user(
    public_address: str = Depends(get_verified_address),
    db: AsyncSession = Depends(get_async_session),
) -> User:
    """Resolve the signer of the request to a registered user."""
    user = await UserService(db).find_by_address(public_address)
    if user is None:
        raise AuthenticationException("No user is registered for this address")
    return user


async def get_header_user(
    request: Request,
    db: AsyncSession = Depends(get_async_session),
) -> User:
    """Resolve the ``x-public-address`` header to a registered user."""
    public_address = request.headers.get(PUBLIC_ADDRESS_HEADER, "").strip()
    if not public_address:
        raise AuthenticationException(f"Missing {PUBLIC_ADDRESS_HEADER} header")

    user = await UserService(db).find_by_address(public_address)
    if user is None:
        raise AuthenticationException("No user is registered for this address")
    return user


def require_role(*roles: UserRole):
    """
    Dependency factory for header-gated endpoints.

    Usage:
        @router.get("/")
        async def list_all(user: User = Depends(require_role(UserRole.ADMIN))):
            ...
    """
    allowed = set(roles)

    async def role_checker(user: User = Depends(get_header_user)) -> User:
        if user.role not in allowed:
            raise InsufficientPermissionsException(
                [role.value for role in roles],
                user_role=user.role.value,
            )
        return user

    return role_checker


ANY_ROLE = (UserRole.ADMIN, UserRole.CLIENT, UserRole.AUDITOR)

require_admin = require_role(UserRole.ADMIN)
require_any_user = require_role(*ANY_ROLE)
