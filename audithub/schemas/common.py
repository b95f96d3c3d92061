"""
AuditHub - Shared Schema Pieces

Wire format is camelCase; Python attributes stay snake_case.
"""

import re
from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


ADDRESS_RE = re.compile(r"^0x[a-fA-F0-9]{64}$")
URL_RE = re.compile(r"^https?://[^\s/$.?#][^\s]*$", re.IGNORECASE)
CAIRO_VERSION_RE = re.compile(r"^\d+\.\d+\.\d+$")
COMMIT_HASH_RE = re.compile(r"^[a-fA-F0-9]{7,40}$")


class CamelModel(BaseModel):
    """Base for every request and response schema."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class MessageResponse(CamelModel):
    """Generic message response."""
    message: str
    success: bool = True


def normalize_address(value: str) -> str:
    """Validate a Starknet account address and return it lower-cased."""
    value = value.strip()
    if not ADDRESS_RE.match(value):
        raise ValueError("Public address must be 0x followed by 64 hex characters")
    return value.lower()


def optional_url(value: Optional[str]) -> Optional[str]:
    if value is None or not value.strip():
        return None
    value = value.strip()
    if not URL_RE.match(value):
        raise ValueError("Must be an http(s) URL")
    return value


def optional_cairo_version(value: Optional[str]) -> Optional[str]:
    if value is None or not value.strip():
        return None
    value = value.strip()
    if not CAIRO_VERSION_RE.match(value):
        raise ValueError("Cairo version must look like x.y.z")
    return value


def optional_commit_hash(value: Optional[str]) -> Optional[str]:
    """Validate a short or full git hash and return it lower-cased."""
    if value is None or not value.strip():
        return None
    value = value.strip()
    if not COMMIT_HASH_RE.match(value):
        raise ValueError("Commit must be a 7-40 character git hash")
    return value.lower()
