"""
AuditHub - Routers Package

FastAPI route handlers.

Routers:
- scopes: Audit requests and the approval workflow
- companies: Company management
- users: User registration and management
- audits: Audit reports and issues
- comments: Comments on audits and issues
"""

from audithub.routers import (
    scopes,
    companies,
    users,
    audits,
    comments,
)

__all__ = [
    "scopes",
    "companies",
    "users",
    "audits",
    "comments",
]
