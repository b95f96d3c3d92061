"""
AuditHub - Services Package

Business logic services.
"""

from audithub.services.scope_workflow import (
    SCOPE_TRANSITIONS,
    ScopeWorkflowService,
    ensure_transition,
)
from audithub.services.company_service import CompanyService
from audithub.services.user_service import UserService
from audithub.services.audit_service import AuditService
from audithub.services.comment_service import CommentService
from audithub.services.signature_service import (
    SignatureVerifier,
    StarknetSignatureVerifier,
)

__all__ = [
    "SCOPE_TRANSITIONS",
    "ScopeWorkflowService",
    "ensure_transition",
    "CompanyService",
    "UserService",
    "AuditService",
    "CommentService",
    "SignatureVerifier",
    "StarknetSignatureVerifier",
]
