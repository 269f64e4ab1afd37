"""
Authorization Module - Black Box Interface

Purpose: Ask an external permission authority about a command's tuple
Interface: AuthorizationOracle.authorize() -> AuthorizationDecision
Hidden: Access review calls, timeout handling, fail-closed error mapping

Can be replaced with any PermissionAuthority (OPA, a policy service, a static table).
"""

from .oracle import (
    AuthorityVerdict,
    AuthorizationDecision,
    AuthorizationOracle,
    KubernetesAccessReviewAuthority,
    PermissionAuthority,
)

__all__ = [
    "AuthorityVerdict",
    "AuthorizationDecision",
    "AuthorizationOracle",
    "KubernetesAccessReviewAuthority",
    "PermissionAuthority",
]
