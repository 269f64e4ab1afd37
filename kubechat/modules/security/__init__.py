"""
Security Module - Black Box Interface

Purpose: Decide whether a command may proceed to authorization
Interface: SecurityValidator.validate() -> SecurityVerdict
Hidden: Injection pattern, verb lists, resource-name whitelist

Can be replaced with a policy engine, as long as it stays fail-closed.
"""

from .validator import DenialReason, SecurityValidator, SecurityVerdict

__all__ = ["DenialReason", "SecurityValidator", "SecurityVerdict"]
