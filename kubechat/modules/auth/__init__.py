"""
Auth Module - Black Box Interface

Purpose: Resolve the identity behind an API request
Interface: AuthModule.resolve_identity(), AuthModule.verify_api_key()
Hidden: Key table parsing, identity derivation, auth audit trail
"""

from .auth import AuthModule

__all__ = ["AuthModule"]
