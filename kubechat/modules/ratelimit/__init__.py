"""
Rate Limit Module - Black Box Interface

Purpose: Outermost admission gate, per caller identity
Interface: admit(), sweep(), start(), stop()
Hidden: Sliding-window bookkeeping, background sweep thread

Can be replaced with a shared store (Redis sorted sets) for multi-replica deployments.
"""

from .ratelimit import RateLimiter

__all__ = ["RateLimiter"]
