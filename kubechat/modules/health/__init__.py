"""
Health Module - Black Box Interface

Purpose: Serve a cached summary of cluster health
Interface: HealthSnapshotCache.get() -> HealthSnapshot
Hidden: Probes, node readiness counting, scheduler lookup, single-flight refresh

Can be replaced with a push-based collector without affecting callers.
"""

from .health import HealthSnapshot, HealthSnapshotCache

__all__ = ["HealthSnapshot", "HealthSnapshotCache"]
