"""Rendering helpers for cluster objects."""

from datetime import UTC, datetime
from typing import Any, Dict, List, Optional


def format_age(created: Optional[datetime], now: Optional[datetime] = None) -> str:
    """Render an object's age the way kubectl does: 45s, 12m, 5h, 3d."""
    if created is None:
        return "<unknown>"
    now = now or datetime.now(UTC)
    if created.tzinfo is None:
        created = created.replace(tzinfo=UTC)

    seconds = max(0, int((now - created).total_seconds()))
    if seconds < 120:
        return f"{seconds}s"
    minutes = seconds // 60
    if minutes < 120:
        return f"{minutes}m"
    hours = minutes // 60
    if hours < 48:
        return f"{hours}h"
    return f"{hours // 24}d"


def container_statuses(pod: Any) -> List[Any]:
    status = getattr(pod, "status", None)
    return list(getattr(status, "container_statuses", None) or [])


def pod_ready(pod: Any) -> str:
    statuses = container_statuses(pod)
    ready = sum(1 for cs in statuses if cs.ready)
    return f"{ready}/{len(statuses)}"


def pod_restarts(pod: Any) -> int:
    """Restart count of the first container."""
    statuses = container_statuses(pod)
    if not statuses:
        return 0
    return statuses[0].restart_count or 0


def pod_phase(pod: Any) -> str:
    status = getattr(pod, "status", None)
    return getattr(status, "phase", None) or "Unknown"


def format_selector(match_labels: Optional[Dict[str, str]]) -> str:
    if not match_labels:
        return "<none>"
    return ",".join(f"{k}={v}" for k, v in sorted(match_labels.items()))


def format_time(value: Optional[datetime]) -> str:
    if value is None:
        return "<none>"
    return value.isoformat()
