"""
Cluster health snapshot cache.

Keeps exactly one snapshot. A read within the TTL returns it unchanged;
a stale read recomputes it while holding the cache lock, so concurrent
readers wait for that single recompute instead of starting their own.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Callable, Dict, Optional

from kubechat.modules.kube import ClusterError

logger = logging.getLogger(__name__)

SCHEDULER_NAMESPACE = "kube-system"
SCHEDULER_LABEL = ("component", "kube-scheduler")


@dataclass(frozen=True)
class HealthSnapshot:
    """Point-in-time summary of cluster health."""

    cluster: str
    healthy: bool
    nodes_total: int
    nodes_ready: int
    system_components: Dict[str, str] = field(default_factory=dict)
    pods_total: Optional[int] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cluster": self.cluster,
            "healthy": self.healthy,
            "nodes": {"total": self.nodes_total, "ready": self.nodes_ready},
            "system_components": dict(self.system_components),
            "pods_total": self.pods_total,
            "timestamp": self.timestamp.isoformat(),
        }


def node_is_ready(node: Any) -> bool:
    conditions = getattr(getattr(node, "status", None), "conditions", None) or []
    return any(c.type == "Ready" and c.status == "True" for c in conditions)


class HealthSnapshotCache:
    """TTL-bounded, single-flight cache of the cluster health snapshot."""

    def __init__(
        self,
        kube_client,
        cluster_name: str,
        ttl_seconds: float = 30.0,
        probe_timeout: Optional[float] = 10.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize cache.

        Args:
            kube_client: KubeClient (or any object with the same coroutines)
            cluster_name: Name reported in snapshots
            ttl_seconds: Snapshot lifetime
            probe_timeout: Per-call timeout for the cluster probes
            clock: Monotonic time source (injectable for tests)
        """
        self.kube = kube_client
        self.cluster_name = cluster_name
        self.ttl_seconds = ttl_seconds
        self.probe_timeout = probe_timeout
        self._clock = clock
        self._lock = asyncio.Lock()
        self._snapshot: Optional[HealthSnapshot] = None
        self._taken_at: float = 0.0
        self.recomputes = 0

    async def get(self) -> HealthSnapshot:
        """Return the live snapshot, recomputing it first if it is stale."""
        async with self._lock:
            if self._snapshot is not None and self._clock() - self._taken_at < self.ttl_seconds:
                return self._snapshot

            snapshot = await self._compute()
            self._snapshot = snapshot
            self._taken_at = self._clock()
            return snapshot

    async def _compute(self) -> HealthSnapshot:
        self.recomputes += 1
        healthy = True
        components = {"api_server": "unknown", "scheduler": "unknown"}

        try:
            await self.kube.health_check(timeout=self.probe_timeout)
            components["api_server"] = "ok"
        except ClusterError as e:
            logger.warning(f"API server unreachable for cluster {self.cluster_name}: {e}")
            components["api_server"] = "unreachable"
            healthy = False

        nodes_total = nodes_ready = 0
        try:
            nodes = await self.kube.list_nodes(timeout=self.probe_timeout)
            nodes_total = len(nodes)
            nodes_ready = sum(1 for node in nodes if node_is_ready(node))
            if nodes_ready < nodes_total:
                healthy = False
        except ClusterError as e:
            logger.warning(f"Failed to list nodes for cluster {self.cluster_name}: {e}")

        pods_total = None
        try:
            pods = await self.kube.list_pods("", timeout=self.probe_timeout)
            pods_total = len(pods)
            components["scheduler"] = self._scheduler_status(pods)
        except ClusterError as e:
            logger.warning(f"Failed to list pods for cluster {self.cluster_name}: {e}")

        snapshot = HealthSnapshot(
            cluster=self.cluster_name,
            healthy=healthy,
            nodes_total=nodes_total,
            nodes_ready=nodes_ready,
            system_components=components,
            pods_total=pods_total,
        )
        logger.info(
            f"Health snapshot for {self.cluster_name}: healthy={healthy} "
            f"nodes={nodes_ready}/{nodes_total} components={components}"
        )
        return snapshot

    @staticmethod
    def _scheduler_status(pods) -> str:
        key, value = SCHEDULER_LABEL
        status = "unknown"
        for pod in pods:
            metadata = pod.metadata
            if metadata.namespace != SCHEDULER_NAMESPACE:
                continue
            if (metadata.labels or {}).get(key) != value:
                continue
            phase = getattr(pod.status, "phase", None) or "Unknown"
            status = "ok" if phase == "Running" else phase
        return status
