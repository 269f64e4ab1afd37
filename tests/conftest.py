"""
Shared pytest fixtures for kubechat tests.

This module provides common fixtures including:
- FakeKubeClient: In-memory stand-in for KubeClient with call recording
- FakeAuthority: Scriptable permission authority
- MemoryAuditSink: Collects audit records for assertions
- Redis mocks for the audit trail
"""

import asyncio
import os
import sys
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple
from unittest.mock import AsyncMock

import pytest

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from kubechat.config.provider import APIConfig, AuthConfig, ClusterConfig
from kubechat.modules.audit import AuditRecorder
from kubechat.modules.authz import AuthorityVerdict, AuthorizationOracle
from kubechat.modules.executor import ExecutionDispatcher
from kubechat.modules.gateway import CommandGateway
from kubechat.modules.kube import ClusterError
from kubechat.modules.security import SecurityValidator

from fixtures.cluster_objects import NOW


# =============================================================================
# Cluster Fakes
# =============================================================================


@dataclass
class KubeCall:
    """Record of a cluster call made during testing."""
    method: str
    args: Tuple[Any, ...]
    timeout: Optional[float] = None


class FakeKubeClient:
    """
    In-memory cluster client with the same coroutine surface as KubeClient.

    Usage:
        def test_listing(fake_kube):
            fake_kube.pods = [make_pod("web-1")]
            fake_kube.fail("list_pods", ClusterError(ClusterError.FORBIDDEN, "nope"))
    """

    def __init__(self):
        self.pods: List[Any] = []
        self.config_maps: List[Any] = []
        self.nodes: List[Any] = []
        self.deployments: Dict[Tuple[str, str], Any] = {}
        self.logs: Dict[Tuple[str, str], str] = {}
        self.access: Tuple[bool, str] = (True, "")
        self.delay: float = 0.0
        self.calls: List[KubeCall] = []
        self.closed = False
        self._errors: Dict[str, Exception] = {}

    def fail(self, method: str, error: Exception) -> "FakeKubeClient":
        self._errors[method] = error
        return self

    async def _record(self, method: str, *args: Any, timeout: Optional[float] = None) -> None:
        self.calls.append(KubeCall(method, args, timeout))
        if self.delay:
            await asyncio.sleep(self.delay)
        if method in self._errors:
            raise self._errors[method]

    def called(self, method: str) -> List[KubeCall]:
        return [c for c in self.calls if c.method == method]

    async def health_check(self, timeout=None):
        await self._record("health_check", timeout=timeout)

    async def list_pods(self, namespace, timeout=None):
        await self._record("list_pods", namespace, timeout=timeout)
        if namespace == "":
            return list(self.pods)
        return [p for p in self.pods if p.metadata.namespace == namespace]

    async def list_config_maps(self, namespace, timeout=None):
        await self._record("list_config_maps", namespace, timeout=timeout)
        if namespace == "":
            return list(self.config_maps)
        return [c for c in self.config_maps if c.metadata.namespace == namespace]

    async def list_nodes(self, timeout=None):
        await self._record("list_nodes", timeout=timeout)
        return list(self.nodes)

    async def read_pod(self, name, namespace, timeout=None):
        await self._record("read_pod", name, namespace, timeout=timeout)
        for pod in self.pods:
            if pod.metadata.name == name and pod.metadata.namespace == namespace:
                return pod
        raise ClusterError(ClusterError.NOT_FOUND, f'pods "{name}" not found', 404)

    async def read_deployment(self, name, namespace, timeout=None):
        await self._record("read_deployment", name, namespace, timeout=timeout)
        try:
            return self.deployments[(namespace, name)]
        except KeyError:
            raise ClusterError(
                ClusterError.NOT_FOUND, f'deployments.apps "{name}" not found', 404
            ) from None

    async def read_pod_log(self, name, namespace, timeout=None):
        await self._record("read_pod_log", name, namespace, timeout=timeout)
        return self.logs.get((namespace, name), "")

    async def scale_deployment(self, name, namespace, replicas, timeout=None):
        await self._record("scale_deployment", name, namespace, replicas, timeout=timeout)

    async def review_access(self, namespace, verb, resource, name, user=None, timeout=None):
        await self._record("review_access", namespace, verb, resource, name, user, timeout=timeout)
        return self.access

    def close(self):
        self.closed = True


class FakeAuthority:
    """Permission authority returning a fixed verdict and recording queries."""

    def __init__(self, allowed: bool = True, reason: str = "", error: Optional[Exception] = None,
                 delay: float = 0.0):
        self.allowed = allowed
        self.reason = reason
        self.error = error
        self.delay = delay
        self.calls: List[Tuple[str, str, str, Optional[str], str]] = []

    async def check(self, namespace, verb, resource, name, identity, timeout=None):
        self.calls.append((namespace, verb, resource, name, identity))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return AuthorityVerdict(allowed=self.allowed, reason=self.reason)


class MemoryAuditSink:
    """Audit sink keeping records in a list."""

    def __init__(self):
        self.records = []

    async def write(self, record):
        self.records.append(record)


class StaticConfigProvider:
    """ConfigProvider returning fixed dataclasses."""

    def __init__(self, cluster: Optional[ClusterConfig] = None, api_keys: Optional[List[str]] = None,
                 require_auth: bool = True):
        self.cluster = cluster or ClusterConfig(name="test-cluster")
        self.api_keys = api_keys if api_keys is not None else ["operator:test-key"]
        self.require_auth = require_auth

    def get_api_config(self) -> APIConfig:
        return APIConfig(port=8080, host="127.0.0.1", debug=False, cors_origins=["*"])

    def get_auth_config(self) -> AuthConfig:
        return AuthConfig(require_auth=self.require_auth, api_keys=list(self.api_keys))

    def get_cluster_config(self, path: str) -> ClusterConfig:
        return self.cluster


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def fake_kube():
    """In-memory cluster client."""
    return FakeKubeClient()


@pytest.fixture
def authority():
    """Permission authority that allows everything."""
    return FakeAuthority()


@pytest.fixture
def audit_sink():
    return MemoryAuditSink()


@pytest.fixture
def gateway(fake_kube, authority, audit_sink):
    """CommandGateway wired to fakes."""
    return CommandGateway(
        validator=SecurityValidator(),
        oracle=AuthorizationOracle(authority),
        dispatcher=ExecutionDispatcher(fake_kube, now=lambda: NOW),
        recorder=AuditRecorder([audit_sink]),
        cluster_name="test-cluster",
        default_timeout=5.0,
    )


@pytest.fixture
def mock_redis():
    """Create a mock Redis client."""
    redis = AsyncMock()
    redis.lpush = AsyncMock()
    redis.ltrim = AsyncMock()
    redis.aclose = AsyncMock()
    return redis


@pytest.fixture
def clean_env(monkeypatch):
    """Strip kubechat settings from the environment and reset the config singleton."""
    from kubechat.modules.config import reset_config

    for key in (
        "API_HOST", "API_PORT", "LOG_LEVEL", "DEBUG", "RATE_LIMIT", "RATE_LIMIT_WINDOW",
        "HEALTH_CACHE_TTL", "COMMAND_TIMEOUT", "MAX_COMMAND_LENGTH", "CLUSTERS_CONFIG",
        "AUTHZ_MODE", "REDIS_HOST", "REDIS_PORT", "REDIS_DB", "REDIS_PASSWORD",
        "AUDIT_REDIS_ENABLED", "AUDIT_MAX_ENTRIES", "API_KEYS", "REQUIRE_AUTH",
        "CLUSTER_NAME", "KUBECONFIG", "CORS_ORIGINS",
    ):
        monkeypatch.delenv(key, raising=False)
    reset_config()
    yield monkeypatch
    reset_config()


# =============================================================================
# Pytest Configuration
# =============================================================================


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: Integration tests requiring infrastructure"
    )
    config.addinivalue_line(
        "markers", "slow: Tests that take a long time to run"
    )
