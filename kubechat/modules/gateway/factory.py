"""
Gateway Factory following Black Box Design principles.

This factory:
- Constructs the command pipeline and its collaborators from configuration
- Wires dependencies together
- Returns a Services bundle the HTTP layer drives
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional

import redis.asyncio as redis

from kubechat.config.provider import APIConfig, ClusterConfig, ConfigProvider
from kubechat.modules.audit import AUDIT_LIST_KEY, AuditRecorder, LoggingAuditSink, RedisAuditSink
from kubechat.modules.auth import AuthModule
from kubechat.modules.authz import (
    AuthorizationOracle,
    KubernetesAccessReviewAuthority,
    PermissionAuthority,
)
from kubechat.modules.config import ConfigModule
from kubechat.modules.executor import ExecutionDispatcher
from kubechat.modules.health import HealthSnapshotCache
from kubechat.modules.kube import KubeClient
from kubechat.modules.ratelimit import RateLimiter
from kubechat.modules.security import SecurityValidator

from .gateway import CommandGateway

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Everything the HTTP layer needs, built once per application."""

    gateway: CommandGateway
    rate_limiter: RateLimiter
    health_cache: HealthSnapshotCache
    auth: AuthModule
    cluster: ClusterConfig
    api_config: APIConfig
    command_timeout: float
    max_command_length: int
    kube_client: Any = None
    redis_client: Any = None

    def start(self) -> None:
        self.rate_limiter.start()

    async def aclose(self) -> None:
        self.rate_limiter.stop()
        if self.redis_client is not None:
            await self.redis_client.aclose()
        if self.kube_client is not None:
            self.kube_client.close()


def create_redis_client(config: ConfigModule) -> redis.Redis:
    """Create Redis client from configuration."""
    # Build basic Redis URL without password (password passed separately)
    redis_url = f"redis://{config.get('redis_host')}:{config.get('redis_port')}/{config.get('redis_db')}"

    return redis.from_url(
        redis_url,
        password=config.get("redis_password"),
        encoding="utf-8",
        decode_responses=True,
    )


class GatewayFactory:
    """
    Factory for building the command gateway.

    This is the composition root that:
    - Creates all pipeline components
    - Wires them together via dependency injection
    - Accepts ready-made collaborators so tests can swap the cluster out
    """

    @staticmethod
    def build(
        config: ConfigModule,
        config_provider: ConfigProvider,
        kube_client: Optional[Any] = None,
        redis_client: Optional[Any] = None,
        authority: Optional[PermissionAuthority] = None,
    ) -> Services:
        """
        Build the complete gateway stack.

        Args:
            config: Scalar runtime settings
            config_provider: Typed API, auth and cluster configuration
            kube_client: Cluster client (built from the cluster config if omitted)
            redis_client: Redis client for the audit trail (built if enabled and omitted)
            authority: Permission authority (cluster access review if omitted)

        Returns:
            Services bundle
        """
        api_config = config_provider.get_api_config()
        auth_config = config_provider.get_auth_config()
        cluster = config_provider.get_cluster_config(config.get("clusters_config"))
        logger.info(f"Building gateway for cluster {cluster.name}")

        if kube_client is None:
            kube_client = KubeClient.from_cluster_config(cluster)

        sinks = [LoggingAuditSink()]
        if config.get("audit_redis_enabled"):
            if redis_client is None:
                redis_client = create_redis_client(config)
            sinks.append(
                RedisAuditSink(
                    redis_client,
                    key=AUDIT_LIST_KEY,
                    max_entries=config.get("audit_max_entries", 10000),
                )
            )
            logger.info("Audit records mirrored to Redis")

        if authority is None:
            authority = KubernetesAccessReviewAuthority(kube_client, mode=config.get("authz_mode"))

        validator = SecurityValidator(
            allowed_verbs=cluster.allowed_commands or None,
            read_only=cluster.read_only,
        )
        gateway = CommandGateway(
            validator=validator,
            oracle=AuthorizationOracle(authority),
            dispatcher=ExecutionDispatcher(kube_client),
            recorder=AuditRecorder(sinks),
            cluster_name=cluster.name,
            default_timeout=config.get("command_timeout"),
        )

        return Services(
            gateway=gateway,
            rate_limiter=RateLimiter(
                limit=config.get("rate_limit"),
                window_seconds=config.get("rate_limit_window"),
            ),
            health_cache=HealthSnapshotCache(
                kube_client,
                cluster.name,
                ttl_seconds=config.get("health_cache_ttl"),
            ),
            auth=AuthModule(
                auth_config.api_keys,
                require_auth=auth_config.require_auth,
                redis_client=redis_client,
            ),
            cluster=cluster,
            api_config=api_config,
            command_timeout=config.get("command_timeout"),
            max_command_length=config.get("max_command_length"),
            kube_client=kube_client,
            redis_client=redis_client,
        )
