"""Typed configuration providers."""

from .provider import (
    APIConfig,
    AuthConfig,
    ClusterConfig,
    ConfigProvider,
    EnvConfigProvider,
    load_clusters,
)

__all__ = [
    "APIConfig",
    "AuthConfig",
    "ClusterConfig",
    "ConfigProvider",
    "EnvConfigProvider",
    "load_clusters",
]
