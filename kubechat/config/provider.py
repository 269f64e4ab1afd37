"""Configuration provider following Black Box Design principles."""
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Protocol

import yaml

logger = logging.getLogger(__name__)

PREFERRED_CLUSTER = "dev-cluster"


@dataclass
class APIConfig:
    """API configuration."""
    port: int
    host: str
    debug: bool
    cors_origins: List[str]


@dataclass
class AuthConfig:
    """Authentication configuration."""
    require_auth: bool
    api_keys: List[str]


@dataclass
class ClusterConfig:
    """A cluster the gateway fronts."""
    name: str
    kubeconfig: Optional[str] = None
    allowed_commands: List[str] = field(default_factory=list)
    read_only: bool = False

    @property
    def in_cluster(self) -> bool:
        """True when credentials come from the pod's service account."""
        return not self.kubeconfig


class ConfigProvider(Protocol):
    """Protocol for configuration providers."""

    def get_api_config(self) -> APIConfig:
        """Get API configuration."""
        ...

    def get_auth_config(self) -> AuthConfig:
        """Get authentication configuration."""
        ...

    def get_cluster_config(self, path: str) -> ClusterConfig:
        """Get the cluster this gateway serves."""
        ...


def load_clusters(path: str) -> List[ClusterConfig]:
    """
    Load cluster definitions from a YAML file.

    Expected layout::

        clusters:
          - name: dev-cluster
            kubeconfig: /etc/kubechat/kubeconfig.yaml
            allowed_commands: [get, describe, logs]
            read_only: true

    Raises:
        ValueError: If the document is not shaped like the layout above
    """
    with open(path, "r") as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict) or not isinstance(data.get("clusters", []), list):
        raise ValueError(f"Invalid cluster configuration in {path}: expected a 'clusters' list")

    clusters = []
    for entry in data.get("clusters", []):
        if not isinstance(entry, dict) or not entry.get("name"):
            raise ValueError(f"Invalid cluster entry in {path}: {entry!r}")
        clusters.append(
            ClusterConfig(
                name=str(entry["name"]),
                kubeconfig=entry.get("kubeconfig") or None,
                allowed_commands=[str(c).lower() for c in entry.get("allowed_commands") or []],
                read_only=bool(entry.get("read_only", False)),
            )
        )
    return clusters


class EnvConfigProvider:
    """Environment-based configuration provider."""

    def get_api_config(self) -> APIConfig:
        """Get API configuration from environment variables."""
        return APIConfig(
            port=int(os.getenv("API_PORT", "8080")),
            host=os.getenv("API_HOST", "0.0.0.0"),
            debug=os.getenv("API_DEBUG", "false").lower() == "true",
            cors_origins=os.getenv("CORS_ORIGINS", "*").split(",")
        )

    def get_auth_config(self) -> AuthConfig:
        """Get authentication configuration from environment variables."""
        require_auth = os.getenv("REQUIRE_AUTH", "true").lower() == "true"

        api_keys_env = os.getenv("API_KEYS", "")
        if require_auth and not api_keys_env.strip():
            raise ValueError(
                "API_KEYS environment variable is required when REQUIRE_AUTH is true "
                "(format: service:key,service:key). Example: operator:your-generated-key"
            )

        return AuthConfig(
            require_auth=require_auth,
            api_keys=[key.strip() for key in api_keys_env.split(",") if key.strip()]
        )

    def get_cluster_config(self, path: str) -> ClusterConfig:
        """
        Pick the cluster to serve from the YAML definitions.

        Prefers 'dev-cluster' when present, otherwise the first entry. Without a
        config file, falls back to in-cluster credentials named by CLUSTER_NAME.
        """
        if not Path(path).exists():
            name = os.getenv("CLUSTER_NAME", "in-cluster")
            logger.warning(f"Cluster config not found: {path}, using in-cluster credentials as '{name}'")
            return ClusterConfig(name=name, kubeconfig=os.getenv("KUBECONFIG") or None)

        clusters = load_clusters(path)
        if not clusters:
            raise ValueError(f"No clusters found in {path}")

        for cluster in clusters:
            if cluster.name == PREFERRED_CLUSTER:
                return cluster
        return clusters[0]
