"""
Config Module - Black Box Interface

Purpose: Application configuration management
Interface: get_config(), reset_config(), ConfigModule.get()
Hidden: Config sources, validation logic, environment parsing

Can be replaced with different config systems (Consul, etcd, AWS Parameter Store).
"""

import os
from typing import Any, Dict


# Configuration Contract: Required and Optional Keys
# This defines the black box interface - what the config module guarantees to provide

REQUIRED_CONFIG_KEYS = {
    "host": "API server bind address",
    "port": "API server port",
    "log_level": "Logging level (DEBUG, INFO, WARNING, ERROR)",
    "rate_limit": "Maximum admitted requests per identity per window",
    "rate_limit_window": "Rate limit sliding window in seconds",
    "health_cache_ttl": "Cluster health snapshot time-to-live in seconds",
    "command_timeout": "Default per-request budget for authorization and dispatch, in seconds",
    "max_command_length": "Maximum accepted command length in characters",
    "clusters_config": "Path to the YAML cluster definitions",
    "authz_mode": "Access review flavour: 'self' or 'subject'",
}

OPTIONAL_CONFIG_KEYS = {
    "redis_host": {
        "description": "Redis server hostname for the audit trail",
        "default": "localhost",
    },
    "redis_port": {
        "description": "Redis server port number",
        "default": 6379,
    },
    "redis_db": {
        "description": "Redis database number",
        "default": 0,
    },
    "redis_password": {
        "description": "Redis authentication password",
        "default": None,
    },
    "audit_redis_enabled": {
        "description": "Mirror audit records into a Redis list",
        "default": True,
    },
    "audit_max_entries": {
        "description": "Number of audit records kept in the Redis list",
        "default": 10000,
    },
    "debug": {
        "description": "Enable debug mode",
        "default": False,
    },
}

AUTHZ_MODES = ("self", "subject")


class ConfigModule:
    """Configuration management module."""

    def __init__(self):
        """Initialize with environment variables."""
        self._config = self._load_from_env()
        self._validate_required_keys()

    def _validate_required_keys(self) -> None:
        """
        Validate that all required configuration keys are present.

        Raises:
            ValueError: If required keys are missing or malformed
        """
        missing_keys = []
        for key in REQUIRED_CONFIG_KEYS:
            if key not in self._config or self._config[key] is None:
                missing_keys.append(key)

        if missing_keys:
            raise ValueError(
                f"Missing required configuration keys: {', '.join(missing_keys)}. "
                f"Check environment variables and deployment configuration."
            )

        if self._config["authz_mode"] not in AUTHZ_MODES:
            raise ValueError(
                f"Invalid AUTHZ_MODE '{self._config['authz_mode']}', expected one of {AUTHZ_MODES}"
            )

        for key in ("rate_limit", "rate_limit_window", "command_timeout", "max_command_length"):
            if self._config[key] <= 0:
                raise ValueError(f"Configuration key '{key}' must be positive")

    def _load_from_env(self) -> Dict[str, Any]:
        """Load configuration from environment."""
        # Parse Redis port (might be in tcp://host:port format from K8s)
        redis_port_env = os.getenv("REDIS_PORT", "6379")
        if redis_port_env.startswith("tcp://"):
            redis_port = int(redis_port_env.split(":")[-1])
        else:
            redis_port = int(redis_port_env)

        return {
            # API settings
            "host": os.getenv("API_HOST", "0.0.0.0"),
            "port": int(os.getenv("API_PORT", "8080")),
            "log_level": os.getenv("LOG_LEVEL", "INFO"),
            "debug": os.getenv("DEBUG", "false").lower() == "true",
            # Gateway settings
            "rate_limit": int(os.getenv("RATE_LIMIT", "10")),
            "rate_limit_window": float(os.getenv("RATE_LIMIT_WINDOW", "60")),
            "health_cache_ttl": float(os.getenv("HEALTH_CACHE_TTL", "30")),
            "command_timeout": float(os.getenv("COMMAND_TIMEOUT", "30")),
            "max_command_length": int(os.getenv("MAX_COMMAND_LENGTH", "500")),
            "clusters_config": os.getenv("CLUSTERS_CONFIG", "config/default.yaml"),
            "authz_mode": os.getenv("AUTHZ_MODE", "self").lower(),
            # Audit trail settings
            "redis_host": os.getenv("REDIS_HOST", "localhost"),
            "redis_port": redis_port,
            "redis_db": int(os.getenv("REDIS_DB", "0")),
            "redis_password": os.getenv("REDIS_PASSWORD"),
            "audit_redis_enabled": os.getenv("AUDIT_REDIS_ENABLED", "true").lower() == "true",
            "audit_max_entries": int(os.getenv("AUDIT_MAX_ENTRIES", "10000")),
        }

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value."""
        return self._config.get(key, default)

    @staticmethod
    def get_config_schema() -> Dict[str, Any]:
        """
        Get the configuration schema (contract) for this module.

        Returns:
            Dictionary with 'required' and 'optional' key specifications

        Example:
            >>> schema = ConfigModule.get_config_schema()
            >>> print(schema['required']['rate_limit'])
            'Maximum admitted requests per identity per window'
        """
        return {
            "required": REQUIRED_CONFIG_KEYS.copy(),
            "optional": OPTIONAL_CONFIG_KEYS.copy(),
        }


# Singleton instance
_instance = None


def get_config() -> ConfigModule:
    """Get the configuration module singleton."""
    global _instance
    if _instance is None:
        _instance = ConfigModule()
    return _instance


def reset_config() -> None:
    """Drop the cached configuration so the next get_config() re-reads the environment."""
    global _instance
    _instance = None


__all__ = ["get_config", "reset_config", "ConfigModule", "AUTHZ_MODES"]
