"""
Logging configuration: health check suppression and a dedicated audit channel
"""

import logging
import logging.config
from typing import Any, Dict

AUDIT_LOGGER = "kubechat.audit"
AUDIT_ERROR_LOGGER = "kubechat.audit.errors"


class HealthCheckFilter(logging.Filter):
    """Filter to suppress health check endpoint logs."""

    def filter(self, record: logging.LogRecord) -> bool:
        """Filter out liveness probes from uvicorn access logs."""
        if record.name == "uvicorn.access":
            message = record.getMessage()
            if "/healthz" in message and "GET" in message:
                return False
        return True


def get_logging_config(level: str = "INFO") -> Dict[str, Any]:
    """Get logging configuration with health check suppression."""
    level = level.upper()
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {
            "health_check_filter": {
                "()": HealthCheckFilter
            }
        },
        "formatters": {
            "default": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
            },
            "access": {
                "format": "%(message)s"
            },
            "audit": {
                "format": "%(asctime)s - AUDIT - %(message)s"
            },
        },
        "handlers": {
            "default": {
                "class": "logging.StreamHandler",
                "formatter": "default",
                "stream": "ext://sys.stdout"
            },
            "access": {
                "class": "logging.StreamHandler",
                "formatter": "access",
                "stream": "ext://sys.stdout",
                "filters": ["health_check_filter"]
            },
            "audit": {
                "class": "logging.StreamHandler",
                "formatter": "audit",
                "stream": "ext://sys.stdout"
            },
            "audit_errors": {
                "class": "logging.StreamHandler",
                "formatter": "default",
                "stream": "ext://sys.stderr"
            },
        },
        "loggers": {
            "uvicorn": {
                "handlers": ["default"],
                "level": "INFO",
                "propagate": False
            },
            "uvicorn.error": {
                "handlers": ["default"],
                "level": "INFO",
                "propagate": False
            },
            "uvicorn.access": {
                "handlers": ["access"],
                "level": "INFO",
                "propagate": False
            },
            "kubechat": {
                "handlers": ["default"],
                "level": level,
                "propagate": False
            },
            AUDIT_LOGGER: {
                "handlers": ["audit"],
                "level": "INFO",
                "propagate": False
            },
            AUDIT_ERROR_LOGGER: {
                "handlers": ["audit_errors"],
                "level": "WARNING",
                "propagate": False
            },
        },
        "root": {
            "level": level,
            "handlers": ["default"]
        }
    }
