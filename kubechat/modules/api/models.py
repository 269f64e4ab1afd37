"""
kubechat API data models.

These models define the request and response bodies of the HTTP surface.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator


class ErrorCode(str, Enum):
    """Machine-readable error codes returned to API callers."""

    INVALID_INPUT = "ERR_INVALID_INPUT"
    COMMAND_TOO_LONG = "ERR_COMMAND_TOO_LONG"
    UNAUTHORIZED = "ERR_UNAUTHORIZED"
    RATE_LIMIT = "ERR_RATE_LIMIT"
    INVALID_SYNTAX = "ERR_INVALID_SYNTAX"
    KUBECTL_VALIDATION = "ERR_KUBECTL_VALIDATION"
    RBAC_DENIED = "ERR_RBAC_DENIED"
    EXECUTION = "ERR_EXECUTION"
    SERVICE_UNAVAILABLE = "ERR_SERVICE_UNAVAILABLE"
    INTERNAL = "ERR_INTERNAL"


# Request Models (API Input)


class ExecuteCommandRequest(BaseModel):
    """Request to validate and run a kubectl command."""

    command: str = Field(..., description="kubectl command line", min_length=1)
    dry_run: bool = Field(default=False, description="Validate without touching the cluster")

    @field_validator("command")
    @classmethod
    def validate_command(cls, v):
        """Reject blank commands; length limits are enforced by the route."""
        v = v.strip()
        if not v:
            raise ValueError("command must not be blank")
        return v


# Response Models (API Output)


class CommandResponse(BaseModel):
    """Outcome of a command request."""

    success: bool
    output: Optional[str] = None
    error: Optional[str] = None
    code: Optional[ErrorCode] = None
    details: Optional[str] = None
    cluster: str
    executed_at: datetime
    dry_run: bool = False
    request_id: Optional[str] = None


class NodeCounts(BaseModel):
    """Node readiness counts."""

    total: int
    ready: int


class HealthResponse(BaseModel):
    """Cached cluster health snapshot."""

    cluster: str
    healthy: bool
    nodes: NodeCounts
    system_components: Dict[str, str] = Field(default_factory=dict)
    pods_total: Optional[int] = None
    timestamp: datetime


class ErrorResponse(BaseModel):
    """Error envelope for requests rejected before the command pipeline."""

    error: str
    code: ErrorCode
    details: Optional[Any] = None
    request_id: Optional[str] = None
