"""
API Module - Black Box Interface

Purpose: HTTP request and response shapes
Interface: Pydantic models used by kubechat.main
Hidden: Field validation details

The API module only orchestrates - it contains no business logic.
All logic is delegated to appropriate modules.
"""

from .models import (
    CommandResponse,
    ErrorCode,
    ErrorResponse,
    ExecuteCommandRequest,
    HealthResponse,
    NodeCounts,
)

__all__ = [
    "CommandResponse",
    "ErrorCode",
    "ErrorResponse",
    "ExecuteCommandRequest",
    "HealthResponse",
    "NodeCounts",
]
