"""
Executor Module - Black Box Interface

Purpose: Carry out authorized commands against the cluster
Interface: ExecutionDispatcher.execute() -> TableOutput | TextOutput
Hidden: Dispatch table, object rendering, cluster error mapping

Can be replaced with different execution mechanisms (kubectl subprocess, remote agents).
"""

from .dispatcher import (
    CommandOutput,
    ExecutionDispatcher,
    ExecutionError,
    ExecutionErrorKind,
    TableOutput,
    TextOutput,
)

__all__ = [
    "CommandOutput",
    "ExecutionDispatcher",
    "ExecutionError",
    "ExecutionErrorKind",
    "TableOutput",
    "TextOutput",
]
