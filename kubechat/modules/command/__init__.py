"""
Command Module - Black Box Interface

Purpose: Turn raw command text into a structured command
Interface: parse_command(), CommandRequest, ParsedCommand
Hidden: Tokenisation, namespace and resource-name resolution

Can be replaced with a full kubectl argument grammar without affecting policy modules.
"""

from .parser import (
    ALL_NAMESPACES,
    DEFAULT_NAMESPACE,
    CommandRequest,
    CommandSyntaxError,
    ParsedCommand,
    normalize_resource,
    parse_command,
)

__all__ = [
    "ALL_NAMESPACES",
    "DEFAULT_NAMESPACE",
    "CommandRequest",
    "CommandSyntaxError",
    "ParsedCommand",
    "normalize_resource",
    "parse_command",
]
