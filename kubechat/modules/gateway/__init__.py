"""
Gateway Module - Black Box Interface

Purpose: Run command requests through the fail-closed pipeline
Interface: CommandGateway.submit(), GatewayFactory.build()
Hidden: Stage ordering, timeout budget, audit bookkeeping

Every request yields exactly one audit record, whichever stage ends it.
"""

from .factory import GatewayFactory, Services, create_redis_client
from .gateway import DRY_RUN_MESSAGE, CommandGateway, CommandOutcome, FailureKind

__all__ = [
    "DRY_RUN_MESSAGE",
    "CommandGateway",
    "CommandOutcome",
    "FailureKind",
    "GatewayFactory",
    "Services",
    "create_redis_client",
]
