"""
Audit Module - Black Box Interface

Purpose: Keep an append-only trail of every command decision
Interface: AuditRecorder.record(), AuditRecord, AuditSink
Hidden: Sink fan-out, Redis list layout, failure isolation

Can be replaced with any sink (SIEM forwarder, database) implementing AuditSink.
"""

from .audit import (
    AUDIT_LIST_KEY,
    AuditRecord,
    AuditRecorder,
    AuditSink,
    LoggingAuditSink,
    RedisAuditSink,
)

__all__ = [
    "AUDIT_LIST_KEY",
    "AuditRecord",
    "AuditRecorder",
    "AuditSink",
    "LoggingAuditSink",
    "RedisAuditSink",
]
