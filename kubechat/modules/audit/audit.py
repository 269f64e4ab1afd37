"""
Audit recording for command decisions.

One AuditRecord is written per command request, whichever stage decided
it. Records fan out to every configured sink. A failing sink never
reaches the request path; the failure is reported on its own logger.
"""

import json
import logging
from dataclasses import asdict, dataclass
from datetime import UTC, datetime
from typing import Any, Dict, Iterable, Optional, Protocol

from kubechat.logging_config import AUDIT_ERROR_LOGGER, AUDIT_LOGGER

audit_logger = logging.getLogger(AUDIT_LOGGER)
audit_error_logger = logging.getLogger(AUDIT_ERROR_LOGGER)

AUDIT_LIST_KEY = "audit:commands"
MAX_DETAIL_LENGTH = 2000


@dataclass(frozen=True)
class AuditRecord:
    """Immutable record of one command decision."""

    timestamp: datetime
    identity: str
    cluster: str
    command: str
    success: bool
    detail: str

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["timestamp"] = self.timestamp.isoformat()
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


class AuditSink(Protocol):
    """Destination for audit records. Best-effort, non-transactional."""

    async def write(self, record: AuditRecord) -> None:
        ...


class LoggingAuditSink:
    """Writes records as JSON lines on the audit logger."""

    def __init__(self, log: Optional[logging.Logger] = None):
        self.log = log or audit_logger

    async def write(self, record: AuditRecord) -> None:
        self.log.info(record.to_json())


class RedisAuditSink:
    """Keeps the most recent records in a Redis list."""

    def __init__(self, redis_client, key: str = AUDIT_LIST_KEY, max_entries: int = 10000):
        """
        Initialize Redis sink.

        Args:
            redis_client: Async Redis client
            key: List key holding the audit trail
            max_entries: Number of newest records to keep
        """
        self.redis = redis_client
        self.key = key
        self.max_entries = max_entries

    async def write(self, record: AuditRecord) -> None:
        await self.redis.lpush(self.key, record.to_json())
        await self.redis.ltrim(self.key, 0, self.max_entries - 1)


class AuditRecorder:
    """Fans audit records out to sinks without ever raising."""

    def __init__(self, sinks: Iterable[AuditSink]):
        self.sinks = list(sinks)
        self.failures = 0

    async def record(
        self,
        identity: str,
        cluster: str,
        command: str,
        success: bool,
        detail: str,
        timestamp: Optional[datetime] = None,
    ) -> AuditRecord:
        """
        Record a command decision.

        Returns:
            The AuditRecord that was written (or attempted)
        """
        if len(detail) > MAX_DETAIL_LENGTH:
            detail = detail[:MAX_DETAIL_LENGTH] + "...(truncated)"

        entry = AuditRecord(
            timestamp=timestamp or datetime.now(UTC),
            identity=identity,
            cluster=cluster,
            command=command,
            success=success,
            detail=detail,
        )

        for sink in self.sinks:
            try:
                await sink.write(entry)
            except Exception as e:
                self.failures += 1
                audit_error_logger.error(
                    f"Audit sink {type(sink).__name__} failed: {e}; record={entry.to_json()}"
                )

        return entry
