"""
Caller authentication for the kubechat API.

Resolves the identity a command is issued under. It's designed as a black
box that can be replaced with any auth system without affecting the
gateway pipeline.
"""

import hashlib
import json
import logging
from datetime import UTC, datetime
from typing import Dict, Iterable, Optional, Tuple

logger = logging.getLogger(__name__)

AUTH_AUDIT_KEY = "auth:audit"


class AuthModule:
    """
    Authentication module for API callers.

    API keys come from the API_KEYS table ("service:key" entries). The
    service part is the caller identity; plain keys get an identity
    derived from a hash of the key so the key itself is never recorded.
    """

    def __init__(self, api_keys: Iterable[str], require_auth: bool = True, redis_client=None):
        """
        Initialize auth module.

        Args:
            api_keys: Raw API_KEYS entries, "key" or "service:key"
            require_auth: Reject callers without a valid key
            redis_client: Optional async Redis client for the auth audit trail
        """
        self.require_auth = require_auth
        self.redis = redis_client
        self.api_keys: Dict[str, str] = self._load_api_keys(api_keys)

    @staticmethod
    def _load_api_keys(entries: Iterable[str]) -> Dict[str, str]:
        """Map each key to the identity it authenticates."""
        keys = {}
        for entry in entries:
            entry = entry.strip()
            if not entry:
                continue

            # Check for service:key format
            if ":" in entry:
                service, key = entry.split(":", 1)
                keys[key.strip()] = service.strip()
            else:
                digest = hashlib.sha256(entry.encode("utf-8")).hexdigest()[:12]
                keys[entry] = f"api-key-{digest}"

        return keys

    async def verify_api_key(self, api_key: Optional[str]) -> Tuple[bool, Optional[str]]:
        """
        Verify an API key.

        Args:
            api_key: API key from X-API-Key header

        Returns:
            Tuple of (is_valid, service_identity)
        """
        if not api_key:
            return False, None

        if api_key in self.api_keys:
            return True, self.api_keys[api_key]

        await self._log_event("api_key_rejected", {"key_prefix": api_key[:4]})
        return False, None

    async def resolve_identity(self, api_key: Optional[str], client_address: str) -> Optional[str]:
        """
        Resolve the identity a request runs under.

        Args:
            api_key: X-API-Key header value, if any
            client_address: Remote address of the caller

        Returns:
            Identity string, or None when authentication fails
        """
        is_valid, identity = await self.verify_api_key(api_key)
        if is_valid:
            return identity

        if self.require_auth:
            logger.warning(f"Rejected unauthenticated request from {client_address}")
            return None

        return client_address

    async def _log_event(self, event_type: str, data: dict) -> None:
        """Log a security event on the Redis auth audit trail, if configured."""
        if self.redis is None:
            return

        event = {
            "type": event_type,
            "data": data,
            "timestamp": datetime.now(UTC).isoformat(),
        }
        try:
            await self.redis.lpush(AUTH_AUDIT_KEY, json.dumps(event))
            # Keep last 10000 events
            await self.redis.ltrim(AUTH_AUDIT_KEY, 0, 9999)
        except Exception as e:
            logger.warning(f"Failed to record auth event {event_type}: {e}")
