"""
Command security policy.

Fail-closed, ordered checks over a parsed command and its raw text:
injection characters, blocked verbs, the verb allow-list, and the
resource-name whitelist. The first failing check decides.
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet, Iterable, Optional

from kubechat.modules.command import ParsedCommand

logger = logging.getLogger(__name__)


class DenialReason(str, Enum):
    """Why the policy refused a command."""

    INJECTION = "injection"
    BLOCKED_VERB = "blocked-verb"
    VERB_NOT_ALLOWED = "verb-not-allowed"
    RESOURCE_NAME_NOT_WHITELISTED = "resource-name-not-whitelisted"


@dataclass(frozen=True)
class SecurityVerdict:
    """Outcome of policy validation. Produced once per request."""

    allowed: bool
    reason: Optional[DenialReason] = None
    offending: Optional[str] = None

    @classmethod
    def allow(cls) -> "SecurityVerdict":
        return cls(allowed=True)

    @classmethod
    def deny(cls, reason: DenialReason, offending: str) -> "SecurityVerdict":
        return cls(allowed=False, reason=reason, offending=offending)

    def describe(self) -> str:
        if self.allowed:
            return "allowed"
        return f"{self.reason.value}: {self.offending}"


class SecurityValidator:
    """Static command policy with an optional per-cluster narrowing."""

    INJECTION_PATTERN = re.compile(r"[;|&><$]")

    # Checked before the allow-list so a verb can never be both blocked and allowed
    BLOCKED_VERBS: FrozenSet[str] = frozenset(
        {"delete", "edit", "patch", "apply", "create", "replace"}
    )

    ALLOWED_VERBS: FrozenSet[str] = frozenset({"get", "list", "describe", "logs", "scale"})

    MUTATING_VERBS: FrozenSet[str] = frozenset({"scale"})

    RESOURCE_NAME_PATTERN = re.compile(r"^[A-Za-z0-9-]+$")

    def __init__(self, allowed_verbs: Optional[Iterable[str]] = None, read_only: bool = False):
        """
        Initialize validator.

        Args:
            allowed_verbs: Optional subset of ALLOWED_VERBS to permit. Verbs outside
                the built-in allow-list are ignored; the policy can only narrow.
            read_only: Drop mutating verbs (scale) from the allow-list
        """
        verbs = set(self.ALLOWED_VERBS)
        if allowed_verbs:
            requested = {v.lower() for v in allowed_verbs}
            ignored = requested - self.ALLOWED_VERBS
            if ignored:
                logger.warning(f"Ignoring verbs outside the built-in allow-list: {sorted(ignored)}")
            verbs &= requested
        if read_only:
            verbs -= self.MUTATING_VERBS

        self.allowed_verbs: FrozenSet[str] = frozenset(verbs)

    def validate(self, parsed: ParsedCommand, raw: str) -> SecurityVerdict:
        """
        Validate a parsed command against the policy.

        Args:
            parsed: Structured command
            raw: Original command text, scanned for injection characters

        Returns:
            SecurityVerdict
        """
        match = self.INJECTION_PATTERN.search(raw)
        if match:
            return SecurityVerdict.deny(DenialReason.INJECTION, match.group(0))

        if parsed.verb in self.BLOCKED_VERBS:
            return SecurityVerdict.deny(DenialReason.BLOCKED_VERB, parsed.verb)

        if parsed.verb not in self.allowed_verbs:
            return SecurityVerdict.deny(DenialReason.VERB_NOT_ALLOWED, parsed.verb)

        if parsed.name is not None and not self.RESOURCE_NAME_PATTERN.match(parsed.name):
            return SecurityVerdict.deny(DenialReason.RESOURCE_NAME_NOT_WHITELISTED, parsed.name)

        return SecurityVerdict.allow()

    def get_policy_summary(self) -> dict:
        """Get current policy summary."""
        return {
            "allowed_verbs": sorted(self.allowed_verbs),
            "blocked_verbs": sorted(self.BLOCKED_VERBS),
            "resource_name_pattern": self.RESOURCE_NAME_PATTERN.pattern,
        }
