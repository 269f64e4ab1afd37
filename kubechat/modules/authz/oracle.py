"""
Authorization oracle adapter.

Forwards the exact (namespace, verb, resource, name) tuple checked by the
security policy to an external permission authority and turns its answer
into an AuthorizationDecision. Errors and timeouts deny.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional, Protocol, Tuple

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthorityVerdict:
    """Raw answer of a permission authority."""

    allowed: bool
    reason: str = ""


@dataclass(frozen=True)
class AuthorizationDecision:
    """Interpreted authority answer plus the tuple that was evaluated."""

    allowed: bool
    reason: str
    namespace: str
    verb: str
    resource: str
    name: Optional[str]

    @property
    def subject(self) -> Tuple[str, str, str, Optional[str]]:
        return (self.namespace, self.verb, self.resource, self.name)


class PermissionAuthority(Protocol):
    """Protocol for permission authorities - allows swappable implementations."""

    async def check(
        self,
        namespace: str,
        verb: str,
        resource: str,
        name: Optional[str],
        identity: str,
        timeout: Optional[float] = None,
    ) -> AuthorityVerdict:
        """
        Answer whether identity may perform verb on resource/name in namespace.

        May raise on transport or authority failure.
        """
        ...


class KubernetesAccessReviewAuthority:
    """
    Permission authority backed by the cluster's access-review API.

    In 'self' mode the gateway's own credentials are reviewed
    (SelfSubjectAccessReview). In 'subject' mode the caller identity is
    reviewed as a Kubernetes user (SubjectAccessReview).
    """

    def __init__(self, kube_client, mode: str = "self"):
        if mode not in ("self", "subject"):
            raise ValueError(f"Unknown access review mode: {mode}")
        self.kube = kube_client
        self.mode = mode

    async def check(
        self,
        namespace: str,
        verb: str,
        resource: str,
        name: Optional[str],
        identity: str,
        timeout: Optional[float] = None,
    ) -> AuthorityVerdict:
        user = identity if self.mode == "subject" else None
        allowed, reason = await self.kube.review_access(
            namespace, verb, resource, name, user=user, timeout=timeout
        )
        if not allowed and not reason:
            reason = "RBAC denied"
        return AuthorityVerdict(allowed=allowed, reason=reason)


class AuthorizationOracle:
    """Fail-closed adapter in front of a PermissionAuthority."""

    def __init__(self, authority: PermissionAuthority):
        self.authority = authority

    async def authorize(
        self,
        namespace: str,
        verb: str,
        resource: str,
        name: Optional[str],
        identity: str,
        timeout: Optional[float] = None,
    ) -> AuthorizationDecision:
        """
        Evaluate the tuple with the authority.

        Args:
            namespace: Namespace ('' for all namespaces)
            verb: Command verb
            resource: Resource kind
            name: Resource name, if any
            identity: Caller identity
            timeout: Seconds the authority may take

        Returns:
            AuthorizationDecision (never raises except on cancellation)
        """
        try:
            check = self.authority.check(
                namespace, verb, resource, name, identity, timeout=timeout
            )
            if timeout is not None:
                verdict = await asyncio.wait_for(check, timeout=timeout)
            else:
                verdict = await check
            allowed, reason = bool(verdict.allowed), verdict.reason or ""
        except asyncio.TimeoutError:
            allowed, reason = False, f"authorization check timed out after {timeout:g}s"
        except Exception as e:
            allowed, reason = False, str(e) or type(e).__name__

        decision = AuthorizationDecision(
            allowed=allowed,
            reason=reason,
            namespace=namespace,
            verb=verb,
            resource=resource,
            name=name,
        )

        log = logger.info if allowed else logger.warning
        log(
            f"Authorization {'allowed' if allowed else 'denied'} for {identity}: "
            f"namespace={namespace!r} verb={verb} resource={resource} name={name!r} "
            f"reason={reason!r}"
        )
        return decision
