"""
Command gateway pipeline.

Runs one CommandRequest through parse, security validation, authorization
and (unless dry-run) dispatch, then writes exactly one audit record for
it. Every stage fails closed: the first denial or error is terminal.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Optional

from kubechat.modules.audit import AuditRecorder
from kubechat.modules.authz import AuthorizationDecision, AuthorizationOracle
from kubechat.modules.command import CommandRequest, CommandSyntaxError, parse_command
from kubechat.modules.executor import ExecutionDispatcher, ExecutionError, ExecutionErrorKind
from kubechat.modules.security import SecurityValidator

logger = logging.getLogger(__name__)

DRY_RUN_MESSAGE = "Command validated successfully (dry-run)"


def describe_grant(decision: AuthorizationDecision) -> str:
    """Summarize the authorization tuple and reason behind an allowed command."""
    namespace, verb, resource, name = decision.subject
    target = f"{resource}/{name}" if name else resource
    scope = f"namespace {namespace}" if namespace else "all namespaces"
    return f"authorized {verb} {target} in {scope}: {decision.reason or 'no reason given'}"


class FailureKind(str, Enum):
    """Pipeline stage that terminated a request."""

    SYNTAX = "syntax"
    SECURITY = "security"
    AUTHORIZATION = "authorization"
    EXECUTION = "execution"


@dataclass(frozen=True)
class CommandOutcome:
    """Result of running one command request through the gateway."""

    success: bool
    cluster: str
    dry_run: bool = False
    output: Optional[str] = None
    failure: Optional[FailureKind] = None
    reason: Optional[str] = None
    detail: str = ""
    execution_kind: Optional[ExecutionErrorKind] = None
    authorization: str = ""
    executed_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def message(self) -> str:
        """Caller-facing error message (empty on success)."""
        if self.success:
            return ""
        if self.failure == FailureKind.SYNTAX:
            return f"Invalid command syntax: {self.detail}"
        if self.failure == FailureKind.SECURITY:
            return f"Command rejected by security policy: {self.detail}"
        if self.failure == FailureKind.AUTHORIZATION:
            return f"Permission denied: {self.detail}"
        return f"Command execution failed: {self.detail}"


class CommandGateway:
    """Fail-closed orchestration of the command pipeline."""

    def __init__(
        self,
        validator: SecurityValidator,
        oracle: AuthorizationOracle,
        dispatcher: ExecutionDispatcher,
        recorder: AuditRecorder,
        cluster_name: str,
        default_timeout: float = 30.0,
    ):
        """
        Initialize gateway.

        Args:
            validator: Security policy
            oracle: Fail-closed authorization adapter
            dispatcher: Cluster operation dispatch table
            recorder: Audit recorder (one record per request)
            cluster_name: Cluster recorded in outcomes and audit records
            default_timeout: Budget used when a request brings none
        """
        self.validator = validator
        self.oracle = oracle
        self.dispatcher = dispatcher
        self.recorder = recorder
        self.cluster_name = cluster_name
        self.default_timeout = default_timeout

    async def submit(self, request: CommandRequest, timeout: Optional[float] = None) -> CommandOutcome:
        """
        Run a command request through the pipeline and audit the result.

        Args:
            request: Command as submitted by the caller
            timeout: Seconds for authorization plus dispatch

        Returns:
            CommandOutcome describing success or the terminating failure

        Raises:
            asyncio.CancelledError: After auditing, if the request is cancelled
        """
        budget = timeout if timeout is not None else self.default_timeout
        try:
            outcome = await self._evaluate(request, budget)
        except asyncio.CancelledError:
            await self.recorder.record(
                request.identity, self.cluster_name, request.text, False, "request cancelled"
            )
            raise

        await self.recorder.record(
            request.identity,
            self.cluster_name,
            request.text,
            outcome.success,
            self._audit_detail(outcome),
        )
        return outcome

    async def _evaluate(self, request: CommandRequest, budget: float) -> CommandOutcome:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + budget

        try:
            parsed = parse_command(request.text)
        except CommandSyntaxError as e:
            return self._failed(request, FailureKind.SYNTAX, "invalid-syntax", str(e))

        verdict = self.validator.validate(parsed, request.text)
        if not verdict.allowed:
            logger.warning(
                f"Security policy denied command from {request.identity}: {verdict.describe()}"
            )
            return self._failed(
                request, FailureKind.SECURITY, verdict.reason.value, verdict.describe()
            )

        decision = await self.oracle.authorize(
            parsed.namespace,
            parsed.verb,
            parsed.resource,
            parsed.name,
            request.identity,
            timeout=max(deadline - loop.time(), 0.0),
        )
        if not decision.allowed:
            return self._failed(request, FailureKind.AUTHORIZATION, "rbac-denied", decision.reason)
        grant = describe_grant(decision)

        if request.dry_run:
            return CommandOutcome(
                success=True,
                cluster=self.cluster_name,
                dry_run=True,
                output=DRY_RUN_MESSAGE,
                authorization=grant,
            )

        try:
            result = await self.dispatcher.execute(parsed, timeout=max(deadline - loop.time(), 0.0))
        except ExecutionError as e:
            return self._failed(
                request, FailureKind.EXECUTION, e.kind.value, e.message, execution_kind=e.kind
            )
        except Exception as e:
            logger.exception(f"Unexpected failure executing '{request.text}'")
            return self._failed(
                request,
                FailureKind.EXECUTION,
                ExecutionErrorKind.INTERNAL.value,
                str(e) or type(e).__name__,
                execution_kind=ExecutionErrorKind.INTERNAL,
            )

        return CommandOutcome(
            success=True, cluster=self.cluster_name, output=result.render(), authorization=grant
        )

    def _failed(
        self,
        request: CommandRequest,
        failure: FailureKind,
        reason: str,
        detail: str,
        execution_kind: Optional[ExecutionErrorKind] = None,
    ) -> CommandOutcome:
        return CommandOutcome(
            success=False,
            cluster=self.cluster_name,
            dry_run=request.dry_run,
            failure=failure,
            reason=reason,
            detail=detail,
            execution_kind=execution_kind,
        )

    @staticmethod
    def _audit_detail(outcome: CommandOutcome) -> str:
        if outcome.success:
            action = "dry-run: validated" if outcome.dry_run else "executed"
            return f"{action}; {outcome.authorization}"
        return f"{outcome.failure.value} ({outcome.reason}): {outcome.detail}"
