"""
Execution dispatcher.

Maps an authorized (verb, resource kind) pair to one of a fixed set of
cluster operations. Only reads and a single replica-count patch are
reachable; every other pair is an explicit 'unsupported' error.
"""

import asyncio
import logging
import re
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Awaitable, Callable, Dict, List, Optional, Tuple, Union

from kubechat.modules.command import ParsedCommand
from kubechat.modules.kube import ClusterError

from .formatting import (
    container_statuses,
    format_age,
    format_selector,
    format_time,
    pod_phase,
    pod_ready,
    pod_restarts,
)

logger = logging.getLogger(__name__)

REPLICAS_PATTERN = re.compile(r"[0-9]+")


class ExecutionErrorKind(str, Enum):
    """Categories of dispatch failures."""

    UNSUPPORTED = "unsupported"
    MISSING_ARGUMENT = "missing-argument"
    BAD_ARGUMENT = "bad-argument"
    CLUSTER_ERROR = "cluster-error"
    TIMEOUT = "timeout"
    INTERNAL = "internal"


class ExecutionError(Exception):
    """A command passed policy but could not be carried out."""

    def __init__(self, kind: ExecutionErrorKind, message: str):
        super().__init__(message)
        self.kind = kind
        self.message = message


@dataclass(frozen=True)
class TableOutput:
    """Tabular result, rendered tab separated with a header row."""

    headers: Tuple[str, ...]
    rows: Tuple[Tuple[str, ...], ...] = field(default_factory=tuple)

    def render(self) -> str:
        lines = ["\t".join(self.headers)]
        lines.extend("\t".join(row) for row in self.rows)
        return "\n".join(lines) + "\n"


@dataclass(frozen=True)
class TextOutput:
    """Free-form text result (logs, describe summaries, confirmations)."""

    text: str

    def render(self) -> str:
        return self.text


CommandOutput = Union[TableOutput, TextOutput]
Handler = Callable[[ParsedCommand, Optional[float]], Awaitable[CommandOutput]]


class ExecutionDispatcher:
    """Dispatch table from (verb, kind) to cluster operations."""

    def __init__(self, kube_client, now: Callable[[], datetime] = lambda: datetime.now(UTC)):
        """
        Initialize dispatcher.

        Args:
            kube_client: KubeClient (or any object with the same coroutines)
            now: Wall clock used for AGE columns
        """
        self.kube = kube_client
        self._now = now
        self._handlers: Dict[Tuple[str, str], Handler] = {
            ("get", "pods"): self._get_pods,
            ("get", "configmaps"): self._get_config_maps,
            ("logs", "pods"): self._logs,
            ("describe", "pods"): self._describe_pod,
            ("describe", "deployments"): self._describe_deployment,
            ("scale", "deployments"): self._scale_deployment,
        }

    @property
    def supported_operations(self) -> List[Tuple[str, str]]:
        return sorted(self._handlers)

    async def execute(self, parsed: ParsedCommand, timeout: Optional[float] = None) -> CommandOutput:
        """
        Run an authorized command against the cluster.

        Args:
            parsed: Command that passed security validation and authorization
            timeout: Seconds the cluster calls may take

        Returns:
            TableOutput or TextOutput

        Raises:
            ExecutionError: Unsupported pair, bad arguments, or cluster failure
        """
        handler = self._handlers.get((parsed.verb, parsed.resource))
        if handler is None:
            raise ExecutionError(
                ExecutionErrorKind.UNSUPPORTED,
                f"unsupported operation: {parsed.verb} {parsed.resource}",
            )

        try:
            if timeout is not None:
                return await asyncio.wait_for(handler(parsed, timeout), timeout=timeout)
            return await handler(parsed, timeout)
        except ClusterError as e:
            raise ExecutionError(ExecutionErrorKind.CLUSTER_ERROR, str(e)) from e
        except asyncio.TimeoutError as e:
            raise ExecutionError(
                ExecutionErrorKind.TIMEOUT, f"command timed out after {timeout:g}s"
            ) from e

    async def _get_pods(self, parsed: ParsedCommand, timeout: Optional[float]) -> CommandOutput:
        pods = await self.kube.list_pods(parsed.namespace, timeout=timeout)
        now = self._now()
        headers = ("NAME", "READY", "STATUS", "RESTARTS", "AGE")
        rows = []
        for pod in pods:
            row = (
                pod.metadata.name,
                pod_ready(pod),
                pod_phase(pod),
                str(pod_restarts(pod)),
                format_age(pod.metadata.creation_timestamp, now),
            )
            if parsed.all_namespaces:
                row = (pod.metadata.namespace,) + row
            rows.append(row)
        if parsed.all_namespaces:
            headers = ("NAMESPACE",) + headers
        return TableOutput(headers=headers, rows=tuple(rows))

    async def _get_config_maps(
        self, parsed: ParsedCommand, timeout: Optional[float]
    ) -> CommandOutput:
        config_maps = await self.kube.list_config_maps(parsed.namespace, timeout=timeout)
        now = self._now()
        headers: Tuple[str, ...] = ("NAME", "AGE")
        rows = []
        for cm in config_maps:
            row: Tuple[str, ...] = (cm.metadata.name, format_age(cm.metadata.creation_timestamp, now))
            if parsed.all_namespaces:
                row = (cm.metadata.namespace,) + row
            rows.append(row)
        if parsed.all_namespaces:
            headers = ("NAMESPACE",) + headers
        return TableOutput(headers=headers, rows=tuple(rows))

    def _require_name(self, parsed: ParsedCommand) -> str:
        if not parsed.name:
            raise ExecutionError(
                ExecutionErrorKind.MISSING_ARGUMENT,
                f"{parsed.verb} requires a {parsed.resource} name",
            )
        if parsed.all_namespaces:
            raise ExecutionError(
                ExecutionErrorKind.BAD_ARGUMENT,
                f"{parsed.verb} of a single {parsed.resource} needs a namespace, not --all-namespaces",
            )
        return parsed.name

    async def _logs(self, parsed: ParsedCommand, timeout: Optional[float]) -> CommandOutput:
        name = self._require_name(parsed)
        text = await self.kube.read_pod_log(name, parsed.namespace, timeout=timeout)
        return TextOutput(text=text or "")

    async def _describe_pod(self, parsed: ParsedCommand, timeout: Optional[float]) -> CommandOutput:
        name = self._require_name(parsed)
        pod = await self.kube.read_pod(name, parsed.namespace, timeout=timeout)
        spec = getattr(pod, "spec", None)
        status = getattr(pod, "status", None)

        lines = [
            f"Name:\t{pod.metadata.name}",
            f"Namespace:\t{pod.metadata.namespace}",
            f"Node:\t{getattr(spec, 'node_name', None) or '<none>'}",
            f"Start Time:\t{format_time(getattr(status, 'start_time', None))}",
            f"Status:\t{pod_phase(pod)}",
            f"Ready:\t{pod_ready(pod)}",
            "Containers:",
        ]
        statuses = container_statuses(pod)
        if not statuses:
            lines.append("\t<none>")
        for cs in statuses:
            lines.append(
                f"\t{cs.name}:\tready={str(bool(cs.ready)).lower()}\trestarts={cs.restart_count or 0}"
            )
        return TextOutput(text="\n".join(lines) + "\n")

    async def _describe_deployment(
        self, parsed: ParsedCommand, timeout: Optional[float]
    ) -> CommandOutput:
        name = self._require_name(parsed)
        deployment = await self.kube.read_deployment(name, parsed.namespace, timeout=timeout)
        spec = deployment.spec
        status = deployment.status
        selector = getattr(getattr(spec, "selector", None), "match_labels", None)

        desired = getattr(spec, "replicas", None) or 0
        updated = getattr(status, "updated_replicas", None) or 0
        total = getattr(status, "replicas", None) or 0
        available = getattr(status, "available_replicas", None) or 0
        unavailable = getattr(status, "unavailable_replicas", None) or 0

        lines = [
            f"Name:\t{deployment.metadata.name}",
            f"Namespace:\t{deployment.metadata.namespace}",
            f"Selector:\t{format_selector(selector)}",
            (
                f"Replicas:\t{desired} desired | {updated} updated | {total} total | "
                f"{available} available | {unavailable} unavailable"
            ),
        ]
        return TextOutput(text="\n".join(lines) + "\n")

    def _parse_replicas(self, parsed: ParsedCommand) -> int:
        raw = parsed.flag_value("--replicas")
        if raw is None:
            raise ExecutionError(ExecutionErrorKind.BAD_ARGUMENT, "missing --replicas=N")
        if not REPLICAS_PATTERN.fullmatch(raw):
            raise ExecutionError(
                ExecutionErrorKind.BAD_ARGUMENT, f"invalid replicas argument: {raw}"
            )
        replicas = int(raw)
        if replicas < 1:
            raise ExecutionError(
                ExecutionErrorKind.BAD_ARGUMENT, f"replicas must be a positive integer: {raw}"
            )
        return replicas

    async def _scale_deployment(
        self, parsed: ParsedCommand, timeout: Optional[float]
    ) -> CommandOutput:
        if not parsed.name:
            raise ExecutionError(
                ExecutionErrorKind.BAD_ARGUMENT, "could not parse deployment name"
            )
        name = self._require_name(parsed)
        replicas = self._parse_replicas(parsed)
        await self.kube.scale_deployment(name, parsed.namespace, replicas, timeout=timeout)
        return TextOutput(text=f"deployment/{name} scaled to {replicas} replicas")

