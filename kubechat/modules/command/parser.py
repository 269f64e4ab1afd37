"""
kubectl command parsing.

Turns a raw command string into a ParsedCommand. The parser only
structures the text; it makes no policy decisions.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Optional, Tuple

PROGRAM_NAME = "kubectl"
DEFAULT_NAMESPACE = "default"
ALL_NAMESPACES = ""

NAMESPACE_FLAGS = {"-n", "--namespace"}
ALL_NAMESPACES_FLAGS = {"-A", "--all-namespaces"}

RESOURCE_ALIASES = {
    "po": "pods",
    "pod": "pods",
    "pods": "pods",
    "cm": "configmaps",
    "configmap": "configmaps",
    "configmaps": "configmaps",
    "deploy": "deployments",
    "deployment": "deployments",
    "deployments": "deployments",
}


class CommandSyntaxError(ValueError):
    """Raised when a command is not a well-formed kubectl invocation."""


@dataclass(frozen=True)
class CommandRequest:
    """A command as submitted by a caller."""

    text: str
    identity: str
    dry_run: bool = False
    submitted_at: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass(frozen=True)
class ParsedCommand:
    """Structured view of a kubectl command."""

    verb: str
    resource: str
    name: Optional[str] = None
    namespace: str = DEFAULT_NAMESPACE
    flags: Tuple[str, ...] = ()

    @property
    def all_namespaces(self) -> bool:
        return self.namespace == ALL_NAMESPACES

    def flag_value(self, flag: str) -> Optional[str]:
        """Return the value of a retained '--flag=value' flag, if present."""
        prefix = f"{flag}="
        for token in reversed(self.flags):
            if token.startswith(prefix):
                return token[len(prefix):]
        return None


def normalize_resource(kind: str) -> str:
    """Map kubectl resource aliases to their plural form."""
    return RESOURCE_ALIASES.get(kind.lower(), kind.lower())


def parse_command(text: str) -> ParsedCommand:
    """
    Parse a kubectl command string.

    Args:
        text: Raw command, e.g. "kubectl get pods -n kube-system"

    Returns:
        ParsedCommand

    Raises:
        CommandSyntaxError: If the program name is wrong or fewer than three tokens
    """
    parts = text.split()
    if len(parts) < 3 or parts[0] != PROGRAM_NAME:
        raise CommandSyntaxError("Invalid kubectl command syntax")

    verb = parts[1].lower()
    resource_token = parts[2]

    namespace = DEFAULT_NAMESPACE
    all_namespaces = False
    resource_name: Optional[str] = None
    flags = []

    i = 3
    while i < len(parts):
        token = parts[i]
        if token in NAMESPACE_FLAGS and i + 1 < len(parts):
            namespace = parts[i + 1]
            i += 2
            continue
        if token.startswith("--namespace="):
            namespace = token.split("=", 1)[1]
        elif token in ALL_NAMESPACES_FLAGS:
            all_namespaces = True
        elif token.startswith("-"):
            flags.append(token)
        i += 1

    # Name follows the resource token, e.g. "describe pod web-1"
    for i, token in enumerate(parts):
        if (token == resource_token or token.startswith(resource_token + "/")) and i + 1 < len(parts):
            candidate = parts[i + 1]
            if i >= 2 and not candidate.startswith("-"):
                resource_name = candidate

    kind = resource_token
    if "/" in resource_token:
        kind, embedded = resource_token.split("/", 1)
        if resource_name is None and embedded:
            resource_name = embedded
    elif verb == "logs" and normalize_resource(resource_token) not in RESOURCE_ALIASES.values():
        # "kubectl logs web-1": the resource token is the pod itself
        kind = "pods"
        resource_name = resource_token

    return ParsedCommand(
        verb=verb,
        resource=normalize_resource(kind),
        name=resource_name,
        namespace=ALL_NAMESPACES if all_namespaces else namespace,
        flags=tuple(flags),
    )
