"""
Kubechat - Command Authorization & Execution Gateway

Lets an operator run free-form kubectl-style commands against a live cluster
while only a narrow, audited, non-destructive subset ever reaches it.

Architecture:
- Each module is self-contained with clear interfaces
- Modules are completely replaceable
- No module knows the internals of another
- All communication through defined interfaces

Modules:
- ratelimit: Per-identity sliding-window admission control
- command: kubectl command parsing
- security: Injection, verb and resource-name policy
- authz: Permission authority adapter (access reviews)
- executor: Dispatch of authorized commands to the cluster
- audit: One audit record per command decision
- health: Cached cluster health snapshot
- kube: Kubernetes API client adapter
- gateway: Pipeline orchestration
- auth: Caller identity resolution
- api: REST API models
"""

__version__ = "1.0.0"
