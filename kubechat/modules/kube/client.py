"""
Kubernetes API client adapter.

Thin async wrapper over the official kubernetes client. Blocking API calls
run in worker threads and carry the caller's remaining time budget as the
request timeout. API errors are translated to ClusterError with their
category preserved.
"""

import asyncio
import json
import logging
from typing import Any, Callable, List, Optional, Tuple, TypeVar

from kubernetes import client, config
from kubernetes.client.rest import ApiException
from kubernetes.config.config_exception import ConfigException

from kubechat.config.provider import ClusterConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")

MERGE_PATCH = "application/merge-patch+json"


class ClusterError(Exception):
    """A cluster API call failed."""

    FORBIDDEN = "Forbidden"
    NOT_FOUND = "NotFound"
    OTHER = "Error"

    def __init__(self, category: str, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.category = category
        self.message = message
        self.status = status

    def __str__(self) -> str:
        if self.category == self.OTHER:
            return f"Error: {self.message}"
        return f"Error from server ({self.category}): {self.message}"

    @classmethod
    def from_api_exception(cls, exc: ApiException) -> "ClusterError":
        if exc.status == 403:
            category = cls.FORBIDDEN
        elif exc.status == 404:
            category = cls.NOT_FOUND
        else:
            category = cls.OTHER
        message = exc.reason or "unknown error"
        # The API server puts the useful text in the Status body
        if exc.body:
            try:
                status_body = json.loads(exc.body)
            except (TypeError, ValueError):
                status_body = None
            if isinstance(status_body, dict) and status_body.get("message"):
                message = status_body["message"]
        if exc.status and category == cls.OTHER:
            message = f"({exc.status}) {message}"
        return cls(category, message, exc.status)


class KubeClient:
    """Async facade over the CoreV1, AppsV1 and AuthorizationV1 APIs."""

    def __init__(self, api_client: client.ApiClient):
        """
        Initialize from a configured ApiClient.

        Args:
            api_client: kubernetes ApiClient bound to one cluster
        """
        self.api_client = api_client
        self.core_v1 = client.CoreV1Api(api_client)
        self.apps_v1 = client.AppsV1Api(api_client)
        self.authorization_v1 = client.AuthorizationV1Api(api_client)

    @classmethod
    def from_cluster_config(cls, cluster: ClusterConfig) -> "KubeClient":
        """
        Build a client from a kubeconfig path, or from in-cluster credentials.

        Raises:
            ConfigException: If no usable credentials are found
        """
        if cluster.kubeconfig:
            api_client = config.new_client_from_config(config_file=cluster.kubeconfig)
            logger.info(f"Loaded kubeconfig {cluster.kubeconfig} for cluster {cluster.name}")
            return cls(api_client)

        configuration = client.Configuration()
        try:
            config.load_incluster_config(client_configuration=configuration)
            logger.info(f"Using in-cluster credentials for cluster {cluster.name}")
        except ConfigException:
            logger.warning("Failed to load in-cluster config, trying default kubeconfig")
            config.load_kube_config(client_configuration=configuration)
        return cls(client.ApiClient(configuration))

    async def _call(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        try:
            return await asyncio.to_thread(fn, *args, **kwargs)
        except ApiException as e:
            raise ClusterError.from_api_exception(e) from e
        except ClusterError:
            raise
        except Exception as e:
            raise ClusterError(ClusterError.OTHER, str(e) or type(e).__name__) from e

    async def health_check(self, timeout: Optional[float] = None) -> None:
        """Check API server reachability by listing namespaces."""
        await self._call(self.core_v1.list_namespace, limit=1, _request_timeout=timeout)

    async def list_pods(self, namespace: str, timeout: Optional[float] = None) -> List[Any]:
        """List pods in a namespace, or in all namespaces when namespace is ''."""
        if namespace:
            result = await self._call(
                self.core_v1.list_namespaced_pod, namespace, _request_timeout=timeout
            )
        else:
            result = await self._call(
                self.core_v1.list_pod_for_all_namespaces, _request_timeout=timeout
            )
        return list(result.items or [])

    async def list_config_maps(self, namespace: str, timeout: Optional[float] = None) -> List[Any]:
        """List config maps in a namespace, or in all namespaces when namespace is ''."""
        if namespace:
            result = await self._call(
                self.core_v1.list_namespaced_config_map, namespace, _request_timeout=timeout
            )
        else:
            result = await self._call(
                self.core_v1.list_config_map_for_all_namespaces, _request_timeout=timeout
            )
        return list(result.items or [])

    async def list_nodes(self, timeout: Optional[float] = None) -> List[Any]:
        result = await self._call(self.core_v1.list_node, _request_timeout=timeout)
        return list(result.items or [])

    async def read_pod(self, name: str, namespace: str, timeout: Optional[float] = None) -> Any:
        return await self._call(
            self.core_v1.read_namespaced_pod, name, namespace, _request_timeout=timeout
        )

    async def read_deployment(
        self, name: str, namespace: str, timeout: Optional[float] = None
    ) -> Any:
        return await self._call(
            self.apps_v1.read_namespaced_deployment, name, namespace, _request_timeout=timeout
        )

    async def read_pod_log(self, name: str, namespace: str, timeout: Optional[float] = None) -> str:
        """Fetch the current log text of a pod (no follow)."""
        return await self._call(
            self.core_v1.read_namespaced_pod_log,
            name,
            namespace,
            follow=False,
            _request_timeout=timeout,
        )

    async def scale_deployment(
        self, name: str, namespace: str, replicas: int, timeout: Optional[float] = None
    ) -> None:
        """Set a deployment's replica count with a merge patch."""
        body = {"spec": {"replicas": replicas}}
        await self._call(
            self.apps_v1.patch_namespaced_deployment,
            name,
            namespace,
            body,
            _content_type=MERGE_PATCH,
            _request_timeout=timeout,
        )
        logger.info(f"Patched deployment {namespace}/{name} to {replicas} replicas")

    async def review_access(
        self,
        namespace: str,
        verb: str,
        resource: str,
        name: Optional[str],
        user: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> Tuple[bool, str]:
        """
        Ask the API server whether an action is permitted.

        Without a user this is a SelfSubjectAccessReview for the gateway's own
        credentials; with a user, a SubjectAccessReview on that user's behalf.

        Returns:
            Tuple of (allowed, reason)
        """
        attributes = client.V1ResourceAttributes(
            namespace=namespace,
            verb=verb,
            resource=resource,
            name=name or None,
        )

        if user is None:
            review = client.V1SelfSubjectAccessReview(
                spec=client.V1SelfSubjectAccessReviewSpec(resource_attributes=attributes)
            )
            result = await self._call(
                self.authorization_v1.create_self_subject_access_review,
                review,
                _request_timeout=timeout,
            )
        else:
            review = client.V1SubjectAccessReview(
                spec=client.V1SubjectAccessReviewSpec(resource_attributes=attributes, user=user)
            )
            result = await self._call(
                self.authorization_v1.create_subject_access_review,
                review,
                _request_timeout=timeout,
            )

        status = getattr(result, "status", None)
        allowed = bool(getattr(status, "allowed", False))
        reason = getattr(status, "reason", None) or getattr(status, "evaluation_error", None) or ""
        return allowed, reason

    def close(self) -> None:
        self.api_client.close()
