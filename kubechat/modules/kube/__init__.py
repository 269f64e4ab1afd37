"""
Kube Module - Black Box Interface

Purpose: Reach the Kubernetes API for reads, the replica patch and access reviews
Interface: KubeClient (async), ClusterError
Hidden: kubernetes client objects, credential loading, thread offloading

Can be replaced with any client exposing the same coroutine methods (tests use fakes).
"""

from .client import ClusterError, KubeClient

__all__ = ["ClusterError", "KubeClient"]
