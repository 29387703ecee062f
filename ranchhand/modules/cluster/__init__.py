"""
Cluster Module - Black Box Interface

Purpose: Kubernetes API access for the agent
Interface: list_nodes(), get_resource_uid(), patch_owner_reference(), delete_resource()
Hidden: Client construction, in-cluster credentials, per-kind API dispatch

Can be replaced with any object implementing the ClusterAPI protocol.
"""

from .cluster import ClusterAPI, KubernetesClusterAPI, OwnerReference, owner_reference_patch

__all__ = ["ClusterAPI", "KubernetesClusterAPI", "OwnerReference", "owner_reference_patch"]
