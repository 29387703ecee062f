"""
Kubernetes API capability for the agent.

Wraps the official kubernetes client behind the four calls the agent needs:
listing nodes, resolving a resource UID, adding an owner reference and
deleting a resource. Every failure surfaces as ClusterAPIError.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Protocol

from kubernetes import client, config
from kubernetes.client.rest import ApiException
from kubernetes.config.config_exception import ConfigException

from ranchhand.errors import ClusterAPIError

logger = logging.getLogger("ranchhand.cluster")

NAMESPACED_KINDS = {"Deployment", "ServiceAccount", "Secret"}
CLUSTER_SCOPED_KINDS = {"ClusterRole", "ClusterRoleBinding"}
SUPPORTED_KINDS = NAMESPACED_KINDS | CLUSTER_SCOPED_KINDS


@dataclass(frozen=True)
class OwnerReference:
    """Owner reference pointing at the agent deployment."""

    name: str
    uid: str
    kind: str = "Deployment"
    api_version: str = "apps/v1"

    def to_dict(self) -> Dict[str, str]:
        """Owner reference as it appears in resource metadata."""
        return {
            "apiVersion": self.api_version,
            "kind": self.kind,
            "name": self.name,
            "uid": self.uid,
        }


def owner_reference_patch(existing: Optional[List[Any]], owner: OwnerReference) -> List[Dict[str, Any]]:
    """
    Build the JSON patch adding `owner` to a resource's owner references.

    Returns an empty patch when an entry with the same UID already exists.
    """
    existing = existing or []
    for ref in existing:
        uid = ref.get("uid") if isinstance(ref, dict) else getattr(ref, "uid", None)
        if uid == owner.uid:
            return []

    if not existing:
        return [{"op": "add", "path": "/metadata/ownerReferences", "value": [owner.to_dict()]}]
    return [{"op": "add", "path": "/metadata/ownerReferences/-", "value": owner.to_dict()}]


class ClusterAPI(Protocol):
    """Cluster capability consumed by inventory, ownership and teardown."""

    def list_nodes(self) -> List[Dict[str, str]]:
        ...

    def get_resource_uid(self, kind: str, name: str) -> str:
        ...

    def patch_owner_reference(self, kind: str, name: str, owner: OwnerReference) -> bool:
        ...

    def delete_resource(self, kind: str, name: str) -> None:
        ...


class KubernetesClusterAPI:
    """ClusterAPI backed by the in-cluster service account identity."""

    def __init__(self, namespace: str, api_client: Optional[client.ApiClient] = None):
        """
        Initialize the adapter.

        Args:
            namespace: Namespace of the agent's namespaced resources
            api_client: Preconfigured client; the in-cluster config is
                loaded lazily on first use when omitted
        """
        self.namespace = namespace
        self._api_client = api_client
        self._core_v1: Optional[client.CoreV1Api] = None
        self._apps_v1: Optional[client.AppsV1Api] = None
        self._rbac_v1: Optional[client.RbacAuthorizationV1Api] = None

    def _ensure_clients(self) -> None:
        if self._core_v1 is not None:
            return

        if self._api_client is None:
            try:
                config.load_incluster_config()
            except ConfigException as e:
                raise ClusterAPIError(f"Failed to get in-cluster config: {e}") from e
            self._api_client = client.ApiClient()

        self._core_v1 = client.CoreV1Api(self._api_client)
        self._apps_v1 = client.AppsV1Api(self._api_client)
        self._rbac_v1 = client.RbacAuthorizationV1Api(self._api_client)

    def _call(self, description: str, fn: Callable, *args, **kwargs) -> Any:
        self._ensure_clients()
        try:
            return fn(*args, **kwargs)
        except ApiException as e:
            raise ClusterAPIError(f"Failed to {description}: {e.status} {e.reason}") from e
        except Exception as e:
            raise ClusterAPIError(f"Failed to {description}: {e}") from e

    def _check_kind(self, kind: str) -> None:
        if kind not in SUPPORTED_KINDS:
            raise ClusterAPIError(f"Unsupported resource kind: {kind}")

    def _read(self, kind: str, name: str) -> Any:
        self._check_kind(kind)
        self._ensure_clients()
        readers = {
            "Deployment": lambda: self._apps_v1.read_namespaced_deployment(name, self.namespace),
            "ServiceAccount": lambda: self._core_v1.read_namespaced_service_account(name, self.namespace),
            "Secret": lambda: self._core_v1.read_namespaced_secret(name, self.namespace),
            "ClusterRole": lambda: self._rbac_v1.read_cluster_role(name),
            "ClusterRoleBinding": lambda: self._rbac_v1.read_cluster_role_binding(name),
        }
        return self._call(f"read {kind}/{name}", readers[kind])

    def list_nodes(self) -> List[Dict[str, str]]:
        """List all nodes as {name, status} in listing order."""
        self._ensure_clients()
        nodes = self._call("list nodes", self._core_v1.list_node)

        result = []
        for node in nodes.items:
            phase = node.status.phase if node.status is not None else None
            result.append({"name": node.metadata.name, "status": phase or ""})
        return result

    def get_resource_uid(self, kind: str, name: str) -> str:
        """Resolve the UID of a resource."""
        resource = self._read(kind, name)
        uid = resource.metadata.uid if resource.metadata is not None else None
        if not uid:
            raise ClusterAPIError(f"{kind}/{name} has no UID")
        return uid

    def patch_owner_reference(self, kind: str, name: str, owner: OwnerReference) -> bool:
        """
        Add `owner` to the owner references of a resource.

        Returns:
            True if a patch was applied, False if the reference was present
        """
        resource = self._read(kind, name)
        patch = owner_reference_patch(resource.metadata.owner_references, owner)
        if not patch:
            logger.debug(f"{kind}/{name} already owned by {owner.kind}/{owner.name}")
            return False

        # A list body makes the client send application/json-patch+json
        patchers = {
            "Deployment": lambda: self._apps_v1.patch_namespaced_deployment(name, self.namespace, patch),
            "ServiceAccount": lambda: self._core_v1.patch_namespaced_service_account(
                name, self.namespace, patch
            ),
            "Secret": lambda: self._core_v1.patch_namespaced_secret(name, self.namespace, patch),
            "ClusterRole": lambda: self._rbac_v1.patch_cluster_role(name, patch),
            "ClusterRoleBinding": lambda: self._rbac_v1.patch_cluster_role_binding(name, patch),
        }
        self._call(f"patch {kind}/{name}", patchers[kind])
        return True

    def delete_resource(self, kind: str, name: str) -> None:
        """Delete a resource, letting the garbage collector cascade to dependents."""
        self._check_kind(kind)
        self._ensure_clients()
        options = client.V1DeleteOptions(propagation_policy="Background")
        deleters = {
            "Deployment": lambda: self._apps_v1.delete_namespaced_deployment(
                name, self.namespace, body=options
            ),
            "ServiceAccount": lambda: self._core_v1.delete_namespaced_service_account(
                name, self.namespace, body=options
            ),
            "Secret": lambda: self._core_v1.delete_namespaced_secret(name, self.namespace, body=options),
            "ClusterRole": lambda: self._rbac_v1.delete_cluster_role(name, body=options),
            "ClusterRoleBinding": lambda: self._rbac_v1.delete_cluster_role_binding(name, body=options),
        }
        self._call(f"delete {kind}/{name}", deleters[kind])
