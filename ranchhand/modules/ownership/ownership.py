"""
Ownership binder.

Attaches the agent deployment as owner of the auxiliary resources it is
responsible for, so the cluster garbage collector removes them when the
deployment is deleted. Binding is best-effort and per resource: a resource
that fails to bind survives the agent.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional

from ranchhand.config import ManagedResource
from ranchhand.errors import ClusterAPIError
from ranchhand.modules.cluster import ClusterAPI, OwnerReference

logger = logging.getLogger("ranchhand.ownership")


@dataclass(frozen=True)
class BindingOutcome:
    """Result of binding one managed resource."""

    resource: ManagedResource
    bound: bool
    error: Optional[str] = None


class OwnershipBinder:
    """Binds managed resources to the agent deployment."""

    def __init__(self, cluster_api: ClusterAPI, deployment_name: str):
        """
        Initialize ownership binder.

        Args:
            cluster_api: Cluster capability
            deployment_name: Name of the agent's own deployment (the owner)
        """
        self.cluster_api = cluster_api
        self.deployment_name = deployment_name

    def resolve_owner(self) -> OwnerReference:
        """
        Resolve the owner reference of the agent deployment.

        Raises:
            ClusterAPIError: If the deployment UID cannot be resolved
        """
        uid = self.cluster_api.get_resource_uid("Deployment", self.deployment_name)
        return OwnerReference(name=self.deployment_name, uid=uid)

    def bind_ownership(self, target_kind: str, target_name: str) -> BindingOutcome:
        """
        Bind one resource to the agent deployment.

        Never raises; failures are logged and returned in the outcome.
        """
        resource = ManagedResource(target_kind, target_name)

        try:
            owner = self.resolve_owner()
        except ClusterAPIError as e:
            logger.error(f"Skipping owner reference for {resource}: cannot resolve owner UID: {e}")
            return BindingOutcome(resource, bound=False, error=str(e))

        try:
            patched = self.cluster_api.patch_owner_reference(target_kind, target_name, owner)
        except ClusterAPIError as e:
            logger.error(f"Failed to set owner reference on {resource}: {e}")
            return BindingOutcome(resource, bound=False, error=str(e))

        if patched:
            logger.info(f"Owner reference set on {resource} -> Deployment/{owner.name}")
        else:
            logger.info(f"Owner reference already present on {resource}")
        return BindingOutcome(resource, bound=True)

    def bind_all(self, resources: Iterable[ManagedResource]) -> List[BindingOutcome]:
        """Bind every resource independently, in order."""
        outcomes = [self.bind_ownership(r.kind, r.name) for r in resources]

        failed = [str(o.resource) for o in outcomes if not o.bound]
        if failed:
            logger.warning(
                f"{len(failed)} of {len(outcomes)} resources not bound and will outlive the agent: "
                f"{', '.join(failed)}"
            )
        return outcomes
