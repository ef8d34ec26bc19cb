"""
Resolution of pods (or any other cluster object) to their top-level owners.

Following `ownerReferences` from a pod usually goes Pod -> ReplicaSet -> Deployment, but owners can be
of any kind, including custom resources, so the API shape of every owner type is discovered at runtime.

Both the discovery snapshot and the owners of every visited object are cached until `reset()`,
which the caller invokes once per polling cycle.
"""

from __future__ import annotations

import logging
from typing import Any, NamedTuple, Optional, Protocol

from kube_metrics_agent.core.exceptions import MissingNamespaceError, UnresolvableKindError
from kube_metrics_agent.core.models.objects import (
    ApiAccessor,
    ApiResource,
    GroupVersionKind,
    ResourceIdentifier,
    Scope,
)

logger = logging.getLogger("kma")

DiscoveryResult = dict[GroupVersionKind, tuple[ApiResource, Scope]]
OwnerCache = dict[ResourceIdentifier, frozenset[ResourceIdentifier]]


class OwnershipClient(Protocol):
    async def discover(self) -> DiscoveryResult: ...

    async def get(self, api: ApiAccessor, name: str) -> dict[str, Any]: ...


class _QueueEntry(NamedTuple):
    identifier: ResourceIdentifier
    # The live object, when it was already fetched by someone else
    object: Optional[dict[str, Any]] = None


class OwnershipResolver:
    """
    Not safe for concurrent use: the caches are shared mutable state.
    Use one resolver per concurrent caller.
    """

    def __init__(self, cluster: OwnershipClient) -> None:
        self.cluster = cluster
        self.discovery: Optional[DiscoveryResult] = None
        self.should_discover = True
        self.owners: OwnerCache = {}

    def reset(self) -> None:
        """Forget all resolved owners and discovered APIs. Called once per polling cycle."""

        logger.debug("Resetting ownership resolver")
        self.discovery = None
        self.should_discover = True
        self.owners = {}

    async def discover(self) -> None:
        if not self.should_discover:
            logger.warning("Redundant Kubernetes API discovery requested, ignoring...")
            return

        logger.debug("Discovering Kubernetes APIs")
        self.discovery = await self.cluster.discover()
        self.should_discover = False

    def _lookup(self, gvk: GroupVersionKind) -> Optional[tuple[ApiResource, Scope]]:
        if self.discovery is None:
            return None
        return self.discovery.get(gvk)

    async def resolve_gvk(self, gvk: GroupVersionKind) -> tuple[ApiResource, Scope]:
        api = self._lookup(gvk)
        if api is not None:
            return api

        # Either this is the first lookup since the last reset, or the API was added to the cluster
        # recently, or it does not exist at all. Discovery only runs once per cycle, so a miss after it
        # means the type is not served by the cluster.
        await self.discover()

        api = self._lookup(gvk)
        if api is None:
            raise UnresolvableKindError(gvk)
        return api

    async def resolve_api(self, gvk: GroupVersionKind, namespace: Optional[str]) -> ApiAccessor:
        api_resource, scope = await self.resolve_gvk(gvk)

        if scope == Scope.Cluster:
            # Cluster-scoped objects have no namespace, whatever was inherited from the owned object is dropped
            return ApiAccessor(resource=api_resource)

        if namespace is None:
            raise MissingNamespaceError(gvk)

        return ApiAccessor(resource=api_resource, namespace=namespace)

    async def resolve_object(self, resource: ResourceIdentifier) -> dict[str, Any]:
        api = await self.resolve_api(resource.gvk, resource.namespace)
        return await self.cluster.get(api, resource.name)

    async def resolve_owner_references(self, object: dict[str, Any]) -> list[ResourceIdentifier]:
        metadata = object.get("metadata") or {}
        namespace = metadata.get("namespace")

        result = []
        for owner_reference in metadata.get("ownerReferences") or []:
            owner = ResourceIdentifier.from_owner_reference(owner_reference, namespace)

            _, scope = await self.resolve_gvk(owner.gvk)
            if scope == Scope.Cluster and owner.namespace is not None:
                owner = owner.without_namespace()

            result.append(owner)

        return result

    async def resolve_top_level_owners(
        self, resource: ResourceIdentifier, object: Optional[dict[str, Any]] = None
    ) -> set[ResourceIdentifier]:
        """Walk the ownership graph up from `resource` and return the owners that have no owners themselves.

        Args:
            resource: The resource to start from.
            object: The live object of `resource`, if the caller already has it. Saves one request.

        Returns:
            The top-level owners. A resource without owners is its own top-level owner. A pure ownership
            cycle has no top-level owner, so it yields an empty set.

        Raises:
            OwnershipResolutionError: If any type or object on the way cannot be resolved.
        """

        result: set[ResourceIdentifier] = set()

        queue: list[_QueueEntry] = [_QueueEntry(resource, object)]
        seen: set[ResourceIdentifier] = set()

        while queue:
            entry = queue.pop()
            key = entry.identifier

            if key in seen:
                # NOTE: It's unclear whether Kubernetes resources can own each other cyclically,
                # but this prevents infinite loops in case they do.
                logger.warning(f"Skipping already seen ownership queue entry: {key}")
                continue

            seen.add(key)

            cached = self.owners.get(key)
            if cached is not None:
                logger.debug(f"Using cached owners for {key}")
                owners = sorted(cached)
            else:
                logger.debug(f"Resolving owners for {key}")
                current_object = entry.object if entry.object is not None else await self.resolve_object(key)
                owners = await self.resolve_owner_references(current_object)

            if not owners:
                logger.debug(f"Found top-level owner: {key}")
                result.add(key)

            queue.extend(_QueueEntry(owner) for owner in owners)

            if cached is None:
                logger.debug(f"Caching owners for {key}: {owners}")
                self.owners[key] = frozenset(owners)

        return result


__all__ = ["OwnershipResolver", "OwnershipClient", "OwnerCache", "DiscoveryResult"]
