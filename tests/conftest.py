from collections import Counter
from typing import Any, Optional

import pytest
from kubernetes.client import ApiClient

from kube_metrics_agent.core.exceptions import ObjectFetchError
from kube_metrics_agent.core.models.objects import ApiAccessor, ApiResource, GroupVersionKind, ResourceIdentifier, Scope

POD = GroupVersionKind(group="", version="v1", kind="Pod")
NODE = GroupVersionKind(group="", version="v1", kind="Node")
REPLICA_SET = GroupVersionKind(group="apps", version="v1", kind="ReplicaSet")
DEPLOYMENT = GroupVersionKind(group="apps", version="v1", kind="Deployment")
ROLLOUT = GroupVersionKind(group="argoproj.io", version="v1alpha1", kind="Rollout")

DISCOVERY = {
    POD: (ApiResource(group="", version="v1", kind="Pod", plural="pods"), Scope.Namespaced),
    NODE: (ApiResource(group="", version="v1", kind="Node", plural="nodes"), Scope.Cluster),
    REPLICA_SET: (ApiResource(group="apps", version="v1", kind="ReplicaSet", plural="replicasets"), Scope.Namespaced),
    DEPLOYMENT: (ApiResource(group="apps", version="v1", kind="Deployment", plural="deployments"), Scope.Namespaced),
}


def make_identifier(gvk: GroupVersionKind, name: str, namespace: Optional[str] = "default") -> ResourceIdentifier:
    return ResourceIdentifier(gvk=gvk, name=name, namespace=namespace)


class FakeClusterClient:
    """An in-memory cluster that counts discovery runs and object reads"""

    def __init__(self, discovery: Optional[dict] = None) -> None:
        self.discovery = dict(DISCOVERY if discovery is None else discovery)
        self.objects: dict[ResourceIdentifier, dict[str, Any]] = {}
        self.pods: list = []
        self.discover_calls = 0
        self.fetches: Counter = Counter()
        self.closed = False
        self._serializer = ApiClient()

    def add(self, resource: ResourceIdentifier, *owners: ResourceIdentifier) -> dict[str, Any]:
        metadata: dict[str, Any] = {"name": resource.name}
        if resource.namespace is not None:
            metadata["namespace"] = resource.namespace
        if owners:
            metadata["ownerReferences"] = [
                {"apiVersion": owner.gvk.api_version, "kind": owner.gvk.kind, "name": owner.name, "uid": owner.name}
                for owner in owners
            ]

        object = {"apiVersion": resource.gvk.api_version, "kind": resource.gvk.kind, "metadata": metadata}
        self.objects[resource] = object
        return object

    async def discover(self) -> dict:
        self.discover_calls += 1
        return dict(self.discovery)

    async def get(self, api: ApiAccessor, name: str) -> dict[str, Any]:
        resource = ResourceIdentifier(gvk=api.resource.gvk, name=name, namespace=api.namespace)
        self.fetches[resource] += 1

        if resource not in self.objects:
            raise ObjectFetchError(f"Error 404 reading {api.path(name)}: Not Found", status=404)
        return self.objects[resource]

    async def list_pods(self) -> list:
        return self.pods

    def to_dict(self, object: Any) -> dict[str, Any]:
        return self._serializer.sanitize_for_serialization(object)

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def cluster() -> FakeClusterClient:
    return FakeClusterClient()
