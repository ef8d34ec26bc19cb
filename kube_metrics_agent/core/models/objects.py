from __future__ import annotations

import enum
from typing import Any, Optional

import pydantic as pd

from kube_metrics_agent.core.exceptions import MalformedObjectError


class Scope(str, enum.Enum):
    """Whether objects of a type live inside a namespace or across the whole cluster."""

    Namespaced = "Namespaced"
    Cluster = "Cluster"


class GroupVersionKind(pd.BaseModel):
    model_config = pd.ConfigDict(frozen=True)

    group: str
    version: str
    kind: str

    @classmethod
    def from_api_version(cls, api_version: str, kind: str) -> GroupVersionKind:
        # NOTE: The core group has no name, its apiVersion is just "v1"
        group, _, version = api_version.rpartition("/")
        return cls(group=group, version=version, kind=kind)

    @property
    def api_version(self) -> str:
        return f"{self.group}/{self.version}" if self.group else self.version

    def __str__(self) -> str:
        return f"{self.api_version}, Kind={self.kind}"

    def __lt__(self, other: GroupVersionKind) -> bool:
        return (self.group, self.version, self.kind) < (other.group, other.version, other.kind)


class ApiResource(pd.BaseModel):
    """The shape of a resource type as reported by the cluster's discovery endpoints."""

    model_config = pd.ConfigDict(frozen=True)

    group: str
    version: str
    kind: str
    plural: str

    @property
    def gvk(self) -> GroupVersionKind:
        return GroupVersionKind(group=self.group, version=self.version, kind=self.kind)

    @property
    def base_path(self) -> str:
        if self.group == "":
            return f"/api/{self.version}"
        return f"/apis/{self.group}/{self.version}"


class ApiAccessor(pd.BaseModel):
    """
    A scope-correct request target for reading objects of one type.
    Cluster-wide accessors carry no namespace.
    """

    model_config = pd.ConfigDict(frozen=True)

    resource: ApiResource
    namespace: Optional[str] = None

    def path(self, name: str) -> str:
        if self.namespace is None:
            return f"{self.resource.base_path}/{self.resource.plural}/{name}"
        return f"{self.resource.base_path}/namespaces/{self.namespace}/{self.resource.plural}/{name}"


class ResourceIdentifier(pd.BaseModel):
    model_config = pd.ConfigDict(frozen=True)

    gvk: GroupVersionKind
    name: str
    # NOTE: Cluster-scoped resources must always have namespace=None, otherwise equal resources won't compare equal
    namespace: Optional[str] = None

    def __str__(self) -> str:
        if self.namespace is None:
            return f"{self.gvk.kind} {self.name}"
        return f"{self.gvk.kind} {self.namespace}/{self.name}"

    def __lt__(self, other: ResourceIdentifier) -> bool:
        return self._sort_key() < other._sort_key()

    def _sort_key(self) -> tuple:
        return (
            self.gvk.group,
            self.gvk.version,
            self.gvk.kind,
            self.namespace is not None,
            self.namespace or "",
            self.name,
        )

    def without_namespace(self) -> ResourceIdentifier:
        return self.model_copy(update={"namespace": None})

    @classmethod
    def from_object(cls, object: dict[str, Any]) -> ResourceIdentifier:
        metadata = object.get("metadata") or {}
        api_version, kind, name = object.get("apiVersion"), object.get("kind"), metadata.get("name")

        if not api_version or not kind:
            raise MalformedObjectError(f"Object {name!r} does not have a GroupVersionKind")
        if not name:
            raise MalformedObjectError(f"{kind} object does not have a name")

        return cls(
            gvk=GroupVersionKind.from_api_version(api_version, kind),
            name=name,
            namespace=metadata.get("namespace"),
        )

    @classmethod
    def from_owner_reference(cls, owner_reference: dict[str, Any], namespace: Optional[str]) -> ResourceIdentifier:
        """
        Build the identifier of an owner from one entry of an object's `ownerReferences`.
        Owner references carry no namespace, the owner inherits the namespace of the owned object.
        """

        api_version = owner_reference.get("apiVersion")
        kind = owner_reference.get("kind")
        name = owner_reference.get("name")

        if not api_version or not kind or not name:
            raise MalformedObjectError(f"Owner reference {owner_reference} is missing apiVersion, kind or name")

        return cls(
            gvk=GroupVersionKind.from_api_version(api_version, kind),
            name=name,
            namespace=namespace,
        )


class OwnerReference(pd.BaseModel):
    """An owner as it is attached to a pod's metrics."""

    kind: str
    name: str
    namespace: Optional[str] = None

    @classmethod
    def from_identifier(cls, identifier: ResourceIdentifier) -> OwnerReference:
        return cls(kind=identifier.gvk.kind, name=identifier.name, namespace=identifier.namespace)

    def __str__(self) -> str:
        if self.namespace is None:
            return f"{self.kind}/{self.name}"
        return f"{self.kind}/{self.namespace}/{self.name}"


class PodOwners(pd.BaseModel):
    name: str
    namespace: str
    node: Optional[str] = None
    owners: list[OwnerReference] = []
    error: Optional[str] = None

    @property
    def resolved(self) -> bool:
        return self.error is None
