from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from kube_metrics_agent.core.models.objects import GroupVersionKind, ResourceIdentifier


class OwnershipResolutionError(Exception):
    """Base class for everything that aborts an ownership traversal."""


class UnresolvableKindError(OwnershipResolutionError):
    def __init__(self, gvk: GroupVersionKind) -> None:
        super().__init__(f"Could not resolve GroupVersionKind {gvk}")
        self.gvk = gvk


class MissingNamespaceError(OwnershipResolutionError):
    def __init__(self, gvk: GroupVersionKind) -> None:
        super().__init__(f"Cannot resolve namespaced API {gvk} without a namespace")
        self.gvk = gvk


class ObjectFetchError(OwnershipResolutionError):
    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class MalformedObjectError(OwnershipResolutionError): ...


__all__ = [
    "OwnershipResolutionError",
    "UnresolvableKindError",
    "MissingNamespaceError",
    "ObjectFetchError",
    "MalformedObjectError",
]
