import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Optional

from kubernetes import client  # type: ignore
from kubernetes.client import ApiException
from kubernetes.client.models import V1APIResourceList, V1Pod, V1PodList
from urllib3.exceptions import HTTPError

from kube_metrics_agent.core.exceptions import ObjectFetchError
from kube_metrics_agent.core.models.config import settings
from kube_metrics_agent.core.models.objects import ApiAccessor, ApiResource, Scope
from kube_metrics_agent.core.ownership import DiscoveryResult

logger = logging.getLogger("kma")


class ClusterClient:
    """
    The only part of the agent that talks to the Kubernetes API.
    The kubernetes client is blocking, so every request is run in the executor.
    """

    def __init__(self, cluster: Optional[str] = None) -> None:
        self.cluster = cluster
        self.executor = ThreadPoolExecutor(settings.max_workers)
        self.request_timeout = settings.request_timeout

        self.core = client.CoreV1Api(api_client=settings.get_kube_client(cluster))
        self.api_client = self.core.api_client
        self.apis = client.ApisApi(api_client=self.api_client)

    async def _run(self, request, *args, **kwargs) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            self.executor,
            lambda: request(*args, _request_timeout=self.request_timeout, **kwargs),
        )

    def _get_path(self, path: str, response_type: str, _request_timeout: Optional[float] = None) -> Any:
        return self.api_client.call_api(
            path,
            "GET",
            header_params={"Accept": "application/json"},
            response_type=response_type,
            auth_settings=["BearerToken"],
            _return_http_data_only=True,
            _request_timeout=_request_timeout,
        )

    async def discover(self) -> DiscoveryResult:
        """Read every resource type the API server serves, with its scope.

        Returns:
            A mapping from each GroupVersionKind to its API shape and scope.

        Raises:
            ObjectFetchError: If /api/v1 or the /apis group list cannot be read.
        """

        logger.debug(f"Running API discovery in {self.cluster or 'the current cluster'}")

        core_resources: V1APIResourceList = await self._read_discovery("/api/v1", self.core.get_api_resources)
        group_list = await self._read_discovery("/apis", self.apis.get_api_versions)

        group_versions = [version.group_version for group in group_list.groups or [] for version in group.versions]
        group_resources = await asyncio.gather(*[self._load_group_version(gv) for gv in group_versions])

        result: DiscoveryResult = {}
        for resource_list in [core_resources, *group_resources]:
            if resource_list is not None:
                self._register_resources(result, resource_list)

        logger.debug(f"Discovered {len(result)} resource types in {len(group_versions) + 1} group versions")
        return result

    async def _read_discovery(self, path: str, request) -> Any:
        try:
            return await self._run(request)
        except ApiException as e:
            raise ObjectFetchError(
                f"Error {e.status} reading {path} during discovery: {e.reason}", status=e.status
            ) from e
        except HTTPError as e:
            raise ObjectFetchError(f"Error reading {path} during discovery: {e}") from e

    async def _load_group_version(self, group_version: str) -> Optional[V1APIResourceList]:
        try:
            return await self._run(self._get_path, f"/apis/{group_version}", "V1APIResourceList")
        except ApiException as e:
            # NOTE: Aggregated APIs (e.g. metrics.k8s.io) are often listed but unavailable
            logger.warning(f"Skipping API group {group_version} in discovery, error {e.status}: {e.reason}")
        except HTTPError as e:
            logger.warning(f"Skipping API group {group_version} in discovery: {e}")

        return None

    @staticmethod
    def _register_resources(result: DiscoveryResult, resource_list: V1APIResourceList) -> None:
        group, _, version = resource_list.group_version.rpartition("/")

        for resource in resource_list.resources:
            if "/" in resource.name:
                # Subresources like pods/log or deployments/scale
                continue

            api_resource = ApiResource(group=group, version=version, kind=resource.kind, plural=resource.name)
            result[api_resource.gvk] = (api_resource, Scope.Namespaced if resource.namespaced else Scope.Cluster)

    async def get(self, api: ApiAccessor, name: str) -> dict[str, Any]:
        """Read one object by name, returning it as a plain JSON dict."""

        path = api.path(name)

        logger.debug(f"Reading {path}")
        try:
            return await self._run(self._get_path, path, "object")
        except ApiException as e:
            raise ObjectFetchError(f"Error {e.status} reading {path}: {e.reason}", status=e.status) from e
        except HTTPError as e:
            raise ObjectFetchError(f"Error reading {path}: {e}") from e

    async def list_pods(self) -> list[V1Pod]:
        loop = asyncio.get_running_loop()

        if settings.namespaces == "*":
            requests = [
                loop.run_in_executor(
                    self.executor,
                    lambda: self.core.list_pod_for_all_namespaces(watch=False, _request_timeout=self.request_timeout),
                )
            ]
        else:
            requests = [
                loop.run_in_executor(
                    self.executor,
                    lambda ns=namespace: self.core.list_namespaced_pod(
                        namespace=ns, watch=False, _request_timeout=self.request_timeout
                    ),
                )
                for namespace in settings.namespaces
            ]

        result: list[V1PodList] = await asyncio.gather(*requests)
        pods = [pod for pod_list in result for pod in pod_list.items]
        for pod in pods:
            # List items are returned without their own apiVersion and kind
            pod.api_version, pod.kind = "v1", "Pod"

        logger.debug(f"Found {len(pods)} pods in {self.cluster or 'the current cluster'}")
        return pods

    def to_dict(self, object: Any) -> dict[str, Any]:
        """Convert a typed kubernetes model to the same JSON dict the API would return."""

        return self.api_client.sanitize_for_serialization(object)

    def close(self) -> None:
        self.executor.shutdown()


__all__ = ["ClusterClient"]
