import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Optional

from kubernetes.client.models import V1Pod

from kube_metrics_agent.core.exceptions import OwnershipResolutionError
from kube_metrics_agent.core.integrations.kubernetes import ClusterClient
from kube_metrics_agent.core.models.config import settings
from kube_metrics_agent.core.models.objects import OwnerReference, PodOwners, ResourceIdentifier
from kube_metrics_agent.core.models.result import CycleResult
from kube_metrics_agent.core.ownership import OwnershipResolver

logger = logging.getLogger("kma")


def custom_print(*objects, rich: bool = True, force: bool = False) -> None:
    """
    A wrapper around `rich.print` that prints only if `settings.quiet` is False.
    """
    print_func = settings.logging_console.print if rich else print
    if not settings.quiet or force:
        print_func(*objects)  # type: ignore


class Runner:
    def __init__(self) -> None:
        self._cluster: Optional[ClusterClient] = None
        self._resolver: Optional[OwnershipResolver] = None

    def _connect(self) -> None:
        self._cluster = ClusterClient(settings.context)
        self._resolver = OwnershipResolver(self._cluster)

    async def _resolve_pod(self, pod: V1Pod) -> PodOwners:
        pod_owners = PodOwners(
            name=pod.metadata.name,
            namespace=pod.metadata.namespace,
            node=pod.spec.node_name if pod.spec is not None else None,
        )
        object = self._cluster.to_dict(pod)

        try:
            identifier = ResourceIdentifier.from_object(object)
            owners = await self._resolver.resolve_top_level_owners(identifier, object)
        except OwnershipResolutionError as e:
            # NOTE: A pod without owners is still worth reporting, so this never fails the whole cycle
            logger.warning(
                f"Could not resolve owners of pod {pod_owners.namespace}/{pod_owners.name}: {e}",
                exc_info=settings.verbose,
            )
            pod_owners.error = str(e)
        else:
            pod_owners.owners = [OwnerReference.from_identifier(owner) for owner in sorted(owners)]

        return pod_owners

    async def _collect_cycle(self) -> CycleResult:
        try:
            pods = await self._cluster.list_pods()
            logger.info(f"Resolving owners of {len(pods)} pods")

            result = CycleResult(timestamp=datetime.now(timezone.utc))
            # Pods are resolved one by one so that pods of the same workload share the cached owners
            for pod in pods:
                result.pods.append(await self._resolve_pod(pod))

            logger.info(f"Resolved owners of {result.resolved_count} pods, {result.failed_count} failed")
            return result
        finally:
            self._resolver.reset()

    def _process_result(self, result: CycleResult) -> None:
        formatter = settings.Formatter
        formatted = result.format(formatter.render)

        custom_print(formatted, rich=formatter.rich, force=True)

    async def run(self) -> int:
        """Run the Runner. The return value is the exit code of the program."""

        try:
            settings.load_kubeconfig()
        except Exception as e:
            logger.error(f"Could not load kubernetes configuration: {e}")
            logger.error("Try to explicitly set --context and/or --kubeconfig flags.")
            return 1  # Exit with error

        self._connect()
        try:
            return await self._poll()
        finally:
            self._cluster.close()

    async def _poll(self) -> int:
        while True:
            started = time.monotonic()

            try:
                result = await self._collect_cycle()
            except Exception:
                logger.exception("An unexpected error occurred while collecting this cycle")
                if settings.once:
                    return 1  # Exit with error
            else:
                self._process_result(result)
                if settings.once:
                    return 0  # Exit with success

            await asyncio.sleep(max(settings.interval - (time.monotonic() - started), 0))
