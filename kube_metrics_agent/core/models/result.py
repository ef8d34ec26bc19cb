from __future__ import annotations

from datetime import datetime
from typing import Any, Callable

import pydantic as pd

from kube_metrics_agent.core.models.objects import PodOwners


class CycleResult(pd.BaseModel):
    timestamp: datetime
    pods: list[PodOwners] = []

    @property
    def resolved_count(self) -> int:
        return len([pod for pod in self.pods if pod.resolved])

    @property
    def failed_count(self) -> int:
        return len([pod for pod in self.pods if not pod.resolved])

    def format(self, formatter: Callable[[CycleResult], Any]) -> Any:
        """Format the result using the given formatter."""

        return formatter(self)
