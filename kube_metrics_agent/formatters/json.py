from kube_metrics_agent.core.models.result import CycleResult


def json(result: CycleResult) -> str:
    return result.model_dump_json(indent=2)
