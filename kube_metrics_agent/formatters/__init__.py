"""Renderers of a `CycleResult`, selected by name with `--formatter`."""

from __future__ import annotations

from typing import Any, Callable, NamedTuple

from kube_metrics_agent.core.models.result import CycleResult

from .json import json
from .table import table


class Formatter(NamedTuple):
    render: Callable[[CycleResult], Any]
    # Rich renderables go through the logging console, plain text through print
    rich: bool = False


FORMATTERS: dict[str, Formatter] = {
    "table": Formatter(table, rich=True),
    "json": Formatter(json),
}


def find(name: str) -> Formatter:
    try:
        return FORMATTERS[name]
    except KeyError as e:
        raise ValueError(f"Formatter '{name}' not found, use one of: {', '.join(FORMATTERS)}") from e


def list_available() -> list[str]:
    return list(FORMATTERS)


__all__ = ["Formatter", "find", "list_available"]
