import itertools
from typing import Any

from rich.markup import escape
from rich.table import Table

from kube_metrics_agent.core.models.objects import PodOwners
from kube_metrics_agent.core.models.result import CycleResult

NONE_LITERAL = "none"


def _format_owners(item: PodOwners) -> str:
    if item.error is not None:
        return f"[red]{escape(item.error)}[/red]"

    if not item.owners:
        return f"[grey27]{NONE_LITERAL}[/grey27]"

    return "\n".join(str(owner) for owner in item.owners)


def table(result: CycleResult) -> Table:
    """Format the result as a rich table, one row per pod, grouped by namespace."""

    table = Table(
        show_header=True,
        header_style="bold magenta",
        title=f"\nTop-level owners at {result.timestamp.isoformat(timespec='seconds')}\n",
        title_justify="left",
        title_style="",
        caption=f"{result.resolved_count} resolved, {result.failed_count} failed",
    )

    table.add_column("Number", justify="right", no_wrap=True)
    table.add_column("Namespace", style="cyan")
    table.add_column("Pod", style="cyan")
    table.add_column("Node", style="cyan")
    table.add_column("Owners")

    for _, group in itertools.groupby(enumerate(result.pods), key=lambda x: x[1].namespace):
        group_items = list(group)

        for j, (i, item) in enumerate(group_items):
            color = "green" if item.resolved else "red"
            cells: list[Any] = [
                f"[{color}]{i + 1}.[/{color}]",
                item.namespace if j == 0 else "",
                item.name,
                item.node or "",
                _format_owners(item),
            ]
            table.add_row(*cells, end_section=j == len(group_items) - 1)

    return table
