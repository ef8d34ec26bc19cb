import json as json_lib
from datetime import datetime, timezone

import pytest
from rich.console import Console
from rich.table import Table

from kube_metrics_agent import formatters
from kube_metrics_agent.core.models.objects import OwnerReference, PodOwners
from kube_metrics_agent.core.models.result import CycleResult

RESULT = CycleResult(
    timestamp=datetime(2024, 5, 18, 22, 39, 24, tzinfo=timezone.utc),
    pods=[
        PodOwners(
            name="web-5d4f-a",
            namespace="prod",
            node="node-1",
            owners=[OwnerReference(kind="Deployment", name="web", namespace="prod")],
        ),
        PodOwners(name="orphan", namespace="prod", node="node-2", error="Error 404 reading /apis/apps/v1/x"),
        PodOwners(
            name="kube-apiserver-n1",
            namespace="kube-system",
            node="n1",
            owners=[OwnerReference(kind="Node", name="n1")],
        ),
    ],
)


def test_available_formatters():
    assert sorted(formatters.list_available()) == ["json", "table"]


def test_json_formatter():
    output = json_lib.loads(RESULT.format(formatters.find("json").render))

    assert output["timestamp"] == "2024-05-18T22:39:24Z"
    assert output["pods"][0]["owners"] == [{"kind": "Deployment", "name": "web", "namespace": "prod"}]
    assert output["pods"][1]["error"] == "Error 404 reading /apis/apps/v1/x"
    assert output["pods"][2]["owners"] == [{"kind": "Node", "name": "n1", "namespace": None}]


def test_table_formatter():
    table_formatter = formatters.find("table")
    table = RESULT.format(table_formatter.render)

    assert table_formatter.rich
    assert isinstance(table, Table)
    assert table.row_count == 3

    console = Console(width=200, record=True)
    console.print(table)
    rendered = console.export_text()

    assert "Deployment/prod/web" in rendered
    assert "Node/n1" in rendered
    assert "Error 404" in rendered
    assert "2 resolved, 1 failed" in rendered


def test_json_formatter_is_plain_text():
    assert not formatters.find("json").rich


def test_unknown_formatter():
    with pytest.raises(ValueError, match="use one of: table, json"):
        formatters.find("yaml")
