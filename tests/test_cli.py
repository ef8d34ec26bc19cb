from unittest.mock import AsyncMock, patch

import pytest
from typer.testing import CliRunner

import kube_metrics_agent
from kube_metrics_agent.core.models.config import Config
from kube_metrics_agent.core.runner import Runner
from kube_metrics_agent.main import app

runner = CliRunner()


@pytest.fixture(autouse=True)
def mock_set_config():
    with patch.object(Config, "set_config") as mock_set_config:
        yield mock_set_config


def test_help():
    result = runner.invoke(app, ["start", "--help"])
    try:
        assert result.exit_code == 0
    except AssertionError as e:
        raise e from result.exception


def test_version():
    with patch.object(kube_metrics_agent, "__version__", "1.2.3"):
        result = runner.invoke(app, ["version"])

    assert result.exit_code == 0
    assert result.stdout.strip() == "1.2.3"


@pytest.mark.parametrize("exit_code", [0, 1])
def test_start_returns_runner_exit_code(exit_code: int, mock_set_config):
    with patch.object(Runner, "run", new=AsyncMock(return_value=exit_code)):
        result = runner.invoke(app, ["start", "--once", "-n", "Default", "-n", "kube-system", "-f", "json"])

    assert result.exit_code == exit_code, result.stdout
    config: Config = mock_set_config.call_args.args[0]
    assert config.once
    assert config.namespaces == ["default", "kube-system"]
    assert config.format == "json"


def test_start_without_namespaces_watches_all(mock_set_config):
    with patch.object(Runner, "run", new=AsyncMock(return_value=0)):
        result = runner.invoke(app, ["start", "--once"])

    assert result.exit_code == 0, result.stdout
    assert mock_set_config.call_args.args[0].namespaces == "*"


@pytest.mark.parametrize(
    "args",
    [
        ["start", "-f", "yaml"],
        ["start", "--interval", "0"],
        ["start", "-n", "*kube"],
    ],
)
def test_start_rejects_invalid_settings(args: list[str]):
    with patch.object(Runner, "run", new=AsyncMock(return_value=0)) as mock_run:
        result = runner.invoke(app, args)

    assert result.exit_code == 1
    mock_run.assert_not_called()
