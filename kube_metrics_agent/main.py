from __future__ import annotations

import asyncio
import logging
from typing import List, Optional

import typer
import urllib3
from pydantic import ValidationError

from kube_metrics_agent import formatters
from kube_metrics_agent.core.models.config import Config
from kube_metrics_agent.core.runner import Runner
from kube_metrics_agent.utils.version import get_version

app = typer.Typer(
    pretty_exceptions_show_locals=False,
    pretty_exceptions_short=True,
    no_args_is_help=True,
    help="Poll a Kubernetes cluster and resolve every pod to the workloads that own it.",
)

# NOTE: Disable insecure request warnings, as it might be expected to use self-signed certificates inside the cluster
urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

logger = logging.getLogger("kma")


@app.command(rich_help_panel="Utils")
def version() -> None:
    typer.echo(get_version())


@app.command(rich_help_panel="Agent")
def start(
    kubeconfig: Optional[str] = typer.Option(
        None,
        "--kubeconfig",
        "-k",
        help="Path to kubeconfig file. If not provided, will attempt to find it.",
        rich_help_panel="Kubernetes Settings",
    ),
    context: Optional[str] = typer.Option(
        None,
        "--context",
        "-c",
        help="Kubeconfig context to use. By default, will use the current context.",
        rich_help_panel="Kubernetes Settings",
    ),
    impersonate_user: Optional[str] = typer.Option(
        None,
        "--as",
        help="Impersonate a user, just like `kubectl --as`. For example, system:serviceaccount:default:agent.",
        rich_help_panel="Kubernetes Settings",
    ),
    impersonate_group: Optional[str] = typer.Option(
        None,
        "--as-group",
        help="Impersonate a user inside of a group, just like `kubectl --as-group`. For example, system:authenticated.",
        rich_help_panel="Kubernetes Settings",
    ),
    namespaces: List[str] = typer.Option(
        None,
        "--namespace",
        "-n",
        help="List of namespaces to watch pods in. By default, will watch all namespaces.",
        rich_help_panel="Kubernetes Settings",
    ),
    request_timeout: float = typer.Option(
        30.0,
        "--request-timeout",
        help="Timeout in seconds of every request to the Kubernetes API.",
        rich_help_panel="Kubernetes Settings",
    ),
    interval: int = typer.Option(
        60,
        "--interval",
        "-i",
        help="Seconds between two polling cycles.",
        rich_help_panel="Polling Settings",
    ),
    once: bool = typer.Option(
        False,
        "--once",
        help="Run a single polling cycle and exit.",
        rich_help_panel="Polling Settings",
    ),
    max_workers: int = typer.Option(
        6,
        "--max-workers",
        "-w",
        help="Max workers to use for requests to the Kubernetes API.",
        rich_help_panel="Threading Settings",
    ),
    format: str = typer.Option(
        "table",
        "--formatter",
        "-f",
        help=f"Output formatter ({', '.join(formatters.list_available())})",
        rich_help_panel="Logging Settings",
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable verbose mode", rich_help_panel="Logging Settings"
    ),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Enable quiet mode", rich_help_panel="Logging Settings"),
    log_to_stderr: bool = typer.Option(
        False, "--logtostderr", help="Pass logs to stderr", rich_help_panel="Logging Settings"
    ),
    width: Optional[int] = typer.Option(
        None,
        "--width",
        help="Width of the output. Will use console width by default.",
        rich_help_panel="Logging Settings",
    ),
) -> None:
    """Resolve the top-level owners of every pod, once per polling cycle"""

    try:
        config = Config(
            kubeconfig=kubeconfig,
            context=context,
            impersonate_user=impersonate_user,
            impersonate_group=impersonate_group,
            namespaces="*" if not namespaces else list(namespaces),
            request_timeout=request_timeout,
            interval=interval,
            once=once,
            max_workers=max_workers,
            format=format,
            verbose=verbose,
            quiet=quiet,
            log_to_stderr=log_to_stderr,
            width=width,
        )
        Config.set_config(config)
    except ValidationError:
        logger.exception("Error occured while parsing arguments")
        raise typer.Exit(code=1)

    runner = Runner()
    exit_code = asyncio.run(runner.run())
    raise typer.Exit(code=exit_code)


def run() -> None:
    app()


if __name__ == "__main__":
    run()
