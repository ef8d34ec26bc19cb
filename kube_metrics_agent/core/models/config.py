from __future__ import annotations

import logging
import sys
from typing import Any, Literal, Optional, Union

import pydantic as pd
from kubernetes import client, config
from kubernetes.config.config_exception import ConfigException
from pydantic_settings import BaseSettings, SettingsConfigDict
from rich.console import Console
from rich.logging import RichHandler

from kube_metrics_agent import formatters

logger = logging.getLogger("kma")


class Config(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="KMA_")

    quiet: bool = pd.Field(False)
    verbose: bool = pd.Field(False)

    kubeconfig: Optional[str] = None
    context: Optional[str] = None
    impersonate_user: Optional[str] = None
    impersonate_group: Optional[str] = None
    namespaces: Union[list[str], Literal["*"]] = pd.Field("*")

    # Polling settings
    interval: int = pd.Field(60, ge=1)  # in seconds
    once: bool = pd.Field(False)
    request_timeout: float = pd.Field(30.0, gt=0)  # in seconds

    # Threading settings
    max_workers: int = pd.Field(6, ge=1)

    # Logging Settings
    format: str = pd.Field("table")
    log_to_stderr: bool = pd.Field(False)
    width: Optional[int] = pd.Field(None, ge=1)

    # Internal
    inside_cluster: bool = False
    _logging_console: Optional[Console] = pd.PrivateAttr(None)

    @property
    def Formatter(self) -> formatters.Formatter:
        return formatters.find(self.format)

    @pd.field_validator("namespaces")
    @classmethod
    def validate_namespaces(cls, v: Union[list[str], Literal["*"]]) -> Union[list[str], Literal["*"]]:
        if v == [] or (isinstance(v, list) and "*" in v):
            return "*"

        if isinstance(v, list):
            for val in v:
                if val.startswith("*"):
                    raise ValueError("Namespace's values cannot start with an asterisk (*)")

            return [val.lower() for val in v]

        return v

    @pd.field_validator("format")
    @classmethod
    def validate_format(cls, v: str) -> str:
        formatters.find(v)  # NOTE: raises if formatter is not found
        return v

    @property
    def logging_console(self) -> Console:
        if getattr(self, "_logging_console") is None:
            self._logging_console = Console(file=sys.stderr if self.log_to_stderr else sys.stdout, width=self.width)
        return self._logging_console

    def load_kubeconfig(self) -> None:
        try:
            config.load_kube_config(config_file=self.kubeconfig, context=self.context)
            self.inside_cluster = False
        except ConfigException:
            config.load_incluster_config()
            self.inside_cluster = True

    def get_kube_client(self, context: Optional[str] = None):
        if context is None and self.impersonate_user is None and self.impersonate_group is None:
            return None

        if self.inside_cluster:
            api_client = client.ApiClient()
        else:
            api_client = config.new_client_from_config(context=context, config_file=self.kubeconfig)
        if self.impersonate_user is not None:
            # trick copied from https://github.com/kubernetes-client/python/issues/362
            api_client.set_default_header("Impersonate-User", self.impersonate_user)
        if self.impersonate_group is not None:
            api_client.set_default_header("Impersonate-Group", self.impersonate_group)
        return api_client

    @staticmethod
    def set_config(config: Config) -> None:
        global _config

        _config = config
        logging.basicConfig(
            level="NOTSET",
            format="%(message)s",
            datefmt="[%X]",
            handlers=[RichHandler(console=config.logging_console)],
        )
        logging.getLogger("").setLevel(logging.CRITICAL)
        logger.setLevel(logging.DEBUG if config.verbose else logging.CRITICAL if config.quiet else logging.INFO)

    @staticmethod
    def get_config() -> Optional[Config]:
        return _config


# NOTE: This class is just a proxy for _config.
# Import settings from this module and use it like it is just a config object.
class _Settings:
    def __getattr__(self, name: str) -> Any:
        if _config is None:
            raise AttributeError("Config is not set")

        return getattr(_config, name)


_config: Optional[Config] = None
settings: Config = _Settings()  # type: ignore
