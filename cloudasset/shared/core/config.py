from __future__ import annotations

from datetime import timedelta
from functools import lru_cache
from typing import Any, ClassVar, Optional
import os
import re

import structlog
import yaml
from pydantic import (
    AliasChoices,
    BaseModel,
    Field,
    SecretStr,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

from cloudasset.core.exceptions import ConfigurationError

# Environment Constants
ENV_PRODUCTION = "production"
ENV_DEVELOPMENT = "development"
ENV_LOCAL = "local"

CONFIG_FILE_ENV = "CLOUDASSET_CONFIG"

DEFAULT_PERIOD = timedelta(seconds=600)

# Go-style durations as found in collector config files: "600s", "10m", "1h30m"
_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|s|m|h)")
_DURATION_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}


def parse_duration(value: Any) -> Any:
    """Convert a Go-style duration string into a timedelta; pass anything else through."""
    if not isinstance(value, str):
        return value
    text = value.strip()
    if not text:
        return value
    if re.fullmatch(r"\d+(?:\.\d+)?", text):
        return timedelta(seconds=float(text))
    parts = _DURATION_PART.findall(text)
    if not parts or "".join(n + u for n, u in parts) != text:
        # Let pydantic try ISO 8601 and report the error itself
        return value
    return timedelta(
        seconds=sum(float(number) * _DURATION_UNITS[unit] for number, unit in parts)
    )


def is_type_enabled(asset_types: list[str] | None, asset_type: str) -> bool:
    """An empty or absent allow-list enables every asset type."""
    if not asset_types:
        return True
    return asset_type in asset_types


class CollectorSettings(BaseModel):
    """Options shared by every provider collector."""

    SUPPORTED_ASSET_TYPES: ClassVar[tuple[str, ...]] = ()

    asset_types: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("asset_types", "assetTypes"),
    )
    period: timedelta = DEFAULT_PERIOD
    index_namespace: str = Field(
        default="",
        validation_alias=AliasChoices("index_namespace", "indexNamespace"),
    )

    @field_validator("period", mode="before")
    @classmethod
    def _parse_period(cls, value: Any) -> Any:
        return parse_duration(value)

    @field_validator("period")
    @classmethod
    def _period_positive(cls, value: timedelta) -> timedelta:
        if value.total_seconds() <= 0:
            raise ValueError("period must be > 0")
        return value

    @model_validator(mode="after")
    def _validate_asset_types(self) -> "CollectorSettings":
        unknown = sorted(set(self.asset_types) - set(self.SUPPORTED_ASSET_TYPES))
        if unknown:
            raise ValueError(
                f"unsupported asset types {unknown}; expected a subset of {list(self.SUPPORTED_ASSET_TYPES)}"
            )
        return self

    @property
    def period_seconds(self) -> float:
        return self.period.total_seconds()

    @property
    def cache_ttl(self) -> timedelta:
        """Cross-reference entries must survive until the next pass has done its lookups."""
        return self.period * 2

    def is_type_enabled(self, asset_type: str) -> bool:
        return is_type_enabled(self.asset_types, asset_type)


class AWSSettings(CollectorSettings):
    SUPPORTED_ASSET_TYPES: ClassVar[tuple[str, ...]] = (
        "aws.ec2.instance",
        "aws.vpc",
        "aws.subnet",
        "k8s.cluster",
    )

    regions: list[str] = Field(default_factory=lambda: ["eu-west-2"])
    access_key_id: Optional[str] = None
    secret_access_key: Optional[SecretStr] = None
    session_token: Optional[SecretStr] = None
    # Support for LocalStack / custom endpoints
    endpoint_url: Optional[str] = None

    @model_validator(mode="after")
    def _validate_static_credentials(self) -> "AWSSettings":
        if bool(self.access_key_id) != bool(self.secret_access_key):
            raise ValueError(
                "access_key_id and secret_access_key must be configured together"
            )
        return self


class GCPSettings(CollectorSettings):
    SUPPORTED_ASSET_TYPES: ClassVar[tuple[str, ...]] = (
        "gcp.compute.instance",
        "gcp.vpc",
        "gcp.subnet",
        "k8s.cluster",
    )

    projects: list[str]
    regions: list[str] = Field(default_factory=list)
    credentials_file_path: Optional[str] = None

    @field_validator("projects")
    @classmethod
    def _projects_required(cls, value: list[str]) -> list[str]:
        if not value:
            raise ValueError("at least one GCP project must be configured")
        return value


class AzureSettings(CollectorSettings):
    SUPPORTED_ASSET_TYPES: ClassVar[tuple[str, ...]] = ("azure.vm.instance",)

    regions: list[str] = Field(default_factory=list)
    client_id: Optional[str] = None
    client_secret: Optional[SecretStr] = None
    tenant_id: Optional[str] = None
    # When unset every subscription visible to the credential is collected
    subscription_id: Optional[str] = None
    resource_group: Optional[str] = None

    @property
    def has_client_secret_credentials(self) -> bool:
        return bool(self.tenant_id and self.client_id and self.client_secret)


class KubernetesSettings(CollectorSettings):
    SUPPORTED_ASSET_TYPES: ClassVar[tuple[str, ...]] = (
        "k8s.node",
        "k8s.pod",
        "k8s.container",
    )

    # When unset the in-cluster service account configuration is used
    kube_config: Optional[str] = None
    initial_sync_delay: timedelta = timedelta(seconds=10)
    watch_timeout: timedelta = timedelta(seconds=60)

    @field_validator("initial_sync_delay", "watch_timeout", mode="before")
    @classmethod
    def _parse_durations(cls, value: Any) -> Any:
        return parse_duration(value)

    @property
    def in_cluster(self) -> bool:
        return not self.kube_config


class HostdataSettings(CollectorSettings):
    """The machine the collector itself runs on."""

    SUPPORTED_ASSET_TYPES: ClassVar[tuple[str, ...]] = ("host",)

    period: timedelta = timedelta(minutes=1)
    machine_id_paths: list[str] = Field(
        default_factory=lambda: ["/etc/machine-id", "/var/lib/dbus/machine-id"]
    )


class Settings(BaseSettings):
    """
    Main configuration for cloudasset.
    Uses Pydantic-Settings for environment variable parsing from .env;
    a YAML config file passed to load_settings() takes precedence.
    """

    APP_NAME: str = "cloudasset"
    VERSION: str = "0.1.0"
    DEBUG: bool = False
    ENVIRONMENT: str = ENV_DEVELOPMENT
    TESTING: bool = False

    # Upper bound for each cross-reference cache
    CACHE_MAX_SIZE: int = 8192

    # Prometheus /metrics listener; 0 disables it
    METRICS_PORT: int = 0
    METRICS_ADDR: str = "0.0.0.0"

    aws: Optional[AWSSettings] = None
    gcp: Optional[GCPSettings] = None
    azure: Optional[AzureSettings] = None
    kubernetes: Optional[KubernetesSettings] = None
    hostdata: Optional[HostdataSettings] = None

    model_config = SettingsConfigDict(
        env_file=".env",
        env_ignore_empty=True,
        env_nested_delimiter="__",
        extra="ignore",
    )

    @model_validator(mode="after")
    def validate_all_config(self) -> "Settings":
        if self.CACHE_MAX_SIZE < 1:
            raise ValueError("CACHE_MAX_SIZE must be >= 1.")
        if not 0 <= self.METRICS_PORT <= 65535:
            raise ValueError("METRICS_PORT must be between 0 and 65535.")
        return self

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == ENV_PRODUCTION

    @property
    def configured_providers(self) -> list[str]:
        return [
            name
            for name in ("aws", "gcp", "azure", "kubernetes", "hostdata")
            if getattr(self, name) is not None
        ]


def load_settings(config_file: Optional[str] = None) -> Settings:
    """
    Build settings from the environment, overlaid with an optional YAML file.

    Any problem is reported as ConfigurationError so that the process fails
    before the first collection pass.
    """
    logger = structlog.get_logger()
    data: dict[str, Any] = {}
    if config_file:
        try:
            with open(config_file, encoding="utf-8") as fh:
                loaded = yaml.safe_load(fh)
        except OSError as exc:
            raise ConfigurationError(
                f"Unable to read config file {config_file}: {exc}"
            ) from exc
        except yaml.YAMLError as exc:
            raise ConfigurationError(
                f"Config file {config_file} is not valid YAML: {exc}"
            ) from exc
        if loaded is None:
            loaded = {}
        if not isinstance(loaded, dict):
            raise ConfigurationError(
                f"Config file {config_file} must contain a mapping at the top level"
            )
        data = loaded

    try:
        settings = Settings(**data)
    except ValidationError as exc:
        raise ConfigurationError(
            f"Invalid configuration: {exc}",
            details={"errors": exc.errors(include_url=False)},
        ) from exc

    logger.debug(
        "settings_loaded",
        config_file=config_file,
        providers=settings.configured_providers,
    )
    return settings


@lru_cache
def get_settings() -> Settings:
    """Returns a singleton instance of the application settings."""
    return load_settings(os.environ.get(CONFIG_FILE_ENV))
