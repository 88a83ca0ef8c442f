"""Configuration loading utilities for the Aiven service broker."""
from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .ipfilter import DEFAULT_IP_WHITELIST_ENV

DEFAULT_API_URL = "https://api.aiven.io"

_PREFIX_PATTERN = re.compile(r"^[a-z0-9-]*$")


@dataclass(slots=True)
class PlanNotFoundError(ValueError):
    """Raised when no catalog plan matches a (service id, plan id) pair."""

    service_id: str
    plan_id: str

    def __str__(self) -> str:
        return f"plan {self.plan_id!r} not found for service {self.service_id!r}"


class PlanConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    aiven_plan: str = Field(description="Aiven plan code, e.g. startup-4")
    elasticsearch_version: str = Field(description="Engine version requested from Aiven; quote it in YAML")

    @field_validator("elasticsearch_version", mode="before")
    @classmethod
    def _require_quoted_version(cls, value: Any) -> Any:
        # unquoted YAML numbers lose information (7.10 loads as 7.1)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            raise ValueError(
                f"elasticsearch_version must be a quoted string, e.g. \"{value}\"; got the number {value}"
            )
        return value


class ServiceConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    plans: tuple[PlanConfig, ...] = ()


class CatalogConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    services: tuple[ServiceConfig, ...] = ()


class BrokerConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    api_token: str = Field(description="Aiven API token")
    project: str = Field(description="Aiven project that owns the services")
    cloud: str = Field(description="Aiven cloud region, e.g. aws-eu-west-1")
    service_name_prefix: str = Field("", description="Prefix for derived Aiven service names")
    api_url: str = Field(DEFAULT_API_URL, description="Base URL of the Aiven API")
    request_timeout: float = Field(60.0, gt=0, description="Default timeout for Aiven calls, in seconds")
    update_debounce_seconds: int = Field(
        60,
        gt=0,
        description="Window after an update during which status polls report in-progress",
    )
    ip_whitelist_env: str = Field(
        DEFAULT_IP_WHITELIST_ENV,
        description="Environment variable holding the comma-separated IP allowlist",
    )
    catalog: CatalogConfig = Field(default_factory=CatalogConfig)

    @model_validator(mode="before")
    @classmethod
    def _reject_placeholders(cls, values: Any) -> Any:
        if not isinstance(values, dict):
            return values
        values = dict(values)
        for key in ("api_token", "project", "cloud"):
            value = values.get(key)
            if isinstance(value, str):
                stripped = value.strip()
                if not stripped or (stripped.startswith("<") and stripped.endswith(">")):
                    raise ValueError(f"{key} must be set")
                values[key] = stripped
        return values

    @field_validator("service_name_prefix")
    @classmethod
    def _validate_prefix(cls, value: str) -> str:
        if not _PREFIX_PATTERN.match(value):
            raise ValueError("service_name_prefix may only contain lowercase letters, digits and '-'")
        return value

    @field_validator("api_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "BrokerConfig":
        return cls.model_validate(raw)

    @classmethod
    def from_yaml(cls, path: Path) -> "BrokerConfig":
        data = yaml.safe_load(path.read_text())
        return cls.from_dict(data)

    def find_plan(self, service_id: str, plan_id: str) -> PlanConfig:
        """Return the catalog plan matching both ids exactly."""
        for service in self.catalog.services:
            if service.id != service_id:
                continue
            for plan in service.plans:
                if plan.id == plan_id:
                    return plan
        raise PlanNotFoundError(service_id=service_id, plan_id=plan_id)


def load_config(path: str | Path) -> BrokerConfig:
    """Load a BrokerConfig from a YAML (or JSON) file."""
    config_path = Path(path).expanduser().resolve()
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")
    return BrokerConfig.from_yaml(config_path)
