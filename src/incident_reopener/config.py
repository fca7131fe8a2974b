"""Configuration for the incident reopener, read once per invocation."""

import math
import os
from dataclasses import dataclass, replace
from datetime import timedelta
from typing import List, Mapping, Optional

from incident_reopener.errors import ConfigError

# Environment variables / Automation variables
SUBSCRIPTION_ID_ENV = "SUBSCRIPTION_ID"
RESOURCE_GROUP_NAME_ENV = "RESOURCE_GROUP_NAME"
WORKSPACE_NAME_ENV = "WORKSPACE_NAME"
TIME_WINDOW_HOURS_ENV = "TIME_WINDOW_HOURS"
AZURE_CLIENT_ID_ENV = "AZURE_CLIENT_ID"
AZURE_CLIENT_SECRET_ENV = "AZURE_CLIENT_SECRET"
AZURE_TENANT_ID_ENV = "AZURE_TENANT_ID"
CORS_ALLOWED_ORIGIN_ENV = "CORS_ALLOWED_ORIGIN"
SENTINEL_API_VERSION_ENV = "SENTINEL_API_VERSION"
MANAGEMENT_ENDPOINT_ENV = "MANAGEMENT_ENDPOINT"
INCIDENT_PAGE_SIZE_ENV = "INCIDENT_PAGE_SIZE"

REQUIRED_SETTINGS = [SUBSCRIPTION_ID_ENV, RESOURCE_GROUP_NAME_ENV, WORKSPACE_NAME_ENV]

# Default values
DEFAULT_TIME_WINDOW_HOURS = 24.0
DEFAULT_CORS_ALLOWED_ORIGIN = "https://portal.azure.com"
DEFAULT_API_VERSION = "2023-02-01"
DEFAULT_MANAGEMENT_ENDPOINT = "https://management.azure.com"
MAX_PAGE_SIZE = 200


def parse_time_window_hours(value: str) -> float:
    """Parse a window size in hours. Fractions are allowed (0.083 is five minutes)."""
    try:
        hours = float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"Invalid time window '{value}': expected a number of hours")
    if not math.isfinite(hours) or hours <= 0:
        raise ConfigError(f"Invalid time window '{value}': must be greater than zero")
    return hours


def get_cors_origin(environ: Optional[Mapping[str, str]] = None) -> str:
    """CORS origin is needed even when the rest of the configuration is broken."""
    environ = os.environ if environ is None else environ
    return environ.get(CORS_ALLOWED_ORIGIN_ENV) or DEFAULT_CORS_ALLOWED_ORIGIN


@dataclass(frozen=True)
class ReopenerConfig:
    """Settings for one reopen run."""

    subscription_id: str
    resource_group: str
    workspace_name: str
    time_window_hours: float = DEFAULT_TIME_WINDOW_HOURS
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    tenant_id: Optional[str] = None
    cors_allowed_origin: str = DEFAULT_CORS_ALLOWED_ORIGIN
    api_version: str = DEFAULT_API_VERSION
    management_endpoint: str = DEFAULT_MANAGEMENT_ENDPOINT
    page_size: int = MAX_PAGE_SIZE

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ReopenerConfig":
        """
        Build the configuration from environment variables.

        Args:
            environ: Mapping to read from, defaults to os.environ

        Raises:
            ConfigError: If a required setting is missing or a value is invalid
        """
        environ = os.environ if environ is None else environ

        missing: List[str] = [name for name in REQUIRED_SETTINGS if not environ.get(name, "").strip()]
        if missing:
            raise ConfigError(f"Missing required configuration: {', '.join(missing)}")

        window = environ.get(TIME_WINDOW_HOURS_ENV, "").strip()
        hours = parse_time_window_hours(window) if window else DEFAULT_TIME_WINDOW_HOURS

        page_size_raw = environ.get(INCIDENT_PAGE_SIZE_ENV, "").strip()
        page_size = MAX_PAGE_SIZE
        if page_size_raw:
            try:
                page_size = int(page_size_raw)
            except ValueError:
                raise ConfigError(f"Invalid {INCIDENT_PAGE_SIZE_ENV} '{page_size_raw}': expected an integer")
            if not 1 <= page_size <= MAX_PAGE_SIZE:
                raise ConfigError(f"{INCIDENT_PAGE_SIZE_ENV} must be between 1 and {MAX_PAGE_SIZE}")

        return cls(
            subscription_id=environ[SUBSCRIPTION_ID_ENV].strip(),
            resource_group=environ[RESOURCE_GROUP_NAME_ENV].strip(),
            workspace_name=environ[WORKSPACE_NAME_ENV].strip(),
            time_window_hours=hours,
            client_id=environ.get(AZURE_CLIENT_ID_ENV) or None,
            client_secret=environ.get(AZURE_CLIENT_SECRET_ENV) or None,
            tenant_id=environ.get(AZURE_TENANT_ID_ENV) or None,
            cors_allowed_origin=get_cors_origin(environ),
            api_version=environ.get(SENTINEL_API_VERSION_ENV) or DEFAULT_API_VERSION,
            management_endpoint=(environ.get(MANAGEMENT_ENDPOINT_ENV) or DEFAULT_MANAGEMENT_ENDPOINT).rstrip("/"),
            page_size=page_size,
        )

    @property
    def time_window(self) -> timedelta:
        return timedelta(hours=self.time_window_hours)

    @property
    def uses_client_secret(self) -> bool:
        return bool(self.client_id and self.client_secret and self.tenant_id)

    @property
    def incidents_path(self) -> str:
        """ARM path of the workspace's incident collection."""
        return (
            f"/subscriptions/{self.subscription_id}"
            f"/resourceGroups/{self.resource_group}"
            f"/providers/Microsoft.OperationalInsights/workspaces/{self.workspace_name}"
            f"/providers/Microsoft.SecurityInsights/incidents"
        )

    def with_time_window(self, hours: float) -> "ReopenerConfig":
        return replace(self, time_window_hours=hours)
