"""Pydantic models for CLI configuration."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from capi_cli.config.constants import DEFAULT_OUTPUT

SECRET_FIELDS = frozenset(
    {"token", "refresh_token", "uaa_token", "uaa_refresh_token", "uaa_client_secret"}
)

# Flat single-endpoint fields consumed by migration and scrubbed on save.
LEGACY_FIELDS = (
    "api",
    "token",
    "refresh_token",
    "username",
    "organization",
    "organization_guid",
    "space",
    "space_guid",
    "skip_ssl_validation",
    "uaa_endpoint",
    "uaa_token",
    "uaa_refresh_token",
    "uaa_client_id",
    "uaa_client_secret",
)


def mask_secret(value: str | None) -> str:
    """Redact a secret for display or logging."""
    if not value:
        return ""
    if len(value) > 8:
        return value[:8] + "..."
    return "***"


def _parse_timestamp(value: Any) -> datetime | None:
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class APIConfig(BaseModel):
    """Settings and credentials for one platform API endpoint."""

    model_config = ConfigDict(extra="ignore", validate_assignment=True)

    endpoint: str = Field(description="Normalized scheme://host endpoint")
    skip_ssl_validation: bool = False
    token: str = ""
    token_expires_at: datetime | None = None
    refresh_token: str = ""
    last_refreshed: datetime | None = None
    username: str = ""
    organization: str = ""
    organization_guid: str = ""
    space: str = ""
    space_guid: str = ""
    uaa_endpoint: str = ""
    uaa_token: str = ""
    uaa_refresh_token: str = ""
    uaa_client_id: str = ""
    uaa_client_secret: str = ""
    api_links: dict[str, str] = Field(default_factory=dict)

    @field_validator("token_expires_at", "last_refreshed", mode="before")
    @classmethod
    def tolerate_bad_timestamps(cls, v: Any) -> datetime | None:
        return _parse_timestamp(v)

    @field_validator(
        "token", "refresh_token", "username", "organization", "organization_guid",
        "space", "space_guid", "uaa_endpoint", "uaa_token", "uaa_refresh_token",
        "uaa_client_id", "uaa_client_secret",
        mode="before",
    )
    @classmethod
    def none_as_empty(cls, v: Any) -> Any:
        return "" if v is None else v

    @property
    def has_auth(self) -> bool:
        return bool(self.token or self.refresh_token or self.username)

    def to_yaml_dict(self) -> dict[str, Any]:
        data = self.model_dump(mode="json", exclude_defaults=True)
        if not self.api_links:
            data.pop("api_links", None)
        data.pop("endpoint", None)
        data.pop("skip_ssl_validation", None)
        return {
            "endpoint": self.endpoint,
            "skip_ssl_validation": self.skip_ssl_validation,
            **data,
        }

    def masked_dict(self) -> dict[str, Any]:
        data = self.model_dump(mode="json", exclude_defaults=True)
        if not self.api_links:
            data.pop("api_links", None)
        data["endpoint"] = self.endpoint
        for key in SECRET_FIELDS & data.keys():
            data[key] = mask_secret(data[key])
        return data


class Config(BaseModel):
    """Root configuration model, one per config file."""

    model_config = ConfigDict(extra="ignore", validate_assignment=True)

    apis: dict[str, APIConfig] = Field(default_factory=dict)
    current_api: str = ""

    output: str = DEFAULT_OUTPUT
    no_color: bool = False

    # Legacy single-endpoint schema
    api: str = ""
    token: str = ""
    refresh_token: str = ""
    username: str = ""
    organization: str = ""
    organization_guid: str = ""
    space: str = ""
    space_guid: str = ""
    skip_ssl_validation: bool = False
    uaa_endpoint: str = ""
    uaa_token: str = ""
    uaa_refresh_token: str = ""
    uaa_client_id: str = ""
    uaa_client_secret: str = ""
    # Deprecated saved targets, carried through untouched
    targets: dict[str, dict[str, Any]] = Field(default_factory=dict)
    current_target: str = ""

    @field_validator("apis", "targets", mode="before")
    @classmethod
    def none_as_empty_map(cls, v: Any) -> Any:
        return {} if v is None else v

    @field_validator("output", mode="before")
    @classmethod
    def default_output(cls, v: Any) -> Any:
        return v or DEFAULT_OUTPUT

    @property
    def has_legacy_fields(self) -> bool:
        return any(getattr(self, name) for name in LEGACY_FIELDS)

    def clear_legacy_fields(self) -> None:
        for name in LEGACY_FIELDS:
            default = Config.model_fields[name].default
            setattr(self, name, default)

    def to_yaml_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        if self.apis:
            data["apis"] = {key: api.to_yaml_dict() for key, api in self.apis.items()}
        if self.current_api:
            data["current_api"] = self.current_api
        data["output"] = self.output
        data["no_color"] = self.no_color
        for name in LEGACY_FIELDS:
            value = getattr(self, name)
            if value:
                data[name] = value
        if self.targets:
            data["targets"] = self.targets
        if self.current_target:
            data["current_target"] = self.current_target
        return data
