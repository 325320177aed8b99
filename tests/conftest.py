"""Shared test fixtures."""

from __future__ import annotations

import base64
import json
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import pytest
import yaml

from capi_cli.config.manager import ConfigManager
from capi_cli.config.models import APIConfig


def _b64(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


@pytest.fixture(autouse=True)
def _no_env_config(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("CAPI_CONFIG", raising=False)


@pytest.fixture
def tmp_config(tmp_path: Path) -> Path:
    """Return a temporary config file path."""
    return tmp_path / ".capi" / "config.yml"


@pytest.fixture
def config_manager(tmp_config: Path) -> ConfigManager:
    """Return a ConfigManager pointed at a temp config file."""
    return ConfigManager(config_path=tmp_config)


@pytest.fixture
def write_config(tmp_config: Path) -> Callable[[dict[str, Any]], Path]:
    """Write raw YAML config data to the temp config path."""

    def _write(data: dict[str, Any]) -> Path:
        tmp_config.parent.mkdir(parents=True, exist_ok=True)
        tmp_config.write_text(yaml.safe_dump(data, sort_keys=False))
        return tmp_config

    return _write


@pytest.fixture
def read_config(tmp_config: Path) -> Callable[[], dict[str, Any]]:
    """Read the temp config file back as plain YAML data."""

    def _read() -> dict[str, Any]:
        return yaml.safe_load(tmp_config.read_text()) or {}

    return _read


@pytest.fixture
def make_jwt() -> Callable[..., str]:
    """Build an unsigned JWT whose payload carries the given claims."""

    def _make(exp: Any = None, **claims: Any) -> str:
        payload = dict(claims)
        if isinstance(exp, datetime):
            payload["exp"] = int(exp.timestamp())
        elif exp is not None:
            payload["exp"] = exp
        header = _b64(json.dumps({"alg": "none", "typ": "JWT"}).encode())
        body = _b64(json.dumps(payload).encode())
        return f"{header}.{body}.signature"

    return _make


@pytest.fixture
def now() -> datetime:
    return datetime(2026, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def sample_api_config() -> APIConfig:
    """Return a logged-in API config for testing."""
    return APIConfig(
        endpoint="https://api.example.com",
        token="access-token-abcdefghij",
        refresh_token="refresh-token-abcdefghij",
        username="admin",
        organization="org1",
        space="dev",
        uaa_endpoint="https://uaa.example.com",
    )


@pytest.fixture
def legacy_config_data() -> dict[str, Any]:
    """A config file in the old single-endpoint layout."""
    return {
        "api": "https://api.example.com",
        "token": "legacy-access-token",
        "refresh_token": "legacy-refresh-token",
        "username": "admin",
        "organization": "org1",
        "organization_guid": "org-guid",
        "space": "dev",
        "space_guid": "space-guid",
        "skip_ssl_validation": True,
        "uaa_endpoint": "https://uaa.example.com",
        "output": "json",
    }
