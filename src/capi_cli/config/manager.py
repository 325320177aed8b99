"""Configuration manager: read/write the YAML config, resolve API endpoints."""

from __future__ import annotations

import contextlib
import logging
import os
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import pydantic
import yaml

from capi_cli.auth.token import Token
from capi_cli.client.errors import (
    APIAlreadyExistsError,
    APINotFoundError,
    CannotDeleteOnlyAPIError,
    ConfigurationError,
    InvalidEndpointError,
    NoAPIsConfiguredError,
    PersistenceError,
    TokenFieldError,
    UnknownConfigKeyError,
    ValidationError,
)
from capi_cli.config.constants import (
    BACKUP_SUFFIX,
    CONFIG_DIR_MODE,
    CONFIG_FILE,
    CONFIG_FILE_MODE,
    DEFAULT_OUTPUT,
    ENV_CONFIG_PATH,
    OUTPUT_FORMATS,
)
from capi_cli.config.endpoints import domain_key, normalize_endpoint
from capi_cli.config.migration import migrate_legacy_config
from capi_cli.config.models import APIConfig, Config

logger = logging.getLogger(__name__)

TRUE_VALUES = ("true", "1")

API_SETTABLE_KEYS = (
    "username",
    "organization",
    "organization_guid",
    "space",
    "space_guid",
    "skip_ssl_validation",
    "uaa_endpoint",
    "uaa_client_id",
    "uaa_client_secret",
)
TOKEN_KEYS = ("token", "refresh_token", "uaa_token", "uaa_refresh_token")
GLOBAL_KEYS = ("output", "no_color")

# Cleared by logout; endpoint, SSL and UAA bindings survive
LOGOUT_FIELDS = (
    "token",
    "token_expires_at",
    "refresh_token",
    "last_refreshed",
    "username",
    "organization",
    "organization_guid",
    "space",
    "space_guid",
    "uaa_token",
    "uaa_refresh_token",
)


def default_config_path() -> Path:
    env_path = os.environ.get(ENV_CONFIG_PATH)
    if env_path:
        return Path(env_path).expanduser()
    return CONFIG_FILE


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in TRUE_VALUES


class ConfigManager:
    """Manages the CLI configuration on disk and resolves API endpoints.

    One instance is created per command invocation and passed explicitly to
    everything that reads or mutates configuration.
    """

    def __init__(self, config_path: Path | None = None) -> None:
        self.config_path = config_path or default_config_path()
        self._config: Config | None = None
        self._migrated = False
        self._lock = threading.Lock()

    @property
    def config(self) -> Config:
        if self._config is None:
            self._config = self._load()
        return self._config

    def load(self) -> Config:
        """Re-read the config file, discarding unsaved changes."""
        self._config = self._load()
        return self._config

    @property
    def backup_path(self) -> Path:
        return self.config_path.with_name(self.config_path.name + BACKUP_SUFFIX)

    def _load(self) -> Config:
        if not self.config_path.exists():
            logger.debug("No config file at %s, starting empty", self.config_path)
            return Config()
        try:
            data = yaml.safe_load(self.config_path.read_text()) or {}
        except yaml.YAMLError as exc:
            raise ConfigurationError(
                f"Cannot parse config file {self.config_path}: {exc}"
            ) from exc
        except OSError as exc:
            raise ConfigurationError(
                f"Cannot read config file {self.config_path}: {exc}"
            ) from exc
        if not isinstance(data, dict):
            raise ConfigurationError(
                f"Config file {self.config_path} must contain a mapping"
            )
        try:
            config = Config.model_validate(data)
        except pydantic.ValidationError as exc:
            raise ConfigurationError(
                f"Invalid config file {self.config_path}: {exc}"
            ) from exc
        self._migrated = migrate_legacy_config(config)
        return config

    # --- Persistence ---

    def save(self) -> None:
        """Write the configuration back to disk with owner-only permissions."""
        config = self.config
        path = self.config_path
        try:
            if not path.parent.exists():
                path.parent.mkdir(parents=True, mode=CONFIG_DIR_MODE)
        except OSError as exc:
            raise PersistenceError(
                f"Cannot create config directory {path.parent}: {exc}"
            ) from exc

        if config.apis and (config.api or self._migrated):
            self._backup_before_migration()

        if config.apis:
            config.clear_legacy_fields()

        text = yaml.safe_dump(config.to_yaml_dict(), default_flow_style=False, sort_keys=False)
        # Atomic write: write to temp file, then rename
        temp = path.with_name(path.name + ".tmp")
        try:
            fd = os.open(str(temp), os.O_WRONLY | os.O_CREAT | os.O_TRUNC, CONFIG_FILE_MODE)
            try:
                os.fchmod(fd, CONFIG_FILE_MODE)
                os.write(fd, text.encode())
            finally:
                os.close(fd)
            temp.replace(path)
        except OSError as exc:
            with contextlib.suppress(OSError):
                temp.unlink()
            raise PersistenceError(f"Failed to write config file {path}: {exc}") from exc
        self._migrated = False
        logger.debug("Saved configuration to %s", path)

    def _backup_before_migration(self) -> None:
        backup = self.backup_path
        if backup.exists() or not self.config_path.exists():
            return
        try:
            data = self.config_path.read_bytes()
            fd = os.open(str(backup), os.O_WRONLY | os.O_CREAT | os.O_EXCL, CONFIG_FILE_MODE)
            try:
                os.fchmod(fd, CONFIG_FILE_MODE)
                os.write(fd, data)
            finally:
                os.close(fd)
        except OSError as exc:
            logger.warning("Could not back up %s before migration: %s", self.config_path, exc)
            return
        logger.info("Backed up pre-migration config to %s", backup)

    def clear_all(self) -> bool:
        """Delete the config file. Returns False if there was nothing to delete."""
        self._config = Config()
        self._migrated = False
        try:
            self.config_path.unlink()
        except FileNotFoundError:
            return False
        except OSError as exc:
            raise PersistenceError(
                f"Failed to remove config file {self.config_path}: {exc}"
            ) from exc
        return True

    # --- Resolution ---

    def resolve(self, api_flag: str = "") -> tuple[APIConfig, str]:
        """Resolve ``--api`` (or the current API) to its config and domain key."""
        config = self.config
        if api_flag:
            if api_flag in config.apis:
                return config.apis[api_flag], api_flag
            key = self._key_for_endpoint(api_flag)
            if key is None:
                raise APINotFoundError(api_flag)
            return config.apis[key], key

        if not config.apis:
            raise NoAPIsConfiguredError()
        key = config.current_api or min(config.apis)
        if key not in config.apis:
            raise APINotFoundError(key)
        return config.apis[key], key

    def _key_for_endpoint(self, endpoint: str) -> str | None:
        try:
            normalized = normalize_endpoint(endpoint)
        except InvalidEndpointError:
            return None
        for key in sorted(self.config.apis):
            if self.config.apis[key].endpoint == normalized:
                return key
        return None

    def find_domain(self, api_config: APIConfig, api_flag: str = "") -> str:
        """Find the domain key that owns *api_config*.

        Used where only the resolved config is in hand. Falls back to
        matching by endpoint when the flag is not itself a key.
        """
        config = self.config
        if api_flag and api_flag in config.apis:
            return api_flag
        if config.current_api and config.apis.get(config.current_api) is api_config:
            return config.current_api
        for key in sorted(config.apis):
            if config.apis[key].endpoint == api_config.endpoint:
                return key
        target = f" for '{api_flag}'" if api_flag else ""
        raise ConfigurationError(f"Could not determine API domain{target}")

    def get_api(self, key: str) -> APIConfig:
        try:
            return self.config.apis[key]
        except KeyError:
            raise APINotFoundError(key) from None

    # --- Endpoint management ---

    def add_api(
        self, endpoint: str, *, skip_ssl_validation: bool = False,
    ) -> tuple[str, APIConfig, bool]:
        """Add an endpoint. Returns (domain key, config, became current)."""
        normalized = normalize_endpoint(endpoint)
        key = domain_key(normalized)
        if key in self.config.apis:
            raise APIAlreadyExistsError(key)
        api_config = APIConfig(endpoint=normalized, skip_ssl_validation=skip_ssl_validation)
        self.config.apis[key] = api_config
        became_current = not self.config.current_api
        if became_current:
            self.config.current_api = key
        self.save()
        return key, api_config, became_current

    def ensure_api(self, endpoint: str, *, skip_ssl_validation: bool = False) -> tuple[str, APIConfig]:
        """Return the config for *endpoint*, adding it in memory if it is new."""
        if endpoint in self.config.apis:
            return endpoint, self.config.apis[endpoint]
        normalized = normalize_endpoint(endpoint)
        key = domain_key(normalized)
        api_config = self.config.apis.get(key)
        if api_config is None:
            api_config = APIConfig(endpoint=normalized, skip_ssl_validation=skip_ssl_validation)
            self.config.apis[key] = api_config
        if not self.config.current_api or len(self.config.apis) == 1:
            self.config.current_api = key
        return key, api_config

    def remove_api(self, key: str) -> str:
        """Delete an endpoint. Returns the (possibly new) current API key."""
        config = self.config
        if key not in config.apis:
            raise APINotFoundError(key)
        if len(config.apis) == 1 and config.current_api == key:
            raise CannotDeleteOnlyAPIError(key)
        del config.apis[key]
        if config.current_api == key:
            config.current_api = min(config.apis) if config.apis else ""
        self.save()
        return config.current_api

    def set_current(self, key: str) -> None:
        self.get_api(key)
        self.config.current_api = key
        self.save()

    # --- Settings ---

    def set_global(self, key: str, value: str) -> None:
        if key == "output":
            if value not in OUTPUT_FORMATS:
                raise ValidationError(
                    f"Invalid output format '{value}'. "
                    f"Expected one of: {', '.join(OUTPUT_FORMATS)}"
                )
            self.config.output = value
        elif key == "no_color":
            self.config.no_color = _parse_bool(value)
        else:
            raise UnknownConfigKeyError(key, ". Use --api for API-specific settings")
        self.save()

    def unset_global(self, key: str) -> None:
        if key == "output":
            self.config.output = DEFAULT_OUTPUT
        elif key == "no_color":
            self.config.no_color = False
        else:
            raise UnknownConfigKeyError(key, ". Use --api for API-specific settings")
        self.save()

    def set_api_value(self, key: str, name: str, value: str) -> None:
        api_config = self.get_api(key)
        if name not in API_SETTABLE_KEYS:
            raise UnknownConfigKeyError(name)
        parsed: Any = _parse_bool(value) if name == "skip_ssl_validation" else value
        setattr(api_config, name, parsed)
        self.save()

    def unset_api_value(self, key: str, name: str) -> None:
        api_config = self.get_api(key)
        if name in TOKEN_KEYS:
            raise TokenFieldError(name)
        if name not in API_SETTABLE_KEYS:
            raise UnknownConfigKeyError(name)
        setattr(api_config, name, APIConfig.model_fields[name].default)
        self.save()

    def clear_api(self, key: str) -> None:
        """Reset everything but the endpoint for one API."""
        api_config = self.get_api(key)
        self.config.apis[key] = APIConfig(endpoint=api_config.endpoint)
        self.save()

    def logout(self, key: str) -> None:
        api_config = self.get_api(key)
        for name in LOGOUT_FIELDS:
            setattr(api_config, name, APIConfig.model_fields[name].default)
        self.save()

    # --- Token persistence ---

    def update_api_token(self, key: str, token: Token) -> APIConfig:
        """Store a newly issued token for *key* and save.

        The refresh token and expiry are only replaced when the token carries
        them; ``last_refreshed`` is always stamped. Serialized by a lock so
        concurrent refreshes never interleave their read-modify-write.
        """
        with self._lock:
            api_config = self.get_api(key)
            api_config.token = token.access_token
            if token.refresh_token:
                api_config.refresh_token = token.refresh_token
            if token.expires_at is not None:
                api_config.token_expires_at = token.expires_at
            api_config.last_refreshed = datetime.now(timezone.utc)
            self.save()
            return api_config
