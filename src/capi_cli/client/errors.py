"""Typed exceptions and error handling decorator."""

from __future__ import annotations

import functools
from typing import Any, Callable, TypeVar

from rich.console import Console

F = TypeVar("F", bound=Callable[..., Any])

err_console = Console(stderr=True)


class CapiCLIError(Exception):
    """Base exception for capi."""

    exit_code: int = 1


class PlatformConnectionError(CapiCLIError):
    """Cannot connect to the platform API."""

    exit_code = 2


class UAADiscoveryError(CapiCLIError):
    """The identity service endpoint could not be determined."""

    exit_code = 2


class AuthenticationError(CapiCLIError):
    """Authentication failed (401/403)."""

    exit_code = 3


class NoRefreshTokenError(AuthenticationError):
    """Refresh attempted without a stored refresh token."""

    def __init__(self, domain: str = "") -> None:
        target = f" '{domain}'" if domain else ""
        super().__init__(
            f"No refresh token available for API{target}. "
            "Run 'capi login' again."
        )


class RefreshGrantError(AuthenticationError):
    """The identity service rejected or could not be reached for the grant."""


class TokenRetrievalError(AuthenticationError):
    """The grant succeeded but did not yield a usable access token."""

    def __init__(self, detail: str = "") -> None:
        msg = "Failed to retrieve refreshed token"
        super().__init__(f"{msg}: {detail}" if detail else msg)


class NotFoundError(CapiCLIError):
    """Resource not found (404)."""

    exit_code = 4


class APINotFoundError(NotFoundError):
    """A named API domain is not configured."""

    def __init__(self, domain: str) -> None:
        self.domain = domain
        super().__init__(
            f"API '{domain}' not found in configuration. "
            "Use 'capi apis list' to see available APIs."
        )


class ConflictError(CapiCLIError):
    """Resource conflict (409)."""

    exit_code = 5


class APIAlreadyExistsError(ConflictError):
    """An endpoint with the same domain key is already configured."""

    def __init__(self, domain: str) -> None:
        self.domain = domain
        super().__init__(f"API already exists for domain '{domain}'")


class ConfigurationError(CapiCLIError):
    """Missing or invalid CLI configuration."""

    exit_code = 6


class NoAPIsConfiguredError(ConfigurationError):
    """No endpoint has been added yet."""

    def __init__(self) -> None:
        super().__init__("No APIs configured. Use 'capi apis add' to add one.")


class ValidationError(CapiCLIError):
    """Invalid user input."""

    exit_code = 7

    def __init__(self, detail: str = "") -> None:
        super().__init__(detail or "Validation error")


class InvalidEndpointError(ValidationError):
    """An endpoint URL could not be normalized."""


class UnknownConfigKeyError(ValidationError):
    """A config key that set/unset does not know about."""

    def __init__(self, key: str, hint: str = "") -> None:
        self.key = key
        super().__init__(f"Unknown configuration key: {key}{hint}")


class TokenFieldError(ValidationError):
    """Token fields are managed by login/logout, not by config."""

    def __init__(self, key: str) -> None:
        super().__init__(
            f"Token field '{key}' cannot be unset via config. Use 'capi logout' instead."
        )


class CannotDeleteOnlyAPIError(ValidationError):
    """Refuse to delete the last remaining, current endpoint."""

    def __init__(self, domain: str) -> None:
        super().__init__(
            f"Cannot delete '{domain}': it is the only configured API and the current target"
        )


class PersistenceError(CapiCLIError):
    """The config file could not be written."""

    exit_code = 8


class PlatformAPIError(CapiCLIError):
    """Generic API error from the platform or identity service."""

    def __init__(self, status_code: int, detail: str = "") -> None:
        self.status_code = status_code
        super().__init__(f"Server returned {status_code}: {detail}")


class MalformedJWTError(ValueError):
    """A token could not be decoded as a JWT carrying an ``exp`` claim.

    Internal only: callers degrade to an unknown expiration instead of
    surfacing it.
    """


def error_handler(func: F) -> F:
    """Decorator that catches CapiCLIError and prints user-friendly messages."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except CapiCLIError as exc:
            err_console.print(f"[bold red]Error:[/] {exc}")
            raise SystemExit(exc.exit_code)
        except ValueError as exc:
            err_console.print(f"[bold red]Error:[/] {exc}")
            raise SystemExit(1)

    return wrapper  # type: ignore[return-value]
