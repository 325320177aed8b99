"""Authentication strategies for the platform API."""

from __future__ import annotations

from collections.abc import Generator

import httpx

from capi_cli.config.models import APIConfig


class BearerTokenAuth(httpx.Auth):
    """Authenticate with an OAuth2 access token (Authorization: Bearer)."""

    def __init__(self, token: str) -> None:
        self.token = token

    def auth_flow(
        self, request: httpx.Request,
    ) -> Generator[httpx.Request, httpx.Response, None]:
        request.headers["Authorization"] = f"Bearer {self.token}"
        yield request


def resolve_auth(api_config: APIConfig) -> httpx.Auth | None:
    """Resolve authentication from a stored API config."""
    if api_config.token:
        return BearerTokenAuth(api_config.token)
    return None
