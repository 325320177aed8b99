"""Identity service (UAA) OAuth2 token client."""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from capi_cli.auth.token import Token
from capi_cli.client.errors import (
    AuthenticationError,
    RefreshGrantError,
    TokenRetrievalError,
)
from capi_cli.config.constants import DEFAULT_TIMEOUT, TOKEN_PATH

logger = logging.getLogger(__name__)


def token_url(uaa_endpoint: str) -> str:
    return uaa_endpoint.rstrip("/") + TOKEN_PATH


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return response.text
    if isinstance(body, dict):
        return body.get("error_description") or body.get("error") or response.text
    return response.text


class UAAClient:
    """Performs OAuth2 grants against ``{uaa}/oauth/token``.

    One request per call and no retries: a dead identity service or a
    revoked refresh token is reported straight back to the caller.
    """

    def __init__(self, *, timeout: float = DEFAULT_TIMEOUT) -> None:
        self.timeout = timeout

    def _token_request(
        self,
        uaa_endpoint: str,
        form: dict[str, str],
        *,
        verify: bool,
        error_cls: type[AuthenticationError],
    ) -> Token:
        url = token_url(uaa_endpoint)
        logger.debug("POST %s grant_type=%s", url, form.get("grant_type"))
        try:
            with httpx.Client(timeout=self.timeout, verify=verify) as client:
                response = client.post(
                    url, data=form, headers={"Accept": "application/json"},
                )
        except httpx.HTTPError as exc:
            raise error_cls(f"Token request to {url} failed: {exc}") from exc
        if not response.is_success:
            raise error_cls(
                f"Token request to {url} returned {response.status_code}: "
                f"{_error_detail(response)}"
            )
        try:
            data: Any = response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise TokenRetrievalError("response was not JSON") from exc
        if not isinstance(data, dict):
            raise TokenRetrievalError("response was not a JSON object")
        token = Token.from_response(data)
        if not token.access_token:
            raise TokenRetrievalError("no access_token in response")
        return token

    def refresh_grant(
        self,
        uaa_endpoint: str,
        *,
        refresh_token: str,
        client_id: str,
        client_secret: str = "",
        verify: bool = True,
    ) -> Token:
        """Exchange a refresh token for a new access token."""
        form = {
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
            "client_id": client_id,
            "client_secret": client_secret,
        }
        return self._token_request(
            uaa_endpoint, form, verify=verify, error_cls=RefreshGrantError,
        )

    def password_grant(
        self,
        uaa_endpoint: str,
        *,
        username: str,
        password: str,
        client_id: str,
        client_secret: str = "",
        verify: bool = True,
    ) -> Token:
        """Obtain a token triple with user credentials."""
        form = {
            "grant_type": "password",
            "username": username,
            "password": password,
            "client_id": client_id,
            "client_secret": client_secret,
        }
        return self._token_request(
            uaa_endpoint, form, verify=verify, error_cls=AuthenticationError,
        )
