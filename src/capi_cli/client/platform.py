"""Platform API client, used here for root-info lookups and UAA discovery."""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from capi_cli.client.auth import resolve_auth
from capi_cli.client.errors import (
    AuthenticationError,
    NotFoundError,
    PlatformAPIError,
    PlatformConnectionError,
    UAADiscoveryError,
)
from capi_cli.config.constants import DEFAULT_TIMEOUT
from capi_cli.config.models import APIConfig

logger = logging.getLogger(__name__)

# Root-document links that may point at the identity service, in preference order
UAA_LINK_NAMES = ("uaa", "login")


class PlatformClient:
    """Synchronous HTTP client for the platform API root."""

    def __init__(self, api_config: APIConfig, *, timeout: float = DEFAULT_TIMEOUT) -> None:
        self.api_config = api_config
        self.base_url = api_config.endpoint
        if api_config.skip_ssl_validation:
            logger.warning("TLS certificate verification is disabled for %s", self.base_url)
        self._client = httpx.Client(
            base_url=self.base_url,
            auth=resolve_auth(api_config),
            verify=not api_config.skip_ssl_validation,
            timeout=timeout,
            headers={"Accept": "application/json"},
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> PlatformClient:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def _handle_response(self, response: httpx.Response) -> httpx.Response:
        if response.is_success:
            return response
        status = response.status_code
        try:
            body = response.json()
            detail = body.get("description") or body.get("message") or response.text
        except (json.JSONDecodeError, AttributeError):
            detail = response.text
        if status in (401, 403):
            raise AuthenticationError(
                "Authentication failed. Run 'capi token refresh' or 'capi login'."
            )
        if status == 404:
            raise NotFoundError(f"Not found: {detail}")
        raise PlatformAPIError(status, detail)

    def request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            response = self._client.request(method, path, **kwargs)
        except httpx.ConnectError as exc:
            raise PlatformConnectionError(
                f"Cannot connect to API at {self.base_url}: {exc}"
            ) from exc
        except httpx.TimeoutException as exc:
            raise PlatformConnectionError(
                f"Request to {self.base_url} timed out: {exc}"
            ) from exc
        except (httpx.InvalidURL, httpx.UnsupportedProtocol) as exc:
            raise PlatformConnectionError(
                f"Invalid URL for API at {self.base_url}: {exc}"
            ) from exc
        except httpx.HTTPError as exc:
            raise PlatformConnectionError(
                f"Request to {self.base_url} failed: {exc}"
            ) from exc
        return self._handle_response(response)

    def get_json(self, path: str, **kwargs: Any) -> Any:
        resp = self.request("GET", path, **kwargs)
        try:
            return resp.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise PlatformAPIError(resp.status_code, f"Invalid JSON from {path}") from exc

    def get_root_info(self) -> dict[str, Any]:
        """Fetch the API root document (``GET /``) with its ``links`` map."""
        data = self.get_json("/")
        if not isinstance(data, dict):
            raise PlatformAPIError(200, "Root document is not a JSON object")
        return data

    def get_links(self) -> dict[str, str]:
        """Root-document links flattened to name -> href."""
        links = self.get_root_info().get("links") or {}
        result: dict[str, str] = {}
        for name, link in links.items():
            if isinstance(link, dict) and link.get("href"):
                result[name] = link["href"]
        return result


def uaa_from_links(links: dict[str, str]) -> str:
    for name in UAA_LINK_NAMES:
        href = links.get(name)
        if href:
            return href.rstrip("/")
    return ""


class RootInfoDiscoverer:
    """Find the identity service by probing the platform root document."""

    def __init__(self, *, timeout: float = DEFAULT_TIMEOUT) -> None:
        self.timeout = timeout

    def discover_uaa(self, api_config: APIConfig) -> str:
        try:
            with PlatformClient(api_config, timeout=self.timeout) as client:
                links = client.get_links()
        except (PlatformConnectionError, PlatformAPIError, NotFoundError, AuthenticationError) as exc:
            raise UAADiscoveryError(
                f"Could not discover UAA endpoint from {api_config.endpoint}: {exc}"
            ) from exc
        uaa = uaa_from_links(links)
        if not uaa:
            raise UAADiscoveryError(
                f"No UAA endpoint found in API links of {api_config.endpoint}"
            )
        logger.debug("Discovered UAA endpoint %s for %s", uaa, api_config.endpoint)
        return uaa
