"""OAuth2 refresh-token grant and persistence of the refreshed token."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable, Protocol

from capi_cli.auth.token import Token
from capi_cli.client.errors import CapiCLIError, NoRefreshTokenError, TokenRetrievalError
from capi_cli.client.platform import RootInfoDiscoverer, uaa_from_links
from capi_cli.client.uaa import UAAClient
from capi_cli.config.constants import DEFAULT_CLIENT_ID, DEFAULT_CLIENT_SECRET
from capi_cli.config.models import APIConfig, mask_secret

if TYPE_CHECKING:
    from capi_cli.config.manager import ConfigManager

logger = logging.getLogger(__name__)


class IdentityService(Protocol):
    def refresh_grant(
        self,
        uaa_endpoint: str,
        *,
        refresh_token: str,
        client_id: str,
        client_secret: str = "",
        verify: bool = True,
    ) -> Token: ...


class UAADiscoverer(Protocol):
    def discover_uaa(self, api_config: APIConfig) -> str: ...


def _silent(message: str) -> None:
    pass


class TokenRefresher:
    """Refreshes and persists access tokens for configured APIs.

    Never retries: each ``refresh`` issues at most one grant request and
    reports its failure directly.
    """

    def __init__(
        self,
        manager: ConfigManager,
        *,
        identity: IdentityService | None = None,
        discoverer: UAADiscoverer | None = None,
        echo: Callable[[str], None] = _silent,
    ) -> None:
        self.manager = manager
        self.identity = identity or UAAClient()
        self.discoverer = discoverer or RootInfoDiscoverer()
        self.echo = echo

    def uaa_endpoint_for(self, api_config: APIConfig) -> str:
        """Configured UAA endpoint, else one recorded from API links, else discovered."""
        if api_config.uaa_endpoint:
            return api_config.uaa_endpoint.rstrip("/")
        uaa = uaa_from_links(api_config.api_links)
        if uaa:
            return uaa
        return self.discoverer.discover_uaa(api_config)

    def refresh(self, api_config: APIConfig, domain: str) -> Token:
        """Run the refresh-token grant for *domain* and save the new token."""
        if not api_config.refresh_token:
            raise NoRefreshTokenError(domain)

        self.echo(f"Refreshing token for API: {domain}")
        uaa = self.uaa_endpoint_for(api_config)
        logger.debug(
            "Refreshing %s via %s with refresh token %s",
            domain, uaa, mask_secret(api_config.refresh_token),
        )
        token = self.identity.refresh_grant(
            uaa,
            refresh_token=api_config.refresh_token,
            client_id=api_config.uaa_client_id or DEFAULT_CLIENT_ID,
            client_secret=api_config.uaa_client_secret or DEFAULT_CLIENT_SECRET,
            verify=not api_config.skip_ssl_validation,
        )
        if not token.access_token:
            raise TokenRetrievalError(f"identity service returned no access token for {domain}")
        self.manager.update_api_token(domain, token)
        if not token.refresh_token:
            logger.debug("Identity service did not rotate the refresh token for %s", domain)
        self.echo("Token refreshed successfully!")
        return token

    def refresh_all(self) -> dict[str, Token | CapiCLIError]:
        """Refresh every API holding a refresh token, continuing past failures."""
        results: dict[str, Token | CapiCLIError] = {}
        apis = self.manager.config.apis
        for domain in sorted(apis):
            api_config = apis[domain]
            if not api_config.refresh_token:
                continue
            try:
                results[domain] = self.refresh(api_config, domain)
            except CapiCLIError as exc:
                logger.warning("Token refresh failed for %s: %s", domain, exc)
                results[domain] = exc
        return results
