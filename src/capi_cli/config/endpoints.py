"""Endpoint URL normalization and domain-key derivation."""

from __future__ import annotations

from urllib.parse import urlsplit

from capi_cli.client.errors import InvalidEndpointError

_SCHEMES = ("https://", "http://")


def normalize_endpoint(endpoint: str) -> str:
    """Return ``scheme://host[:port]`` for a user-supplied endpoint.

    A bare host gets ``https://``. Any path, query or trailing slash is
    dropped.
    """
    endpoint = endpoint.strip()
    if not endpoint:
        raise InvalidEndpointError("Endpoint must not be empty")
    if not endpoint.startswith(_SCHEMES):
        endpoint = f"https://{endpoint}"
    try:
        parsed = urlsplit(endpoint)
    except ValueError as exc:
        raise InvalidEndpointError(f"Invalid URL format: {exc}") from exc
    if not parsed.netloc or not parsed.hostname:
        raise InvalidEndpointError(f"No host in URL: {endpoint}")
    return f"{parsed.scheme}://{parsed.netloc}"


def domain_key(endpoint: str) -> str:
    """Derive the lookup key for an endpoint: the host, without scheme, path or port."""
    domain = endpoint
    for scheme in _SCHEMES:
        if domain.startswith(scheme):
            domain = domain[len(scheme):]
            break
    domain = domain.split("/", 1)[0]
    domain = domain.split(":", 1)[0]
    return domain
