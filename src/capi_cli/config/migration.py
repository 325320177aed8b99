"""One-shot migration of the legacy single-endpoint schema."""

from __future__ import annotations

import logging

from capi_cli.client.errors import InvalidEndpointError
from capi_cli.config.endpoints import domain_key, normalize_endpoint
from capi_cli.config.models import APIConfig, Config

logger = logging.getLogger(__name__)


def migrate_legacy_config(config: Config) -> bool:
    """Fold legacy flat fields into ``config.apis``.

    Only fires when ``apis`` is empty and the legacy ``api`` field is set, so
    an existing multi-endpoint setup is never overwritten with stale data.
    Returns True when a migration happened.
    """
    if config.apis or not config.api:
        return False

    try:
        endpoint = normalize_endpoint(config.api)
    except InvalidEndpointError:
        logger.warning("Legacy api value %r is not a valid URL, keeping it as is", config.api)
        endpoint = config.api
    key = domain_key(endpoint)
    config.apis[key] = APIConfig(
        endpoint=endpoint,
        token=config.token,
        refresh_token=config.refresh_token,
        username=config.username,
        organization=config.organization,
        organization_guid=config.organization_guid,
        space=config.space,
        space_guid=config.space_guid,
        skip_ssl_validation=config.skip_ssl_validation,
        uaa_endpoint=config.uaa_endpoint,
        uaa_token=config.uaa_token,
        uaa_refresh_token=config.uaa_refresh_token,
        uaa_client_id=config.uaa_client_id,
        uaa_client_secret=config.uaa_client_secret,
    )
    config.current_api = key
    config.clear_legacy_fields()
    logger.info("Migrated legacy configuration for %s into apis[%s]", key, key)
    return True
