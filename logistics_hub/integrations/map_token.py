from __future__ import annotations

from logistics_hub.config import Config
from logistics_hub.errors import IntegrationNotConfigured

NOT_CONFIGURED_MESSAGE = "Mapbox token not configured in environment variables"


def get_map_token(config: Config) -> str:
    """Return the public map token the browser needs to draw tiles."""

    token = config.mapbox_public_token
    if not token:
        raise IntegrationNotConfigured(NOT_CONFIGURED_MESSAGE)
    return token
