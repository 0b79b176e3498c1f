"""CDP target discovery over the HTTP ``/json/list`` endpoint."""

from __future__ import annotations

from typing import Optional

import httpx
from pydantic import ValidationError

from ..config import HANDSHAKE_TIMEOUT, get_logger
from ..constants import DEFAULT_CDP_HOST, TARGET_LIST_PATH
from ..models.cdp import CdpTarget, Endpoint
from .errors import CDPDiscoveryError, CDPProtocolMismatchError

logger = get_logger(__name__)

DISCOVERY_TIMEOUT = 10.0


async def discover_targets(
    port: int,
    host: str = DEFAULT_CDP_HOST,
    timeout: float = DISCOVERY_TIMEOUT,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> list[CdpTarget]:
    """Fetch the attachable targets exposed on ``port``.

    Raises:
        CDPDiscoveryError: nothing answered, or it answered with an HTTP error.
        CDPProtocolMismatchError: the body is not a JSON array of targets.
    """
    url = f"{Endpoint(host=host, port=port).http_url}{TARGET_LIST_PATH}"
    try:
        async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
            response = await client.get(url)
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        raise CDPDiscoveryError(
            f"Failed to discover CDP targets at {url}: LinkedHelper not running or CDP not enabled",
            url,
        ) from e

    if response.status_code >= 400:
        raise CDPDiscoveryError(
            f"CDP target discovery returned HTTP {response.status_code} at {url}", url
        )

    try:
        data = response.json()
    except ValueError as e:
        raise CDPProtocolMismatchError(f"Response from {url} is not JSON", url) from e

    if not isinstance(data, list):
        raise CDPProtocolMismatchError(f"Response from {url} is not a JSON array", url)

    try:
        return [CdpTarget.model_validate(item) for item in data]
    except ValidationError as e:
        raise CDPProtocolMismatchError(f"Malformed target entry from {url}: {e}", url) from e


async def is_cdp_port(
    port: int,
    host: str = DEFAULT_CDP_HOST,
    timeout: float = HANDSHAKE_TIMEOUT,
) -> bool:
    """CDP handshake: True if ``port`` answers ``/json/list`` with a target array."""
    try:
        await discover_targets(port, host, timeout=timeout)
    except CDPDiscoveryError as e:
        logger.debug(f"Port {port} is not a CDP endpoint: {e}")
        return False
    return True
