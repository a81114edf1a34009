"""HTTP health probing for instance gateways."""

from __future__ import annotations

import aiohttp

from clawcker.logger import logger

# Status codes that prove the gateway is up and answering. An auth challenge
# still comes from a live service.
_HEALTHY_REDIRECTS = frozenset({301, 302, 303, 307, 308})
_UNAUTHORIZED = 401


def is_healthy_status(status: int) -> bool:
    return 200 <= status < 300 or status in _HEALTHY_REDIRECTS or status == _UNAUTHORIZED


async def probe_endpoint(url: str, timeout: float) -> bool:
    """Issue one unauthenticated GET; any network-level error means unhealthy."""
    try:
        async with (
            aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=timeout)) as session,
            session.get(url, allow_redirects=False) as resp,
        ):
            healthy = is_healthy_status(resp.status)
    except (aiohttp.ClientError, OSError, TimeoutError) as exc:
        logger.debug("Health probe failed", url=url, err=str(exc) or type(exc).__name__)
        return False

    if not healthy:
        logger.debug("Health probe got unhealthy status", url=url, status=resp.status)
    return healthy
