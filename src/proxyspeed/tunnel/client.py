from __future__ import annotations

import logging

import aiohttp

from ..constants import SLOW_PROTOCOL
from .identity import ProxyIdentity

logger = logging.getLogger(__name__)


def create_client(
    proxy: ProxyIdentity, timeout: float, **session_kwargs
) -> aiohttp.ClientSession:
    """Build a session whose every connection is dialed through ``proxy``.

    ``timeout`` bounds each whole request, tunnel dial included. Sessions
    for the slow protocol also give the connect phase and each socket read
    the full budget instead of aiohttp's defaults.
    """
    if proxy.type == SLOW_PROTOCOL:
        client_timeout = aiohttp.ClientTimeout(
            total=timeout, connect=timeout, sock_connect=timeout, sock_read=timeout
        )
        logger.debug("Using slow-protocol timeouts for %s (%.1fs)", proxy.name, timeout)
    else:
        client_timeout = aiohttp.ClientTimeout(total=timeout)

    return aiohttp.ClientSession(
        connector=proxy.connector(), timeout=client_timeout, **session_kwargs
    )
