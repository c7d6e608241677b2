from __future__ import annotations

import asyncio
import ipaddress
import logging
import socket
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, Optional

import aiohttp

from .dialers import BridgeFactory, Dialer, make_dialer

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class ProxyIdentity:
    """One configured upstream proxy and the means to dial through it."""

    name: str
    type: str
    config: Dict[str, Any] = field(repr=False)
    dialer: Dialer = field(repr=False)

    @classmethod
    def from_config(
        cls,
        name: str,
        config: Dict[str, Any],
        bridges: Optional[BridgeFactory] = None,
    ) -> "ProxyIdentity":
        proxy_type = str(config.get("type", "")).lower()
        return cls(
            name=name,
            type=proxy_type,
            config=config,
            dialer=make_dialer(name, proxy_type, config, bridges),
        )

    @asynccontextmanager
    async def open(self) -> AsyncIterator["ProxyIdentity"]:
        """Keep the tunnel up for the duration of the ``async with`` block."""
        await self.dialer.start()
        try:
            yield self
        finally:
            await self.dialer.stop()

    def connector(self) -> aiohttp.BaseConnector:
        return self.dialer.connector()


async def resolve_ip(config: Dict[str, Any]) -> str:
    """Return the proxy server as an IP address where it can be resolved."""
    server = str(config.get("server", ""))
    if not server:
        return ""
    try:
        ipaddress.ip_address(server)
        return server
    except ValueError:
        pass

    loop = asyncio.get_running_loop()
    try:
        infos = await loop.getaddrinfo(server, None, type=socket.SOCK_STREAM)
    except OSError as exc:
        logger.debug("Failed to resolve %s: %s", server, exc)
        return server

    addresses = [info[4][0] for info in infos]
    for address in addresses:
        if ipaddress.ip_address(address).version == 4:
            return address
    return addresses[0] if addresses else server
