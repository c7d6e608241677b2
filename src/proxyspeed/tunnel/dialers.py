"""Connectors that carry HTTP traffic through one proxy.

``socks5`` and plain ``http`` proxies are dialed in-process with
:mod:`aiohttp_socks`. Every other protocol is dialed through a
:class:`CoreBridge`: a short-lived mihomo process that loads the proxy's
Clash entry and exposes it as a local SOCKS5 listener.
"""
from __future__ import annotations

import asyncio
import logging
import os
import shutil
import tempfile
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import aiohttp
import yaml
from aiohttp_socks import ProxyConnector, ProxyType

from ..exceptions import TunnelError

logger = logging.getLogger(__name__)


class Dialer(ABC):
    """Produces aiohttp connectors that reach targets through one proxy.

    ``start``/``stop`` are reference counted so nested users share a single
    underlying tunnel.
    """

    def __init__(self) -> None:
        self._users = 0
        self._lock = asyncio.Lock()

    async def start(self) -> None:
        async with self._lock:
            if self._users == 0:
                await self._open()
            self._users += 1

    async def stop(self) -> None:
        async with self._lock:
            if self._users == 0:
                return
            self._users -= 1
            if self._users == 0:
                await self._close()

    async def _open(self) -> None:
        pass

    async def _close(self) -> None:
        pass

    @abstractmethod
    def connector(self) -> aiohttp.BaseConnector:
        """Return a fresh connector owned by the caller."""


class DirectDialer(Dialer):
    """Connects straight to the target."""

    def connector(self) -> aiohttp.BaseConnector:
        return aiohttp.TCPConnector(force_close=True)


class SocksDialer(Dialer):
    """Dials through a SOCKS5 or HTTP CONNECT proxy."""

    _TYPES = {"socks5": ProxyType.SOCKS5, "http": ProxyType.HTTP}

    def __init__(self, proxy_type: str, config: Dict[str, Any]):
        super().__init__()
        try:
            self.proxy_type = self._TYPES[proxy_type]
        except KeyError:
            raise TunnelError(f"unsupported in-process proxy type: {proxy_type}") from None
        self.host = str(config.get("server", ""))
        self.port = int(config.get("port", 0))
        self.username = config.get("username") or None
        self.password = config.get("password") or None

    def connector(self) -> aiohttp.BaseConnector:
        return ProxyConnector(
            proxy_type=self.proxy_type,
            host=self.host,
            port=self.port,
            username=self.username,
            password=self.password,
            rdns=True,
            force_close=True,
        )


class PortPool:
    """A simple manager to avoid port conflicts between concurrent bridges."""

    def __init__(self, start_port: int, end_port: int):
        self._ports: asyncio.Queue[int] = asyncio.Queue()
        for port in range(start_port, end_port + 1):
            self._ports.put_nowait(port)

    async def acquire(self) -> int:
        return await self._ports.get()

    def release(self, port: int) -> None:
        self._ports.put_nowait(port)


class CoreBridge(Dialer):
    """Runs mihomo for one proxy and dials through its SOCKS5 inbound."""

    def __init__(
        self,
        name: str,
        config: Dict[str, Any],
        ports: PortPool,
        binary: str = "mihomo",
        startup_timeout: float = 5.0,
    ):
        super().__init__()
        self.name = name
        self.config = config
        self.ports = ports
        self.binary = binary
        self.startup_timeout = startup_timeout
        self.port: Optional[int] = None
        self.workdir: Optional[str] = None
        self.process: Optional[asyncio.subprocess.Process] = None

    def render_config(self, port: int) -> Dict[str, Any]:
        outbound = dict(self.config)
        outbound["name"] = "upstream"
        return {
            "socks-port": port,
            "bind-address": "127.0.0.1",
            "allow-lan": False,
            "mode": "rule",
            "log-level": "warning",
            "ipv6": True,
            "proxies": [outbound],
            "rules": ["MATCH,upstream"],
        }

    async def _open(self) -> None:
        binary = shutil.which(self.binary) or self.binary
        if not os.path.isfile(binary):
            raise TunnelError(f"bridge binary not found: {self.binary}")

        self.port = await self.ports.acquire()
        try:
            self.workdir = tempfile.mkdtemp(prefix="proxyspeed-")
            config_path = os.path.join(self.workdir, "config.yaml")
            with open(config_path, "w", encoding="utf-8") as handle:
                yaml.safe_dump(self.render_config(self.port), handle, allow_unicode=True)

            self.process = await asyncio.create_subprocess_exec(
                binary,
                "-d",
                self.workdir,
                "-f",
                config_path,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            await self._close()
            raise TunnelError(f"bridge for {self.name} could not be spawned: {exc}") from exc
        try:
            await self._wait_for_port(self.port, self.startup_timeout)
        except asyncio.TimeoutError:
            stderr = b""
            if self.process.returncode is not None and self.process.stderr:
                stderr = await self.process.stderr.read()
            await self._close()
            raise TunnelError(
                f"bridge for {self.name} failed to start: {stderr.decode(errors='ignore').strip()}"
            ) from None
        logger.debug("Bridge for %s listening on 127.0.0.1:%d", self.name, self.port)

    async def _close(self) -> None:
        if self.process and self.process.returncode is None:
            self.process.terminate()
            try:
                await asyncio.wait_for(self.process.wait(), timeout=5.0)
            except asyncio.TimeoutError:
                self.process.kill()
                await self.process.wait()
        self.process = None
        if self.workdir:
            shutil.rmtree(self.workdir, ignore_errors=True)
            self.workdir = None
        if self.port is not None:
            self.ports.release(self.port)
            self.port = None

    @staticmethod
    async def _wait_for_port(port: int, timeout: float) -> None:
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            try:
                _, writer = await asyncio.wait_for(
                    asyncio.open_connection("127.0.0.1", port), timeout=1.0
                )
                writer.close()
                await writer.wait_closed()
                return
            except (OSError, asyncio.TimeoutError):
                await asyncio.sleep(0.1)
        raise asyncio.TimeoutError(f"Port {port} did not open in time.")

    def connector(self) -> aiohttp.BaseConnector:
        if self.port is None:
            raise TunnelError(f"bridge for {self.name} is not running")
        return ProxyConnector(
            proxy_type=ProxyType.SOCKS5,
            host="127.0.0.1",
            port=self.port,
            rdns=True,
            force_close=True,
        )


class BridgeFactory:
    """Creates :class:`CoreBridge` dialers sharing one port pool."""

    def __init__(
        self,
        binary: str = "mihomo",
        port_start: int = 20800,
        port_end: int = 20899,
        startup_timeout: float = 5.0,
    ):
        self.binary = binary
        self.startup_timeout = startup_timeout
        self.port_start = port_start
        self.port_end = port_end
        self._ports: Optional[PortPool] = None

    @classmethod
    def from_settings(cls, settings: Any) -> "BridgeFactory":
        return cls(
            binary=settings.binary,
            port_start=settings.port_start,
            port_end=settings.port_end,
            startup_timeout=settings.startup_timeout,
        )

    def create(self, name: str, config: Dict[str, Any]) -> CoreBridge:
        if self._ports is None:
            self._ports = PortPool(self.port_start, self.port_end)
        return CoreBridge(
            name, config, self._ports, binary=self.binary, startup_timeout=self.startup_timeout
        )


def make_dialer(
    name: str,
    proxy_type: str,
    config: Dict[str, Any],
    bridges: Optional[BridgeFactory] = None,
) -> Dialer:
    """Pick the dialer for a proxy entry."""
    if proxy_type == "direct":
        return DirectDialer()
    if proxy_type == "socks5" or (proxy_type == "http" and not config.get("tls")):
        return SocksDialer(proxy_type, config)
    return (bridges or BridgeFactory()).create(name, config)
