"""Test configuration and helper fixtures."""

from __future__ import annotations

import asyncio
import inspect
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import AsyncIterator, Callable, List, Optional

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from proxyspeed.testing import latency
from proxyspeed.tunnel.identity import ProxyIdentity
from proxyspeed.unlock import dispatcher


@pytest.hookimpl
def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers used in the test-suite."""

    config.addinivalue_line("markers", "asyncio: run the test inside an event loop")


@pytest.hookimpl(tryfirst=True)
def pytest_pyfunc_call(pyfuncitem: pytest.Function) -> bool | None:
    """Execute ``async def`` tests marked with ``@pytest.mark.asyncio``."""

    test_func = pyfuncitem.obj
    if not inspect.iscoroutinefunction(test_func):
        return None

    if pyfuncitem.get_closest_marker("asyncio") is None:
        return None

    fixture_names = pyfuncitem._fixtureinfo.argnames  # type: ignore[attr-defined]
    call_kwargs = {name: pyfuncitem.funcargs[name] for name in fixture_names}
    asyncio.run(test_func(**call_kwargs))
    return True


@pytest.fixture(autouse=True)
def fast_timers(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove probe pacing and retry backoff delays."""

    monkeypatch.setattr(latency, "PING_INTERVAL", 0)
    monkeypatch.setattr(dispatcher, "RETRY_BASE_DELAY", 0)


@dataclass
class SimpleFS:
    """Lightweight fake file-system helper for catalog files."""

    root: Path

    def create_file(self, relative_path: str, contents: str = "") -> Path:
        file_path = self.root / relative_path
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_path.write_text(contents, encoding="utf-8")
        return file_path


@pytest.fixture
def fs(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> SimpleFS:
    """Provide a simple fake file-system rooted at ``tmp_path``."""

    monkeypatch.chdir(tmp_path)
    return SimpleFS(tmp_path)


DOWNLOADS = web.AppKey("downloads", list)
UPLOADS = web.AppKey("uploads", list)


@dataclass
class SpeedServer:
    """A running speed-test app and what it has seen."""

    url: str
    downloads: List[int]
    uploads: List[int]


def speed_app(latency_delay: float = 0.0, status: int = 200) -> web.Application:
    """Build an app implementing ``/__down`` and ``/__up``.

    ``latency_delay`` delays zero-byte probes; ``status`` is returned by
    every endpoint.
    """

    app = web.Application()
    app[DOWNLOADS] = []
    app[UPLOADS] = []

    async def down(request: web.Request) -> web.Response:
        size = int(request.query.get("bytes", "0"))
        if size == 0 and latency_delay:
            await asyncio.sleep(latency_delay)
        if size:
            request.app[DOWNLOADS].append(size)
        return web.Response(status=status, body=bytes(size))

    async def up(request: web.Request) -> web.Response:
        received = 0
        async for chunk in request.content.iter_chunked(64 * 1024):
            received += len(chunk)
        request.app[UPLOADS].append(received)
        return web.Response(status=status, text="ok")

    app.router.add_get("/__down", down)
    app.router.add_post("/__up", up)
    return app


@asynccontextmanager
async def serve(app: web.Application) -> AsyncIterator[SpeedServer]:
    server = TestServer(app)
    await server.start_server()
    try:
        yield SpeedServer(
            url=str(server.make_url("")).rstrip("/"),
            downloads=app.get(DOWNLOADS, []),
            uploads=app.get(UPLOADS, []),
        )
    finally:
        await server.close()


@pytest.fixture
def speed_server() -> Callable[..., object]:
    """Return a factory building the speed server as an async context manager."""

    def factory(app: Optional[web.Application] = None, **kwargs):
        return serve(app if app is not None else speed_app(**kwargs))

    return factory


def make_proxy(name: str = "local", proxy_type: str = "direct", **config) -> ProxyIdentity:
    entry = {"name": name, "type": proxy_type, "server": "127.0.0.1", "port": 0}
    entry.update(config)
    return ProxyIdentity.from_config(name, entry)


@pytest.fixture
def direct_proxy() -> ProxyIdentity:
    return make_proxy()


@pytest.fixture
def proxy_factory() -> Callable[..., ProxyIdentity]:
    return make_proxy


async def _refuse_connect(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
    """Accept a no-auth SOCKS5 greeting, then refuse the CONNECT request."""

    try:
        _, nmethods = await reader.readexactly(2)
        await reader.readexactly(nmethods)
        writer.write(b"\x05\x00")
        await writer.drain()

        header = await reader.readexactly(4)
        atyp = header[3]
        if atyp == 1:
            await reader.readexactly(4)
        elif atyp == 3:
            length = (await reader.readexactly(1))[0]
            await reader.readexactly(length)
        elif atyp == 4:
            await reader.readexactly(16)
        await reader.readexactly(2)

        writer.write(b"\x05\x05\x00\x01" + bytes(6))
        await writer.drain()
    except (asyncio.IncompleteReadError, ConnectionError):
        pass
    finally:
        writer.close()


@asynccontextmanager
async def serve_refusing_socks() -> AsyncIterator[ProxyIdentity]:
    server = await asyncio.start_server(_refuse_connect, "127.0.0.1", 0)
    port = server.sockets[0].getsockname()[1]
    try:
        yield ProxyIdentity.from_config(
            "refused", {"name": "refused", "type": "socks5", "server": "127.0.0.1", "port": port}
        )
    finally:
        server.close()
        await server.wait_closed()


@pytest.fixture
def refusing_socks() -> Callable[[], object]:
    """Return a factory for a SOCKS5 proxy that answers every CONNECT with 0x05."""

    return serve_refusing_socks
