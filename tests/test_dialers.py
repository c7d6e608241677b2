import pytest
from aiohttp_socks import ProxyConnector

from proxyspeed.exceptions import TunnelError
from proxyspeed.tunnel.dialers import (
    BridgeFactory,
    CoreBridge,
    DirectDialer,
    PortPool,
    SocksDialer,
    make_dialer,
)
from proxyspeed.tunnel.identity import ProxyIdentity, resolve_ip


@pytest.mark.parametrize(
    "proxy_type, config, expected",
    [
        ("direct", {}, DirectDialer),
        ("socks5", {"server": "1.1.1.1", "port": 1080}, SocksDialer),
        ("http", {"server": "1.1.1.1", "port": 8080}, SocksDialer),
        ("http", {"server": "1.1.1.1", "port": 443, "tls": True}, CoreBridge),
        ("vmess", {"server": "1.1.1.1", "port": 443, "uuid": "x"}, CoreBridge),
        ("hysteria2", {"server": "1.1.1.1", "port": 443}, CoreBridge),
    ],
)
def test_make_dialer_routing(proxy_type, config, expected):
    assert isinstance(make_dialer("n", proxy_type, config), expected)


def test_bridge_config_renames_upstream():
    bridge = BridgeFactory().create("node", {"name": "node", "type": "trojan", "server": "x"})
    rendered = bridge.render_config(20801)
    assert rendered["socks-port"] == 20801
    assert rendered["proxies"] == [{"name": "upstream", "type": "trojan", "server": "x"}]
    assert rendered["rules"] == ["MATCH,upstream"]
    assert bridge.config["name"] == "node"


@pytest.mark.asyncio
async def test_missing_bridge_binary_raises():
    bridges = BridgeFactory(binary="definitely-not-a-real-mihomo-binary")
    proxy = ProxyIdentity.from_config("t", {"type": "trojan", "server": "x", "port": 1}, bridges)
    with pytest.raises(TunnelError, match="not found"):
        async with proxy.open():
            pass


def test_bridge_connector_requires_running_bridge():
    bridge = BridgeFactory().create("node", {"type": "vless"})
    with pytest.raises(TunnelError, match="not running"):
        bridge.connector()


@pytest.mark.asyncio
async def test_socks_connector():
    proxy = ProxyIdentity.from_config("s", {"type": "socks5", "server": "10.0.0.1", "port": 1080})
    connector = proxy.connector()
    try:
        assert isinstance(connector, ProxyConnector)
    finally:
        await connector.close()


@pytest.mark.asyncio
async def test_port_pool_round_trip():
    pool = PortPool(30000, 30001)
    first = await pool.acquire()
    second = await pool.acquire()
    assert {first, second} == {30000, 30001}
    pool.release(first)
    assert await pool.acquire() == first


@pytest.mark.asyncio
async def test_dialer_reference_counting():
    opened = []

    class Counting(DirectDialer):
        async def _open(self):
            opened.append("open")

        async def _close(self):
            opened.append("close")

    dialer = Counting()
    await dialer.start()
    await dialer.start()
    await dialer.stop()
    assert opened == ["open"]
    await dialer.stop()
    assert opened == ["open", "close"]


@pytest.mark.asyncio
async def test_resolve_ip():
    assert await resolve_ip({"server": "10.1.1.1"}) == "10.1.1.1"
    assert await resolve_ip({}) == ""
    assert await resolve_ip({"server": "localhost"}) in ("127.0.0.1", "::1")
