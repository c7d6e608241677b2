import pytest
from aiohttp import web

from proxyspeed.exceptions import RegistrationError
from proxyspeed.models import UnlockStatus
from proxyspeed.unlock import default_registry
from proxyspeed.unlock.base import FunctionDetector, StreamResult
from proxyspeed.unlock.detectors import bilibili, disney, gemini, netflix, openai
from proxyspeed.unlock.registry import DetectorRegistry


def _page_app(routes):
    """Build an app answering ``routes`` ({path: (status, body)})."""
    app = web.Application()
    for path, (status, body) in routes.items():

        async def handler(request, status=status, body=body):
            return web.Response(status=status, text=body, content_type="text/html")

        app.router.add_get(path, handler)
    return app


def test_default_registry_contents():
    registry = default_registry()
    assert len(registry) == 7
    assert registry.platforms() == sorted(
        ["Netflix", "YouTube", "Disney+", "ChatGPT", "Spotify", "Bilibili", "Gemini"]
    )
    assert registry.priority_of("Netflix") == 1
    assert registry.priority_of("Bilibili") == 2
    assert registry.priority_of("Nope") == 3
    assert [d.priority for d in registry.by_priority()] == [1, 1, 1, 1, 2, 2, 2]
    assert "Gemini" in registry


def test_duplicate_registration_is_rejected():
    registry = DetectorRegistry()
    registry.register(netflix.NetflixDetector())
    with pytest.raises(RegistrationError):
        registry.register(netflix.NetflixDetector())


def test_empty_platform_name_is_rejected():
    async def probe(session):
        return StreamResult(platform="")

    with pytest.raises(RegistrationError):
        DetectorRegistry().register(FunctionDetector("", 1, probe))


@pytest.mark.parametrize(
    "stream, status, message",
    [
        (StreamResult("X", "Success", "US"), UnlockStatus.UNLOCKED, "Successfully unlocked"),
        (StreamResult("X", "Success", "US", "Full"), UnlockStatus.UNLOCKED, "Full"),
        (StreamResult("X", "Failed"), UnlockStatus.LOCKED, "Not available in this region"),
        (StreamResult("X", "Weird"), UnlockStatus.ERROR, "Unknown status: Weird"),
    ],
)
def test_function_detector_status_mapping(stream, status, message):
    async def probe(session):
        return stream

    result = FunctionDetector("Legacy", 2, probe).convert(stream)
    assert result.platform == "Legacy"
    assert result.status is status
    assert result.message == message


@pytest.mark.asyncio
async def test_netflix_unlocked_with_region(speed_server, direct_proxy, monkeypatch):
    app = _page_app({"/title": (200, '<script>{"requestCountry":"us"}</script>')})
    async with speed_server(app) as server:
        monkeypatch.setattr(netflix, "NETFLIX_TITLE_URL", f"{server.url}/title")
        result = await netflix.NetflixDetector().detect(direct_proxy, timeout=5)

    assert result.status is UnlockStatus.UNLOCKED
    assert result.region == "US"


@pytest.mark.asyncio
async def test_netflix_block_marker(speed_server, direct_proxy, monkeypatch):
    app = _page_app({"/title": (403, "NSEZ-403")})
    async with speed_server(app) as server:
        monkeypatch.setattr(netflix, "NETFLIX_TITLE_URL", f"{server.url}/title")
        result = await netflix.NetflixDetector().detect(direct_proxy, timeout=5)

    assert result.status is UnlockStatus.LOCKED


@pytest.mark.asyncio
async def test_connection_failure_is_an_error_result(direct_proxy, monkeypatch):
    monkeypatch.setattr(netflix, "NETFLIX_TITLE_URL", "http://127.0.0.1:9/title")
    result = await netflix.NetflixDetector().detect(direct_proxy, timeout=2)

    assert result.status is UnlockStatus.ERROR
    assert result.message.startswith("Failed to connect to Netflix: ")


@pytest.mark.asyncio
async def test_disney_redirect_to_unavailable(speed_server, direct_proxy, monkeypatch):
    app = _page_app({"/unavailable": (200, "Sorry")})

    async def home(request):
        raise web.HTTPFound("/unavailable")

    app.router.add_get("/", home)
    async with speed_server(app) as server:
        monkeypatch.setattr(disney, "DISNEY_URL", f"{server.url}/")
        result = await disney.DisneyPlusDetector().detect(direct_proxy, timeout=5)

    assert result.status is UnlockStatus.LOCKED


@pytest.mark.asyncio
async def test_chatgpt_country_from_compliance_api(speed_server, direct_proxy, monkeypatch):
    app = _page_app({"/compliance": (200, '{"country": "jp"}')})
    async with speed_server(app) as server:
        monkeypatch.setattr(openai, "COMPLIANCE_URL", f"{server.url}/compliance")
        result = await openai.ChatGPTDetector().detect(direct_proxy, timeout=5)

    assert result.status is UnlockStatus.UNLOCKED
    assert result.region == "JP"


@pytest.mark.asyncio
async def test_chatgpt_falls_back_to_ios_endpoint(speed_server, direct_proxy, monkeypatch):
    app = _page_app({"/ios": (403, "unsupported_country")})
    async with speed_server(app) as server:
        monkeypatch.setattr(openai, "COMPLIANCE_URL", "http://127.0.0.1:9/compliance")
        monkeypatch.setattr(openai, "IOS_URL", f"{server.url}/ios")
        result = await openai.ChatGPTDetector().detect(direct_proxy, timeout=5)

    assert result.status is UnlockStatus.LOCKED


@pytest.mark.asyncio
async def test_bilibili_falls_back_to_mainland(speed_server, direct_proxy, monkeypatch):
    app = _page_app(
        {
            "/ss21542": (200, "抱歉，由于版权方要求"),
            "/ss28341": (404, "error"),
            "/": (200, "bilibili"),
        }
    )
    async with speed_server(app) as server:
        monkeypatch.setattr(bilibili, "BANGUMI_URL", f"{server.url}/ss{{season}}")
        monkeypatch.setattr(bilibili, "HOMEPAGE_URL", f"{server.url}/")
        result = await bilibili.BilibiliDetector().detect(direct_proxy, timeout=5)

    assert result.status is UnlockStatus.UNLOCKED
    assert result.region == "CN"


@pytest.mark.asyncio
async def test_gemini_probe_through_adapter(speed_server, direct_proxy, monkeypatch):
    body = 'data 45631641,null,true more ,2,1,200,"USA" end'
    app = _page_app({"/": (200, body)})
    async with speed_server(app) as server:
        monkeypatch.setattr(gemini, "GEMINI_URL", f"{server.url}/")
        result = await gemini.gemini_detector().detect(direct_proxy, timeout=5)

    assert result.platform == "Gemini"
    assert result.status is UnlockStatus.UNLOCKED
    assert result.region == "USA"
    assert result.message == "Successfully unlocked"


@pytest.mark.asyncio
async def test_gemini_not_available(speed_server, direct_proxy, monkeypatch):
    app = _page_app({"/": (200, "nothing here")})
    async with speed_server(app) as server:
        monkeypatch.setattr(gemini, "GEMINI_URL", f"{server.url}/")
        result = await gemini.gemini_detector().detect(direct_proxy, timeout=5)

    assert result.status is UnlockStatus.LOCKED
    assert result.message == "Not Available"


@pytest.mark.asyncio
async def test_socks_reply_error_is_an_error_result(refusing_socks, monkeypatch):
    monkeypatch.setattr(netflix, "NETFLIX_TITLE_URL", "http://127.0.0.1:9/title")
    async with refusing_socks() as proxy:
        result = await netflix.NetflixDetector().detect(proxy, timeout=2)

    assert result.status is UnlockStatus.ERROR
    assert result.message.startswith("Failed to connect to Netflix: ")
