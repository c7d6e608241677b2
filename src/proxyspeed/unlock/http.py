from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Dict, Optional

import aiohttp

from ..tunnel.client import create_client
from ..tunnel.identity import ProxyIdentity

MAX_REDIRECTS = 5

USER_AGENTS = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/125.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/125.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.4 Safari/605.1.15",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:126.0) Gecko/20100101 Firefox/126.0",
)


def browser_headers() -> Dict[str, str]:
    """Headers that make a probe look like an ordinary browser visit."""
    return {
        "User-Agent": random.choice(USER_AGENTS),
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
        "Accept-Language": "en-US,en;q=0.5",
        "DNT": "1",
        "Upgrade-Insecure-Requests": "1",
    }


def create_unlock_client(proxy: ProxyIdentity, timeout: float) -> aiohttp.ClientSession:
    return create_client(proxy, timeout, headers=browser_headers())


@dataclass
class PageResponse:
    """Status, decoded body and final URL after redirects."""

    status: int
    text: str
    url: str


async def fetch_page(
    session: aiohttp.ClientSession,
    url: str,
    headers: Optional[Dict[str, str]] = None,
) -> PageResponse:
    """GET ``url`` following at most :data:`MAX_REDIRECTS` redirects."""
    async with session.get(
        url, headers=headers, allow_redirects=True, max_redirects=MAX_REDIRECTS
    ) as resp:
        text = await resp.text(errors="replace")
        return PageResponse(status=resp.status, text=text, url=str(resp.url))
