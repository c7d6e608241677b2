from __future__ import annotations

import re

import aiohttp

from ...models import UnlockResult, UnlockStatus
from ..base import BaseDetector
from ..http import fetch_page

SPOTIFY_URL = "https://open.spotify.com/"

REGION_RE = re.compile(r'"country"\s*:\s*"([A-Za-z]{2})"')


class SpotifyDetector(BaseDetector):
    def __init__(self) -> None:
        super().__init__("Spotify", priority=2)

    async def check(self, session: aiohttp.ClientSession) -> UnlockResult:
        page = await fetch_page(session, SPOTIFY_URL)
        if "unavailable" in page.url:
            return self.create_result(UnlockStatus.LOCKED, message="Spotify is not available")
        body = page.text.lower()
        if "not available" in body or "blocked" in body:
            return self.create_result(UnlockStatus.LOCKED, message="Spotify is not available")
        if "spotify" in body and any(word in body for word in ("sign up", "login", "premium")):
            region = self.extract_region(page.text, REGION_RE)
            return self.create_result(UnlockStatus.UNLOCKED, region, "Spotify is available")
        return self.create_result(
            UnlockStatus.FAILED, message=f"Unable to determine status (HTTP {page.status})"
        )
