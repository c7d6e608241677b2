from __future__ import annotations

import re

import aiohttp

from ...models import UnlockResult, UnlockStatus
from ..base import BaseDetector
from ..http import fetch_page

YOUTUBE_PREMIUM_URL = "https://www.youtube.com/premium"

REGION_RE = re.compile(r'"countryCode"\s*:\s*"([A-Za-z]{2})"')


class YouTubeDetector(BaseDetector):
    """YouTube Premium availability."""

    def __init__(self) -> None:
        super().__init__("YouTube", priority=1)

    async def check(self, session: aiohttp.ClientSession) -> UnlockResult:
        page = await fetch_page(session, YOUTUBE_PREMIUM_URL)
        if "Premium is not available" in page.text or "isn't available" in page.text:
            return self.create_result(
                UnlockStatus.LOCKED, message="YouTube Premium is not available"
            )
        if "countryCode" in page.text:
            region = self.extract_region(page.text, REGION_RE)
            return self.create_result(
                UnlockStatus.UNLOCKED, region, "YouTube Premium is available"
            )
        if page.status == 200 and "youtube" in page.text.lower():
            return self.create_result(UnlockStatus.UNLOCKED, message="YouTube is available")
        return self.create_result(
            UnlockStatus.FAILED, message=f"Unable to determine status (HTTP {page.status})"
        )
