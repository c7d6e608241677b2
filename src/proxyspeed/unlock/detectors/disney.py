from __future__ import annotations

import re

import aiohttp

from ...models import UnlockResult, UnlockStatus
from ..base import BaseDetector
from ..http import fetch_page

DISNEY_URL = "https://www.disneyplus.com"

REGION_RE = re.compile(r'"market"\s*:\s*"([A-Za-z]{2})"')
BLOCKED_PATHS = ("/unavailable", "/blocked", "/unsupported")


class DisneyPlusDetector(BaseDetector):
    def __init__(self) -> None:
        super().__init__("Disney+", priority=1)

    async def check(self, session: aiohttp.ClientSession) -> UnlockResult:
        page = await fetch_page(session, DISNEY_URL)
        if any(path in page.url for path in BLOCKED_PATHS):
            return self.create_result(
                UnlockStatus.LOCKED, message="Redirected to the unavailable page"
            )
        body = page.text.lower()
        if "not available" in body or "access denied" in body:
            return self.create_result(UnlockStatus.LOCKED, message="Disney+ is not available")
        if "sign up" in body or "subscribe" in body or "bundle" in body:
            region = self.extract_region(page.text, REGION_RE)
            return self.create_result(UnlockStatus.UNLOCKED, region, "Disney+ is available")
        return self.create_result(
            UnlockStatus.FAILED, message=f"Unable to determine status (HTTP {page.status})"
        )
