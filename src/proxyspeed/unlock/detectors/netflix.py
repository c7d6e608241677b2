from __future__ import annotations

import re

import aiohttp

from ...models import UnlockResult, UnlockStatus
from ..base import BaseDetector
from ..http import fetch_page

# A title that is only licensed outside a few regions.
NETFLIX_TITLE_URL = "https://www.netflix.com/title/81280792"

REGION_RE = re.compile(r'"requestCountry"\s*:\s*"([A-Za-z]{2})"')
BLOCK_MARKERS = ("Not Available", "page-404", "NSEZ-403")


class NetflixDetector(BaseDetector):
    def __init__(self) -> None:
        super().__init__("Netflix", priority=1)

    async def check(self, session: aiohttp.ClientSession) -> UnlockResult:
        page = await fetch_page(session, NETFLIX_TITLE_URL)
        if any(marker in page.text for marker in BLOCK_MARKERS):
            return self.create_result(UnlockStatus.LOCKED, message="Netflix is not available")
        if "requestCountry" in page.text:
            region = self.extract_region(page.text, REGION_RE)
            return self.create_result(UnlockStatus.UNLOCKED, region, "Full Netflix access")
        if page.status == 200 and "netflix" in page.text.lower():
            return self.create_result(UnlockStatus.UNLOCKED, message="Netflix is available")
        return self.create_result(
            UnlockStatus.FAILED, message=f"Unable to determine status (HTTP {page.status})"
        )
