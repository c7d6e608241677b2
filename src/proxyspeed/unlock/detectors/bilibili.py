from __future__ import annotations

import logging

import aiohttp

from ...models import UnlockResult, UnlockStatus
from ..base import PROBE_ERRORS, BaseDetector
from ..http import fetch_page

logger = logging.getLogger(__name__)

BANGUMI_URL = "https://www.bilibili.com/bangumi/play/ss{season}"
HOMEPAGE_URL = "https://www.bilibili.com"

# Region-locked seasons, checked narrowest region first.
SEASONS = (
    ("21542", "TW"),
    ("28341", "HKMOTW"),
)
LOCK_MARKERS = ("地区限制", "区域限制", "版权方要求")


class BilibiliDetector(BaseDetector):
    def __init__(self) -> None:
        super().__init__("Bilibili", priority=2)

    async def _season_available(self, session: aiohttp.ClientSession, season: str) -> bool:
        try:
            page = await fetch_page(session, BANGUMI_URL.format(season=season))
        except PROBE_ERRORS as exc:
            logger.debug("Bilibili season %s check failed: %s", season, exc)
            return False
        if any(marker in page.text for marker in LOCK_MARKERS):
            return False
        return page.status == 200 and "error" not in page.text and "bangumi" in page.text

    async def check(self, session: aiohttp.ClientSession) -> UnlockResult:
        for season, region in SEASONS:
            if await self._season_available(session, season):
                return self.create_result(
                    UnlockStatus.UNLOCKED, region, f"{region} content accessible"
                )

        page = await fetch_page(session, HOMEPAGE_URL)
        if page.status == 200:
            return self.create_result(UnlockStatus.UNLOCKED, "CN", "Bilibili mainland accessible")
        return self.create_result(UnlockStatus.LOCKED, message="Bilibili not accessible")
