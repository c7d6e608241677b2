from __future__ import annotations

import json
import logging

import aiohttp

from ...models import UnlockResult, UnlockStatus
from ..base import PROBE_ERRORS, BaseDetector
from ..http import fetch_page

logger = logging.getLogger(__name__)

COMPLIANCE_URL = "https://api.openai.com/compliance/cookie_requirements"
IOS_URL = "https://ios.chat.openai.com/"


class ChatGPTDetector(BaseDetector):
    """Checks the compliance API first and falls back to the iOS endpoint."""

    def __init__(self) -> None:
        super().__init__("ChatGPT", priority=1)

    async def check(self, session: aiohttp.ClientSession) -> UnlockResult:
        try:
            result = await self._check_api(session)
        except PROBE_ERRORS as exc:
            logger.debug("ChatGPT compliance check failed, trying iOS endpoint: %s", exc)
            result = None
        if result is not None:
            return result
        return await self._check_ios(session)

    async def _check_api(self, session: aiohttp.ClientSession):
        page = await fetch_page(session, COMPLIANCE_URL)
        body = page.text.lower()
        if "unsupported_country" in body or "vpn" in body:
            return self.create_result(
                UnlockStatus.LOCKED, message="ChatGPT is not available in this region"
            )
        try:
            data = json.loads(page.text)
        except ValueError:
            data = None
        if isinstance(data, dict) and isinstance(data.get("country"), str) and data["country"]:
            return self.create_result(
                UnlockStatus.UNLOCKED, data["country"].upper(), "ChatGPT is available"
            )
        if page.status == 200:
            return self.create_result(UnlockStatus.UNLOCKED, message="ChatGPT is available")
        return None

    async def _check_ios(self, session: aiohttp.ClientSession) -> UnlockResult:
        page = await fetch_page(session, IOS_URL)
        body = page.text.lower()
        if "unsupported_country" in body or "vpn" in body or "blocked" in body:
            return self.create_result(
                UnlockStatus.LOCKED, message="ChatGPT is not available in this region"
            )
        if page.status == 200 and "error" not in body:
            return self.create_result(UnlockStatus.UNLOCKED, message="ChatGPT is available")
        return self.create_result(
            UnlockStatus.FAILED, message=f"Unable to determine status (HTTP {page.status})"
        )
