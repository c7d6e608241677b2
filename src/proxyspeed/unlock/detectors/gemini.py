from __future__ import annotations

import re

import aiohttp

from ..base import FunctionDetector, StreamResult
from ..http import fetch_page

GEMINI_URL = "https://gemini.google.com"

AVAILABLE_MARKER = "45631641,null,true"
REGION_RE = re.compile(r',2,1,200,"([A-Z]{3})"')


async def probe_gemini(session: aiohttp.ClientSession) -> StreamResult:
    result = StreamResult(platform="Gemini")
    page = await fetch_page(session, GEMINI_URL)
    if AVAILABLE_MARKER in page.text:
        match = REGION_RE.search(page.text)
        result.status = "Success"
        result.region = match.group(1) if match else "Available"
    else:
        result.status = "Failed"
        result.info = "Not Available"
    return result


def gemini_detector() -> FunctionDetector:
    return FunctionDetector("Gemini", 2, probe_gemini)
