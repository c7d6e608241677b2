from __future__ import annotations

import asyncio
import base64
import binascii
import logging
import random
from typing import Optional
from urllib.parse import urlparse

import aiohttp

from ..constants import BASE64_RE, CONFIG_MARKERS


async def fetch_text(
    session: aiohttp.ClientSession,
    url: str,
    timeout: float = 30,
    *,
    retries: int = 2,
    base_delay: float = 1.0,
    jitter: float = 0.1,
) -> Optional[str]:
    """Fetch text content with retries, returning ``None`` on failure."""
    parsed = urlparse(url)
    if not parsed.scheme or not parsed.netloc:
        logging.debug("fetch_text invalid url: %s", url)
        return None

    attempt = 0
    while attempt < retries:
        try:
            async with session.get(url, timeout=aiohttp.ClientTimeout(total=timeout)) as resp:
                if resp.status == 200:
                    return await resp.text(errors="replace")
                if 400 <= resp.status < 500 and resp.status != 429:
                    logging.debug("fetch_text non-retry status %s on %s", resp.status, url)
                    return None
                logging.debug("fetch_text transient status %s on %s", resp.status, url)
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            logging.debug("fetch_text error on %s: %s", url, exc)

        attempt += 1
        if attempt >= retries:
            break
        delay = base_delay * 2 ** (attempt - 1)
        await asyncio.sleep(delay + random.uniform(0, jitter))
    return None


def maybe_decode_base64(text: str) -> str:
    """Return the decoded document if ``text`` is a base64-wrapped catalog."""
    stripped = text.strip()
    if not stripped or not BASE64_RE.match(stripped):
        return text
    compact = "".join(stripped.split())
    padded = compact + "=" * (-len(compact) % 4)
    try:
        if "-" in padded or "_" in padded:
            decoded = base64.urlsafe_b64decode(padded).decode("utf-8")
        else:
            decoded = base64.b64decode(padded, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError, ValueError):
        return text
    if any(marker in decoded for marker in CONFIG_MARKERS):
        logging.debug("Detected base64 encoded catalog, decoding")
        return decoded
    return text
