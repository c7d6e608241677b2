"""Concurrent execution of the configured platform detectors.

The dispatcher fans out one task per requested platform, bounded by a
semaphore, consults the cache first and retries error results with
exponential backoff when enabled. Exactly one result is returned per
requested platform, in priority order.
"""
from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Sequence

from ..config.request import UnlockConfig
from ..constants import UNLOCK_MAX_RETRIES
from ..models import UnlockResult, UnlockStatus
from ..tunnel.identity import ProxyIdentity
from .base import Detector
from .cache import UnlockCache
from .registry import DetectorRegistry

logger = logging.getLogger(__name__)

RETRY_BASE_DELAY = 1.0


class UnlockDispatcher:
    def __init__(
        self,
        config: UnlockConfig,
        registry: DetectorRegistry,
        cache: Optional[UnlockCache] = None,
    ):
        self.config = config
        self.registry = registry
        self.cache = cache

    @property
    def enabled(self) -> bool:
        return self.config.enabled

    def sort_by_priority(self, platforms: Iterable[str]) -> List[str]:
        """Order platforms by detector priority, keeping input order on ties."""
        return sorted(platforms, key=self.registry.priority_of)

    async def detect_all(
        self, proxy: ProxyIdentity, platforms: Optional[Sequence[str]] = None
    ) -> List[UnlockResult]:
        """Probe every platform through ``proxy``.

        Returns an empty list when detection is disabled.
        """
        if not self.enabled:
            return []
        ordered = self.sort_by_priority(
            self.config.platforms if platforms is None else platforms
        )
        logger.debug(
            "Unlock detection for %s: %s", proxy.name, ", ".join(ordered)
        )
        semaphore = asyncio.Semaphore(self.config.concurrent)
        results = await asyncio.gather(
            *(self._detect_platform(proxy, platform, semaphore) for platform in ordered)
        )
        return list(results)

    async def _detect_platform(
        self, proxy: ProxyIdentity, platform: str, semaphore: asyncio.Semaphore
    ) -> UnlockResult:
        if self.cache is not None:
            cached = self.cache.get(proxy.name, platform)
            if cached is not None:
                logger.debug("Unlock cache hit: %s via %s", platform, proxy.name)
                return cached

        detector = self.registry.get(platform)
        if detector is None:
            logger.warning("No detector registered for platform %s", platform)
            return UnlockResult(
                platform=platform,
                status=UnlockStatus.ERROR,
                message="Platform detector not found",
                checked_at=datetime.now(timezone.utc),
            )

        async with semaphore:
            start = time.monotonic()
            result = await self._run_with_retry(detector, proxy)
            result.latency_ms = (time.monotonic() - start) * 1000
            result.checked_at = datetime.now(timezone.utc)

        if self.cache is not None:
            self.cache.set(proxy.name, platform, result, ttl=self.config.cache_ttl)
        return result

    async def _run_once(self, detector: Detector, proxy: ProxyIdentity) -> UnlockResult:
        try:
            return await asyncio.wait_for(
                detector.detect(proxy, self.config.timeout), self.config.timeout
            )
        except asyncio.TimeoutError:
            return UnlockResult(
                platform=detector.platform_name,
                status=UnlockStatus.ERROR,
                message=f"Detection timed out after {self.config.timeout:g}s",
            )
        except Exception as exc:
            logger.error(
                "Detector %s raised for %s: %s", detector.platform_name, proxy.name, exc
            )
            return UnlockResult(
                platform=detector.platform_name,
                status=UnlockStatus.ERROR,
                message=f"Detection failed: {exc}",
            )

    async def _run_with_retry(
        self, detector: Detector, proxy: ProxyIdentity
    ) -> UnlockResult:
        result = await self._run_once(detector, proxy)
        if not self.config.retry_on_error:
            return result

        retries = 0
        while result.status is UnlockStatus.ERROR and retries < UNLOCK_MAX_RETRIES:
            delay = RETRY_BASE_DELAY * 2**retries
            retries += 1
            logger.debug(
                "Retrying %s via %s in %.1fs (%d/%d): %s",
                detector.platform_name,
                proxy.name,
                delay,
                retries,
                UNLOCK_MAX_RETRIES,
                result.message,
            )
            await asyncio.sleep(delay)
            result = await self._run_once(detector, proxy)

        if retries and result.status is UnlockStatus.ERROR:
            result.message = f"Failed after {retries} retries: {result.message}"
        return result
