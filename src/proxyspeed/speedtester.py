"""Per-proxy test orchestration.

This module provides the `SpeedTester` class, which runs the latency,
unlock and throughput phases for one proxy at a time and reports a
:class:`~proxyspeed.models.Result` for each. A failure in any phase is
recorded on the result; :meth:`SpeedTester.test_proxy` never raises.
"""
from __future__ import annotations

import asyncio
import enum
import logging
from typing import Awaitable, Callable, Mapping, Optional, Union

from .config.request import TestConfig
from .constants import MODE_SPEED_ONLY, MODE_UNLOCK_ONLY, SLOW_MIN_LATENCY_TIMEOUT, SLOW_PROTOCOL
from .models import LatencyStats, Result, ThroughputResult
from .testing.latency import LatencyProber
from .testing.throughput import ThroughputProber
from .tunnel.errors import (
    STAGE_CONNECT,
    STAGE_DNS,
    TRANSPORT_ERRORS,
    analyze_error,
    describe_error,
)
from .tunnel.identity import ProxyIdentity, resolve_ip
from .unlock.dispatcher import UnlockDispatcher
from .unlock.summary import summarize_unlock

logger = logging.getLogger(__name__)

ResultCallback = Callable[[Result], Union[None, Awaitable[None]]]


class RunOutcome(enum.Enum):
    """How a cancellable sweep ended."""

    COMPLETED = "completed"
    CANCELLED = "cancelled"


class SpeedTester:
    """Runs the full measurement pipeline for each proxy in turn."""

    def __init__(
        self,
        config: TestConfig,
        unlock_dispatcher: Optional[UnlockDispatcher] = None,
    ) -> None:
        self.config = config
        self.unlock_dispatcher = unlock_dispatcher
        self.latency = LatencyProber(config.server_url)
        self.throughput = ThroughputProber(config.server_url)

    def _latency_timeout(self, proxy: ProxyIdentity) -> float:
        timeout = self.config.max_latency / 1000
        if proxy.type == SLOW_PROTOCOL:
            timeout = max(timeout, self.config.timeout, SLOW_MIN_LATENCY_TIMEOUT)
        return timeout

    def _latency_failed(self, result: Result) -> bool:
        return result.packet_loss >= 100 or result.latency > self.config.max_latency

    def _unlock_active(self) -> bool:
        return (
            self.config.test_mode != MODE_SPEED_ONLY
            and self.unlock_dispatcher is not None
            and self.unlock_dispatcher.enabled
        )

    async def test_proxy(self, name: str, proxy: ProxyIdentity) -> Result:
        """Test one proxy and return its result."""
        result = Result(
            proxy_name=name,
            proxy_type=proxy.type,
            proxy_config=dict(proxy.config),
            proxy_ip=await resolve_ip(proxy.config),
        )
        logger.info(
            "Testing proxy %s (%s) in %s mode", name, proxy.type, self.config.test_mode
        )
        try:
            async with proxy.open():
                await self._run_phases(result, proxy)
        except TRANSPORT_ERRORS as exc:
            logger.warning("Tunnel for %s failed: %s", name, exc)
            result.packet_loss = 100.0
            result.test_error = analyze_error(exc, name, STAGE_CONNECT)
            result.failure_stage = STAGE_CONNECT
            result.failure_reason = describe_error(exc)
        return result

    async def _run_phases(self, result: Result, proxy: ProxyIdentity) -> None:
        mode = self.config.test_mode

        if mode != MODE_UNLOCK_ONLY:
            await self._latency_phase(result, proxy)
            if mode == MODE_SPEED_ONLY and self._latency_failed(result):
                logger.info(
                    "Proxy %s failed the latency check (loss %.1f%%, latency %.0fms)",
                    result.proxy_name,
                    result.packet_loss,
                    result.latency,
                )
                return

        if self._unlock_active():
            await self._unlock_phase(result, proxy)
        if mode == MODE_UNLOCK_ONLY:
            return

        if self.config.fast_mode:
            logger.debug("Fast mode: skipping throughput for %s", result.proxy_name)
            return

        # Also covers modes that skipped the check above.
        if self._latency_failed(result):
            logger.debug("Skipping throughput for %s: latency gate failed", result.proxy_name)
            return
        await self._throughput_phase(result, proxy)

    async def _latency_phase(self, result: Result, proxy: ProxyIdentity) -> None:
        slow = proxy.type == SLOW_PROTOCOL
        stats: LatencyStats = await self.latency.probe(
            proxy, self._latency_timeout(proxy), capture_errors=slow
        )
        result.latency = stats.avg_latency
        result.jitter = stats.jitter
        result.packet_loss = stats.packet_loss

        if slow and stats.last_error is not None:
            error = analyze_error(stats.last_error, result.proxy_name, STAGE_DNS)
            result.test_error = error
            result.failure_stage = error.stage
            result.failure_reason = error.message
            logger.debug("Latency error for %s: %s", result.proxy_name, error)

        logger.debug(
            "Latency for %s: %.1fms (jitter %.1fms, loss %.1f%%)",
            result.proxy_name,
            result.latency,
            result.jitter,
            result.packet_loss,
        )

    async def _unlock_phase(self, result: Result, proxy: ProxyIdentity) -> None:
        assert self.unlock_dispatcher is not None
        unlock_results = await self.unlock_dispatcher.detect_all(proxy)
        result.unlock_results = unlock_results
        result.unlock_summary = summarize_unlock(unlock_results)
        logger.info(
            "Unlock detection for %s: %d/%d platforms supported",
            result.proxy_name,
            result.unlock_summary.total_supported,
            result.unlock_summary.total_tested,
        )

    def _warn_if_failed(self, direction: str, name: str, outcome: ThroughputResult) -> None:
        if outcome.succeeded == 0:
            logger.warning("All %d %s workers failed for %s", outcome.workers, direction, name)

    async def _throughput_phase(self, result: Result, proxy: ProxyIdentity) -> None:
        cfg = self.config
        download = await self.throughput.download(
            proxy, cfg.download_size, cfg.concurrent, cfg.timeout
        )
        if download is not None:
            self._warn_if_failed("download", result.proxy_name, download)
            result.download_size = download.bytes
            result.download_time = download.duration
            result.download_speed = download.speed

        if result.download_speed < cfg.min_download_speed:
            logger.debug(
                "Skipping upload for %s: download %s below minimum",
                result.proxy_name,
                result.format_download_speed(),
            )
            return

        upload = await self.throughput.upload(
            proxy, cfg.upload_size, cfg.concurrent, cfg.timeout
        )
        if upload is not None:
            self._warn_if_failed("upload", result.proxy_name, upload)
            result.upload_size = upload.bytes
            result.upload_time = upload.duration
            result.upload_speed = upload.speed

        logger.info(
            "Proxy %s: download %s, upload %s",
            result.proxy_name,
            result.format_download_speed(),
            result.format_upload_speed(),
        )

    async def _deliver(self, callback: ResultCallback, result: Result) -> None:
        outcome = callback(result)
        if asyncio.iscoroutine(outcome):
            await outcome

    async def test_proxies(
        self, proxies: Mapping[str, ProxyIdentity], callback: ResultCallback
    ) -> None:
        """Test ``proxies`` one after another, passing each result to ``callback``."""
        for name, proxy in proxies.items():
            await self._deliver(callback, await self.test_proxy(name, proxy))

    async def test_proxies_with_cancel(
        self,
        proxies: Mapping[str, ProxyIdentity],
        callback: ResultCallback,
        cancel_event: asyncio.Event,
    ) -> RunOutcome:
        """Like :meth:`test_proxies`, stopping before the next proxy once
        ``cancel_event`` is set. Results already delivered are kept."""
        for name, proxy in proxies.items():
            if cancel_event.is_set():
                logger.info("Test run cancelled before %s", name)
                return RunOutcome.CANCELLED
            await self._deliver(callback, await self.test_proxy(name, proxy))
        return RunOutcome.COMPLETED
