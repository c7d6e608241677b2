"""Interfaces for platform unlock detectors.

Every detector, whether a class or a plain probe function wrapped in
:class:`FunctionDetector`, is used through the :class:`Detector` interface.

Example:
    class ExampleDetector(BaseDetector):
        def __init__(self):
            super().__init__("Example", priority=2)

        async def check(self, session):
            page = await fetch_page(session, "https://example.com/")
            if page.status == 200:
                return self.create_result(UnlockStatus.UNLOCKED)
            return self.create_result(UnlockStatus.LOCKED)
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Pattern

import aiohttp

from ..constants import DEFAULT_PLATFORM_PRIORITY
from ..models import UnlockResult, UnlockStatus
from ..tunnel.errors import TRANSPORT_ERRORS, describe_error
from ..tunnel.identity import ProxyIdentity
from .http import create_unlock_client

logger = logging.getLogger(__name__)

# Failures that mean "could not reach the platform" rather than a verdict.
PROBE_ERRORS = TRANSPORT_ERRORS


class Detector(ABC):
    """Decides whether one platform is reachable through a proxy."""

    @property
    @abstractmethod
    def platform_name(self) -> str:
        """Registry key and the platform reported in results."""

    @property
    @abstractmethod
    def priority(self) -> int:
        """Dispatch priority, 1 being the highest."""

    @abstractmethod
    async def detect(self, proxy: ProxyIdentity, timeout: float) -> UnlockResult:
        """Probe the platform through ``proxy``.

        Network failures are reported as an ``error`` result rather than
        raised.
        """


class BaseDetector(Detector):
    """Detector that runs :meth:`check` on a browser-like session."""

    def __init__(self, platform_name: str, priority: int = DEFAULT_PLATFORM_PRIORITY):
        self._platform_name = platform_name
        self._priority = priority

    @property
    def platform_name(self) -> str:
        return self._platform_name

    @property
    def priority(self) -> int:
        return self._priority

    def create_result(
        self, status: UnlockStatus, region: str = "", message: str = ""
    ) -> UnlockResult:
        return UnlockResult(
            platform=self._platform_name, status=status, region=region, message=message
        )

    def create_error_result(
        self, message: str, exc: Optional[BaseException] = None
    ) -> UnlockResult:
        if exc is not None:
            message = f"{message}: {describe_error(exc)}"
        return self.create_result(UnlockStatus.ERROR, message=message)

    @staticmethod
    def extract_region(text: str, pattern: Pattern[str]) -> str:
        match = pattern.search(text)
        return match.group(1).upper() if match else ""

    async def detect(self, proxy: ProxyIdentity, timeout: float) -> UnlockResult:
        logger.debug(
            "Platform detection started: %s via %s (%s)",
            self._platform_name,
            proxy.name,
            proxy.type,
        )
        try:
            async with create_unlock_client(proxy, timeout) as session:
                result = await self.check(session)
        except PROBE_ERRORS as exc:
            result = self.create_error_result(
                f"Failed to connect to {self._platform_name}", exc
            )
        logger.debug(
            "Platform detection result: %s via %s -> %s %s %s",
            self._platform_name,
            proxy.name,
            result.status.value,
            result.region,
            result.message,
        )
        return result

    @abstractmethod
    async def check(self, session: aiohttp.ClientSession) -> UnlockResult:
        """Classify the platform using ``session``; may raise network errors."""


@dataclass
class StreamResult:
    """Verdict returned by a plain probe function.

    ``status`` is ``"Success"`` or ``"Failed"``; anything else is treated
    as an error.
    """

    platform: str
    status: str = ""
    region: str = ""
    info: str = ""


StreamProbe = Callable[[aiohttp.ClientSession], Awaitable[StreamResult]]


class FunctionDetector(BaseDetector):
    """Adapts a :data:`StreamProbe` function to the :class:`Detector` interface."""

    def __init__(self, platform_name: str, priority: int, probe: StreamProbe):
        super().__init__(platform_name, priority)
        self.probe = probe

    async def check(self, session: aiohttp.ClientSession) -> UnlockResult:
        return self.convert(await self.probe(session))

    def convert(self, stream: StreamResult) -> UnlockResult:
        if stream.status == "Success":
            return self.create_result(
                UnlockStatus.UNLOCKED, stream.region, stream.info or "Successfully unlocked"
            )
        if stream.status == "Failed":
            return self.create_result(
                UnlockStatus.LOCKED, stream.region, stream.info or "Not available in this region"
            )
        return self.create_result(
            UnlockStatus.ERROR, message=f"Unknown status: {stream.status}"
        )
