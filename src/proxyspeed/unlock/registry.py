from __future__ import annotations

import logging
import threading
from typing import Dict, List, Optional

from ..constants import DEFAULT_PLATFORM_PRIORITY
from ..exceptions import RegistrationError
from .base import Detector

logger = logging.getLogger(__name__)


class DetectorRegistry:
    """Thread-safe mapping of platform name to :class:`Detector`."""

    def __init__(self) -> None:
        self._detectors: Dict[str, Detector] = {}
        self._lock = threading.Lock()

    def register(self, detector: Detector) -> None:
        """Add ``detector`` under its platform name.

        Raises:
            RegistrationError: if the name is empty or already taken.
        """
        name = detector.platform_name
        if not name:
            raise RegistrationError("detector platform name cannot be empty")
        with self._lock:
            if name in self._detectors:
                raise RegistrationError(f"detector for {name} already registered")
            self._detectors[name] = detector
        logger.debug("Registered detector %s (priority %d)", name, detector.priority)

    def get(self, platform: str) -> Optional[Detector]:
        with self._lock:
            return self._detectors.get(platform)

    def platforms(self) -> List[str]:
        with self._lock:
            return sorted(self._detectors)

    def by_priority(self) -> List[Detector]:
        """All detectors ordered by priority, then platform name."""
        with self._lock:
            detectors = list(self._detectors.values())
        return sorted(detectors, key=lambda d: (d.priority, d.platform_name))

    def priority_of(self, platform: str) -> int:
        detector = self.get(platform)
        return detector.priority if detector else DEFAULT_PLATFORM_PRIORITY

    def __contains__(self, platform: object) -> bool:
        with self._lock:
            return platform in self._detectors

    def __len__(self) -> int:
        with self._lock:
            return len(self._detectors)
