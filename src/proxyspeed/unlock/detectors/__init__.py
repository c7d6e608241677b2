"""Built-in platform detectors."""
from __future__ import annotations

from ..registry import DetectorRegistry
from .bilibili import BilibiliDetector
from .disney import DisneyPlusDetector
from .gemini import gemini_detector
from .netflix import NetflixDetector
from .openai import ChatGPTDetector
from .spotify import SpotifyDetector
from .youtube import YouTubeDetector


def register_default_detectors(registry: DetectorRegistry) -> DetectorRegistry:
    for detector in (
        NetflixDetector(),
        YouTubeDetector(),
        DisneyPlusDetector(),
        ChatGPTDetector(),
        SpotifyDetector(),
        BilibiliDetector(),
        gemini_detector(),
    ):
        registry.register(detector)
    return registry


def default_registry() -> DetectorRegistry:
    return register_default_detectors(DetectorRegistry())


__all__ = [
    "BilibiliDetector",
    "ChatGPTDetector",
    "DisneyPlusDetector",
    "NetflixDetector",
    "SpotifyDetector",
    "YouTubeDetector",
    "default_registry",
    "gemini_detector",
    "register_default_detectors",
]
