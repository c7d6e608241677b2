"""Platform unlock detection."""
from __future__ import annotations

from .base import BaseDetector, Detector, FunctionDetector, StreamResult
from .cache import CacheStats, UnlockCache
from .detectors import default_registry, register_default_detectors
from .dispatcher import UnlockDispatcher
from .registry import DetectorRegistry
from .summary import format_unlock_summary, summarize_unlock

__all__ = [
    "BaseDetector",
    "CacheStats",
    "Detector",
    "DetectorRegistry",
    "FunctionDetector",
    "StreamResult",
    "UnlockCache",
    "UnlockDispatcher",
    "default_registry",
    "format_unlock_summary",
    "register_default_detectors",
    "summarize_unlock",
]
