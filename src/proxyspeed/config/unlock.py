from __future__ import annotations

from typing import List

from pydantic import Field

from ..constants import (
    DEFAULT_UNLOCK_CONCURRENT,
    DEFAULT_UNLOCK_PLATFORMS,
    DEFAULT_UNLOCK_TIMEOUT,
)
from .base import BaseConfig


class UnlockSettings(BaseConfig):
    """Settings for streaming and AI service unlock detection."""

    enabled: bool = Field(
        False,
        description=(
            "Build the unlock configuration whatever the test mode. Platforms are "
            "only probed in unlock_only and both modes."
        ),
    )
    platforms: List[str] = Field(
        default_factory=lambda: list(DEFAULT_UNLOCK_PLATFORMS),
        description="Platforms to probe, by detector name.",
    )
    concurrent: int = Field(
        DEFAULT_UNLOCK_CONCURRENT, description="Parallel platform probes per proxy."
    )
    timeout: int = Field(
        DEFAULT_UNLOCK_TIMEOUT, description="Timeout per platform probe in seconds."
    )
    retry: bool = Field(True, description="Retry probes that end in an error.")
    cache_ttl: int = Field(30, description="Minutes to keep a probe result cached.")
