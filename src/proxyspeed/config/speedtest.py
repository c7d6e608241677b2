from __future__ import annotations

from pydantic import Field

from ..constants import DEFAULT_SERVER_URL, MODE_SPEED_ONLY
from .base import BaseConfig


class SpeedTestSettings(BaseConfig):
    """Settings for latency and throughput measurement."""

    config_paths: str = Field(
        "", description="Comma-separated list of catalog files or URLs."
    )
    server_url: str = Field(
        DEFAULT_SERVER_URL,
        description="Speed-test endpoint serving /__down and /__up.",
    )
    download_size: int = Field(50, description="Total download size per proxy in MB.")
    upload_size: int = Field(20, description="Total upload size per proxy in MB.")
    timeout: int = Field(5, description="Per-request timeout in seconds.")
    concurrent: int = Field(4, description="Parallel transfer workers per direction.")
    max_latency: int = Field(800, description="Latency ceiling in milliseconds.")
    min_download_speed: float = Field(0.0, description="Download floor in MB/s.")
    min_upload_speed: float = Field(0.0, description="Upload floor in MB/s.")
    test_mode: str = Field(
        MODE_SPEED_ONLY, description="One of speed_only, unlock_only or both."
    )
    fast_mode: bool = Field(False, description="Measure latency only.")
    stash_compatible: bool = Field(
        False, description="Keep only proxies Stash can import."
    )
