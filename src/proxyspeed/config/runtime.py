from __future__ import annotations

from typing import Optional

from pydantic import Field

from .base import BaseConfig


class LoggingSettings(BaseConfig):
    """Settings for log output."""

    level: str = Field("INFO", description="Root log level.")
    file: Optional[str] = Field(None, description="Optional log file path.")
    mask_sensitive: bool = Field(
        True, description="Mask credentials and e-mail addresses in log records."
    )


class BridgeSettings(BaseConfig):
    """Settings for the external core used to dial encrypted protocols."""

    binary: str = Field("mihomo", description="Path or name of the mihomo binary.")
    port_start: int = Field(20800, description="First local port handed to bridges.")
    port_end: int = Field(20899, description="Last local port handed to bridges.")
    startup_timeout: float = Field(
        5.0, description="Seconds to wait for a bridge to accept connections."
    )
