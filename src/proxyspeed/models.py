"""Data types shared by the probes, the unlock subsystem and the reports."""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class UnlockStatus(str, Enum):
    """Outcome of one platform probe."""

    UNLOCKED = "unlocked"
    LOCKED = "locked"
    FAILED = "failed"
    ERROR = "error"


@dataclass
class UnlockResult:
    """Result of probing one platform through one proxy.

    ``latency_ms`` is the wall-clock duration of the probe, including any
    retries. ``checked_at`` is stamped by the dispatcher.
    """

    platform: str
    status: UnlockStatus
    region: str = ""
    message: str = ""
    latency_ms: float = 0.0
    checked_at: Optional[datetime] = None

    @property
    def supported(self) -> bool:
        return self.status is UnlockStatus.UNLOCKED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "platform": self.platform,
            "status": self.status.value,
            "region": self.region,
            "message": self.message,
            "latency_ms": round(self.latency_ms, 2),
            "checked_at": self.checked_at.isoformat() if self.checked_at else None,
        }


@dataclass
class UnlockSummary:
    supported_platforms: List[str] = field(default_factory=list)
    unsupported_platforms: List[str] = field(default_factory=list)
    total_tested: int = 0
    total_supported: int = 0


@dataclass
class TestError:
    """Classified transport failure seen while probing a proxy."""

    __test__ = False

    stage: str
    code: str
    message: str
    proxy_name: str

    def __str__(self) -> str:
        return f"[{self.stage}:{self.code}] {self.proxy_name} - {self.message}"


@dataclass
class LatencyStats:
    """Latency figures in milliseconds and packet loss in percent."""

    avg_latency: float = 0.0
    jitter: float = 0.0
    packet_loss: float = 0.0
    last_error: Optional[BaseException] = None

    @property
    def unreachable(self) -> bool:
        return self.packet_loss >= 100


@dataclass
class TransferResult:
    """Bytes moved by one transfer worker and how long it took in seconds."""

    bytes: int
    duration: float


@dataclass
class ThroughputResult:
    """Combined outcome of one transfer direction.

    ``duration`` is the mean of the successful workers' durations and
    ``speed`` is ``bytes / duration`` in bytes per second.
    """

    bytes: int = 0
    duration: float = 0.0
    speed: float = 0.0
    workers: int = 0
    succeeded: int = 0


@dataclass
class Result:
    """Measurements for one proxy.

    ``latency`` and ``jitter`` are milliseconds, transfer times are seconds,
    sizes are bytes and speeds are bytes per second.
    """

    proxy_name: str
    proxy_type: str
    proxy_config: Dict[str, Any] = field(default_factory=dict)
    proxy_ip: str = ""
    latency: float = 0.0
    jitter: float = 0.0
    packet_loss: float = 0.0
    download_size: float = 0.0
    download_time: float = 0.0
    download_speed: float = 0.0
    upload_size: float = 0.0
    upload_time: float = 0.0
    upload_speed: float = 0.0
    test_error: Optional[TestError] = None
    failure_stage: str = ""
    failure_reason: str = ""
    unlock_results: List[UnlockResult] = field(default_factory=list)
    unlock_summary: UnlockSummary = field(default_factory=UnlockSummary)

    def format_latency(self) -> str:
        if self.latency == 0:
            return "N/A"
        return f"{int(self.latency)}ms"

    def format_jitter(self) -> str:
        if self.jitter == 0:
            return "N/A"
        return f"{int(self.jitter)}ms"

    def format_packet_loss(self) -> str:
        return f"{self.packet_loss:.1f}%"

    def format_download_speed(self) -> str:
        return format_speed(self.download_speed)

    def format_upload_speed(self) -> str:
        return format_speed(self.upload_speed)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["test_error"] = asdict(self.test_error) if self.test_error else None
        data["unlock_results"] = [r.to_dict() for r in self.unlock_results]
        return data


def format_speed(bytes_per_second: float) -> str:
    units = ["B/s", "KB/s", "MB/s", "GB/s", "TB/s"]
    unit = 0
    speed = bytes_per_second
    while speed >= 1024 and unit < len(units) - 1:
        speed /= 1024
        unit += 1
    return f"{speed:.2f}{units[unit]}"
