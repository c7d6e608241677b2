"""Proxy speed testing and platform unlock detection."""

from .config import Settings, TestConfig, TestRequest, UnlockConfig, build_test_config
from .core.catalog import filter_catalog, load_catalog, load_proxies
from .models import Result, UnlockResult, UnlockStatus
from .results import ResultSet
from .speedtester import RunOutcome, SpeedTester

__version__ = "0.3.0"

__all__ = [
    "Result",
    "ResultSet",
    "RunOutcome",
    "Settings",
    "SpeedTester",
    "TestConfig",
    "TestRequest",
    "UnlockConfig",
    "UnlockResult",
    "UnlockStatus",
    "build_test_config",
    "filter_catalog",
    "load_catalog",
    "load_proxies",
]
