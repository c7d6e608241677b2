"""Test request normalisation.

A :class:`TestRequest` is the loose, user-facing shape of one test run: any
numeric field left at zero means "use the default". :func:`build_test_config`
is the single place where those defaults are applied and the result is
validated, producing the immutable :class:`TestConfig` consumed by the
speed tester and the unlock dispatcher.
"""
from __future__ import annotations

import logging
import re
from typing import Any, List, Mapping, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from ..constants import (
    DEFAULT_FILTER_REGEX,
    DEFAULT_SERVER_URL,
    DEFAULT_UNLOCK_CONCURRENT,
    DEFAULT_UNLOCK_PLATFORMS,
    DEFAULT_UNLOCK_TIMEOUT,
    MAX_UNLOCK_CONCURRENT,
    MAX_UNLOCK_TIMEOUT,
    MEGABYTE,
    MODE_BOTH,
    MODE_SPEED_ONLY,
    MODE_UNLOCK_ONLY,
    TEST_MODES,
    UNLOCK_CACHE_TTL,
)
from ..exceptions import ConfigError

logger = logging.getLogger(__name__)


class TestRequest(BaseModel):
    """One test run as requested by a caller.

    Accepts both ``snake_case`` and ``camelCase`` keys.
    """

    __test__ = False

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="ignore"
    )

    config_paths: str = ""
    filter_regex: str = ""
    include_nodes: List[str] = Field(default_factory=list)
    exclude_nodes: List[str] = Field(default_factory=list)
    protocol_filter: List[str] = Field(default_factory=list)
    server_url: str = ""
    download_size: int = 0
    upload_size: int = 0
    timeout: int = 0
    concurrent: int = 0
    max_latency: int = 0
    min_download_speed: float = 0.0
    min_upload_speed: float = 0.0
    stash_compatible: bool = False
    fast_mode: bool = False
    test_mode: str = ""
    unlock_enabled: bool = False
    unlock_platforms: List[str] = Field(default_factory=list)
    unlock_concurrent: int = 0
    unlock_timeout: int = 0
    unlock_retry: bool = False
    unlock_cache_ttl: int = 0


class UnlockConfig(BaseModel):
    """Validated unlock detection settings for one run."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = False
    platforms: Tuple[str, ...] = DEFAULT_UNLOCK_PLATFORMS
    concurrent: int = DEFAULT_UNLOCK_CONCURRENT
    timeout: float = float(DEFAULT_UNLOCK_TIMEOUT)
    retry_on_error: bool = True
    cache_ttl: float = float(UNLOCK_CACHE_TTL)

    @classmethod
    def clamped(
        cls,
        *,
        enabled: bool = True,
        platforms: Optional[List[str]] = None,
        concurrent: int = 0,
        timeout: float = 0,
        retry_on_error: bool = True,
        cache_ttl: float = 0,
    ) -> "UnlockConfig":
        """Build a config with concurrency and timeout forced into range."""
        if concurrent <= 0:
            concurrent = DEFAULT_UNLOCK_CONCURRENT
        concurrent = min(concurrent, MAX_UNLOCK_CONCURRENT)
        if timeout <= 0:
            timeout = DEFAULT_UNLOCK_TIMEOUT
        timeout = min(timeout, MAX_UNLOCK_TIMEOUT)
        cleaned = [p.strip() for p in platforms or [] if p and p.strip()]
        return cls(
            enabled=enabled,
            platforms=tuple(cleaned) or DEFAULT_UNLOCK_PLATFORMS,
            concurrent=concurrent,
            timeout=float(timeout),
            retry_on_error=retry_on_error,
            cache_ttl=float(cache_ttl) if cache_ttl > 0 else float(UNLOCK_CACHE_TTL),
        )


class TestConfig(BaseModel):
    """Immutable settings for one test run, in base units.

    Sizes are bytes, ``timeout`` is seconds, ``max_latency`` is
    milliseconds and speed floors are bytes per second.
    """

    __test__ = False

    model_config = ConfigDict(frozen=True)

    config_paths: str = ""
    filter_regex: str = DEFAULT_FILTER_REGEX
    include_nodes: Tuple[str, ...] = ()
    exclude_nodes: Tuple[str, ...] = ()
    protocol_filter: Tuple[str, ...] = ()
    stash_compatible: bool = False
    server_url: str = DEFAULT_SERVER_URL
    download_size: int = 50 * MEGABYTE
    upload_size: int = 20 * MEGABYTE
    timeout: float = 5.0
    concurrent: int = 4
    max_latency: float = 800.0
    min_download_speed: float = 0.0
    min_upload_speed: float = 0.0
    test_mode: str = MODE_SPEED_ONLY
    fast_mode: bool = False
    unlock: Optional[UnlockConfig] = None

    @property
    def unlock_enabled(self) -> bool:
        return self.unlock is not None and self.unlock.enabled


def _apply_defaults(req: TestRequest) -> TestRequest:
    defaults = {
        "filter_regex": req.filter_regex or DEFAULT_FILTER_REGEX,
        "server_url": req.server_url or DEFAULT_SERVER_URL,
        "download_size": req.download_size or 50,
        "upload_size": req.upload_size or 20,
        "timeout": req.timeout or 5,
        "concurrent": req.concurrent or 4,
        "max_latency": req.max_latency or 800,
        "test_mode": req.test_mode or MODE_SPEED_ONLY,
        "unlock_concurrent": req.unlock_concurrent or DEFAULT_UNLOCK_CONCURRENT,
        "unlock_timeout": req.unlock_timeout or DEFAULT_UNLOCK_TIMEOUT,
        "unlock_platforms": req.unlock_platforms or list(DEFAULT_UNLOCK_PLATFORMS),
    }
    return req.model_copy(update=defaults)


def _validate(req: TestRequest) -> None:
    if not req.config_paths.strip():
        raise ConfigError("config paths cannot be empty")
    if not 1 <= req.concurrent <= 100:
        raise ConfigError("concurrent must be between 1 and 100")
    if not 1 <= req.timeout <= 300:
        raise ConfigError("timeout must be between 1 and 300 seconds")
    if not 1 <= req.download_size <= 1000:
        raise ConfigError("download size must be between 1 and 1000 MB")
    if not 1 <= req.upload_size <= 1000:
        raise ConfigError("upload size must be between 1 and 1000 MB")
    if not 10 <= req.max_latency <= 10000:
        raise ConfigError("max latency must be between 10 and 10000 ms")
    if req.min_download_speed < 0 or req.min_upload_speed < 0:
        raise ConfigError("minimum speeds cannot be negative")
    if req.test_mode not in TEST_MODES:
        raise ConfigError("test mode must be one of: " + ", ".join(TEST_MODES))
    try:
        re.compile(req.filter_regex)
    except re.error as exc:
        raise ConfigError(f"invalid filter regex {req.filter_regex!r}: {exc}") from exc


def _unlock_config(req: TestRequest) -> UnlockConfig:
    needs_unlock = req.test_mode in (MODE_UNLOCK_ONLY, MODE_BOTH)
    if not req.unlock_enabled and not needs_unlock:
        logger.debug("Unlock detection disabled by request")
        return UnlockConfig(enabled=False)
    if needs_unlock:
        logger.debug("Enabling unlock detection for test mode %s", req.test_mode)
    return UnlockConfig.clamped(
        platforms=req.unlock_platforms,
        concurrent=req.unlock_concurrent,
        timeout=req.unlock_timeout,
        retry_on_error=req.unlock_retry,
        cache_ttl=req.unlock_cache_ttl * 60,
    )


def build_test_config(request: Union[TestRequest, Mapping[str, Any]]) -> TestConfig:
    """Apply defaults to ``request``, validate it and convert to base units.

    Raises:
        ConfigError: if any value is out of its allowed range.
    """
    if not isinstance(request, TestRequest):
        try:
            request = TestRequest.model_validate(dict(request))
        except ValidationError as exc:
            raise ConfigError(str(exc)) from exc

    req = _apply_defaults(request)
    _validate(req)

    return TestConfig(
        config_paths=req.config_paths,
        filter_regex=req.filter_regex,
        include_nodes=tuple(req.include_nodes),
        exclude_nodes=tuple(req.exclude_nodes),
        protocol_filter=tuple(req.protocol_filter),
        stash_compatible=req.stash_compatible,
        server_url=req.server_url.rstrip("/"),
        download_size=req.download_size * MEGABYTE,
        upload_size=req.upload_size * MEGABYTE,
        timeout=float(req.timeout),
        concurrent=req.concurrent,
        max_latency=float(req.max_latency),
        min_download_speed=req.min_download_speed * MEGABYTE,
        min_upload_speed=req.min_upload_speed * MEGABYTE,
        test_mode=req.test_mode,
        fast_mode=req.fast_mode,
        unlock=_unlock_config(req),
    )
