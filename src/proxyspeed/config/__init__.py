from __future__ import annotations

from pathlib import Path
from typing import Optional, Type

from pydantic import Field
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from .filtering import FilteringSettings
from .loader import YamlConfigSettingsSource, load_config
from .request import TestConfig, TestRequest, UnlockConfig, build_test_config
from .runtime import BridgeSettings, LoggingSettings
from .speedtest import SpeedTestSettings
from .unlock import UnlockSettings


class Settings(BaseSettings):
    """
    Main application configuration model.
    """

    speedtest: SpeedTestSettings = Field(default_factory=SpeedTestSettings)
    filtering: FilteringSettings = Field(default_factory=FilteringSettings)
    unlock: UnlockSettings = Field(default_factory=UnlockSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    bridge: BridgeSettings = Field(default_factory=BridgeSettings)

    config_file: Optional[Path] = Field(default=None, exclude=True)

    model_config = SettingsConfigDict(
        env_prefix="", case_sensitive=False, env_nested_delimiter="__"
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        config_file = init_settings.init_kwargs.get("config_file")
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlConfigSettingsSource(settings_cls, yaml_file=config_file),
            file_secret_settings,
        )

    def to_request(self) -> TestRequest:
        """Flatten the nested sections into a :class:`TestRequest`."""
        st = self.speedtest
        return TestRequest(
            config_paths=st.config_paths,
            filter_regex=self.filtering.filter_regex,
            include_nodes=list(self.filtering.include_nodes),
            exclude_nodes=list(self.filtering.exclude_nodes),
            protocol_filter=list(self.filtering.protocol_filter),
            server_url=st.server_url,
            download_size=st.download_size,
            upload_size=st.upload_size,
            timeout=st.timeout,
            concurrent=st.concurrent,
            max_latency=st.max_latency,
            min_download_speed=st.min_download_speed,
            min_upload_speed=st.min_upload_speed,
            stash_compatible=st.stash_compatible,
            fast_mode=st.fast_mode,
            test_mode=st.test_mode,
            unlock_enabled=self.unlock.enabled,
            unlock_platforms=list(self.unlock.platforms),
            unlock_concurrent=self.unlock.concurrent,
            unlock_timeout=self.unlock.timeout,
            unlock_retry=self.unlock.retry,
            unlock_cache_ttl=self.unlock.cache_ttl,
        )


__all__ = [
    "Settings",
    "SpeedTestSettings",
    "FilteringSettings",
    "UnlockSettings",
    "LoggingSettings",
    "BridgeSettings",
    "TestRequest",
    "TestConfig",
    "UnlockConfig",
    "build_test_config",
    "load_config",
]
