from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Type

import yaml
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource

from ..constants import CONFIG_FILE_NAME


def find_project_root(marker: str = "pyproject.toml") -> Path:
    """
    Find the project root by searching upwards from the working directory.
    """
    current_dir = Path.cwd().resolve()
    while True:
        if (current_dir / marker).exists():
            return current_dir
        if current_dir == current_dir.parent:
            break
        current_dir = current_dir.parent
    raise FileNotFoundError(f"Project root marker '{marker}' not found.")


class YamlConfigSettingsSource(PydanticBaseSettingsSource):
    """
    A Pydantic settings source that loads variables from a YAML file.
    """

    def __init__(self, settings_cls: Type[BaseSettings], yaml_file: Path | None):
        super().__init__(settings_cls)
        self.yaml_file = yaml_file
        self._data: dict[str, Any] = {}
        if self.yaml_file and self.yaml_file.exists():
            try:
                loaded = yaml.safe_load(self.yaml_file.read_text(encoding="utf-8"))
            except (yaml.YAMLError, OSError) as exc:
                logging.warning("Ignoring unreadable settings file %s: %s", self.yaml_file, exc)
                loaded = None
            self._data = loaded if isinstance(loaded, dict) else {}

    def get_field_value(self, field: Any, field_name: str) -> tuple[Any, str, bool]:
        return self._data.get(field_name), field_name, False

    def __call__(self) -> dict[str, Any]:
        return dict(self._data)


def load_config(path: Path | None = None) -> "Settings":
    """
    Load application settings from a YAML file and environment variables.
    """
    from . import Settings

    config_file = path
    if config_file is None:
        try:
            default_config_path = find_project_root() / CONFIG_FILE_NAME
            if default_config_path.exists():
                config_file = default_config_path
        except FileNotFoundError:
            logging.debug(
                "No project root marker found; default '%s' will not be loaded.",
                CONFIG_FILE_NAME,
            )
    return Settings(config_file=config_file)
