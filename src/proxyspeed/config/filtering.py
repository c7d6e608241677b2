from __future__ import annotations

from typing import List

from pydantic import Field

from ..constants import DEFAULT_FILTER_REGEX
from .base import BaseConfig


class FilteringSettings(BaseConfig):
    """Settings for narrowing a loaded proxy catalog."""

    filter_regex: str = Field(
        DEFAULT_FILTER_REGEX, description="Regular expression a proxy name must match."
    )
    include_nodes: List[str] = Field(
        default_factory=list,
        description="Keep proxies whose name contains any of these substrings.",
    )
    exclude_nodes: List[str] = Field(
        default_factory=list,
        description="Drop proxies whose name contains any of these substrings.",
    )
    protocol_filter: List[str] = Field(
        default_factory=list, description="Keep only these proxy types."
    )
