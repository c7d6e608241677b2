from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class BaseConfig(BaseModel):
    """Base configuration with common settings."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)
