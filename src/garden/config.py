"""Application configuration: settings schema and config.yaml loader"""

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field


CONFIG_FILE = "config.yaml"
ENV_PREFIX = "GARDEN_"


class Settings(BaseModel):
    app_name:   str = "garden"
    db_url:     str = "sqlite:///garden.db"
    media_root: str = Field(default="media", description="Directory holding images/, videos/ and audio/")
    max_download_bytes: int = Field(default=100 * 1024 * 1024, ge=1, description="Largest media file accepted on import")
    page_limit: int = Field(default=50, ge=1, description="Default page size for channel listings")
    log_level:  str = Field(default="INFO", pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")
    echo_sql:   bool = Field(default=False, description="Echo SQL statements through the engine logger")


def load_config(overrides: dict[str, Any] = None) -> Settings:
    """Load Settings from config.yaml, then GARDEN_<FIELD> env vars, then non-None CLI overrides."""
    data: dict[str, Any] = {}
    if Path(CONFIG_FILE).exists():
        try:
            data = yaml.safe_load(Path(CONFIG_FILE).read_text()) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid {CONFIG_FILE}: {e}") from e

    for name in Settings.model_fields:
        if val := os.getenv(f"{ENV_PREFIX}{name.upper()}"):
            data[name] = val

    if overrides:
        data.update({k: v for k, v in overrides.items() if v is not None})
    return Settings(**data)
