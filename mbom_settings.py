"""
mbom_settings.py

Configuration for the mBOM workbench.

Values are loaded from environment variables (MBOM_ prefix) and an optional
`.env` file in the working directory.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="MBOM_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # -------------------------
    # Conversion backend
    # -------------------------
    api_url: str = Field(
        "http://localhost:3001",
        description="Base URL of the conversion backend (without the /api suffix).",
    )
    request_timeout: float = Field(30.0, gt=0, description="Per-request timeout in seconds.")
    poll_interval: float = Field(2.0, gt=0, description="Seconds between status polls.")
    poll_timeout: float = Field(600.0, gt=0, description="Give up polling after this many seconds.")

    # -------------------------
    # Graph layout
    # -------------------------
    graph_horizontal_spacing: float = Field(250.0, gt=0)
    graph_vertical_spacing: float = Field(180.0, gt=0)

    # -------------------------
    # Logging
    # -------------------------
    log_level: str = Field("INFO", description="Root log level (DEBUG, INFO, WARNING, ERROR).")
    log_file: Optional[Path] = Field(None, description="Also write logs to this file when set.")


@lru_cache
def get_settings() -> Settings:
    return Settings()
