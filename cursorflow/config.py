"""Configuration management using pydantic-settings.

Loads settings from environment variables and .env file.
"""

from __future__ import annotations

from contextlib import contextmanager

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables or .env file.

    Priority order for configuration values:
    1. Environment variables
    2. .env file
    3. Default values
    """

    # Database
    DB_URL: str = "sqlite:///cursorflow.db"
    DB_ECHO: bool = False

    # Capture ingestion
    # dotted path of the interactions array inside an uploaded capture
    CAPTURE_INTERACTIONS_PATH: str = "recording.interactions"
    POSITION_SPACING: int = 1000
    STEP_INSERT_BATCH_SIZE: int = 10

    # Legacy captures predate viewport tracking
    DEFAULT_VIEWPORT_WIDTH: int = 1920
    DEFAULT_VIEWPORT_HEIGHT: int = 1080

    # Screenshots
    SCREENSHOT_DIR: str = "screenshots"

    model_config = {
        "env_prefix": "CURSORFLOW_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",  # ignore extra env vars
    }


config = Settings()


@contextmanager
def config_override(**values: object):
    """Temporarily override config settings.

    Saves original values, applies the overrides, yields, then restores.
    """
    originals: dict[str, object] = {}
    for name, value in values.items():
        if name not in Settings.model_fields:
            raise AttributeError(f"Unknown setting: {name}")
        originals[name] = getattr(config, name)
        object.__setattr__(config, name, value)
    try:
        yield config
    finally:
        for name, original_value in originals.items():
            object.__setattr__(config, name, original_value)
