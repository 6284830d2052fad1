"""Application settings loaded from environment variables."""

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _env_file() -> str | None:
    if os.getenv("PYTEST_CURRENT_TEST"):
        return None
    return ".env"


class Settings(BaseSettings):
    """Courier configuration. Values come from ``COURIER_*`` environment variables."""

    # Scheduler
    scheduler_check_interval_ms: int = Field(default=1000, gt=0)
    scheduler_timezone: str = Field(default="UTC")

    # Plugins
    plugin_hook_timeout_seconds: float | None = Field(default=None, gt=0)

    # Persistence
    snapshot_path: Path = Field(default=Path("data/courier.db"))

    # Logging
    log_level: str = Field(default="INFO")

    model_config = SettingsConfigDict(
        env_prefix="COURIER_",
        env_file=_env_file(),
        env_file_encoding="utf-8",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        if os.getenv("PYTEST_CURRENT_TEST"):
            return (init_settings,)
        return (init_settings, env_settings, dotenv_settings, file_secret_settings)


settings = Settings()
