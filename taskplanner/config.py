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
    """Taskplanner configuration. All values come from environment variables."""

    # Database
    database_path: Path = Field(default=Path("data/taskplanner.db"))

    # Turso (hosted libSQL) — when set, overrides local database_path
    turso_database_url: str = Field(default="")
    turso_auth_token: str = Field(default="")

    # Scheduler
    scheduler_timezone: str = Field(default="America/Chicago")
    work_day_start_hour: int = Field(default=9, ge=0, le=23)
    work_day_end_hour: int = Field(default=17, ge=1, le=24)
    recurrence_horizon_weeks: int = Field(default=2, ge=0)
    max_occurrences_per_task: int = Field(default=500, ge=1)
    classification_rule: str = Field(default="now")

    # Owner whose tasks are rescheduled by the entry point
    default_user_id: str = Field(default="")

    # Logging
    log_level: str = Field(default="INFO")

    model_config = SettingsConfigDict(env_file=_env_file(), env_file_encoding="utf-8")

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

    def get_work_hours(self) -> tuple[int, int]:
        """Return the (start, end) hours of the daily working window."""
        if self.work_day_end_hour <= self.work_day_start_hour:
            raise ValueError(
                f"work_day_end_hour ({self.work_day_end_hour}) must be after "
                f"work_day_start_hour ({self.work_day_start_hour})"
            )
        return self.work_day_start_hour, self.work_day_end_hour


settings = Settings()
