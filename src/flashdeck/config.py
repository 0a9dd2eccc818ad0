"""Runtime settings read from the environment."""

from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Command line settings, overridable with FLASHDECK_* variables."""

    model_config = SettingsConfigDict(env_prefix="FLASHDECK_")

    data_dir: Path = Path(".flashdeck")
    db_filename: str = "store.db"
    log_level: str = "WARNING"

    @property
    def db_path(self) -> Path:
        return self.data_dir / self.db_filename


def get_settings() -> Settings:
    """Read settings from the current environment."""
    return Settings()
