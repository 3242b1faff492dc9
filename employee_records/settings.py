from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from fastapi import Request
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    App settings.

    Notes:
    - Defaults are local: a SQLite file next to the repo and the bundled security config.
    - Every field can be overridden with a `RECORDS_*` env var.
    """

    model_config = SettingsConfigDict(env_prefix="RECORDS_", extra="ignore")

    db_url: str | None = None
    security_config_path: str | None = None
    log_level: str = "INFO"

    seed_demo_data: bool = True
    strict_filters: bool = False
    default_page_size: int = 10

    def resolved_db_url(self) -> str:
        if self.db_url:
            return self.db_url

        repo_root = Path(__file__).resolve().parents[1]
        db_path = repo_root / "employee_records.db"
        return f"sqlite:///{db_path}"

    def resolved_security_config_path(self) -> Path:
        if self.security_config_path:
            return Path(self.security_config_path)

        repo_root = Path(__file__).resolve().parents[1]
        return repo_root / "config" / "security_config.yaml"


@lru_cache
def get_settings() -> Settings:
    return Settings()


def get_app_settings(request: Request) -> Settings:
    """Settings the running app was built with (falls back to the environment)."""
    return getattr(request.app.state, "settings", None) or get_settings()
