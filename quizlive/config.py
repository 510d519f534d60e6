"""Deploy-time settings read from the environment (prefix ``QUIZLIVE_``)."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from quizlive.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT
from quizlive.constants.quiz_constants import SESSION_LEADERBOARD_LIMIT


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="QUIZLIVE_", env_file=".env", extra="ignore")

    storage_backend: Literal["sql", "memory"] = "sql"
    # Any SQLAlchemy URL: postgresql+psycopg://..., mssql+pyodbc://..., sqlite:///...
    database_url: str = "sqlite:///quizlive.db"
    sql_echo: bool = False

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    log_level: str = "INFO"

    leaderboard_limit: int = Field(default=SESSION_LEADERBOARD_LIMIT, ge=1)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
