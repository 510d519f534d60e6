from __future__ import annotations

from pydantic import ValidationError
import pytest

from quizlive.config import Settings
from quizlive.utils.logging_config import configure_logging


def test_settings_read_prefixed_environment(monkeypatch):
    monkeypatch.setenv("QUIZLIVE_STORAGE_BACKEND", "memory")
    monkeypatch.setenv("QUIZLIVE_PORT", "9001")
    monkeypatch.setenv("QUIZLIVE_LEADERBOARD_LIMIT", "25")

    settings = Settings(_env_file=None)

    assert settings.storage_backend == "memory"
    assert settings.port == 9001
    assert settings.leaderboard_limit == 25
    assert settings.database_url == "sqlite:///quizlive.db"


def test_settings_reject_unknown_backend(monkeypatch):
    monkeypatch.setenv("QUIZLIVE_STORAGE_BACKEND", "redis")
    with pytest.raises(ValidationError):
        Settings(_env_file=None)


def test_configure_logging_returns_package_logger():
    logger = configure_logging("debug")
    assert logger.name == "quizlive"
