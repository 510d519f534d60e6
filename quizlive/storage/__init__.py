"""Store backends for quiz data."""

from __future__ import annotations

from quizlive.storage.base import QuizStore
from quizlive.storage.memory_store import MemoryStore
from quizlive.storage.sql_store import SqlStore


def create_store(backend: str, database_url: str | None = None, echo: bool = False) -> QuizStore:
    """Build the store named by ``backend`` (``"sql"`` or ``"memory"``)."""
    if backend == "memory":
        return MemoryStore()
    if backend == "sql":
        if not database_url:
            raise ValueError("The SQL backend needs a database URL.")
        return SqlStore.from_url(database_url, echo=echo)
    raise ValueError(f"Unknown storage backend '{backend}'.")


__all__ = ["MemoryStore", "QuizStore", "SqlStore", "create_store"]
