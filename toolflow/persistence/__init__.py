"""Checkpoint and execution persistence for toolflow."""

from __future__ import annotations

import os
from typing import Optional

from ..config import ToolflowConfig, load_config
from .inmemory import InMemoryCheckpointStore
from .sqlite import SQLiteCheckpointStore
from .store import CheckpointStore


def get_store(
    database_url: Optional[str] = None, config: Optional[ToolflowConfig] = None
) -> CheckpointStore:
    """Factory function to obtain a checkpoint store.

    The backend is selected based on ``database_url`` which can be provided
    explicitly, via environment variable ``TOOLFLOW_DATABASE_URL`` or
    ``DATABASE_URL``, or from loaded configuration. When no database is
    configured, an in-memory store is returned. Each call builds a new store;
    callers share one by passing it around.
    """

    config = config or load_config()
    database_url = (
        database_url
        or os.getenv("TOOLFLOW_DATABASE_URL")
        or os.getenv("DATABASE_URL")
        or getattr(config, "database_url", None)
    )

    if not database_url:
        return InMemoryCheckpointStore()

    if database_url.startswith("sqlite://"):
        path = database_url.replace("sqlite://", "", 1)
        return SQLiteCheckpointStore(path)
    elif database_url.startswith("postgres://") or database_url.startswith(
        "postgresql://"
    ):
        try:
            from .postgres import PostgresCheckpointStore
        except ImportError as e:
            raise RuntimeError(
                "Postgres support not available; install toolflow[postgres]"
            ) from e
        return PostgresCheckpointStore(database_url)
    else:
        raise ValueError(f"Unsupported database backend: {database_url}")


__all__ = [
    "CheckpointStore",
    "InMemoryCheckpointStore",
    "SQLiteCheckpointStore",
    "get_store",
]
