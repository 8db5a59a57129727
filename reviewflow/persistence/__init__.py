"""Persistence layer for reviewflow items and workflows."""

from __future__ import annotations

import os
from typing import Callable, Dict, Optional

from ..config import ReviewflowConfig, load_config
from .inmemory import InMemoryItemRepository
from .models import (
    HistoryAction,
    HistoryEntry,
    Item,
    ItemStatus,
    ItemType,
    WorkflowDefinition,
    WorkflowStep,
)
from .repository import ItemRepository
from .sqlite import SQLiteItemRepository

_repository_instance: ItemRepository | None = None


def _open_sqlite(url: str) -> ItemRepository:
    return SQLiteItemRepository(url[len("sqlite://"):])


def _open_postgres(url: str) -> ItemRepository:
    from .postgres import PostgresItemRepository

    return PostgresItemRepository(url)


# URL scheme -> backend constructor
_BACKENDS: Dict[str, Callable[[str], ItemRepository]] = {
    "sqlite": _open_sqlite,
    "postgres": _open_postgres,
    "postgresql": _open_postgres,
}


def resolve_database_url(
    database_url: Optional[str] = None, config: Optional[ReviewflowConfig] = None
) -> Optional[str]:
    """Pick the store URL: explicit argument, then environment, then config."""
    if database_url:
        return database_url
    for var in ("REVIEWFLOW_DATABASE_URL", "DATABASE_URL"):
        if os.getenv(var):
            return os.environ[var]
    return (config or load_config()).database_url


def get_repository(
    database_url: Optional[str] = None, config: Optional[ReviewflowConfig] = None
) -> ItemRepository:
    """Return the item repository for the configured store.

    Without any arguments the previously built repository is reused, so the
    CLI and tests can share one instance. No configured URL means an
    in-memory store; otherwise the URL scheme selects the backend.

    Raises:
        ValueError: the URL scheme has no backend.
    """
    global _repository_instance
    if _repository_instance is not None and database_url is None and config is None:
        return _repository_instance

    url = resolve_database_url(database_url, config)
    if not url:
        repository: ItemRepository = InMemoryItemRepository()
    else:
        scheme = url.split("://", 1)[0].lower() if "://" in url else ""
        opener = _BACKENDS.get(scheme)
        if opener is None:
            raise ValueError(f"Unsupported database backend: {url}")
        repository = opener(url)

    _repository_instance = repository
    return repository


__all__ = [
    "HistoryAction",
    "HistoryEntry",
    "Item",
    "ItemStatus",
    "ItemType",
    "WorkflowDefinition",
    "WorkflowStep",
    "ItemRepository",
    "InMemoryItemRepository",
    "SQLiteItemRepository",
    "get_repository",
    "resolve_database_url",
]
