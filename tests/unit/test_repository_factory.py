import pytest

import reviewflow.persistence as persistence
from reviewflow import ReviewflowConfig
from reviewflow.persistence import (
    InMemoryItemRepository,
    SQLiteItemRepository,
    get_repository,
    resolve_database_url,
)
from reviewflow.persistence.postgres import PostgresItemRepository


@pytest.fixture(autouse=True)
def clean_factory(tmp_path, monkeypatch):
    monkeypatch.setenv("REVIEWFLOW_CONFIG", str(tmp_path / "missing.yaml"))
    monkeypatch.delenv("REVIEWFLOW_DATABASE_URL", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)
    persistence._repository_instance = None
    yield
    persistence._repository_instance = None


def test_no_url_gives_in_memory_store_and_reuses_it():
    repo = get_repository()

    assert isinstance(repo, InMemoryItemRepository)
    assert get_repository() is repo


def test_url_scheme_selects_backend(tmp_path):
    sqlite_repo = get_repository(f"sqlite://{tmp_path / 'reviews.db'}")
    assert isinstance(sqlite_repo, SQLiteItemRepository)

    # built lazily, no connection is opened here
    pg_repo = get_repository("PostgreSQL://reviewflow@db.invalid/reviews")
    assert isinstance(pg_repo, PostgresItemRepository)
    assert get_repository() is pg_repo


def test_unsupported_scheme_is_rejected():
    with pytest.raises(ValueError, match="Unsupported database backend"):
        get_repository("mysql://db/reviews")
    with pytest.raises(ValueError):
        get_repository("reviews.db")
    assert persistence._repository_instance is None


def test_database_url_precedence(monkeypatch):
    config = ReviewflowConfig(database_url="sqlite:///from-config.db")
    assert resolve_database_url(config=config) == "sqlite:///from-config.db"

    monkeypatch.setenv("DATABASE_URL", "postgresql://generic/db")
    assert resolve_database_url(config=config) == "postgresql://generic/db"

    monkeypatch.setenv("REVIEWFLOW_DATABASE_URL", "postgresql://specific/db")
    assert resolve_database_url(config=config) == "postgresql://specific/db"

    assert resolve_database_url("sqlite:///explicit.db", config) == "sqlite:///explicit.db"
