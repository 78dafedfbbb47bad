import importlib
import sys
from pathlib import Path

import pytest

# Ensure the package under test is importable without installation
PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = PROJECT_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from tasteblend.models import Collection, Genre, Movie, User  # noqa: E402


@pytest.fixture
def fresh_config(monkeypatch, tmp_path):
    """
    Reload config with a temporary database path to keep tests isolated.
    """
    db_path = tmp_path / "test.db"
    monkeypatch.setenv("TASTEBLEND_DB", str(db_path))
    import tasteblend.config as config

    importlib.reload(config)
    yield config

    monkeypatch.undo()
    importlib.reload(config)


@pytest.fixture
def fresh_db(monkeypatch, tmp_path):
    """
    Reload config/database modules with a temp DB and cleanly close the pool after use.
    """
    db_path = tmp_path / "test.db"
    monkeypatch.setenv("TASTEBLEND_DB", str(db_path))

    import tasteblend.config as config
    import tasteblend.database as database

    importlib.reload(config)
    importlib.reload(database)

    yield database
    database.close_pool()


@pytest.fixture
def fresh_engine_modules(monkeypatch, tmp_path):
    """
    Reload config, profile and recommender so env overrides reach the
    defaults bound at import time. Restores the defaults afterwards.
    """
    monkeypatch.setenv("TASTEBLEND_DB", str(tmp_path / "test.db"))

    import tasteblend.config as config
    import tasteblend.profile as profile
    import tasteblend.recommender as recommender

    def reload_all():
        importlib.reload(config)
        importlib.reload(profile)
        importlib.reload(recommender)
        return recommender, profile

    yield reload_all

    monkeypatch.undo()
    reload_all()


def _movie(movie_id, genre_ids=None, rating=None, title=None, genres=None):
    return Movie(
        id=movie_id,
        title=title or f"Movie {movie_id}",
        genre_ids=tuple(genre_ids) if genre_ids is not None else None,
        genres=tuple(Genre(**g) for g in genres) if genres is not None else None,
        rating=rating,
    )


def _user(user_id, collections=None, username=None):
    return User(
        id=user_id,
        username=username or user_id,
        collections=tuple(
            Collection(id=f"{user_id}-{i}", name=name, movies=tuple(movies))
            for i, (name, movies) in enumerate((collections or {}).items())
        ),
    )


@pytest.fixture
def make_movie():
    """Factory for Movie records: make_movie(id, genre_ids=[28], rating=7.5)."""
    return _movie


@pytest.fixture
def make_user():
    """Factory for User records: make_user("a", {"Watched": [movie, ...]})."""
    return _user
