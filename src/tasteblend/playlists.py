"""
Playlist maintenance that produces new User records.

These helpers never modify the User passed in. They return an updated copy
that the caller writes back through a repository.
"""

from __future__ import annotations

import dataclasses
import logging
import uuid

from .config import SYSTEM_COLLECTIONS
from .models import Collection, Movie, User
from .utils import now_iso

logger = logging.getLogger(__name__)


def _new_id() -> str:
    return uuid.uuid4().hex


def _replace_collection(user: User, updated: Collection) -> User:
    collections = tuple(updated if c.id == updated.id else c for c in user.collections)
    return dataclasses.replace(user, collections=collections)


def create_playlist(user: User, name: str, description: str = "") -> tuple[User, Collection]:
    """Add an empty user playlist. System collection names are reserved."""
    name = (name or "").strip()
    if not name:
        raise ValueError("Playlist name must not be empty")
    if name in SYSTEM_COLLECTIONS:
        raise ValueError(f"'{name}' is a reserved collection name")

    playlist = Collection(id=_new_id(), name=name, description=description, created_at=now_iso())
    updated = dataclasses.replace(user, collections=user.collections + (playlist,))
    logger.debug("Created playlist '%s' for user %s", name, user.id)
    return updated, playlist


def _with_movie(collection: Collection, movie: Movie) -> Collection:
    if collection.contains(movie.id):
        return collection
    stamped = dataclasses.replace(movie, added_at=now_iso(), recommendation_score=None)
    return dataclasses.replace(collection, movies=collection.movies + (stamped,))


def _without_movie(collection: Collection, movie_id) -> Collection:
    return dataclasses.replace(
        collection, movies=tuple(m for m in collection.movies if m.id != movie_id)
    )


def add_to_playlist(user: User, playlist_id: str, movie: Movie) -> User:
    """Append a movie to one of the user's playlists (no-op if already there)."""
    for collection in user.collections:
        if collection.id == playlist_id:
            return _replace_collection(user, _with_movie(collection, movie))
    raise ValueError(f"User {user.id} has no playlist {playlist_id}")


def remove_from_playlist(user: User, playlist_id: str, movie_id) -> User:
    for collection in user.collections:
        if collection.id == playlist_id:
            return _replace_collection(user, _without_movie(collection, movie_id))
    raise ValueError(f"User {user.id} has no playlist {playlist_id}")


def delete_playlist(user: User, playlist_id: str) -> User:
    """Drop a user playlist. "Watched" and "Liked" cannot be deleted."""
    for collection in user.collections:
        if collection.id != playlist_id:
            continue
        if collection.is_system:
            raise ValueError(f"'{collection.name}' is a system collection and cannot be deleted")
        remaining = tuple(c for c in user.collections if c.id != playlist_id)
        logger.debug("Deleted playlist '%s' for user %s", collection.name, user.id)
        return dataclasses.replace(user, collections=remaining)
    raise ValueError(f"User {user.id} has no playlist {playlist_id}")


def find_playlist(user: User, key: str) -> Collection | None:
    """Look a collection up by id, then by name."""
    for collection in user.collections:
        if collection.id == key:
            return collection
    return user.collection(key)


def update_system_collection(user: User, movie: Movie, name: str, add: bool = True) -> User:
    """
    Add a movie to, or remove it from, "Watched" or "Liked".

    The system collection is created on first use.
    """
    if name not in SYSTEM_COLLECTIONS:
        raise ValueError(f"'{name}' is not a system collection; expected one of {SYSTEM_COLLECTIONS}")

    collection = user.collection(name)
    if collection is None:
        collection = Collection(
            id=_new_id(),
            name=name,
            description=f"Your {name.lower()} movies",
            is_system=True,
            created_at=now_iso(),
        )
        user = dataclasses.replace(user, collections=user.collections + (collection,))
        logger.debug("Created system collection '%s' for user %s", name, user.id)

    if add:
        return _replace_collection(user, _with_movie(collection, movie))
    return _replace_collection(user, _without_movie(collection, movie.id))
