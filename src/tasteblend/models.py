"""
Records consumed and produced by the taste engine.

Movies, collections and users are frozen dataclasses. The engine only reads
them; anything that "changes" a record (annotating a score, adding a movie to
a playlist) builds a new one with dataclasses.replace.

Records load from and dump to plain dicts using the catalog API's JSON keys
(genre_ids, vote_average, poster_path, ...).
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterator

from .config import LIKED_COLLECTION, SYSTEM_COLLECTIONS, WATCHED_COLLECTION
from .genres import id_of, name_of

logger = logging.getLogger(__name__)


def _require_id(payload: dict[str, Any], kind: str) -> Any:
    if not isinstance(payload, dict) or payload.get("id") is None:
        raise ValueError(f"{kind} record is missing an 'id': {payload!r}")
    return payload["id"]


def _normalize_movie_id(value: Any) -> Any:
    """Catalog ids are ints; "27205" and 27205.0 both become 27205."""
    if isinstance(value, bool):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return value


def _parse_rating(value: Any) -> float | None:
    """Catalog vote average on a 0-10 scale; anything else is treated as unrated."""
    if value is None or isinstance(value, bool):
        return None
    try:
        rating = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(rating) or not 0 <= rating <= 10:
        return None
    return rating


def _parse_score(value: Any) -> float | None:
    if value is None:
        return None
    try:
        score = float(value)
    except (TypeError, ValueError):
        return None
    return score if math.isfinite(score) else None


def _string_list(value: Any) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    if isinstance(value, (list, tuple)):
        return tuple(str(v) for v in value if v is not None)
    logger.debug("Ignoring malformed string list %r", value)
    return ()


@dataclass(frozen=True)
class Genre:
    """Genre object embedded in a movie record (catalog details payload)."""

    id: int | None = None
    name: str | None = None


@dataclass(frozen=True)
class Movie:
    """A catalog movie as stored inside a collection."""

    id: int
    title: str = ""
    genre_ids: tuple[int, ...] | None = None
    genres: tuple[Genre, ...] | None = None
    rating: float | None = None
    release_date: str | None = None
    poster_path: str | None = None
    backdrop_path: str | None = None
    added_at: str | None = None
    recommendation_score: float | None = None

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "Movie":
        movie_id = _require_id(payload, "Movie")

        genre_ids = payload.get("genre_ids")
        if genre_ids is not None:
            if isinstance(genre_ids, (list, tuple)):
                genre_ids = tuple(genre_ids)
            else:
                logger.debug("Ignoring malformed genre_ids on movie %s: %r", movie_id, genre_ids)
                genre_ids = None

        genres = payload.get("genres")
        if genres is not None:
            if isinstance(genres, (list, tuple)):
                genres = tuple(
                    Genre(id=g.get("id"), name=g.get("name"))
                    for g in genres
                    if isinstance(g, dict)
                )
            else:
                logger.debug("Ignoring malformed genres on movie %s: %r", movie_id, genres)
                genres = None

        rating = payload.get("vote_average", payload.get("rating"))

        return cls(
            id=_normalize_movie_id(movie_id),
            title=payload.get("title") or "",
            genre_ids=genre_ids,
            genres=genres,
            rating=_parse_rating(rating),
            release_date=payload.get("release_date"),
            poster_path=payload.get("poster_path"),
            backdrop_path=payload.get("backdrop_path"),
            added_at=payload.get("addedAt", payload.get("added_at")),
            recommendation_score=_parse_score(payload.get("recommendationScore")),
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"id": self.id, "title": self.title}
        if self.genre_ids is not None:
            data["genre_ids"] = list(self.genre_ids)
        if self.genres is not None:
            data["genres"] = [{"id": g.id, "name": g.name} for g in self.genres]
        optional = {
            "vote_average": self.rating,
            "release_date": self.release_date,
            "poster_path": self.poster_path,
            "backdrop_path": self.backdrop_path,
            "addedAt": self.added_at,
            "recommendationScore": self.recommendation_score,
        }
        data.update({k: v for k, v in optional.items() if v is not None})
        return data


def resolve_genre_ids(movie: Movie) -> tuple[int, ...]:
    """
    Return the movie's genre ids in first-seen order, without duplicates.

    An explicit genre_ids list wins, even when empty. Otherwise ids come from
    the embedded genre objects, falling back to a name lookup when an object
    carries only a name. Ids are returned whether or not the catalog knows
    them; scoring drops the unmapped ones.
    """
    if movie.genre_ids is not None:
        raw = list(movie.genre_ids)
    elif movie.genres is not None:
        raw = [g.id if g.id is not None else id_of(g.name) for g in movie.genres]
    else:
        return ()

    resolved: list[int] = []
    for genre_id in raw:
        if genre_id is None or isinstance(genre_id, bool):
            continue
        try:
            genre_id = int(genre_id)
        except (TypeError, ValueError):
            logger.debug("Skipping malformed genre id %r on movie %s", genre_id, movie.id)
            continue
        if genre_id not in resolved:
            resolved.append(genre_id)
    return tuple(resolved)


def genre_names(movie: Movie) -> list[str]:
    """Display names of the movie's catalog-mapped genres."""
    return [name for name in map(name_of, resolve_genre_ids(movie)) if name]


@dataclass(frozen=True)
class Collection:
    """A playlist owned by exactly one user."""

    id: str
    name: str
    movies: tuple[Movie, ...] = ()
    description: str = ""
    is_system: bool = False
    created_at: str | None = None

    @property
    def movie_ids(self) -> set:
        return {movie.id for movie in self.movies}

    def contains(self, movie_id) -> bool:
        return any(movie.id == movie_id for movie in self.movies)

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "Collection":
        collection_id = _require_id(payload, "Collection")
        name = payload.get("name") or ""
        movies = []
        for raw in payload.get("movies") or []:
            if not isinstance(raw, dict) or raw.get("id") is None:
                logger.debug("Skipping movie without id in collection %s", collection_id)
                continue
            movies.append(Movie.from_dict(raw))
        return cls(
            id=str(collection_id),
            name=name,
            movies=tuple(movies),
            description=payload.get("description") or "",
            is_system=bool(payload.get("isSystem", payload.get("is_system", name in SYSTEM_COLLECTIONS))),
            created_at=payload.get("createdAt", payload.get("created_at")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "isSystem": self.is_system,
            "createdAt": self.created_at,
            "movies": [movie.to_dict() for movie in self.movies],
        }


@dataclass(frozen=True)
class User:
    """A user and their playlists. Only id and collections matter for scoring."""

    id: str
    username: str = ""
    email: str = ""
    bio: str = ""
    favorite_genres: tuple[str, ...] = ()
    collections: tuple[Collection, ...] = ()

    def iter_movies(self) -> Iterator[tuple[Collection, Movie]]:
        for collection in self.collections:
            for movie in collection.movies:
                yield collection, movie

    def movie_ids(self) -> set:
        """Ids of every movie anywhere in the user's collections."""
        return {movie.id for _, movie in self.iter_movies()}

    def collection(self, name: str) -> Collection | None:
        for collection in self.collections:
            if collection.name == name:
                return collection
        return None

    @property
    def watched(self) -> Collection | None:
        return self.collection(WATCHED_COLLECTION)

    @property
    def liked(self) -> Collection | None:
        return self.collection(LIKED_COLLECTION)

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "User":
        user_id = _require_id(payload, "User")
        raw_collections = payload.get("collections", payload.get("playlists")) or []
        return cls(
            id=str(user_id),
            username=payload.get("username") or "",
            email=payload.get("email") or "",
            bio=payload.get("bio") or "",
            favorite_genres=_string_list(payload.get("favoriteGenres", payload.get("favorite_genres"))),
            collections=tuple(Collection.from_dict(c) for c in raw_collections),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "bio": self.bio,
            "favoriteGenres": list(self.favorite_genres),
            "playlists": [c.to_dict() for c in self.collections],
        }


class FriendshipStatus(Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


@dataclass(frozen=True)
class Friendship:
    """Connection request from requester to addressee."""

    id: str
    requester_id: str
    addressee_id: str
    status: FriendshipStatus = FriendshipStatus.PENDING
    created_at: str | None = field(default=None, compare=False)

    def involves(self, user_id: str) -> bool:
        return user_id in (self.requester_id, self.addressee_id)

    def other(self, user_id: str) -> str:
        return self.addressee_id if user_id == self.requester_id else self.requester_id

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "Friendship":
        friendship_id = _require_id(payload, "Friendship")
        requester_id = payload.get("user1Id", payload.get("requester_id"))
        addressee_id = payload.get("user2Id", payload.get("addressee_id"))
        if requester_id is None or addressee_id is None:
            raise ValueError(f"Friendship {friendship_id} must name both users (user1Id, user2Id)")

        status = payload.get("status") or FriendshipStatus.PENDING.value
        try:
            status = FriendshipStatus(status)
        except ValueError:
            raise ValueError(f"Friendship {friendship_id} has unknown status {status!r}") from None

        return cls(
            id=str(friendship_id),
            requester_id=str(requester_id),
            addressee_id=str(addressee_id),
            status=status,
            created_at=payload.get("createdAt", payload.get("created_at")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user1Id": self.requester_id,
            "user2Id": self.addressee_id,
            "status": self.status.value,
            "createdAt": self.created_at,
        }
