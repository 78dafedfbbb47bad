"""
Movie recommendations drawn from other users' collections.

Two strategies:

- Shared taste: movies from one friend's collections in the genres both
  users care about, with fallbacks when there is no common ground.
- Personalized: movies from everyone else's collections in the user's top
  genres, ranked by rating plus a genre-interest bonus.

Neither strategy recommends a movie that is already anywhere in the
subject user's own collections.
"""

from __future__ import annotations

import dataclasses
import logging
import math
from typing import Iterable

from .config import (
    COMMON_STRONG_THRESHOLD,
    DEFAULT_BASE_SCORE,
    FRIEND_REC_LIMIT,
    GENRE_BONUS_MAX,
    PERSONAL_REC_LIMIT,
    TOP_GENRE_COUNT,
)
from .genres import id_of
from .models import Movie, User, genre_names, resolve_genre_ids
from .profile import TasteProfile, build_profile, top_genres

logger = logging.getLogger(__name__)


def _rating_key(movie: Movie) -> float:
    """Rating for ordering; missing or non-finite ratings count as 0."""
    rating = movie.rating
    if rating is None or not math.isfinite(rating):
        return 0.0
    return rating


def _to_genre_ids(names: Iterable[str]) -> set[int]:
    return {genre_id for genre_id in map(id_of, names) if genre_id is not None}


def common_strong_genres(
    profile_a: TasteProfile,
    profile_b: TasteProfile,
    threshold: int = COMMON_STRONG_THRESHOLD,
) -> list[str]:
    """Genres in which both profiles show at least `threshold` percent interest."""
    return [
        genre
        for genre, value in profile_a.items()
        if value >= threshold and profile_b.get(genre, 0) >= threshold
    ]


def _friend_target_genre_ids(user_profile: TasteProfile, friend_profile: TasteProfile) -> set[int]:
    common = _to_genre_ids(common_strong_genres(user_profile, friend_profile))
    if common:
        return common

    fallback = _to_genre_ids(top_genres(friend_profile, TOP_GENRE_COUNT))
    logger.debug("No common strong genres; using friend's top genres %s", sorted(fallback))
    return fallback


def recommend_from_friend(
    user: User,
    friend: User,
    limit: int = FRIEND_REC_LIMIT,
) -> list[Movie]:
    """
    Recommend up to `limit` movies from a friend's collections.

    Target genres are the pair's common strong genres, or the friend's top
    genres when they share none. If nothing unseen matches the targets, the
    friend's highest-rated unseen movies are used instead. The result is
    ordered by rating, highest first (unrated counts as 0).
    """
    if user is None or friend is None:
        raise ValueError("recommend_from_friend requires a user and a friend")

    target_ids = _friend_target_genre_ids(build_profile(user), build_profile(friend))
    seen = user.movie_ids()

    candidates: list[Movie] = []
    candidate_ids: set = set()
    unseen: dict = {}

    for _, movie in friend.iter_movies():
        if movie.id in seen:
            continue
        unseen.setdefault(movie.id, movie)

        if movie.id in candidate_ids:
            continue
        if not target_ids or target_ids.intersection(resolve_genre_ids(movie)):
            candidates.append(movie)
            candidate_ids.add(movie.id)

    if not candidates:
        logger.debug("No genre matches from friend %s; falling back to top rated", friend.id)
        candidates = sorted(unseen.values(), key=_rating_key, reverse=True)[:limit]

    return sorted(candidates, key=_rating_key, reverse=True)[:limit]


def recommendation_score(movie: Movie, profile: TasteProfile) -> float:
    """
    Rating (or 5 when unrated) plus up to GENRE_BONUS_MAX points for each of
    the movie's genres, scaled by the user's interest in that genre.
    """
    score = _rating_key(movie) or DEFAULT_BASE_SCORE
    for genre in genre_names(movie):
        interest = profile.get(genre)
        if interest:
            score += (interest / 100) * GENRE_BONUS_MAX
    return score


def recommend_for_user(
    user: User,
    all_users: Iterable[User],
    limit: int = PERSONAL_REC_LIMIT,
) -> list[Movie]:
    """
    Recommend up to `limit` movies from every other user's collections.

    Candidates must share at least one of the user's top genres. Each is
    returned as a copy annotated with `recommendation_score`, sorted by that
    score (ties keep the order in which they were found).
    """
    if user is None:
        raise ValueError("recommend_for_user requires a user")

    profile = build_profile(user)
    target_ids = _to_genre_ids(top_genres(profile, TOP_GENRE_COUNT))
    if not target_ids:
        return []

    seen = user.movie_ids()
    candidates: list[Movie] = []
    candidate_ids: set = set()

    for other in all_users:
        if other is None or other.id == user.id:
            continue
        for _, movie in other.iter_movies():
            if movie.id in seen or movie.id in candidate_ids:
                continue
            if not target_ids.intersection(resolve_genre_ids(movie)):
                continue
            candidates.append(
                dataclasses.replace(movie, recommendation_score=recommendation_score(movie, profile))
            )
            candidate_ids.add(movie.id)

    logger.debug("Scored %s candidates for user %s", len(candidates), user.id)
    candidates.sort(key=lambda m: -m.recommendation_score)
    return candidates[:limit]
