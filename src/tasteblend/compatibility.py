"""
Taste compatibility between two users.

Blends how many movies two users share with how closely their genre
profiles overlap. Every score is an integer percentage in [0, 100] and is
symmetric in its two arguments.
"""

from __future__ import annotations

import logging

import numpy as np

from .config import BLEND_GENRE_WEIGHT, BLEND_MOVIE_WEIGHT, COMPATIBILITY_LABELS
from .models import User
from .profile import build_profile
from .utils import round_half_up

logger = logging.getLogger(__name__)


def _require_users(user_a: User | None, user_b: User | None) -> None:
    if user_a is None or user_b is None:
        raise ValueError("Compatibility requires two users")


def movie_overlap_score(user_a: User, user_b: User) -> int:
    """Jaccard overlap of the movie ids across both users' collections."""
    _require_users(user_a, user_b)

    ids_a = user_a.movie_ids()
    ids_b = user_b.movie_ids()
    union = ids_a | ids_b
    if not union:
        return 0

    return round_half_up(100 * len(ids_a & ids_b) / len(union))


def genre_match_score(user_a: User, user_b: User) -> int:
    """
    Overlap of two taste profiles: sum of per-genre minimums over the sum
    of per-genre maximums, across the union of both profiles' genres.
    """
    _require_users(user_a, user_b)

    profile_a = build_profile(user_a)
    profile_b = build_profile(user_b)

    all_genres = set(profile_a) | set(profile_b)
    if not all_genres:
        return 0

    overlap = 0
    possible = 0
    for genre in all_genres:
        value_a = profile_a.get(genre, 0)
        value_b = profile_b.get(genre, 0)
        overlap += min(value_a, value_b)
        possible += max(value_a, value_b)

    return round_half_up(100 * overlap / possible) if possible > 0 else 0


def blend_compatibility(user_a: User, user_b: User) -> int:
    """Weighted blend of movie overlap and genre match (50/50 by default)."""
    movie_score = movie_overlap_score(user_a, user_b)
    genre_score = genre_match_score(user_a, user_b)
    return round_half_up(movie_score * BLEND_MOVIE_WEIGHT + genre_score * BLEND_GENRE_WEIGHT)


def compatibility_matrix(users: list[User]) -> np.ndarray:
    """
    Pairwise blend compatibility for a list of users.

    Row/column order follows the input list. The matrix is symmetric; the
    diagonal holds each user's self-compatibility (100 for anyone with at
    least one genre-bearing movie).
    """
    n = len(users)
    matrix = np.zeros((n, n), dtype=np.int64)
    for i, user_a in enumerate(users):
        for j in range(i, n):
            score = blend_compatibility(user_a, users[j])
            matrix[i, j] = score
            matrix[j, i] = score

    logger.debug("Computed %sx%s compatibility matrix", n, n)
    return matrix


def compatibility_label(score: int) -> str:
    """Short human-readable description of a compatibility percentage."""
    for lower_bound, label in COMPATIBILITY_LABELS:
        if score >= lower_bound:
            return label
    return COMPATIBILITY_LABELS[-1][1]
