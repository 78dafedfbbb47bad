import logging
from collections import defaultdict

from .config import (
    LIKED_COLLECTION,
    SYSTEM_COLLECTIONS,
    TOP_GENRE_COUNT,
    WATCHED_COLLECTION,
    WEIGHT_BOTH_SYSTEM,
    WEIGHT_REGULAR,
    WEIGHT_SYSTEM,
)
from .genres import name_of
from .models import User, resolve_genre_ids
from .utils import round_half_up

logger = logging.getLogger(__name__)

TasteProfile = dict[str, int]

_OTHER_SYSTEM_COLLECTION = {
    WATCHED_COLLECTION: LIKED_COLLECTION,
    LIKED_COLLECTION: WATCHED_COLLECTION,
}


def weight_for(collection_name: str, in_other_system_collection: bool) -> int:
    """
    Genre-count weight of one movie seen during one collection's pass.

    - Regular playlist:                              1
    - "Watched" or "Liked":                          2
    - "Watched"/"Liked" and also in the other one:   3

    The both-watched-and-liked weight applies on each system pass, so such a
    movie counts 3 + 3 across the two passes, plus 1 per regular playlist.
    """
    if collection_name not in SYSTEM_COLLECTIONS:
        return WEIGHT_REGULAR
    if in_other_system_collection:
        return WEIGHT_BOTH_SYSTEM
    return WEIGHT_SYSTEM


def _genre_counts(user: User) -> tuple[dict[str, int], int]:
    """Accumulate weighted genre counts and the total over all collections."""
    counts: dict[str, int] = defaultdict(int)
    total = 0

    for collection in user.collections:
        other_name = _OTHER_SYSTEM_COLLECTION.get(collection.name)
        other = user.collection(other_name) if other_name else None
        other_ids = other.movie_ids if other else set()

        for movie in collection.movies:
            genre_ids = resolve_genre_ids(movie)
            if not genre_ids:
                continue

            weight = weight_for(collection.name, movie.id in other_ids)
            for genre_id in genre_ids:
                name = name_of(genre_id)
                if name is None:
                    logger.debug("Unmapped genre id %s on movie %s", genre_id, movie.id)
                    continue
                counts[name] += weight
                total += weight

    return counts, total


def build_profile(user: User) -> TasteProfile:
    """
    Build a user's genre-interest profile from their collections.

    Each genre maps to round(100 * count / total), rounded half up. Genres
    are rounded independently, so the values may not sum to exactly 100.
    A user with no genre-bearing movies gets an empty profile.
    """
    if user is None:
        raise ValueError("build_profile requires a user")

    counts, total = _genre_counts(user)
    if total == 0:
        return {}

    return {
        genre: round_half_up(100 * count / total)
        for genre, count in counts.items()
        if count > 0
    }


def top_genres(profile: TasteProfile, n: int = TOP_GENRE_COUNT) -> list[str]:
    """Genre names by descending interest; ties keep profile order."""
    ranked = sorted(profile.items(), key=lambda item: -item[1])
    return [genre for genre, _ in ranked[:n]]
