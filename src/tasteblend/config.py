"""
Configuration constants for the tasteblend engine.

This module centralizes all magic numbers and configurable parameters.
Values can be overridden via environment variables.
"""
import os
import logging
from pathlib import Path

logger = logging.getLogger(__name__)


def _env_number(key: str, default, min_val, cast):
    """
    Read a numeric override from the environment.

    Unparseable values fall back to `default`; values below `min_val` are
    clamped up to it. Both cases log a warning.
    """
    raw = os.environ.get(key)
    if raw is None:
        return default
    try:
        value = cast(raw)
    except ValueError:
        logger.warning(f"Ignoring {key}='{raw}' (not a number), using {default}")
        return default
    if value < min_val:
        logger.warning(f"{key}={value} is below {min_val}, clamping")
        return cast(min_val)
    return value


def _get_float_env(key: str, default: float, min_val: float = 0.0) -> float:
    return _env_number(key, default, min_val, float)


def _get_int_env(key: str, default: int, min_val: int = 1) -> int:
    return _env_number(key, default, min_val, int)


# Database Configuration
DB_PATH = Path(os.environ.get("TASTEBLEND_DB", "data/tasteblend.db"))

# System collections (created lazily on first use)
WATCHED_COLLECTION = "Watched"
LIKED_COLLECTION = "Liked"
SYSTEM_COLLECTIONS = (WATCHED_COLLECTION, LIKED_COLLECTION)

# Profile weights per collection pass
WEIGHT_REGULAR = 1       # Any user-created playlist
WEIGHT_SYSTEM = 2        # "Watched" or "Liked"
WEIGHT_BOTH_SYSTEM = 3   # System pass for a movie that is both watched and liked

# Compatibility blend (movie overlap vs genre match)
BLEND_MOVIE_WEIGHT = 0.5
BLEND_GENRE_WEIGHT = 0.5

# Shared-taste recommender
COMMON_STRONG_THRESHOLD = _get_int_env("TASTEBLEND_COMMON_STRONG_THRESHOLD", 10, min_val=0)
FRIEND_REC_LIMIT = _get_int_env("TASTEBLEND_FRIEND_REC_LIMIT", 6, min_val=1)

# Personalized recommender
TOP_GENRE_COUNT = _get_int_env("TASTEBLEND_TOP_GENRES", 3, min_val=1)
PERSONAL_REC_LIMIT = _get_int_env("TASTEBLEND_PERSONAL_REC_LIMIT", 8, min_val=1)
DEFAULT_BASE_SCORE = 5.0  # Used when a movie has no rating
GENRE_BONUS_MAX = _get_float_env("TASTEBLEND_GENRE_BONUS_MAX", 3.0, min_val=0.0)

# Compatibility labels (lower bound -> label), checked top-down
COMPATIBILITY_LABELS = (
    (80, "Excellent match! 🎬"),
    (60, "Good compatibility"),
    (40, "Some differences to navigate"),
    (0, "Diverse tastes - finding common ground..."),
)
