"""
Genre catalog: the fixed feature-film genre taxonomy used by the catalog API.

Lookups never raise. An unknown id or name returns None and callers drop it
from scoring.
"""

GENRES: dict[int, str] = {
    28: "Action",
    12: "Adventure",
    16: "Animation",
    35: "Comedy",
    80: "Crime",
    99: "Documentary",
    18: "Drama",
    10751: "Family",
    14: "Fantasy",
    36: "History",
    27: "Horror",
    10402: "Music",
    9648: "Mystery",
    10749: "Romance",
    878: "Science Fiction",
    53: "Thriller",
    10752: "War",
    37: "Western",
}

GENRE_IDS: dict[str, int] = {name: genre_id for genre_id, name in GENRES.items()}


def name_of(genre_id) -> str | None:
    """Return the display name for a genre id, or None if unmapped."""
    try:
        return GENRES.get(int(genre_id))
    except (TypeError, ValueError):
        return None


def id_of(name) -> int | None:
    """Return the genre id for a display name, or None if unmapped."""
    if not isinstance(name, str):
        return None
    return GENRE_IDS.get(name)
