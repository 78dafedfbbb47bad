import argparse
import atexit
import json
import logging

from tqdm import tqdm

from .compatibility import (
    blend_compatibility,
    compatibility_label,
    compatibility_matrix,
    genre_match_score,
    movie_overlap_score,
)
from .config import DB_PATH, FRIEND_REC_LIMIT, PERSONAL_REC_LIMIT, SYSTEM_COLLECTIONS
from .database import SQLiteUserRepository, close_pool
from .models import Movie
from .profile import build_profile
from .recommender import recommend_for_user, recommend_from_friend
from .repository import InMemoryUserRepository, UserRepository, load_users_file, save_users_file
from .service import TasteService

logger = logging.getLogger(__name__)

# Register cleanup on exit
atexit.register(close_pool)


def _get_repository(args: argparse.Namespace) -> UserRepository:
    """JSON users file when --users-file is given, otherwise the SQLite store."""
    users_file = getattr(args, "users_file", None)
    if users_file:
        return load_users_file(users_file)
    return SQLiteUserRepository()


def _require_user(repo: UserRepository, user_id: str):
    user = repo.get_user(user_id)
    if user is None:
        logger.error(f"No user with id '{user_id}'")
    return user


def _movie_line(i: int, movie: Movie) -> str:
    year = (movie.release_date or "")[:4] or "n/a"
    rating = f"{movie.rating:.1f}" if movie.rating is not None else "unrated"
    line = f"{i}. {movie.title or movie.id} ({year}) - rating {rating}"
    if movie.recommendation_score is not None:
        line += f" - score {movie.recommendation_score:.2f}"
    return line


def _output_movies(movies: list[Movie], args: argparse.Namespace, heading: str) -> None:
    """Log a list of recommended movies as text or JSON."""
    if getattr(args, "format", "text") == "json":
        logger.info(json.dumps([m.to_dict() for m in movies], indent=2))
        return

    logger.info(f"\n{heading}:")
    if not movies:
        logger.info("  (nothing to recommend yet)")
    for i, movie in enumerate(movies, 1):
        logger.info(f"  {_movie_line(i, movie)}")


def cmd_import(args: argparse.Namespace) -> None:
    """Load a JSON users file into the SQLite store."""
    source = load_users_file(args.file)
    target = SQLiteUserRepository()

    users = source.list_users()
    for user in tqdm(users, desc="Importing users", disable=len(users) < 50):
        target.save_user(user)
    for friendship in source.list_friendships():
        target.save_friendship(friendship)

    logger.info(f"Imported {len(users)} users and {len(source.list_friendships())} friendships into {DB_PATH}")


def cmd_profile(args: argparse.Namespace) -> None:
    """Show a user's genre taste profile."""
    repo = _get_repository(args)
    user = _require_user(repo, args.user_id)
    if user is None:
        return

    profile = build_profile(user)
    if args.format == "json":
        logger.info(json.dumps(profile, indent=2))
        return

    logger.info(f"\nTaste profile for {user.username or user.id}")
    if not profile:
        logger.info("  No genre data yet. Add some movies to a playlist.")
        return
    for genre, pct in sorted(profile.items(), key=lambda x: -x[1]):
        bar = "█" * (pct // 5)
        logger.info(f"  {genre:<16} {bar} {pct}%")


def cmd_compat(args: argparse.Namespace) -> None:
    """Show blend compatibility between two users."""
    repo = _get_repository(args)
    user = _require_user(repo, args.user_id)
    other = _require_user(repo, args.other_id)
    if user is None or other is None:
        return

    scores = {
        "movie_overlap": movie_overlap_score(user, other),
        "genre_match": genre_match_score(user, other),
        "blend": blend_compatibility(user, other),
    }
    if args.format == "json":
        logger.info(json.dumps(scores, indent=2))
        return

    logger.info(f"\n{user.username or user.id} & {other.username or other.id}")
    logger.info(f"  Movie overlap: {scores['movie_overlap']}%")
    logger.info(f"  Genre match:   {scores['genre_match']}%")
    logger.info(f"  Blend:         {scores['blend']}% - {compatibility_label(scores['blend'])}")


def cmd_friend_recs(args: argparse.Namespace) -> None:
    """Recommend movies from a friend's playlists based on shared taste."""
    repo = _get_repository(args)
    user = _require_user(repo, args.user_id)
    friend = _require_user(repo, args.friend_id)
    if user is None or friend is None:
        return

    movies = recommend_from_friend(user, friend, limit=args.limit)
    _output_movies(movies, args, f"From {friend.username or friend.id}'s playlists")


def cmd_recommend(args: argparse.Namespace) -> None:
    """Personalized recommendations from everyone else's playlists."""
    repo = _get_repository(args)
    user = _require_user(repo, args.user_id)
    if user is None:
        return

    movies = recommend_for_user(user, repo.list_users(), limit=args.limit)
    _output_movies(movies, args, f"Recommended for {user.username or user.id}")


def cmd_recommend_all(args: argparse.Namespace) -> None:
    """Personalized recommendations for every user."""
    repo = _get_repository(args)
    users = repo.list_users()

    results = {}
    for user in tqdm(users, desc="Recommending"):
        results[user.id] = recommend_for_user(user, users, limit=args.limit)

    if args.format == "json":
        logger.info(json.dumps(
            {user_id: [m.to_dict() for m in movies] for user_id, movies in results.items()},
            indent=2,
        ))
        return

    for user in users:
        _output_movies(results[user.id], args, f"Recommended for {user.username or user.id}")


def cmd_matrix(args: argparse.Namespace) -> None:
    """Pairwise blend compatibility between all users."""
    repo = _get_repository(args)
    users = repo.list_users()
    if not users:
        logger.info("No users found.")
        return

    matrix = compatibility_matrix(users)
    ids = [u.id for u in users]
    if args.format == "json":
        logger.info(json.dumps({"users": ids, "matrix": matrix.tolist()}, indent=2))
        return

    width = max(len(i) for i in ids) + 2
    logger.info(" " * width + "".join(f"{i:>{width}}" for i in ids))
    for user_id, row in zip(ids, matrix):
        logger.info(f"{user_id:<{width}}" + "".join(f"{int(v):>{width}}" for v in row))


def cmd_friends(args: argparse.Namespace) -> None:
    """List accepted friends with compatibility, and pending requests."""
    service = TasteService(_get_repository(args))
    user_id = args.user_id

    matches = sorted(service.active_friends(user_id), key=lambda m: -m.compatibility)
    requests = service.friend_requests(user_id)

    if args.format == "json":
        logger.info(json.dumps({
            "friends": [
                {"id": m.friend.id, "username": m.friend.username, "compatibility": m.compatibility}
                for m in matches
            ],
            "requests": [
                {"friendship_id": r.friendship_id, "from": r.sender.id, "created_at": r.created_at}
                for r in requests
            ],
        }, indent=2))
        return

    logger.info(f"\nFriends of {user_id}:")
    if not matches:
        logger.info("  (no friends yet)")
    for m in matches:
        logger.info(f"  {m.friend.username or m.friend.id}: {m.compatibility}% - {m.label}")

    if requests:
        logger.info("\nPending requests:")
        for r in requests:
            logger.info(f"  {r.sender.username or r.sender.id} ({r.friendship_id})")


def _persist(repo: UserRepository, args: argparse.Namespace) -> None:
    """Write a JSON-file repository back after a change; SQLite commits on its own."""
    users_file = getattr(args, "users_file", None)
    if users_file and isinstance(repo, InMemoryUserRepository):
        save_users_file(repo, users_file)


def cmd_befriend(args: argparse.Namespace) -> None:
    """Send a friend request."""
    repo = _get_repository(args)
    try:
        friendship = TasteService(repo).add_friend(args.user_id, args.friend_id)
    except ValueError as e:
        logger.error(str(e))
        return
    if friendship is None:
        logger.error("Both users must exist to connect them")
        return
    _persist(repo, args)
    logger.info(f"Friendship {friendship.id}: {friendship.status.value}")


def _respond_to_request(args: argparse.Namespace, accept: bool) -> None:
    repo = _get_repository(args)
    service = TasteService(repo)
    respond = service.accept_friend_request if accept else service.reject_friend_request
    try:
        friendship = respond(args.user_id, args.friendship_id)
    except ValueError as e:
        logger.error(str(e))
        return
    _persist(repo, args)
    logger.info(f"Friendship {friendship.id}: {friendship.status.value}")


def cmd_accept(args: argparse.Namespace) -> None:
    """Accept a pending friend request addressed to the user."""
    _respond_to_request(args, accept=True)


def cmd_reject(args: argparse.Namespace) -> None:
    """Reject a pending friend request addressed to the user."""
    _respond_to_request(args, accept=False)


def _parse_movie(raw: str) -> Movie | None:
    try:
        payload = json.loads(raw)
        if not isinstance(payload, dict):
            raise ValueError("expected a JSON object")
        return Movie.from_dict(payload)
    except ValueError as e:
        logger.error(f"Invalid movie JSON: {e}")
        return None


def cmd_playlist(args: argparse.Namespace) -> None:
    """Create, fill, empty or delete a user's playlist."""
    movie = None
    if args.action == "add":
        movie = _parse_movie(args.movie)
        if movie is None:
            return

    repo = _get_repository(args)
    service = TasteService(repo)
    try:
        if args.action == "create":
            result = service.create_playlist(args.user_id, args.name, description=args.description)
            message = f"Created playlist '{args.name}'" + (f" ({result.id})" if result else "")
        elif args.action == "add":
            result = service.add_to_playlist(args.user_id, args.playlist, movie)
            message = f"Added {movie.title or movie.id} to '{args.playlist}'"
        elif args.action == "remove":
            movie_id = int(args.movie_id) if args.movie_id.isdigit() else args.movie_id
            result = service.remove_from_playlist(args.user_id, args.playlist, movie_id)
            message = f"Removed {movie_id} from '{args.playlist}'"
        else:
            result = service.delete_playlist(args.user_id, args.playlist)
            message = f"Deleted playlist '{args.playlist}'"
    except ValueError as e:
        logger.error(str(e))
        return

    if result is None:
        logger.error(f"No user with id '{args.user_id}'")
        return
    _persist(repo, args)
    logger.info(message)


def cmd_update_profile(args: argparse.Namespace) -> None:
    """Update a user's name, email, bio or favorite genres."""
    genres = None
    if args.genres is not None:
        genres = [g.strip() for g in args.genres.split(",") if g.strip()]

    repo = _get_repository(args)
    try:
        updated = TasteService(repo).update_profile(
            args.user_id,
            username=args.username,
            email=args.email,
            bio=args.bio,
            favorite_genres=genres,
        )
    except ValueError as e:
        logger.error(str(e))
        return
    if updated is None:
        logger.error(f"No user with id '{args.user_id}'")
        return
    _persist(repo, args)
    logger.info(f"Updated profile for {updated.username or updated.id}")


def cmd_mark(args: argparse.Namespace) -> None:
    """Add a movie to (or remove it from) Watched or Liked."""
    movie = _parse_movie(args.movie)
    if movie is None:
        return

    repo = _get_repository(args)
    updated = TasteService(repo).update_system_collection(
        args.user_id, movie, args.collection, add=not args.remove
    )
    if updated is None:
        logger.error(f"No user with id '{args.user_id}'")
        return
    _persist(repo, args)
    action = "Removed" if args.remove else "Added"
    logger.info(f"{action} {movie.title or movie.id} ({args.collection})")


def main():
    parser = argparse.ArgumentParser(description="Movie taste compatibility and recommendations")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    parser.add_argument("--users-file", help="Read users from a JSON file instead of the database")
    subparsers = parser.add_subparsers(dest="command", required=True)

    import_parser = subparsers.add_parser("import", help="Load a JSON users file into the database")
    import_parser.add_argument("file", help="JSON file with users and friendships")
    import_parser.set_defaults(func=cmd_import)

    profile_parser = subparsers.add_parser("profile", help="Show a user's taste profile")
    profile_parser.add_argument("user_id")
    profile_parser.add_argument("--format", choices=["text", "json"], default="text")
    profile_parser.set_defaults(func=cmd_profile)

    compat_parser = subparsers.add_parser("compat", help="Blend compatibility between two users")
    compat_parser.add_argument("user_id")
    compat_parser.add_argument("other_id")
    compat_parser.add_argument("--format", choices=["text", "json"], default="text")
    compat_parser.set_defaults(func=cmd_compat)

    friend_recs_parser = subparsers.add_parser("friend-recs", help="Recommendations from a friend's playlists")
    friend_recs_parser.add_argument("user_id")
    friend_recs_parser.add_argument("friend_id")
    friend_recs_parser.add_argument("--limit", type=int, default=FRIEND_REC_LIMIT, help="Number of recommendations")
    friend_recs_parser.add_argument("--format", choices=["text", "json"], default="text")
    friend_recs_parser.set_defaults(func=cmd_friend_recs)

    recommend_parser = subparsers.add_parser("recommend", help="Personalized recommendations")
    recommend_parser.add_argument("user_id")
    recommend_parser.add_argument("--limit", type=int, default=PERSONAL_REC_LIMIT, help="Number of recommendations")
    recommend_parser.add_argument("--format", choices=["text", "json"], default="text")
    recommend_parser.set_defaults(func=cmd_recommend)

    recommend_all_parser = subparsers.add_parser("recommend-all", help="Personalized recommendations for every user")
    recommend_all_parser.add_argument("--limit", type=int, default=PERSONAL_REC_LIMIT, help="Number of recommendations per user")
    recommend_all_parser.add_argument("--format", choices=["text", "json"], default="text")
    recommend_all_parser.set_defaults(func=cmd_recommend_all)

    matrix_parser = subparsers.add_parser("matrix", help="Pairwise compatibility matrix")
    matrix_parser.add_argument("--format", choices=["text", "json"], default="text")
    matrix_parser.set_defaults(func=cmd_matrix)

    friends_parser = subparsers.add_parser("friends", help="Friends with compatibility and pending requests")
    friends_parser.add_argument("user_id")
    friends_parser.add_argument("--format", choices=["text", "json"], default="text")
    friends_parser.set_defaults(func=cmd_friends)

    befriend_parser = subparsers.add_parser("befriend", help="Send a friend request")
    befriend_parser.add_argument("user_id")
    befriend_parser.add_argument("friend_id")
    befriend_parser.set_defaults(func=cmd_befriend)

    accept_parser = subparsers.add_parser("accept", help="Accept a pending friend request")
    accept_parser.add_argument("user_id")
    accept_parser.add_argument("friendship_id")
    accept_parser.set_defaults(func=cmd_accept)

    reject_parser = subparsers.add_parser("reject", help="Reject a pending friend request")
    reject_parser.add_argument("user_id")
    reject_parser.add_argument("friendship_id")
    reject_parser.set_defaults(func=cmd_reject)

    playlist_parser = subparsers.add_parser("playlist", help="Manage a user's playlists")
    playlist_actions = playlist_parser.add_subparsers(dest="action", required=True)

    create_parser = playlist_actions.add_parser("create", help="Create an empty playlist")
    create_parser.add_argument("user_id")
    create_parser.add_argument("name")
    create_parser.add_argument("--description", default="")

    add_parser = playlist_actions.add_parser("add", help="Add a movie to a playlist")
    add_parser.add_argument("user_id")
    add_parser.add_argument("playlist", help="Playlist id or name")
    add_parser.add_argument("movie", help="Movie record as JSON")

    remove_parser = playlist_actions.add_parser("remove", help="Remove a movie from a playlist")
    remove_parser.add_argument("user_id")
    remove_parser.add_argument("playlist", help="Playlist id or name")
    remove_parser.add_argument("movie_id")

    delete_parser = playlist_actions.add_parser("delete", help="Delete a playlist")
    delete_parser.add_argument("user_id")
    delete_parser.add_argument("playlist", help="Playlist id or name")
    playlist_parser.set_defaults(func=cmd_playlist)

    update_profile_parser = subparsers.add_parser("update-profile", help="Update profile fields")
    update_profile_parser.add_argument("user_id")
    update_profile_parser.add_argument("--username")
    update_profile_parser.add_argument("--email")
    update_profile_parser.add_argument("--bio")
    update_profile_parser.add_argument("--genres", help="Comma-separated favorite genres, e.g. 'Drama,Horror'")
    update_profile_parser.set_defaults(func=cmd_update_profile)

    mark_parser = subparsers.add_parser("mark", help="Add a movie to Watched or Liked")
    mark_parser.add_argument("user_id")
    mark_parser.add_argument("movie", help="Movie record as JSON, e.g. '{\"id\": 27205, \"genre_ids\": [28]}'")
    mark_parser.add_argument("--collection", choices=list(SYSTEM_COLLECTIONS), default="Watched")
    mark_parser.add_argument("--remove", action="store_true", help="Remove instead of add")
    mark_parser.set_defaults(func=cmd_mark)

    args = parser.parse_args()

    # Configure logging based on verbosity
    log_level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    args.func(args)


if __name__ == "__main__":
    main()
