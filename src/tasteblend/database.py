import sqlite3
import json
import logging
import threading
from contextlib import contextmanager
from .config import DB_PATH
from .models import Collection, Friendship, FriendshipStatus, Movie, User
from .repository import UserRepository

logger = logging.getLogger(__name__)


class ConnectionPool:
    """
    Per-thread SQLite connections for one database file.

    Each thread gets its own connection plus a counter of how many get_db
    blocks it is currently inside, so nested blocks share one transaction.
    """

    def __init__(self, db_path):
        self.db_path = db_path
        self._lock = threading.Lock()
        self._connections: dict[int, sqlite3.Connection] = {}
        self._depth: dict[int, int] = {}

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA busy_timeout = 5000")
        conn.execute("PRAGMA journal_mode = WAL")
        return conn

    def acquire(self) -> tuple[sqlite3.Connection, bool]:
        """Return this thread's connection and whether this is the outermost block."""
        thread_id = threading.get_ident()
        with self._lock:
            if thread_id not in self._connections:
                self._connections[thread_id] = self._connect()
                logger.debug(f"Opened {self.db_path} for thread {thread_id}")
            depth = self._depth.get(thread_id, 0)
            self._depth[thread_id] = depth + 1
            return self._connections[thread_id], depth == 0

    def release(self):
        thread_id = threading.get_ident()
        with self._lock:
            self._depth[thread_id] = max(0, self._depth.get(thread_id, 1) - 1)

    def close_all(self):
        with self._lock:
            for thread_id, conn in self._connections.items():
                try:
                    conn.close()
                except sqlite3.Error as e:
                    logger.warning(f"Could not close connection for thread {thread_id}: {e}")
            self._connections.clear()
            self._depth.clear()


_pool: ConnectionPool | None = None
_pool_lock = threading.Lock()


def _get_pool() -> ConnectionPool:
    global _pool
    with _pool_lock:
        if _pool is None:
            DB_PATH.parent.mkdir(exist_ok=True, parents=True)
            _pool = ConnectionPool(DB_PATH)
        return _pool


@contextmanager
def get_db(read_only: bool = False):
    """
    Yield the thread's connection inside a transaction.

    Only the outermost block commits (unless read_only) or rolls back on
    error. Inner blocks join the outer transaction.
    """
    pool = _get_pool()
    conn, outermost = pool.acquire()
    try:
        yield conn
        if outermost and not read_only:
            conn.commit()
    except Exception:
        if outermost:
            conn.rollback()
        raise
    finally:
        pool.release()


def close_pool():
    """Close every pooled connection. Registered with atexit by the CLI."""
    global _pool
    if _pool is not None:
        _pool.close_all()
        _pool = None


def init_db() -> None:
    """Create the users, collections and friendships tables if missing."""
    DB_PATH.parent.mkdir(exist_ok=True, parents=True)
    with get_db() as conn:
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS users (
                id TEXT PRIMARY KEY,
                username TEXT,
                email TEXT,
                bio TEXT,
                favorite_genres TEXT    -- JSON list
            );

            CREATE TABLE IF NOT EXISTS collections (
                id TEXT NOT NULL,
                user_id TEXT NOT NULL,
                position INTEGER NOT NULL,
                name TEXT NOT NULL,
                description TEXT,
                is_system INTEGER DEFAULT 0,
                created_at TEXT,
                movies TEXT,            -- JSON list of movie records, in order
                PRIMARY KEY (user_id, id)
            );

            CREATE TABLE IF NOT EXISTS friendships (
                id TEXT PRIMARY KEY,
                requester_id TEXT NOT NULL,
                addressee_id TEXT NOT NULL,
                status TEXT NOT NULL DEFAULT 'pending',
                created_at TEXT
            );

            CREATE INDEX IF NOT EXISTS idx_collections_user ON collections(user_id, position);
            CREATE INDEX IF NOT EXISTS idx_friendships_requester ON friendships(requester_id);
            CREATE INDEX IF NOT EXISTS idx_friendships_addressee ON friendships(addressee_id);
        """)
    logger.debug(f"Initialized database at {DB_PATH}")


def load_json(val):
    """Safely load a JSON list from a db field."""
    if not val:
        return []
    if isinstance(val, list):
        return val
    try:
        return json.loads(val)
    except (json.JSONDecodeError, TypeError) as e:
        logger.warning(f"Failed to parse JSON '{str(val)[:50]}...': {e}")
        return []


def _row_to_collection(row: sqlite3.Row) -> Collection:
    movies = []
    for raw in load_json(row["movies"]):
        if isinstance(raw, dict) and raw.get("id") is not None:
            movies.append(Movie.from_dict(raw))
    return Collection(
        id=row["id"],
        name=row["name"],
        movies=tuple(movies),
        description=row["description"] or "",
        is_system=bool(row["is_system"]),
        created_at=row["created_at"],
    )


def _load_collections(conn, user_ids: list[str] | None = None) -> dict[str, list[Collection]]:
    if user_ids is None:
        rows = conn.execute("SELECT * FROM collections ORDER BY user_id, position")
    else:
        placeholders = ",".join("?" * len(user_ids))
        rows = conn.execute(
            f"SELECT * FROM collections WHERE user_id IN ({placeholders}) ORDER BY user_id, position",
            user_ids,
        )

    by_user: dict[str, list[Collection]] = {}
    for row in rows:
        by_user.setdefault(row["user_id"], []).append(_row_to_collection(row))
    return by_user


def _row_to_user(row: sqlite3.Row, collections: list[Collection]) -> User:
    return User(
        id=row["id"],
        username=row["username"] or "",
        email=row["email"] or "",
        bio=row["bio"] or "",
        favorite_genres=tuple(load_json(row["favorite_genres"])),
        collections=tuple(collections),
    )


class SQLiteUserRepository(UserRepository):
    """UserRepository backed by the shared SQLite connection pool."""

    def __init__(self, initialize: bool = True):
        if initialize:
            init_db()

    def get_user(self, user_id: str) -> User | None:
        with get_db(read_only=True) as conn:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (str(user_id),)).fetchone()
            if row is None:
                return None
            collections = _load_collections(conn, [row["id"]]).get(row["id"], [])
        return _row_to_user(row, collections)

    def list_users(self) -> list[User]:
        with get_db(read_only=True) as conn:
            rows = conn.execute("SELECT * FROM users ORDER BY rowid").fetchall()
            collections = _load_collections(conn)
        return [_row_to_user(row, collections.get(row["id"], [])) for row in rows]

    def save_user(self, user: User) -> None:
        """Insert or replace a user and all of their collections."""
        with get_db() as conn:
            conn.execute("""
                INSERT INTO users (id, username, email, bio, favorite_genres)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    username = excluded.username,
                    email = excluded.email,
                    bio = excluded.bio,
                    favorite_genres = excluded.favorite_genres
            """, (user.id, user.username, user.email, user.bio, json.dumps(list(user.favorite_genres))))

            conn.execute("DELETE FROM collections WHERE user_id = ?", (user.id,))
            conn.executemany("""
                INSERT INTO collections
                    (id, user_id, position, name, description, is_system, created_at, movies)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """, [
                (
                    c.id,
                    user.id,
                    position,
                    c.name,
                    c.description,
                    int(c.is_system),
                    c.created_at,
                    json.dumps([m.to_dict() for m in c.movies]),
                )
                for position, c in enumerate(user.collections)
            ])
        logger.debug(f"Saved user {user.id} with {len(user.collections)} collections")

    def list_friendships(self) -> list[Friendship]:
        with get_db(read_only=True) as conn:
            rows = conn.execute("SELECT * FROM friendships ORDER BY rowid").fetchall()
        return [
            Friendship(
                id=row["id"],
                requester_id=row["requester_id"],
                addressee_id=row["addressee_id"],
                status=FriendshipStatus(row["status"]),
                created_at=row["created_at"],
            )
            for row in rows
        ]

    def save_friendship(self, friendship: Friendship) -> None:
        with get_db() as conn:
            conn.execute("""
                INSERT INTO friendships (id, requester_id, addressee_id, status, created_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET status = excluded.status
            """, (
                friendship.id,
                friendship.requester_id,
                friendship.addressee_id,
                friendship.status.value,
                friendship.created_at,
            ))
