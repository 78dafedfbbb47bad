"""
Storage interface for user and friendship records.

The scoring engine never reads or writes storage. Callers fetch User records
through a repository, pass them to the engine, and write back whatever the
application decides to change.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path

from .models import Friendship, User

logger = logging.getLogger(__name__)


class UserRepository(ABC):
    """Read-by-id, list-all and write-back access to users and friendships."""

    @abstractmethod
    def get_user(self, user_id: str) -> User | None:
        ...

    @abstractmethod
    def list_users(self) -> list[User]:
        ...

    @abstractmethod
    def save_user(self, user: User) -> None:
        ...

    @abstractmethod
    def list_friendships(self) -> list[Friendship]:
        ...

    @abstractmethod
    def save_friendship(self, friendship: Friendship) -> None:
        ...


def _parse_records(raw_records: list, parse, kind: str) -> list:
    records = []
    for index, raw in enumerate(raw_records):
        try:
            records.append(parse(raw))
        except (TypeError, ValueError) as exc:
            logger.warning("Skipping malformed %s record #%s: %s", kind, index, exc)
    return records


class InMemoryUserRepository(UserRepository):
    """Dict-backed repository, used for JSON files and tests."""

    def __init__(
        self,
        users: list[User] | None = None,
        friendships: list[Friendship] | None = None,
    ):
        self._users: dict[str, User] = {u.id: u for u in users or []}
        self._friendships: dict[str, Friendship] = {f.id: f for f in friendships or []}

    def get_user(self, user_id: str) -> User | None:
        return self._users.get(str(user_id))

    def list_users(self) -> list[User]:
        return list(self._users.values())

    def save_user(self, user: User) -> None:
        self._users[user.id] = user

    def list_friendships(self) -> list[Friendship]:
        return list(self._friendships.values())

    def save_friendship(self, friendship: Friendship) -> None:
        self._friendships[friendship.id] = friendship

    @classmethod
    def from_dict(cls, payload: dict) -> "InMemoryUserRepository":
        """Build a repository from an app export, skipping malformed records with a warning."""
        users = _parse_records(payload.get("users") or [], User.from_dict, "user")
        friendships = _parse_records(payload.get("friendships") or [], Friendship.from_dict, "friendship")
        return cls(users, friendships)

    def to_dict(self) -> dict:
        return {
            "users": [u.to_dict() for u in self._users.values()],
            "friendships": [f.to_dict() for f in self._friendships.values()],
        }


def load_users_file(path: str | Path) -> InMemoryUserRepository:
    """Load a JSON file of the form {"users": [...], "friendships": [...]}."""
    path = Path(path)
    payload = json.loads(path.read_text())
    if isinstance(payload, list):
        payload = {"users": payload}
    repo = InMemoryUserRepository.from_dict(payload)
    logger.debug("Loaded %s users from %s", len(repo.list_users()), path)
    return repo


def save_users_file(repo: InMemoryUserRepository, path: str | Path) -> Path:
    """Write the repository back to a JSON file."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(repo.to_dict(), indent=2))
    return path
