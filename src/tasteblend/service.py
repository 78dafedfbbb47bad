"""
Id-based entry points and social connections over a UserRepository.

This is the layer the application talks to. It resolves ids to User
records, calls the pure engine functions and writes back any changes.
Unknown user ids degrade to empty results (0 or []) instead of raising.
"""

from __future__ import annotations

import dataclasses
import logging
import uuid
from dataclasses import dataclass

from .compatibility import blend_compatibility, compatibility_label
from .genres import id_of
from .models import Collection, Friendship, FriendshipStatus, Movie, User
from .playlists import (
    add_to_playlist,
    create_playlist,
    delete_playlist,
    find_playlist,
    remove_from_playlist,
    update_system_collection,
)
from .profile import TasteProfile, build_profile
from .recommender import recommend_for_user, recommend_from_friend
from .repository import UserRepository
from .utils import now_iso

logger = logging.getLogger(__name__)


@dataclass
class FriendMatch:
    """An accepted friend with their compatibility to the viewing user."""

    friend: User
    friendship_id: str
    compatibility: int

    @property
    def label(self) -> str:
        return compatibility_label(self.compatibility)


@dataclass
class FriendRequest:
    """A pending request addressed to the viewing user."""

    friendship_id: str
    sender: User
    created_at: str | None = None


class TasteService:
    """
    Application-facing facade: repository lookups plus engine calls.
    """

    def __init__(self, repository: UserRepository):
        self.repository = repository

    def _resolve(self, user_id: str, role: str = "user") -> User | None:
        user = self.repository.get_user(str(user_id))
        if user is None:
            logger.warning("Unknown %s id '%s'", role, user_id)
        return user

    def profile(self, user_id: str) -> TasteProfile:
        user = self._resolve(user_id)
        return build_profile(user) if user else {}

    def compatibility(self, user_id: str, other_id: str) -> int:
        user = self._resolve(user_id)
        other = self._resolve(other_id, role="other user")
        if user is None or other is None:
            return 0
        return blend_compatibility(user, other)

    def friend_recommendations(self, user_id: str, friend_id: str) -> list[Movie]:
        user = self._resolve(user_id)
        friend = self._resolve(friend_id, role="friend")
        if user is None or friend is None:
            return []
        return recommend_from_friend(user, friend)

    def recommendations(self, user_id: str) -> list[Movie]:
        user = self._resolve(user_id)
        if user is None:
            return []
        return recommend_for_user(user, self.repository.list_users())

    def update_system_collection(self, user_id: str, movie: Movie, name: str, add: bool = True) -> User | None:
        """Add/remove a movie in "Watched" or "Liked" and persist the result."""
        user = self._resolve(user_id)
        if user is None:
            return None
        return self._save(update_system_collection(user, movie, name, add=add))

    def _save(self, user: User) -> User:
        self.repository.save_user(user)
        return user

    def _playlist_id(self, user: User, playlist: str) -> str:
        found = find_playlist(user, playlist)
        if found is None:
            raise ValueError(f"User {user.id} has no playlist '{playlist}'")
        return found.id

    def create_playlist(self, user_id: str, name: str, description: str = "") -> Collection | None:
        user = self._resolve(user_id)
        if user is None:
            return None
        updated, created = create_playlist(user, name, description)
        self._save(updated)
        return created

    def add_to_playlist(self, user_id: str, playlist: str, movie: Movie) -> User | None:
        """Add a movie to a playlist given by id or name."""
        user = self._resolve(user_id)
        if user is None:
            return None
        return self._save(add_to_playlist(user, self._playlist_id(user, playlist), movie))

    def remove_from_playlist(self, user_id: str, playlist: str, movie_id) -> User | None:
        user = self._resolve(user_id)
        if user is None:
            return None
        return self._save(remove_from_playlist(user, self._playlist_id(user, playlist), movie_id))

    def delete_playlist(self, user_id: str, playlist: str) -> User | None:
        user = self._resolve(user_id)
        if user is None:
            return None
        return self._save(delete_playlist(user, self._playlist_id(user, playlist)))

    def update_profile(
        self,
        user_id: str,
        username: str | None = None,
        email: str | None = None,
        bio: str | None = None,
        favorite_genres: list[str] | None = None,
    ) -> User | None:
        """
        Overwrite the given profile fields and persist. Fields left as None
        keep their current value. Favorite genres must be catalog names.
        """
        user = self._resolve(user_id)
        if user is None:
            return None

        changes = {
            key: value
            for key, value in (("username", username), ("email", email), ("bio", bio))
            if value is not None
        }
        if favorite_genres is not None:
            unknown = [g for g in favorite_genres if id_of(g) is None]
            if unknown:
                raise ValueError(f"Unknown genres: {', '.join(unknown)}")
            changes["favorite_genres"] = tuple(dict.fromkeys(favorite_genres))

        return self._save(dataclasses.replace(user, **changes))

    # Social connections

    def _find_friendship(self, user_id: str, other_id: str) -> Friendship | None:
        for friendship in self.repository.list_friendships():
            if friendship.involves(user_id) and friendship.other(user_id) == other_id:
                return friendship
        return None

    def add_friend(self, user_id: str, friend_id: str) -> Friendship | None:
        """
        Send a friend request. Returns the new pending friendship, the
        existing one if the two users are already connected, or None if
        either user is unknown.
        """
        user_id, friend_id = str(user_id), str(friend_id)
        if user_id == friend_id:
            raise ValueError("Users cannot befriend themselves")
        if self._resolve(user_id) is None or self._resolve(friend_id, role="friend") is None:
            return None

        existing = self._find_friendship(user_id, friend_id)
        if existing is not None:
            logger.info("Users %s and %s are already connected (%s)", user_id, friend_id, existing.status.value)
            return existing

        friendship = Friendship(
            id=uuid.uuid4().hex,
            requester_id=user_id,
            addressee_id=friend_id,
            created_at=now_iso(),
        )
        self.repository.save_friendship(friendship)
        logger.debug("Friend request %s: %s -> %s", friendship.id, user_id, friend_id)
        return friendship

    def _respond(self, user_id: str, friendship_id: str, status: FriendshipStatus) -> Friendship:
        for friendship in self.repository.list_friendships():
            if friendship.id != friendship_id:
                continue
            if friendship.addressee_id != str(user_id):
                raise ValueError(f"Friend request {friendship_id} is not addressed to user {user_id}")
            updated = dataclasses.replace(friendship, status=status)
            self.repository.save_friendship(updated)
            return updated
        raise ValueError(f"Unknown friend request {friendship_id}")

    def accept_friend_request(self, user_id: str, friendship_id: str) -> Friendship:
        return self._respond(user_id, friendship_id, FriendshipStatus.ACCEPTED)

    def reject_friend_request(self, user_id: str, friendship_id: str) -> Friendship:
        return self._respond(user_id, friendship_id, FriendshipStatus.REJECTED)

    def active_friends(self, user_id: str) -> list[FriendMatch]:
        """Accepted friends, each annotated with blend compatibility."""
        user = self._resolve(user_id)
        if user is None:
            return []

        matches = []
        for friendship in self.repository.list_friendships():
            if friendship.status != FriendshipStatus.ACCEPTED or not friendship.involves(user.id):
                continue
            friend = self.repository.get_user(friendship.other(user.id))
            if friend is None:
                logger.debug("Skipping friendship %s with missing user", friendship.id)
                continue
            matches.append(
                FriendMatch(
                    friend=friend,
                    friendship_id=friendship.id,
                    compatibility=blend_compatibility(user, friend),
                )
            )
        return matches

    def friend_requests(self, user_id: str) -> list[FriendRequest]:
        """Pending requests addressed to the user."""
        requests = []
        for friendship in self.repository.list_friendships():
            if friendship.status != FriendshipStatus.PENDING or friendship.addressee_id != str(user_id):
                continue
            sender = self.repository.get_user(friendship.requester_id)
            if sender is None:
                continue
            requests.append(
                FriendRequest(
                    friendship_id=friendship.id,
                    sender=sender,
                    created_at=friendship.created_at,
                )
            )
        return requests
