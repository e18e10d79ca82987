"""
Users repository.

The login code needs to look users up and, for social sign-in, record
accounts it has not seen before. Hosts plug in their own storage by
implementing UsersRepository; InMemoryUsers is enough for tests and
single-process demos.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from usersauth.core.models import Identity
from usersauth.core.utils import generate_id


class UsersRepository(ABC):
    """Storage for user records."""

    @abstractmethod
    def get(self, user_id: str) -> Identity | None:
        pass

    @abstractmethod
    def find_by_email(self, email: str) -> Identity | None:
        pass

    @abstractmethod
    def save(self, identity: Identity) -> Identity:
        """Store a user, assigning an id if it has none. Returns the stored record."""
        pass


class InMemoryUsers(UsersRepository):
    """Users kept in a dict (replace with a DB in production)."""

    def __init__(self, users: list[Identity] | None = None):
        self._users_db: dict[str, Identity] = {}
        self._users_by_email: dict[str, str] = {}  # email -> user_id
        for user in users or []:
            self.save(user)

    def get(self, user_id: str) -> Identity | None:
        return self._users_db.get(user_id)

    def find_by_email(self, email: str) -> Identity | None:
        user_id = self._users_by_email.get(email.lower())
        return self._users_db.get(user_id) if user_id else None

    def save(self, identity: Identity) -> Identity:
        if identity.id is None:
            identity = identity.model_copy(update={"id": generate_id("user")})
        self._users_db[identity.id] = identity
        if identity.email:
            self._users_by_email[identity.email.lower()] = identity.id
        return identity

    def __len__(self) -> int:
        return len(self._users_db)
