"""
Session and flash message adapters.

The session store itself belongs to the host (Starlette's
`request.session`, a dict in tests); these classes only give the auth
code a narrow, named surface over it.
"""

from __future__ import annotations

from collections.abc import MutableMapping
from typing import Any

# Session key holding the logged-in identity
AUTH_SESSION_KEY = "Auth"

# Session key holding a user who passed the password step but still has
# to pass second-factor verification
TWO_FACTOR_VERIFY_SESSION_KEY = "temporarySession"

FLASH_SESSION_KEY = "Flash"


class Session:
    """Key-value view over an externally owned session mapping."""

    def __init__(self, store: MutableMapping[str, Any] | None = None):
        self._store = store if store is not None else {}

    def get(self, key: str, default: Any = None) -> Any:
        return self._store.get(key, default)

    def check(self, key: str) -> bool:
        return key in self._store

    def write(self, key: str, value: Any) -> None:
        self._store[key] = value

    def delete(self, key: str) -> None:
        """Remove one key. Missing keys are ignored."""
        self._store.pop(key, None)

    def destroy(self) -> None:
        """Drop everything stored in the session."""
        self._store.clear()

    def __contains__(self, key: str) -> bool:
        return self.check(key)


class Flash:
    """
    User-visible notifications queued in the session.

    Messages survive a session destroy that happened before they were
    queued, so a logout notice reaches the next page.
    """

    def __init__(self, session: Session):
        self.session = session

    def set(self, message: str, kind: str = "info") -> None:
        messages = list(self.session.get(FLASH_SESSION_KEY) or [])
        messages.append({"type": kind, "message": message})
        self.session.write(FLASH_SESSION_KEY, messages)

    def success(self, message: str) -> None:
        self.set(message, "success")

    def error(self, message: str) -> None:
        self.set(message, "error")

    def consume(self) -> list[dict[str, str]]:
        """Return and clear pending messages."""
        messages = list(self.session.get(FLASH_SESSION_KEY) or [])
        self.session.delete(FLASH_SESSION_KEY)
        return messages
