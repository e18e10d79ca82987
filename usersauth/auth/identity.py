"""
Who is making the current request.
"""

from __future__ import annotations

from usersauth.auth.policies import Authentication
from usersauth.core.models import Identity


class IdentityGate:
    """Read-only access to the identity of the current request."""

    def __init__(self, authentication: Authentication):
        self.authentication = authentication

    def current_identity(self) -> Identity | None:
        """The logged-in identity, or None for an anonymous request."""
        return self.authentication.current_identity()
