"""
Hand-off from the authorization gate to the host's authorization policy.
"""

from __future__ import annotations

from usersauth.auth.policies import Authentication
from usersauth.core.models import Identity, RouteMatch, SyntheticRequest


class AuthorizationDelegate:
    """
    Adapts a resolved URL to what an authorization policy expects.

    There is no policy logic here: the decision is entirely the
    Authentication object's.
    """

    def __init__(self, authentication: Authentication):
        self.authentication = authentication

    def delegate(
        self,
        match: RouteMatch,
        original_url: str,
        identity: Identity | None = None,
    ) -> bool:
        request = SyntheticRequest(url=original_url, params=match)
        return self.authentication.is_authorized(identity, request)
