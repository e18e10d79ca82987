"""
Authentication and authorization policies.

The authorization gate never decides by itself whether a logged-in user
may reach an action: it asks an Authentication object, which in turn
runs its configured authorizers. This module defines those interfaces
and ships two implementations:

- SessionAuthentication: identity kept in the session, any authorizer
  granting access wins
- RbacPolicy: first matching (role, controller, action) rule decides
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, Callable

from usersauth.auth.session import AUTH_SESSION_KEY, Session
from usersauth.core.models import Identity, SyntheticRequest

logger = logging.getLogger(__name__)


# =============================================================================
# Interfaces
# =============================================================================


class Authorizer(ABC):
    """Decides whether an identity may run the action of a request."""

    @abstractmethod
    def authorize(self, identity: Identity, request: SyntheticRequest) -> bool:
        pass


class Authentication(ABC):
    """
    The authentication layer of the host.

    Knows who is logged in, whether they may reach a request, and where
    to send them once logged out.
    """

    @abstractmethod
    def current_identity(self) -> Identity | None:
        pass

    @abstractmethod
    def is_authorized(self, identity: Identity | None, request: SyntheticRequest) -> bool:
        pass

    @abstractmethod
    def login(self, identity: Identity) -> None:
        """Remember `identity` as logged in."""
        pass

    @abstractmethod
    def logout(self) -> str:
        """Forget the identity and return the URL to redirect to."""
        pass


# =============================================================================
# Session-backed authentication
# =============================================================================


class SessionAuthentication(Authentication):
    """Authentication state stored under the "Auth" session key."""

    def __init__(
        self,
        session: Session,
        authorizers: Iterable[Authorizer] = (),
        logout_redirect: str = "/users/login",
    ):
        self.session = session
        self.authorizers = list(authorizers)
        self.logout_redirect = logout_redirect

    def current_identity(self) -> Identity | None:
        data = self.session.get(AUTH_SESSION_KEY)
        if not data:
            return None
        if isinstance(data, Identity):
            return data
        return Identity.model_validate(data)

    def login(self, identity: Identity) -> None:
        self.session.write(AUTH_SESSION_KEY, identity.model_dump())

    def is_authorized(self, identity: Identity | None, request: SyntheticRequest) -> bool:
        """
        Run the authorizers in order; the first one granting access wins.

        Without an explicit identity the logged-in one is used. No identity
        or no authorizers means no access.
        """
        identity = identity or self.current_identity()
        if identity is None:
            return False
        for authorizer in self.authorizers:
            if authorizer.authorize(identity, request) is True:
                logger.debug(f"{type(authorizer).__name__} granted {request.controller}:{request.action}")
                return True
        return False

    def logout(self) -> str:
        self.session.delete(AUTH_SESSION_KEY)
        return self.logout_redirect


# =============================================================================
# Role based rules
# =============================================================================


ANY = "*"


def _matches(expected: str | Iterable[str], actual: str | None) -> bool:
    if isinstance(expected, str):
        expected = [expected]
    wanted = {e.lower() for e in expected}
    return ANY in wanted or (actual or "").lower() in wanted


@dataclass
class PermissionRule:
    """
    One row of a permission table.

    `role`, `controller` and `action` take a name, a list of names or "*".
    `allowed` may be a callable for rules that need to look at the
    identity or the request params (e.g. "only your own profile").
    """

    role: str | list[str] = ANY
    controller: str | list[str] = ANY
    action: str | list[str] = ANY
    allowed: bool | Callable[[Identity, SyntheticRequest], bool] = True
    extra: dict[str, Any] = field(default_factory=dict)

    def applies_to(self, identity: Identity, request: SyntheticRequest) -> bool:
        return (
            _matches(self.role, identity.role)
            and _matches(self.controller, request.controller)
            and _matches(self.action, request.action)
        )

    def check(self, identity: Identity, request: SyntheticRequest) -> bool:
        if callable(self.allowed):
            return bool(self.allowed(identity, request))
        return self.allowed

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> PermissionRule:
        known = {"role", "controller", "action", "allowed"}
        return cls(
            **{k: v for k, v in data.items() if k in known},
            extra={k: v for k, v in data.items() if k not in known},
        )


class RbacPolicy(Authorizer):
    """
    Rule table authorizer.

    Rules are tried in order and the first one that applies decides.
    Inactive identities and requests no rule covers are denied.
    """

    def __init__(self, rules: Iterable[PermissionRule | Mapping[str, Any]] = ()):
        self.rules = [
            r if isinstance(r, PermissionRule) else PermissionRule.from_dict(r)
            for r in rules
        ]

    def authorize(self, identity: Identity, request: SyntheticRequest) -> bool:
        if not identity.active:
            return False
        for rule in self.rules:
            if rule.applies_to(identity, request):
                return rule.check(identity, request)
        return False
