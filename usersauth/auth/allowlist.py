"""
Actions reachable without logging in.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from usersauth.core.models import RouteMatch
from usersauth.core.utils import lower_all

WILDCARD_SCOPE = "*"

DEFAULT_ALLOWED_ACTIONS: tuple[str, ...] = (
    "register",
    "validateEmail",
    "resendTokenValidation",
    "login",
    "twitterLogin",
    "socialEmail",
    "resetPassword",
    "requestResetPassword",
    "changePassword",
    "endpoint",
    "authenticated",
    "verify",
)


class AllowList:
    """
    Per-controller sets of public actions.

    Scopes and action names are compared case-insensitively. A controller
    without its own entry uses the wildcard scope, if one is configured.
    Built once; there is no way to change it afterwards.
    """

    def __init__(self, scopes: Mapping[str, Iterable[str]] | None = None):
        self._scopes: dict[str, frozenset[str]] = {
            scope.lower(): lower_all(actions) for scope, actions in (scopes or {}).items()
        }

    @classmethod
    def default(cls, scope: str = WILDCARD_SCOPE, actions: Iterable[str] | None = None) -> AllowList:
        return cls({scope: DEFAULT_ALLOWED_ACTIONS if actions is None else actions})

    def actions_for(self, scope: str | None) -> frozenset[str] | None:
        if scope and scope.lower() in self._scopes:
            return self._scopes[scope.lower()]
        return self._scopes.get(WILDCARD_SCOPE)

    def is_action_allowed(self, match: RouteMatch | Mapping | None, scope: str | None = None) -> bool:
        """Is the matched action public for the controller handling this request?"""
        if match is None:
            return False
        action = match.get("action") if isinstance(match, Mapping) else match.action
        if not action:
            return False
        allowed = self.actions_for(scope)
        if not allowed:
            return False
        return action.lower() in allowed

    @property
    def scopes(self) -> dict[str, frozenset[str]]:
        return dict(self._scopes)
