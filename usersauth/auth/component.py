"""
The users auth component: startup wiring and the URL authorization gate.

`is_url_authorized()` answers "may the current user open this URL?" in
a fixed order, stopping at the first decisive answer:

1. resolve the URL to a route (unknown internal URLs raise)
2. public (allow-listed) action  -> yes
3. nobody logged in              -> no
4. otherwise                     -> whatever the authorization policy says

The component also subscribes itself to IS_AUTHORIZED so templates and
other layers can ask the same question through the event manager.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Callable

from usersauth.auth.allowlist import AllowList
from usersauth.auth.context import RequestContext
from usersauth.auth.delegate import AuthorizationDelegate
from usersauth.auth.routing import RouteResolver, UnresolvableRouteError
from usersauth.config import Settings, get_settings, validate_config
from usersauth.core.events import Event, EventManager, EventName, EventResult, Subscription
from usersauth.core.models import RouteMatch

logger = logging.getLogger(__name__)

# Names under which hosts can hand in factories for optional collaborators
SOCIAL_LOGIN = "social"
REMEMBER_ME = "remember_me"
SECOND_FACTOR = "second_factor"

CollaboratorFactory = Callable[["UsersAuthComponent"], Any]


class UsersAuthComponent:
    """
    Authorization gate for a users application.

    Usage:
        component = UsersAuthComponent(events, settings).initialize()
        if component.is_url_authorized("/articles/add", ctx):
            ...
    """

    EVENT_IS_AUTHORIZED = EventName.IS_AUTHORIZED
    EVENT_BEFORE_LOGIN = EventName.BEFORE_LOGIN
    EVENT_AFTER_LOGIN = EventName.AFTER_LOGIN
    EVENT_FAILED_SOCIAL_LOGIN = EventName.FAILED_SOCIAL_LOGIN
    EVENT_AFTER_COOKIE_LOGIN = EventName.AFTER_COOKIE_LOGIN
    EVENT_BEFORE_REGISTER = EventName.BEFORE_REGISTER
    EVENT_AFTER_REGISTER = EventName.AFTER_REGISTER
    EVENT_BEFORE_LOGOUT = EventName.BEFORE_LOGOUT
    EVENT_AFTER_LOGOUT = EventName.AFTER_LOGOUT

    def __init__(
        self,
        events: EventManager,
        settings: Settings | None = None,
        collaborators: Mapping[str, CollaboratorFactory] | None = None,
    ):
        self.events = events
        self.settings = settings or get_settings()
        self.collaborators = dict(collaborators or {})

        self.allow_list = AllowList()
        self.authenticators: list[str] = ["form"]
        self.loaded: dict[str, Any] = {}
        self._subscription: Subscription | None = None

    @property
    def initialized(self) -> bool:
        return self._subscription is not None

    # =========================================================================
    # Startup
    # =========================================================================

    def initialize(self) -> UsersAuthComponent:
        """
        Validate settings, build the allow-list, load optional collaborators
        and start answering IS_AUTHORIZED.

        Raises:
            BadConfigurationError: the settings cannot work together
        """
        validate_config(self.settings)
        self._init_auth()

        if self.settings.social_login:
            self._load_social_login()
        if self.settings.remember_me:
            self._load(REMEMBER_ME)
        if self.settings.second_factor:
            self._load(SECOND_FACTOR)

        self._attach_permission_checker()
        return self

    def _init_auth(self) -> None:
        self.allow_list = AllowList.default(
            self.settings.allow_scope,
            self.settings.allowed_actions,
        )

    def _load_social_login(self) -> None:
        if SOCIAL_LOGIN not in self.authenticators:
            self.authenticators.append(SOCIAL_LOGIN)
        self._load(SOCIAL_LOGIN)

    def _load(self, name: str) -> None:
        factory = self.collaborators.get(name)
        self.loaded[name] = factory(self) if factory else True
        logger.info(f"Loaded {name} collaborator")

    def _attach_permission_checker(self) -> None:
        if self._subscription is None:
            self._subscription = self.events.subscribe(
                EventName.IS_AUTHORIZED, self._on_is_authorized
            )

    def shutdown(self) -> None:
        """Stop answering IS_AUTHORIZED."""
        if self._subscription is not None:
            self.events.unsubscribe(self._subscription)
            self._subscription = None

    # =========================================================================
    # Authorization gate
    # =========================================================================

    def _on_is_authorized(self, event: Event) -> EventResult:
        if not isinstance(event.subject, RequestContext):
            raise TypeError("IS_AUTHORIZED must be dispatched with a RequestContext subject")
        return EventResult(value=self.is_url_authorized(event.payload.url, event.subject))

    def is_url_authorized(self, url: str | Mapping[str, Any] | None, ctx: RequestContext) -> bool:
        """
        Check if a given url is authorized for the current request.

        Raises:
            UnresolvableRouteError: an internal URL matched no route
        """
        if not url:
            return False

        resolver = RouteResolver(ctx.router)
        try:
            request_url, match = resolver.resolve_request(url, ctx.controller)
        except UnresolvableRouteError as exc:
            if exc.is_internal:
                raise
            logger.debug(f"External url '{url}' is not ours to guard, authorized")
            return True

        if self.is_action_allowed(match, ctx):
            logger.debug(f"{match.controller}:{match.action} is public")
            return True

        identity = ctx.identity_gate.current_identity()
        if identity is None:
            return False

        return AuthorizationDelegate(ctx.authentication).delegate(match, request_url, identity)

    def is_action_allowed(self, match: RouteMatch, ctx: RequestContext) -> bool:
        """Is the action public for the controller of this request?"""
        return self.allow_list.is_action_allowed(match, ctx.controller)
