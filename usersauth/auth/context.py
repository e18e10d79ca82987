"""
Request context - everything the auth code needs for one request.

Instead of reaching for the "current controller" or a global session,
every gate and workflow gets this object. It is built per request by
the HTTP layer (or by hand in tests and scripts).
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from usersauth.auth.identity import IdentityGate
from usersauth.auth.policies import Authentication
from usersauth.auth.routing import Router
from usersauth.auth.session import Flash, Session
from usersauth.config import Settings, get_settings
from usersauth.core.events import EventManager, EventName, EventResult, RedirectTarget


@dataclass
class RequestContext:
    """
    Collaborators of a single request.

    Usage:
        ctx = RequestContext(router=router, session=session,
                             authentication=auth, events=events)
        component.is_url_authorized("/articles/edit/1", ctx)
    """

    router: Router
    session: Session
    authentication: Authentication
    events: EventManager

    # Controller handling the request (selects the allow-list scope)
    controller: str = "Users"

    # Incoming request data
    method: str = "GET"
    data: dict[str, Any] = field(default_factory=dict)

    settings: Settings = field(default_factory=get_settings)
    flash: Flash | None = None

    def __post_init__(self):
        if self.flash is None:
            self.flash = Flash(self.session)

    @property
    def identity_gate(self) -> IdentityGate:
        return IdentityGate(self.authentication)

    @property
    def is_post(self) -> bool:
        return self.method.upper() == "POST"

    def dispatch(self, name: EventName, payload: Any = None) -> EventResult:
        """Dispatch an event with this context as its subject."""
        return self.events.dispatch(name, payload, subject=self)

    def redirect_url(self, target: RedirectTarget) -> str:
        """Turn a redirect target (URL or route descriptor) into a URL."""
        if isinstance(target, Mapping):
            descriptor = dict(target)
            descriptor.setdefault("controller", self.controller)
            return self.router.reverse(descriptor)
        return target
