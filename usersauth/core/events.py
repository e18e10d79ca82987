"""
Event system for the users auth package.

Workflows announce what they are about to do (or just did) and let
listeners steer them. Dispatch is synchronous: listeners run one after
another in subscription order, and the first one that answers with a
redirect target stops the dispatch.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field, fields
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Union

from usersauth.core.models import Identity
from usersauth.core.utils import generate_id, utc_now

logger = logging.getLogger(__name__)

RedirectTarget = Union[str, Mapping[str, Any]]

# A listener may answer with an EventResult, a bare redirect target,
# any other value (kept as the result value) or None.
EventHandler = Callable[["Event"], Any]


class EventName(str, Enum):
    """Every event this package dispatches."""

    IS_AUTHORIZED = "Users.Component.UsersAuth.isAuthorized"
    BEFORE_LOGIN = "Users.Component.UsersAuth.beforeLogin"
    AFTER_LOGIN = "Users.Component.UsersAuth.afterLogin"
    FAILED_SOCIAL_LOGIN = "Users.Component.UsersAuth.failedSocialLogin"
    AFTER_COOKIE_LOGIN = "Users.Component.UsersAuth.afterCookieLogin"
    BEFORE_REGISTER = "Users.Component.UsersAuth.beforeRegister"
    AFTER_REGISTER = "Users.Component.UsersAuth.afterRegister"
    BEFORE_LOGOUT = "Users.Component.UsersAuth.beforeLogout"
    AFTER_LOGOUT = "Users.Component.UsersAuth.afterLogout"


# =============================================================================
# Payloads
# =============================================================================


@dataclass(frozen=True)
class EmptyPayload:
    """Payload of events that carry nothing but their name."""


@dataclass(frozen=True)
class UrlPayload:
    """Payload of IS_AUTHORIZED: a URL string or a route descriptor."""

    url: RedirectTarget | None = None


@dataclass(frozen=True)
class IdentityPayload:
    """Payload of the logout events: who is (or was) logged in."""

    identity: Identity = field(default_factory=Identity.anonymous)


EVENT_PAYLOADS: dict[EventName, type] = {
    EventName.IS_AUTHORIZED: UrlPayload,
    EventName.BEFORE_LOGIN: EmptyPayload,
    EventName.AFTER_LOGIN: EmptyPayload,
    EventName.FAILED_SOCIAL_LOGIN: EmptyPayload,
    EventName.AFTER_COOKIE_LOGIN: EmptyPayload,
    EventName.BEFORE_REGISTER: EmptyPayload,
    EventName.AFTER_REGISTER: EmptyPayload,
    EventName.BEFORE_LOGOUT: IdentityPayload,
    EventName.AFTER_LOGOUT: IdentityPayload,
}


def build_payload(name: EventName, payload: Any = None) -> Any:
    """
    Coerce `payload` into the payload type bound to `name`.

    Accepts None (default payload), a mapping of field values, or an
    instance of the right type. Anything else is a TypeError.
    """
    payload_type = EVENT_PAYLOADS[name]
    if payload is None:
        return payload_type()
    if isinstance(payload, payload_type):
        return payload
    if isinstance(payload, Mapping):
        known = {f.name for f in fields(payload_type)}
        unknown = set(payload) - known
        if unknown:
            raise TypeError(f"{name.name} payload has no field(s) {sorted(unknown)}")
        return payload_type(**payload)
    raise TypeError(
        f"{name.name} expects {payload_type.__name__}, got {type(payload).__name__}"
    )


# =============================================================================
# Event + Result
# =============================================================================


@dataclass(frozen=True)
class Event:
    """
    An event being dispatched.

    `subject` is whatever dispatched it, usually the request context,
    so listeners can reach the session or router of the current request.
    """

    name: EventName
    payload: Any = None
    subject: Any = None

    # Tracing
    id: str = field(default_factory=lambda: generate_id("evt"))
    timestamp: datetime = field(default_factory=utc_now)

    def __post_init__(self):
        object.__setattr__(self, "payload", build_payload(self.name, self.payload))

    def to_dict(self) -> dict[str, Any]:
        """Serialize event to dictionary (the subject is left out)."""
        payload = {f.name: getattr(self.payload, f.name) for f in fields(self.payload)}
        if isinstance(payload.get("identity"), Identity):
            payload["identity"] = payload["identity"].model_dump()
        return {
            "id": self.id,
            "name": self.name.value,
            "payload": payload,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class EventResult:
    """
    Outcome of a dispatch.

    A non-empty `redirect` tells the caller to go there instead of
    carrying on with its default flow. `value` holds the last non-redirect
    answer a listener gave (e.g. the boolean of IS_AUTHORIZED).
    """

    redirect: RedirectTarget | None = None
    value: Any = None
    stopped: bool = False

    @property
    def has_redirect(self) -> bool:
        return bool(self.redirect)

    @classmethod
    def from_handler(cls, answer: Any) -> EventResult | None:
        """Normalize whatever a listener returned."""
        if answer is None or isinstance(answer, EventResult):
            return answer
        if isinstance(answer, (str, Mapping)):
            # An empty target means "no opinion"
            return cls(redirect=answer) if answer else None
        return cls(value=answer)


@dataclass
class Subscription:
    """A listener registered for one event name."""

    name: EventName
    handler: EventHandler


# =============================================================================
# Event manager
# =============================================================================


class EventManager:
    """
    In-process, synchronous event dispatcher.

    Listener errors are not caught here: a failing listener aborts the
    dispatch and the error reaches whoever dispatched. Events are not
    retained after dispatch.
    """

    def __init__(self):
        self._subscriptions: dict[EventName, list[Subscription]] = {
            name: [] for name in EventName
        }

    def subscribe(self, name: EventName | str, handler: EventHandler) -> Subscription:
        """
        Register `handler` for `name`.

        Returns:
            The subscription object (can be used to unsubscribe)
        """
        subscription = Subscription(name=EventName(name), handler=handler)
        self._subscriptions[subscription.name].append(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        """Remove a subscription."""
        listeners = self._subscriptions[subscription.name]
        if subscription in listeners:
            listeners.remove(subscription)

    def listeners(self, name: EventName | str) -> list[EventHandler]:
        return [s.handler for s in self._subscriptions[EventName(name)]]

    def dispatch(
        self,
        name: EventName | str,
        payload: Any = None,
        subject: Any = None,
    ) -> EventResult:
        """
        Dispatch an event and return the combined result of its listeners.

        The first listener answering with a redirect target wins; the
        listeners after it never run.
        """
        event = Event(name=EventName(name), payload=payload, subject=subject)

        result = EventResult()
        for subscription in list(self._subscriptions[event.name]):
            answer = EventResult.from_handler(subscription.handler(event))
            if answer is None:
                continue
            if answer.has_redirect:
                logger.debug(f"{event.name.name} short-circuited by {subscription.handler!r}")
                return EventResult(redirect=answer.redirect, value=answer.value, stopped=True)
            if answer.stopped:
                return EventResult(value=answer.value, stopped=True)
            if answer.value is not None:
                result.value = answer.value

        return result
