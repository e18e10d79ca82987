"""
Core module - data models and infrastructure shared by the auth package.

This module contains:
- models: Identity, RouteMatch and workflow result models
- events: Typed, synchronous event dispatch
- utils: Shared utility functions
"""

from usersauth.core.models import (
    Identity,
    RouteMatch,
    SyntheticRequest,
    LoginResult,
    LogoutState,
    LogoutOutcome,
)

from usersauth.core.events import (
    Event,
    EventName,
    EventResult,
    EventManager,
    EmptyPayload,
    UrlPayload,
    IdentityPayload,
)

from usersauth.core.utils import (
    generate_id,
    utc_now,
)

__all__ = [
    # Models
    "Identity",
    "RouteMatch",
    "SyntheticRequest",
    "LoginResult",
    "LogoutState",
    "LogoutOutcome",
    # Events
    "Event",
    "EventName",
    "EventResult",
    "EventManager",
    "EmptyPayload",
    "UrlPayload",
    "IdentityPayload",
    # Utils
    "generate_id",
    "utc_now",
]
