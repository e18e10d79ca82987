"""
Core data models for the users auth package.

These models are the shapes that flow between the authorization gate,
the login/logout workflow, and the host application. None of them is
mutated once built.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


# =============================================================================
# Identity
# =============================================================================


class Identity(BaseModel):
    """
    The authenticated principal of a request.

    Hosts may attach any extra fields (they are kept as-is), the core
    only ever reads `id` and `role`.
    """

    model_config = ConfigDict(extra="allow", frozen=True)

    id: str | None = None
    username: str | None = None
    email: str | None = None
    role: str = "user"
    active: bool = True

    @property
    def is_anonymous(self) -> bool:
        return self.id is None

    @classmethod
    def anonymous(cls) -> Identity:
        """The empty marker used when no one is logged in."""
        return cls(role="anonymous", active=False)


# =============================================================================
# Routing
# =============================================================================


class RouteMatch(BaseModel):
    """A URL resolved to the controller/action that would handle it."""

    model_config = ConfigDict(frozen=True)

    controller: str = ""
    action: str = Field(min_length=1)
    params: dict[str, str] = Field(default_factory=dict)

    @field_validator("params", mode="before")
    @classmethod
    def _stringify_params(cls, value: Any) -> dict[str, str]:
        # Path convertors hand back ints, uuids, paths...
        return {str(k): str(v) for k, v in dict(value or {}).items()}

    def to_dict(self) -> dict[str, Any]:
        return {"controller": self.controller, "action": self.action, **self.params}


class SyntheticRequest(BaseModel):
    """
    Minimal request handed to an authorization policy.

    It carries only what a policy needs to decide: the URL as the caller
    gave it and the route it resolves to.
    """

    model_config = ConfigDict(frozen=True)

    url: str
    params: RouteMatch

    @property
    def controller(self) -> str:
        return self.params.controller

    @property
    def action(self) -> str:
        return self.params.action


# =============================================================================
# Workflow results
# =============================================================================


class LoginResult(BaseModel):
    """What a login workflow hands back: a redirect or a view to render."""

    redirect: str | None = None
    view: str | None = None
    status_code: int = 200
    messages: list[str] = Field(default_factory=list)

    @property
    def is_redirect(self) -> bool:
        return self.redirect is not None

    @classmethod
    def redirect_to(cls, url: str) -> LoginResult:
        return cls(redirect=url, status_code=302)

    @classmethod
    def render(cls, view: str, *messages: str, status_code: int = 200) -> LoginResult:
        return cls(view=view, messages=list(messages), status_code=status_code)


class LogoutState(str, Enum):
    """Steps of the logout workflow. The last three are terminal."""

    INITIATED = "initiated"
    BEFORE_LOGOUT_EVENT = "before_logout_event"
    SESSION_DESTROYED = "session_destroyed"
    AFTER_LOGOUT_EVENT = "after_logout_event"
    SHORT_CIRCUIT = "short_circuit"  # before hook redirected, session kept
    REDIRECT_CUSTOM = "redirect_custom"  # after hook picked the destination
    REDIRECT_DEFAULT = "redirect_default"  # authentication layer's logout target


class LogoutOutcome(BaseModel):
    """Terminal state of a logout plus where to send the user."""

    state: LogoutState
    redirect: str
    identity: Identity

    @property
    def session_destroyed(self) -> bool:
        return self.state != LogoutState.SHORT_CIRCUIT
