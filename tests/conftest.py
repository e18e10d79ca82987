"""
Shared fixtures: a small route table, a session and a request context.
"""

import pytest
from starlette.responses import PlainTextResponse
from starlette.routing import Route

from usersauth.auth.allowlist import DEFAULT_ALLOWED_ACTIONS
from usersauth.auth.component import UsersAuthComponent
from usersauth.auth.context import RequestContext
from usersauth.auth.policies import Authorizer, SessionAuthentication
from usersauth.auth.routing import StarletteRouter
from usersauth.auth.session import AUTH_SESSION_KEY, Session
from usersauth.config import Settings
from usersauth.core.events import EventManager
from usersauth.core.models import Identity


def _endpoint(request):
    return PlainTextResponse("ok")


ROUTES = [
    # One route per public action
    *[Route(f"/users/{action}", _endpoint, name=f"Users:{action}") for action in DEFAULT_ALLOWED_ACTIONS],
    Route("/users/profile", _endpoint, name="Users:profile"),
    Route("/articles", _endpoint, name="Articles:index"),
    Route("/articles/edit/{id:int}", _endpoint, name="Articles:edit"),
    Route("/articles/delete/{id}", _endpoint, name="Articles:delete", methods=["POST"]),
    Route("/pages/VERIFY", _endpoint, name="Pages:VERIFY"),
]

BASE_URL = "http://app.example.com"


class RecordingAuthorizer(Authorizer):
    """Answers a fixed decision and remembers what it was asked."""

    def __init__(self, decision: bool = True):
        self.decision = decision
        self.calls = []

    def authorize(self, identity, request):
        self.calls.append((identity, request))
        return self.decision


class CountingSession(Session):
    """Session that counts destroy() calls."""

    def __init__(self, store=None):
        super().__init__(store)
        self.destroy_count = 0

    def destroy(self):
        super().destroy()
        self.destroy_count += 1


@pytest.fixture
def settings():
    return Settings(_env_file=None, base_url=BASE_URL, logout_redirect="/users/login")


@pytest.fixture
def router():
    return StarletteRouter(ROUTES, base_url=BASE_URL)


@pytest.fixture
def events():
    return EventManager()


@pytest.fixture
def store():
    """The raw session mapping, owned by the "host"."""
    return {}


@pytest.fixture
def session(store):
    return CountingSession(store)


@pytest.fixture
def authorizer():
    return RecordingAuthorizer(decision=True)


@pytest.fixture
def authentication(session, authorizer):
    return SessionAuthentication(session, [authorizer], logout_redirect="/users/login")


@pytest.fixture
def ctx(router, session, authentication, events, settings):
    return RequestContext(
        router=router,
        session=session,
        authentication=authentication,
        events=events,
        controller="Users",
        settings=settings,
    )


@pytest.fixture
def component(events, settings):
    return UsersAuthComponent(events, settings).initialize()


@pytest.fixture
def alice():
    return Identity(id="user_alice", username="alice", email="alice@example.com", role="user")


@pytest.fixture
def log_in(session):
    """Put an identity in the session the way a successful login does."""
    def _log_in(identity: Identity) -> Identity:
        session.write(AUTH_SESSION_KEY, identity.model_dump())
        return identity
    return _log_in
