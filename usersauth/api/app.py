"""
FastAPI application factory.

Wires the users auth component into an app: optional Sentry error
tracking, session cookie middleware, the /users routes, and the mapping
of unresolvable internal URLs to 404.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.middleware.sessions import SessionMiddleware

from usersauth.auth.component import CollaboratorFactory, UsersAuthComponent
from usersauth.auth.login import Identify, LoginWorkflowLoader
from usersauth.auth.policies import Authorizer
from usersauth.auth.routes import UsersAuthState, router as users_router
from usersauth.auth.routing import StarletteRouter, UnresolvableRouteError
from usersauth.auth.users import InMemoryUsers, UsersRepository
from usersauth.config import Settings, get_settings
from usersauth.core.events import EventManager
from usersauth.integrations.sentry import init_sentry

logger = logging.getLogger(__name__)


def _reject_all(ctx) -> None:
    logger.warning("No form login identifier configured, rejecting login")
    return None


async def unresolvable_route_handler(request: Request, exc: UnresolvableRouteError) -> JSONResponse:
    # Routing misconfiguration is not leaked to the client
    logger.warning(str(exc))
    return JSONResponse({"detail": "Not Found"}, status_code=404)


def create_app(
    settings: Settings | None = None,
    *,
    authorizers: Iterable[Authorizer] = (),
    users: UsersRepository | None = None,
    form_identify: Identify | None = None,
    social_identify: Identify | None = None,
    collaborators: Mapping[str, CollaboratorFactory] | None = None,
    events: EventManager | None = None,
) -> FastAPI:
    """
    Build the app.

    The component is initialized here, so bad settings stop the app from
    being created at all.

    Raises:
        BadConfigurationError: the settings cannot work together
    """
    settings = settings or get_settings()
    events = events or EventManager()

    component = UsersAuthComponent(events, settings, collaborators).initialize()

    init_sentry(settings)

    app = FastAPI(
        title="Users Auth",
        description="Login, logout and URL authorization for users applications",
        version="0.1.0",
        debug=settings.debug,
    )
    app.add_middleware(SessionMiddleware, secret_key=settings.secret_key)
    app.add_exception_handler(UnresolvableRouteError, unresolvable_route_handler)
    app.include_router(users_router)

    app.state.users_auth = UsersAuthState(
        settings=settings,
        events=events,
        component=component,
        router=StarletteRouter(app, base_url=settings.base_url),
        users=users if users is not None else InMemoryUsers(),
        workflows=LoginWorkflowLoader(form_identify or _reject_all, social_identify),
        authorizers=list(authorizers),
    )

    logger.info(f"Users auth app created for {settings.environment}")
    return app
