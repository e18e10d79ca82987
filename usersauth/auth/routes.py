# =============================================================================
# Users API Routes
# =============================================================================
#
# Endpoints (route names in parentheses are what the authorization gate
# resolves URLs to):
#   GET|POST /users/login                    (Users:login)
#   GET      /users/social-login/{provider}  (Users:socialLogin)
#   GET      /users/logout                   (Users:logout)
#   GET      /users/verify                   (Users:verify)
#   GET      /users/profile                  (Users:profile)      - guarded
#   GET      /users/is-authorized?url=...    (Users:isAuthorized)
#
# =============================================================================

from __future__ import annotations

from dataclasses import dataclass, field

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse, RedirectResponse

from usersauth.auth.component import UsersAuthComponent
from usersauth.auth.context import RequestContext
from usersauth.auth.login import LoginController, LoginWorkflowLoader, SocialLoginDisabled
from usersauth.auth.policies import Authorizer, SessionAuthentication
from usersauth.auth.routing import Router
from usersauth.auth.session import Session
from usersauth.auth.users import UsersRepository
from usersauth.config import Settings
from usersauth.core.events import EventManager, EventName
from usersauth.core.models import LoginResult

router = APIRouter(prefix="/users", tags=["users"])

CONTROLLER = "Users"


# =============================================================================
# App State
# =============================================================================


@dataclass
class UsersAuthState:
    """Long-lived collaborators, stored on `app.state.users_auth`."""

    settings: Settings
    events: EventManager
    component: UsersAuthComponent
    router: Router
    users: UsersRepository
    workflows: LoginWorkflowLoader
    authorizers: list[Authorizer] = field(default_factory=list)


# =============================================================================
# Dependencies
# =============================================================================


def get_state(request: Request) -> UsersAuthState:
    return request.app.state.users_auth


async def get_request_context(request: Request) -> RequestContext:
    """Build the per-request context from app state and the session cookie."""
    state = get_state(request)

    data = dict(request.query_params)
    data.update(request.path_params)
    if request.method == "POST":
        content_type = request.headers.get("content-type", "")
        if content_type.startswith("application/json"):
            body = await request.json()
            if isinstance(body, dict):
                data.update(body)
        elif content_type.startswith(("application/x-www-form-urlencoded", "multipart/form-data")):
            form = await request.form()
            data.update({key: value for key, value in form.items() if isinstance(value, str)})

    session = Session(request.session)
    return RequestContext(
        router=state.router,
        session=session,
        authentication=SessionAuthentication(
            session,
            state.authorizers,
            logout_redirect=state.settings.logout_redirect,
        ),
        events=state.events,
        controller=CONTROLLER,
        method=request.method,
        data=data,
        settings=state.settings,
    )


def get_login_controller(
    request: Request,
    ctx: RequestContext = Depends(get_request_context),
) -> LoginController:
    state = get_state(request)
    return LoginController(ctx, state.workflows, state.users)


def authorize_request(
    request: Request,
    ctx: RequestContext = Depends(get_request_context),
) -> RequestContext:
    """
    Guard a route with the authorization gate.

    Anonymous users are sent to the login page, logged-in users without
    access get a 403.
    """
    component = get_state(request).component
    url = request.url.path
    if request.url.query:
        url = f"{url}?{request.url.query}"

    if component.is_url_authorized(url, ctx):
        return ctx
    if ctx.identity_gate.current_identity() is None:
        raise HTTPException(
            status_code=302,
            headers={"Location": ctx.settings.login_action},
        )
    raise HTTPException(status_code=403, detail="You are not authorized to access that location")


def _login_response(result: LoginResult) -> JSONResponse | RedirectResponse:
    if result.is_redirect:
        return RedirectResponse(result.redirect, status_code=302)
    return JSONResponse(
        {"view": result.view, "messages": result.messages},
        status_code=result.status_code,
    )


# =============================================================================
# Endpoints
# =============================================================================


@router.api_route("/login", methods=["GET", "POST"], name="Users:login")
async def login(controller: LoginController = Depends(get_login_controller)):
    """Form login. JSON body: {"username": ..., "password": ...}."""
    return _login_response(controller.login())


@router.get("/social-login/{provider}", name="Users:socialLogin")
async def social_login(provider: str, controller: LoginController = Depends(get_login_controller)):
    try:
        return _login_response(controller.social_login())
    except SocialLoginDisabled:
        raise HTTPException(status_code=404, detail="Not Found")


@router.get("/logout", name="Users:logout")
async def logout(controller: LoginController = Depends(get_login_controller)):
    outcome = controller.logout()
    return RedirectResponse(outcome.redirect, status_code=302)


@router.get("/verify", name="Users:verify")
async def verify():
    """Second-factor verification form."""
    return {"view": "verify"}


@router.get("/profile", name="Users:profile")
async def profile(ctx: RequestContext = Depends(authorize_request)):
    identity = ctx.identity_gate.current_identity()
    return identity.model_dump() if identity else {}


@router.get("/is-authorized", name="Users:isAuthorized")
async def is_authorized(url: str, ctx: RequestContext = Depends(get_request_context)):
    """
    Ask the gate about any URL, the way a view helper would.

    Unknown internal URLs end up as a 404 (see the app's error handler).
    """
    result = ctx.dispatch(EventName.IS_AUTHORIZED, {"url": url})
    return {"url": url, "authorized": bool(result.value)}
