"""
Authorization gate and login/logout workflow.

Design principles:
1. Every request gets an explicit RequestContext, no globals
2. Public actions are an allow-list, everything else asks a policy
3. Unknown internal URLs are errors, never silently allowed or denied
4. Workflows expose before/after events that can redirect
"""

from usersauth.auth.allowlist import AllowList, DEFAULT_ALLOWED_ACTIONS
from usersauth.auth.component import UsersAuthComponent
from usersauth.auth.context import RequestContext
from usersauth.auth.delegate import AuthorizationDelegate
from usersauth.auth.identity import IdentityGate
from usersauth.auth.login import (
    LoginController,
    LoginWorkflow,
    LoginWorkflowLoader,
    SocialLoginDisabled,
)
from usersauth.auth.policies import (
    Authentication,
    Authorizer,
    PermissionRule,
    RbacPolicy,
    SessionAuthentication,
)
from usersauth.auth.routing import (
    RouteNotFound,
    RouteResolver,
    Router,
    StarletteRouter,
    UnresolvableRouteError,
)
from usersauth.auth.session import (
    AUTH_SESSION_KEY,
    TWO_FACTOR_VERIFY_SESSION_KEY,
    Flash,
    Session,
)
from usersauth.auth.users import InMemoryUsers, UsersRepository

__all__ = [
    # Main interface
    "UsersAuthComponent",
    "LoginController",
    "RequestContext",
    # Gates
    "AllowList",
    "DEFAULT_ALLOWED_ACTIONS",
    "IdentityGate",
    "AuthorizationDelegate",
    # Routing
    "Router",
    "StarletteRouter",
    "RouteResolver",
    "RouteNotFound",
    "UnresolvableRouteError",
    # Policies
    "Authentication",
    "Authorizer",
    "SessionAuthentication",
    "RbacPolicy",
    "PermissionRule",
    # Login
    "LoginWorkflow",
    "LoginWorkflowLoader",
    "SocialLoginDisabled",
    # Session
    "Session",
    "Flash",
    "AUTH_SESSION_KEY",
    "TWO_FACTOR_VERIFY_SESSION_KEY",
    # Users
    "UsersRepository",
    "InMemoryUsers",
]
