"""
Login, social login and logout.

LoginController only picks the right login workflow and runs the logout
sequence. Credential checks belong to the workflow's `identify`
callable, which the host provides (form post, social provider, ...).

Logout sequence:

    INITIATED            capture the identity (anonymous marker if none)
    BEFORE_LOGOUT_EVENT  a redirect here cancels the logout -> SHORT_CIRCUIT
    SESSION_DESTROYED    session dropped, success notice queued
    AFTER_LOGOUT_EVENT   a redirect here picks the page   -> REDIRECT_CUSTOM
                         otherwise the authentication layer's target
                                                          -> REDIRECT_DEFAULT
"""

from __future__ import annotations

import logging
from typing import Callable

from usersauth.auth.context import RequestContext
from usersauth.auth.session import TWO_FACTOR_VERIFY_SESSION_KEY
from usersauth.auth.users import UsersRepository
from usersauth.core.events import EventName, EventResult, IdentityPayload
from usersauth.core.models import Identity, LoginResult, LogoutOutcome, LogoutState

logger = logging.getLogger(__name__)

# Turns the incoming request into an identity, None when it does not check out
Identify = Callable[[RequestContext], "Identity | None"]

LOGIN_VIEW = "login"


class SocialLoginDisabled(LookupError):
    """Social login was requested but is not enabled."""
    pass


# =============================================================================
# Login workflow
# =============================================================================


class LoginWorkflow:
    """
    One way of logging in (form or social).

    Owns the BEFORE_LOGIN / AFTER_LOGIN / FAILED_SOCIAL_LOGIN events and
    the final result.
    """

    def __init__(self, ctx: RequestContext, identify: Identify, users: UsersRepository):
        self.ctx = ctx
        self.identify = identify
        self.users = users

    def handle_login(self, error_only_post: bool, is_social: bool) -> LoginResult:
        """
        Run the login.

        Args:
            error_only_post: only try to identify on POST; other methods
                just render the login form
            is_social: the identity comes from a social provider
        """
        before = self.ctx.dispatch(EventName.BEFORE_LOGIN)
        if before.has_redirect:
            return self._redirect(before)

        if error_only_post and not self.ctx.is_post:
            return LoginResult.render(LOGIN_VIEW)

        identity = self.identify(self.ctx)
        if identity is not None and is_social:
            identity = self._find_or_create(identity)

        if identity is None or not identity.active:
            return self._failed(is_social)
        return self._succeeded(identity)

    def _succeeded(self, identity: Identity) -> LoginResult:
        settings = self.ctx.settings
        if settings.second_factor:
            # Parked until the second factor is verified
            self.ctx.session.write(TWO_FACTOR_VERIFY_SESSION_KEY, identity.model_dump())
            return LoginResult.redirect_to(settings.verify_action)

        self.ctx.authentication.login(identity)
        logger.info(f"User {identity.id} logged in")

        after = self.ctx.dispatch(EventName.AFTER_LOGIN)
        if after.has_redirect:
            return self._redirect(after)
        return LoginResult.redirect_to(settings.login_redirect)

    def _failed(self, is_social: bool) -> LoginResult:
        if is_social:
            failed = self.ctx.dispatch(EventName.FAILED_SOCIAL_LOGIN)
            if failed.has_redirect:
                return self._redirect(failed)
            self.ctx.flash.error("Could not proceed with social account. Please try again")
            return LoginResult.redirect_to(self.ctx.settings.login_action)

        message = "Username or password is incorrect"
        self.ctx.flash.error(message)
        return LoginResult.render(LOGIN_VIEW, message, status_code=401)

    def _find_or_create(self, identity: Identity) -> Identity:
        """Link a social identity to a known account, or record a new one."""
        existing = self.users.find_by_email(identity.email) if identity.email else None
        if existing is None and identity.id:
            existing = self.users.get(identity.id)
        if existing is not None:
            return existing
        return self.users.save(identity)

    def _redirect(self, result: EventResult) -> LoginResult:
        return LoginResult.redirect_to(self.ctx.redirect_url(result.redirect))


class LoginWorkflowLoader:
    """Builds the form or social workflow for a request."""

    def __init__(self, form_identify: Identify, social_identify: Identify | None = None):
        self.form_identify = form_identify
        self.social_identify = social_identify

    def for_form(self, ctx: RequestContext, users: UsersRepository) -> LoginWorkflow:
        return LoginWorkflow(ctx, self.form_identify, users)

    def for_social(self, ctx: RequestContext, users: UsersRepository) -> LoginWorkflow:
        if not ctx.settings.social_login or self.social_identify is None:
            raise SocialLoginDisabled("Social login is not enabled")
        return LoginWorkflow(ctx, self.social_identify, users)


# =============================================================================
# Controller
# =============================================================================


class LoginController:
    """
    Login, social login and logout for one request.

    Usage:
        controller = LoginController(ctx, loader, users)
        outcome = controller.logout()
        return RedirectResponse(outcome.redirect)
    """

    def __init__(
        self,
        ctx: RequestContext,
        workflows: LoginWorkflowLoader,
        users: UsersRepository,
    ):
        self.ctx = ctx
        self.workflows = workflows
        self.users = users
        self.state: LogoutState | None = None

    def social_login(self) -> LoginResult:
        """
        Raises:
            SocialLoginDisabled: social login is off
        """
        return self.workflows.for_social(self.ctx, self.users).handle_login(False, True)

    def login(self) -> LoginResult:
        # A fresh form login never continues a pending second-factor check
        self.ctx.session.delete(TWO_FACTOR_VERIFY_SESSION_KEY)
        return self.workflows.for_form(self.ctx, self.users).handle_login(True, False)

    def logout(self) -> LogoutOutcome:
        self.state = LogoutState.INITIATED
        identity = self.ctx.identity_gate.current_identity() or Identity.anonymous()
        payload = IdentityPayload(identity=identity)

        self.state = LogoutState.BEFORE_LOGOUT_EVENT
        before = self.ctx.dispatch(EventName.BEFORE_LOGOUT, payload)
        if before.has_redirect:
            logger.info(f"Logout of {identity.id} cancelled by a before-logout listener")
            return self._finish(LogoutState.SHORT_CIRCUIT, before.redirect, identity)

        self.ctx.session.destroy()
        self.state = LogoutState.SESSION_DESTROYED
        self.ctx.flash.success("You've successfully logged out")

        self.state = LogoutState.AFTER_LOGOUT_EVENT
        after = self.ctx.dispatch(EventName.AFTER_LOGOUT, payload)
        if after.has_redirect:
            return self._finish(LogoutState.REDIRECT_CUSTOM, after.redirect, identity)

        return self._finish(LogoutState.REDIRECT_DEFAULT, self.ctx.authentication.logout(), identity)

    def _finish(self, state: LogoutState, target, identity: Identity) -> LogoutOutcome:
        self.state = state
        return LogoutOutcome(state=state, redirect=self.ctx.redirect_url(target), identity=identity)
