"""
Tests for the URL authorization gate and component startup.
"""

import pytest

from usersauth.auth.allowlist import DEFAULT_ALLOWED_ACTIONS
from usersauth.auth.component import SOCIAL_LOGIN, UsersAuthComponent
from usersauth.auth.policies import Authentication, SessionAuthentication
from usersauth.auth.routing import UnresolvableRouteError
from usersauth.config import BadConfigurationError, Settings
from usersauth.core.events import EventName


class CountingAuthentication(Authentication):
    """Authentication that counts how often it is consulted."""

    def __init__(self, identity=None, decision=True):
        self.identity = identity
        self.decision = decision
        self.identity_calls = 0
        self.requests = []

    def current_identity(self):
        self.identity_calls += 1
        return self.identity

    def is_authorized(self, identity, request):
        self.requests.append(request)
        return self.decision

    def login(self, identity):
        self.identity = identity

    def logout(self):
        self.identity = None
        return "/users/login"


# =============================================================================
# is_url_authorized
# =============================================================================


class TestIsUrlAuthorized:
    @pytest.mark.parametrize("action", DEFAULT_ALLOWED_ACTIONS)
    def test_public_actions_anonymous(self, component, ctx, action):
        assert component.is_url_authorized(f"/users/{action}", ctx) is True

    @pytest.mark.parametrize("action", DEFAULT_ALLOWED_ACTIONS)
    def test_public_actions_logged_in(self, component, ctx, log_in, alice, authorizer, action):
        log_in(alice)
        authorizer.decision = False

        assert component.is_url_authorized(f"/users/{action}", ctx) is True
        assert authorizer.calls == []

    def test_public_action_case_insensitive(self, component, ctx):
        assert component.is_url_authorized("/pages/VERIFY", ctx) is True

    def test_public_action_skips_identity_lookup(self, component, ctx):
        ctx.authentication = CountingAuthentication()

        assert component.is_url_authorized("/users/login", ctx) is True
        assert ctx.authentication.identity_calls == 0

    @pytest.mark.parametrize("url", ["/users/profile", "/articles", "/articles/edit/1"])
    def test_anonymous_denied(self, component, ctx, authorizer, url):
        assert component.is_url_authorized(url, ctx) is False
        assert authorizer.calls == []

    @pytest.mark.parametrize("decision", [True, False])
    def test_logged_in_follows_policy(self, component, ctx, log_in, alice, authorizer, decision):
        log_in(alice)
        authorizer.decision = decision

        assert component.is_url_authorized("/articles/edit/3", ctx) is decision

        identity, request = authorizer.calls[0]
        assert identity == alice
        assert request.url == "/articles/edit/3"
        assert request.controller == "Articles"
        assert request.action == "edit"
        assert request.params.params == {"id": "3"}

    def test_unresolvable_internal_url_raises(self, component, ctx, log_in, alice):
        log_in(alice)

        with pytest.raises(UnresolvableRouteError) as exc_info:
            component.is_url_authorized("/admin/secret", ctx)

        assert exc_info.value.is_internal

    def test_unresolvable_external_url_allowed(self, component, ctx, authorizer):
        assert component.is_url_authorized("http://external.example.com/page", ctx) is True
        assert authorizer.calls == []

    def test_own_absolute_url(self, component, ctx):
        with pytest.raises(UnresolvableRouteError):
            component.is_url_authorized("http://app.example.com/admin/secret", ctx)
        assert component.is_url_authorized("http://app.example.com/users/login", ctx) is True

    @pytest.mark.parametrize(
        "url",
        [
            "http://app.example.com:80/users/profile",
            "http://user@app.example.com/users/profile",
            "https://app.example.com:443/articles",
        ],
    )
    def test_own_host_variants_are_checked(self, component, ctx, authorizer, url):
        assert component.is_url_authorized(url, ctx) is False
        assert authorizer.calls == []

    def test_own_host_with_default_port_fails_loudly(self, component, ctx):
        with pytest.raises(UnresolvableRouteError) as exc_info:
            component.is_url_authorized("http://app.example.com:80/admin/secret", ctx)

        assert exc_info.value.is_internal

    @pytest.mark.parametrize("url", ["", None, {}])
    def test_empty_url_denied(self, component, ctx, url):
        assert component.is_url_authorized(url, ctx) is False

    def test_descriptor(self, component, ctx, log_in, alice, authorizer):
        log_in(alice)

        assert component.is_url_authorized({"controller": "Articles", "action": "edit", "id": 8}, ctx)
        assert authorizer.calls[0][1].url == "/articles/edit/8"

    def test_descriptor_defaults_to_current_controller(self, component, ctx):
        assert component.is_url_authorized({"action": "register"}, ctx) is True

    def test_allow_list_follows_current_controller(self, events, ctx):
        settings = Settings(_env_file=None, allow_scope="Users")
        component = UsersAuthComponent(events, settings).initialize()
        ctx.controller = "Articles"

        assert component.is_url_authorized("/users/login", ctx) is False

    def test_no_authorizers_denies(self, component, ctx, session, log_in, alice):
        ctx.authentication = SessionAuthentication(session, [])
        log_in(alice)

        assert component.is_url_authorized("/articles", ctx) is False


# =============================================================================
# IS_AUTHORIZED event
# =============================================================================


class TestIsAuthorizedEvent:
    def test_answers_through_event(self, component, ctx, log_in, alice):
        log_in(alice)

        result = ctx.dispatch(EventName.IS_AUTHORIZED, {"url": "/articles"})

        assert result.value is True

    def test_anonymous_through_event(self, component, ctx):
        assert ctx.dispatch(EventName.IS_AUTHORIZED, {"url": "/articles"}).value is False

    def test_resolution_error_propagates(self, component, ctx):
        with pytest.raises(UnresolvableRouteError):
            ctx.dispatch(EventName.IS_AUTHORIZED, {"url": "/admin/secret"})

    def test_needs_request_context(self, component, events):
        with pytest.raises(TypeError):
            events.dispatch(EventName.IS_AUTHORIZED, {"url": "/articles"})

    def test_subscribed_once(self, component, events):
        component.initialize()

        assert len(events.listeners(EventName.IS_AUTHORIZED)) == 1

    def test_shutdown(self, component, events):
        component.shutdown()

        assert not component.initialized
        assert events.listeners(EventName.IS_AUTHORIZED) == []


# =============================================================================
# Startup
# =============================================================================


class TestInitialize:
    def test_email_validation_without_email_fails(self, events):
        settings = Settings(_env_file=None, email_required=False, email_validate=True)

        with pytest.raises(BadConfigurationError):
            UsersAuthComponent(events, settings).initialize()

        assert events.listeners(EventName.IS_AUTHORIZED) == []

    def test_email_validation_with_email(self, events):
        settings = Settings(_env_file=None, email_required=True, email_validate=True)

        assert UsersAuthComponent(events, settings).initialize().initialized

    def test_optional_collaborators(self, events):
        settings = Settings(_env_file=None, social_login=True, remember_me=True, second_factor=False)
        built = []

        component = UsersAuthComponent(
            events,
            settings,
            collaborators={"remember_me": lambda c: built.append(c) or "cookie-login"},
        ).initialize()

        assert component.authenticators == ["form", SOCIAL_LOGIN]
        assert component.loaded == {SOCIAL_LOGIN: True, "remember_me": "cookie-login"}
        assert built == [component]

    def test_no_collaborators_by_default(self, component):
        assert component.authenticators == ["form"]
        assert component.loaded == {}

    def test_custom_allowed_actions(self, events, ctx):
        settings = Settings(_env_file=None, allowed_actions=["index"])
        component = UsersAuthComponent(events, settings).initialize()

        assert component.is_url_authorized("/articles", ctx) is True
        assert component.is_url_authorized("/users/profile", ctx) is False
