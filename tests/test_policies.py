"""
Tests for session authentication, role rules and the session adapters.
"""

import pytest

from usersauth.auth.delegate import AuthorizationDelegate
from usersauth.auth.identity import IdentityGate
from usersauth.auth.policies import PermissionRule, RbacPolicy, SessionAuthentication
from usersauth.auth.session import AUTH_SESSION_KEY, Flash, Session
from usersauth.core.models import Identity, RouteMatch, SyntheticRequest


def request(controller, action, **params):
    match = RouteMatch(controller=controller, action=action, params=params)
    return SyntheticRequest(url=f"/{controller.lower()}/{action}", params=match)


@pytest.fixture
def admin():
    return Identity(id="user_admin", role="admin")


@pytest.fixture
def policy():
    return RbacPolicy([
        {"role": "admin", "controller": "*", "action": "*"},
        {"role": "user", "controller": "Articles", "action": ["index", "view"]},
        PermissionRule(
            role="user",
            controller="Users",
            action="edit",
            allowed=lambda identity, req: req.params.params.get("id") == identity.id,
        ),
        {"role": "*", "controller": "Articles", "action": "delete", "allowed": False},
    ])


class TestRbacPolicy:
    def test_admin_anything(self, policy, admin):
        assert policy.authorize(admin, request("Articles", "delete"))

    def test_listed_actions(self, policy, alice):
        assert policy.authorize(alice, request("articles", "INDEX"))
        assert policy.authorize(alice, request("Articles", "view"))

    def test_first_matching_rule_decides(self, policy, alice):
        assert not policy.authorize(alice, request("Articles", "delete"))

    def test_unmatched_denied(self, policy, alice):
        assert not policy.authorize(alice, request("Pages", "display"))

    def test_callable_rule(self, policy, alice):
        assert policy.authorize(alice, request("Users", "edit", id=alice.id))
        assert not policy.authorize(alice, request("Users", "edit", id="user_other"))

    def test_inactive_identity_denied(self, policy):
        banned = Identity(id="user_banned", role="admin", active=False)

        assert not policy.authorize(banned, request("Articles", "index"))

    def test_extra_rule_fields_kept(self):
        rule = PermissionRule.from_dict({"role": "user", "prefix": "admin"})

        assert rule.extra == {"prefix": "admin"}


class TestSessionAuthentication:
    def test_identity_from_session(self, session, log_in, alice):
        auth = SessionAuthentication(session)
        assert auth.current_identity() is None

        log_in(alice)

        assert auth.current_identity() == alice
        assert IdentityGate(auth).current_identity() == alice

    def test_first_granting_authorizer_wins(self, session, alice, policy):
        deny_all = RbacPolicy([])
        auth = SessionAuthentication(session, [deny_all, policy])

        assert auth.is_authorized(alice, request("Articles", "index"))
        assert not SessionAuthentication(session, [deny_all]).is_authorized(alice, request("Articles", "index"))

    def test_falls_back_to_session_identity(self, session, log_in, alice, policy):
        auth = SessionAuthentication(session, [policy])
        assert not auth.is_authorized(None, request("Articles", "index"))

        log_in(alice)

        assert auth.is_authorized(None, request("Articles", "index"))

    def test_login_logout(self, session, alice):
        auth = SessionAuthentication(session, logout_redirect="/bye")

        auth.login(alice)
        assert session.get(AUTH_SESSION_KEY)["id"] == alice.id

        assert auth.logout() == "/bye"
        assert AUTH_SESSION_KEY not in session


class TestAuthorizationDelegate:
    def test_builds_request(self, session, alice, authorizer):
        auth = SessionAuthentication(session, [authorizer])
        match = RouteMatch(controller="Articles", action="edit", params={"id": 4})

        assert AuthorizationDelegate(auth).delegate(match, "/articles/edit/4?x=1", alice)

        identity, req = authorizer.calls[0]
        assert identity == alice
        assert req.url == "/articles/edit/4?x=1"
        assert req.params is match


class TestSession:
    def test_delete_missing_key(self):
        session = Session({"a": 1})

        session.delete("missing")
        session.delete("a")

        assert not session.check("a")

    def test_destroy(self):
        store = {"a": 1, "b": 2}
        session = Session(store)

        session.destroy()

        assert store == {}

    def test_flash_survives_after_destroy(self):
        session = Session({"Auth": {"id": "x"}})
        flash = Flash(session)

        session.destroy()
        flash.success("bye")

        assert flash.consume() == [{"type": "success", "message": "bye"}]
        assert flash.consume() == []
