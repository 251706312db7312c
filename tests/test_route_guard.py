"""RouteGuard decisions driven by a stub session."""

import pytest

from quill.client.guard import LOADING_PLACEHOLDER, RouteGuard
from quill.client.session import SessionState


class StubSession:
    """Just enough of SessionContext for the guard: state flags plus subscribe()."""

    def __init__(self) -> None:
        self.state = SessionState.LOADING
        self._listeners = []

    @property
    def is_loading(self) -> bool:
        return self.state in (SessionState.UNINITIALIZED, SessionState.LOADING)

    @property
    def is_authenticated(self) -> bool:
        return self.state is SessionState.AUTHENTICATED

    def subscribe(self, listener):
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def set(self, state: SessionState) -> None:
        self.state = state
        for listener in list(self._listeners):
            listener(self)


@pytest.fixture
def session():
    return StubSession()


@pytest.fixture
def navigations():
    return []


def test_placeholder_while_loading(session, navigations):
    guard = RouteGuard(session, navigations.append)
    assert guard.render("dashboard") is LOADING_PLACEHOLDER
    assert navigations == []


def test_require_auth_redirects_once_when_unauthenticated(session, navigations):
    guard = RouteGuard(session, navigations.append, require_auth=True, redirect_to="/login")
    assert guard.render("dashboard") is LOADING_PLACEHOLDER
    session.set(SessionState.UNAUTHENTICATED)
    for _ in range(3):
        assert guard.render("dashboard") is None
    assert navigations == ["/login"]


def test_require_auth_shows_content_when_authenticated(session, navigations):
    guard = RouteGuard(session, navigations.append)
    session.set(SessionState.AUTHENTICATED)
    assert guard.render("dashboard") == "dashboard"
    assert navigations == []


def test_anonymous_page_redirects_authenticated_user(session, navigations):
    guard = RouteGuard(session, navigations.append, require_auth=False, authenticated_redirect="/dashboard")
    session.set(SessionState.AUTHENTICATED)
    assert guard.render("login form") is None
    assert guard.render("login form") is None
    assert navigations == ["/dashboard"]


def test_anonymous_page_shows_content_when_unauthenticated(session, navigations):
    guard = RouteGuard(session, navigations.append, require_auth=False)
    session.set(SessionState.UNAUTHENTICATED)
    assert guard.render("login form") == "login form"
    assert navigations == []


def test_redirects_again_after_a_new_transition(session, navigations):
    guard = RouteGuard(session, navigations.append)
    session.set(SessionState.UNAUTHENTICATED)
    guard.render("dashboard")
    session.set(SessionState.AUTHENTICATED)
    assert guard.render("dashboard") == "dashboard"
    session.set(SessionState.UNAUTHENTICATED)
    guard.render("dashboard")
    guard.render("dashboard")
    assert navigations == ["/login", "/login"]


def test_attached_guard_follows_session_changes(session, navigations):
    guard = RouteGuard(session, navigations.append)
    guard.attach()
    session.set(SessionState.LOADING)
    assert navigations == []
    session.set(SessionState.UNAUTHENTICATED)
    session.set(SessionState.UNAUTHENTICATED)
    assert navigations == ["/login"]
    guard.detach()
    session.set(SessionState.AUTHENTICATED)
    session.set(SessionState.UNAUTHENTICATED)
    assert navigations == ["/login"]
