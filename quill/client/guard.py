"""
Route guard: decides whether guarded content may be shown for the current
session, redirecting otherwise.

Nothing is decided while the session is loading (a placeholder is shown), and a
redirect is issued at most once per authentication state, so re-rendering with
an unchanged session never re-triggers navigation.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from quill.client.session import SessionContext

Navigate = Callable[[str], None]


class _Placeholder:
    def __repr__(self) -> str:
        return "LOADING_PLACEHOLDER"


LOADING_PLACEHOLDER = _Placeholder()


class RouteGuard:
    def __init__(
        self,
        session: SessionContext,
        navigate: Navigate,
        *,
        require_auth: bool = True,
        redirect_to: str = "/login",
        authenticated_redirect: str = "/dashboard",
    ) -> None:
        self.session = session
        self.navigate = navigate
        self.require_auth = require_auth
        self.redirect_to = redirect_to
        self.authenticated_redirect = authenticated_redirect
        self._redirected = False
        self._seen_authenticated: bool | None = None
        self._unsubscribe: Callable[[], None] | None = None

    def attach(self) -> None:
        """Re-evaluate on every session state change."""
        if self._unsubscribe is None:
            self._unsubscribe = self.session.subscribe(lambda _ctx: self.render(None))

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _redirect_target(self, authenticated: bool) -> str | None:
        if self.require_auth and not authenticated:
            return self.redirect_to
        if not self.require_auth and authenticated:
            return self.authenticated_redirect
        return None

    def render(self, content: Any) -> Any:
        """LOADING_PLACEHOLDER while loading, None when redirecting, else content."""
        if self.session.is_loading:
            return LOADING_PLACEHOLDER
        authenticated = self.session.is_authenticated
        if authenticated != self._seen_authenticated:
            self._seen_authenticated = authenticated
            self._redirected = False
        target = self._redirect_target(authenticated)
        if target is None:
            return content
        if not self._redirected:
            self._redirected = True
            self.navigate(target)
        return None
