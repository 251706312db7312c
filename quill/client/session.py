"""
Session context: the client-wide view of who is signed in.

State moves UNINITIALIZED -> LOADING -> AUTHENTICATED | UNAUTHENTICATED on
start(), then between the last two on login/signup/logout and on forced
sign-out from the refresh coordinator.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Callable

from quill.client.api import AuthAPI, AuthResult
from quill.client.forms import LoginForm, SignupForm
from quill.errors import ApiError
from quill.schemas.user import UserOut

logger = logging.getLogger(__name__)


class SessionState(str, enum.Enum):
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    AUTHENTICATED = "authenticated"
    UNAUTHENTICATED = "unauthenticated"


StateListener = Callable[["SessionContext"], None]


class SessionContext:
    def __init__(self, api: AuthAPI) -> None:
        self.api = api
        self.user: UserOut | None = None
        self.state = SessionState.UNINITIALIZED
        self._tokens = api.gateway.tokens
        self._listeners: list[StateListener] = []
        api.gateway.signals.subscribe(self._on_forced_sign_out)

    @property
    def is_loading(self) -> bool:
        return self.state in (SessionState.UNINITIALIZED, SessionState.LOADING)

    @property
    def is_authenticated(self) -> bool:
        return self.state is SessionState.AUTHENTICATED and self.user is not None

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Call listener(context) after every state change; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _transition(self, state: SessionState, user: UserOut | None = None) -> None:
        self.state = state
        self.user = user if state is SessionState.AUTHENTICATED else None
        for listener in list(self._listeners):
            listener(self)

    def _signed_in(self, result: AuthResult) -> UserOut:
        self._tokens.set(result.access_token)
        self._transition(SessionState.AUTHENTICATED, result.user)
        return result.user

    async def start(self) -> None:
        """Probe /users/me; the refresh cookie alone is enough to resume a session."""
        self._transition(SessionState.LOADING)
        try:
            user = await self.api.current_user()
        except ApiError as e:
            # login(), signup() or logout() may have settled the state while the probe ran.
            if self.state is not SessionState.LOADING:
                logger.debug("Probe failed after the session settled: %s", e.message)
                return
            logger.debug("No active session: %s", e.message)
            self._tokens.clear()
            self._transition(SessionState.UNAUTHENTICATED)
            return
        if self.state is SessionState.LOADING:
            self._transition(SessionState.AUTHENTICATED, user)

    async def login(self, form: LoginForm) -> UserOut:
        """Errors (validation, invalid credentials, network) propagate for display."""
        form.validate()
        return self._signed_in(await self.api.login(form))

    async def signup(self, form: SignupForm) -> UserOut:
        form.validate()
        return self._signed_in(await self.api.signup(form))

    async def logout(self) -> None:
        """Always ends the local session, even when the server call fails."""
        try:
            await self.api.logout()
        except ApiError as e:
            logger.warning("Logout request failed, clearing local session anyway: %s", e.message)
        finally:
            self._tokens.clear()
            self._transition(SessionState.UNAUTHENTICATED)

    def _on_forced_sign_out(self, reason: str) -> None:
        self._tokens.clear()
        # While LOADING, start() settles the state itself once the probe fails.
        if self.state is SessionState.AUTHENTICATED:
            logger.info("Session ended by server: %s", reason)
            self._transition(SessionState.UNAUTHENTICATED)
