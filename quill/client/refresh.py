"""
Refresh coordinator: turns any number of concurrent 401s into one refresh call.

The refresh runs as a task owned by the coordinator, not by whichever request hit
the 401 first. Every caller awaits it through asyncio.shield, so a cancelled caller
only abandons its own wait and the others still get the renewed token (or the same
failure). A rejected or timed-out refresh clears the access token and emits the
forced sign-out signal; a transport failure is passed on as NetworkFailure and
leaves the session alone.
"""

from __future__ import annotations

import asyncio
import logging

import httpx

from quill.client.signals import SignOutSignal
from quill.client.tokens import AccessTokenHolder
from quill.errors import ApiError, NetworkFailure, SessionExpired, error_from_envelope

logger = logging.getLogger(__name__)

REFRESH_PATH = "/users/refresh-token"


def _retrieve_outcome(task: asyncio.Task) -> None:
    # Nobody may be left awaiting the task once every caller was cancelled.
    if not task.cancelled():
        task.exception()


class RefreshCoordinator:
    def __init__(
        self,
        client: httpx.AsyncClient,
        tokens: AccessTokenHolder,
        signals: SignOutSignal,
        *,
        refresh_path: str = REFRESH_PATH,
        timeout: float = 10.0,
    ) -> None:
        self._client = client
        self._tokens = tokens
        self._signals = signals
        self._refresh_path = refresh_path
        self._timeout = timeout
        self._refresh_task: asyncio.Task[str] | None = None
        self.refresh_count = 0

    @property
    def refreshing(self) -> bool:
        return self._refresh_task is not None and not self._refresh_task.done()

    async def renew(self, stale_token: str | None) -> str:
        """Return a fresh access token to replace stale_token (the one the server rejected).

        Raises SessionExpired when the refresh is rejected or times out; the session
        is dropped by then. Raises NetworkFailure when the refresh never reached the server.
        """
        if not self.refreshing:
            current = self._tokens.get()
            if current is not None and current != stale_token:
                # Another cycle already replaced the token this request was sent with.
                return current
            self.refresh_count += 1
            logger.info("Access token rejected; refreshing session")
            self._refresh_task = asyncio.create_task(self._refresh())
            self._refresh_task.add_done_callback(_retrieve_outcome)
        return await asyncio.shield(self._refresh_task)

    async def cancel(self) -> None:
        """Abort an in-flight refresh; used when the gateway shuts down."""
        task = self._refresh_task
        if task is not None and not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

    def force_sign_out(self, reason: str) -> None:
        """Drop the access token and tell observers the session is gone."""
        self._tokens.clear()
        self._signals.emit(reason)

    async def _refresh(self) -> str:
        try:
            token = await asyncio.wait_for(self._request_access_token(), timeout=self._timeout)
        except NetworkFailure:
            logger.warning("Session refresh could not reach the server; keeping the session")
            raise
        except Exception as exc:
            if isinstance(exc, asyncio.TimeoutError):
                reason = f"refresh timed out after {self._timeout}s"
            else:
                reason = f"refresh failed: {exc}"
            logger.warning("Session refresh failed (%s)", reason)
            self.force_sign_out(reason)
            raise SessionExpired(errors=[reason]) from exc
        self._tokens.set(token)
        logger.info("Session refreshed")
        return token

    async def _request_access_token(self) -> str:
        # No Authorization header: the refresh cookie is the only credential sent.
        try:
            response = await self._client.post(self._refresh_path)
        except httpx.TransportError as e:
            raise NetworkFailure() from e
        try:
            payload = response.json()
        except ValueError:
            payload = {}
        if response.status_code >= 400:
            raise error_from_envelope(response.status_code, payload)
        token = ((payload or {}).get("data") or {}).get("accessToken")
        if not token:
            raise ApiError("Refresh response carried no access token", status_code=response.status_code)
        return str(token)
