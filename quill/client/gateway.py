"""
Request gateway: the one outbound HTTP client of the app.

Attaches the current access token as a bearer header on every call; the cookie
jar of the underlying httpx.AsyncClient carries the refresh cookie. A 401 is
handed to the RefreshCoordinator and the request is replayed once with the
renewed token; a second 401 is returned to the caller and signs the session out.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from quill.client.refresh import REFRESH_PATH, RefreshCoordinator
from quill.client.signals import SignOutSignal
from quill.client.tokens import AccessTokenHolder
from quill.config import settings
from quill.errors import NetworkFailure

logger = logging.getLogger(__name__)


class RequestGateway:
    def __init__(
        self,
        base_url: str | None = None,
        *,
        tokens: AccessTokenHolder | None = None,
        signals: SignOutSignal | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float | None = None,
        refresh_timeout: float | None = None,
        refresh_path: str = REFRESH_PATH,
    ) -> None:
        self.tokens = tokens if tokens is not None else AccessTokenHolder()
        self.signals = signals if signals is not None else SignOutSignal()
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.api_base_url,
            transport=transport,
            timeout=timeout or settings.client_timeout_seconds,
        )
        self.coordinator = RefreshCoordinator(
            self._client,
            self.tokens,
            self.signals,
            refresh_path=refresh_path,
            timeout=refresh_timeout or settings.refresh_timeout_seconds,
        )

    @property
    def cookies(self) -> httpx.Cookies:
        return self._client.cookies

    async def aclose(self) -> None:
        await self.coordinator.cancel()
        await self._client.aclose()

    async def __aenter__(self) -> "RequestGateway":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def _send(self, method: str, url: str, token: str | None, **kwargs: Any) -> httpx.Response:
        headers = dict(kwargs.pop("headers", None) or {})
        if token:
            headers["Authorization"] = f"Bearer {token}"
        try:
            return await self._client.request(method, url, headers=headers, **kwargs)
        except httpx.TransportError as e:
            logger.warning("%s %s failed: %s", method, url, e)
            raise NetworkFailure() from e

    async def request(self, method: str, url: str, *, intercept_unauthorized: bool = True, **kwargs: Any) -> httpx.Response:
        """Send a request; on 401 refresh the session and replay it exactly once.

        intercept_unauthorized=False is for the credential endpoints themselves,
        where a 401 means wrong credentials rather than an expired session.
        """
        token = self.tokens.get()
        response = await self._send(method, url, token, **kwargs)
        if response.status_code != 401 or not intercept_unauthorized:
            return response

        new_token = await self.coordinator.renew(stale_token=token)
        response = await self._send(method, url, new_token, **kwargs)
        if response.status_code == 401:
            logger.warning("%s %s rejected again after refresh", method, url)
            self.coordinator.force_sign_out("request rejected after refresh")
        return response

    async def get(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("GET", url, **kwargs)

    async def post(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("POST", url, **kwargs)
