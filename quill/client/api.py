"""Typed calls to the users API over a RequestGateway."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import httpx

from quill.client.forms import LoginForm, SignupForm
from quill.client.gateway import RequestGateway
from quill.errors import error_from_envelope
from quill.schemas.user import UserOut


@dataclass(frozen=True, slots=True)
class AuthResult:
    user: UserOut
    access_token: str


def _data(response: httpx.Response) -> dict[str, Any]:
    """Return the envelope's data, raising the matching ApiError for error responses."""
    try:
        payload = response.json()
    except ValueError:
        payload = {}
    if response.status_code >= 400 or not (payload or {}).get("success", True):
        raise error_from_envelope(response.status_code, payload)
    return (payload or {}).get("data") or {}


def _auth_result(data: dict[str, Any]) -> AuthResult:
    return AuthResult(user=UserOut.model_validate(data["user"]), access_token=data["accessToken"])


class AuthAPI:
    def __init__(self, gateway: RequestGateway) -> None:
        self.gateway = gateway

    async def login(self, form: LoginForm) -> AuthResult:
        response = await self.gateway.post("/users/login", json=form.to_json(), intercept_unauthorized=False)
        return _auth_result(_data(response))

    async def signup(self, form: SignupForm) -> AuthResult:
        data, files = form.to_multipart()
        response = await self.gateway.post("/users/register", data=data, files=files, intercept_unauthorized=False)
        return _auth_result(_data(response))

    async def logout(self) -> None:
        _data(await self.gateway.post("/users/logout"))

    async def current_user(self) -> UserOut:
        data = _data(await self.gateway.get("/users/me"))
        return UserOut.model_validate(data["user"])
