"""
Credential issuer: mints access/refresh token pairs and verifies them.

Access tokens are stateless; refresh tokens are additionally checked against the
user's session record, which holds exactly one live refresh token. Issuing a new
pair overwrites the record, logout clears it, so any older refresh token is
reported as revoked.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Protocol

from jose import JWTError

from quill.config import settings
from quill.core.auth import (
    ACCESS_TOKEN_TYPE,
    REFRESH_TOKEN_TYPE,
    create_access_token,
    create_refresh_token,
    decode_token,
    hash_refresh_token,
)
from quill.errors import TokenExpired, TokenInvalid, TokenRevoked
from quill.services.session_store import SessionStore

logger = logging.getLogger(__name__)


class Identity(Protocol):
    id: int
    email: str


@dataclass(frozen=True, slots=True)
class CredentialPair:
    access_token: str
    refresh_token: str
    access_expires_in: int  # seconds
    refresh_expires_at: datetime


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CredentialIssuer:
    def __init__(
        self,
        store: SessionStore,
        *,
        now: Callable[[], datetime] = _utcnow,
        access_ttl: timedelta | None = None,
        refresh_ttl: timedelta | None = None,
    ) -> None:
        self.store = store
        self._now = now
        self.access_ttl = access_ttl or timedelta(minutes=settings.access_token_expire_minutes)
        self.refresh_ttl = refresh_ttl or timedelta(days=settings.refresh_token_expire_days)

    def _mint(self, identity: Identity) -> CredentialPair:
        issued_at = self._now()
        refresh_expires_at = issued_at + self.refresh_ttl
        return CredentialPair(
            access_token=create_access_token(identity.id, identity.email, issued_at, issued_at + self.access_ttl),
            refresh_token=create_refresh_token(identity.id, issued_at, refresh_expires_at),
            access_expires_in=int(self.access_ttl.total_seconds()),
            refresh_expires_at=refresh_expires_at,
        )

    async def issue(self, identity: Identity) -> CredentialPair:
        """New pair for identity; replaces whatever refresh token was stored before."""
        pair = self._mint(identity)
        await self.store.set(identity.id, hash_refresh_token(pair.refresh_token), pair.refresh_expires_at)
        return pair

    def _decode(self, token: str, expected_type: str) -> int:
        if not token or not token.strip():
            raise TokenInvalid()
        try:
            payload: dict[str, Any] = decode_token(token.strip(), verify_exp=False)
        except JWTError as e:
            raise TokenInvalid() from e
        if payload.get("typ") != expected_type:
            raise TokenInvalid()
        try:
            user_id = int(payload.get("sub") or "")
            expires = float(payload["exp"])
        except (KeyError, TypeError, ValueError) as e:
            raise TokenInvalid() from e
        if expires <= self._now().timestamp():
            raise TokenExpired()
        return user_id

    def verify_access(self, token: str) -> int:
        """Return the user id bound to an access token. Raises TokenExpired / TokenInvalid."""
        return self._decode(token, ACCESS_TOKEN_TYPE)

    async def verify_refresh(self, token: str) -> int:
        """Like verify_access, plus TokenRevoked if token is not the stored live one."""
        user_id = self._decode(token, REFRESH_TOKEN_TYPE)
        stored = await self.store.get(user_id)
        if stored is None or stored != hash_refresh_token(token.strip()):
            logger.warning("Refresh token for user %s is not the live session token", user_id)
            raise TokenRevoked()
        return user_id

    async def rotate(self, token: str, identity: Identity, *, rotate_refresh: bool | None = None) -> CredentialPair:
        """Exchange a verified refresh token for a new pair.

        With rotation the stored hash is swapped by compare-and-set, so of two
        concurrent exchanges of the same token only one succeeds. Without it the
        refresh token is handed back unchanged and only the access token is new.
        """
        if rotate_refresh is None:
            rotate_refresh = settings.rotate_refresh_tokens
        token = token.strip()
        if not rotate_refresh:
            issued_at = self._now()
            return CredentialPair(
                access_token=create_access_token(
                    identity.id, identity.email, issued_at, issued_at + self.access_ttl
                ),
                refresh_token=token,
                access_expires_in=int(self.access_ttl.total_seconds()),
                refresh_expires_at=datetime.fromtimestamp(
                    float(decode_token(token, verify_exp=False)["exp"]), tz=timezone.utc
                ),
            )
        pair = self._mint(identity)
        swapped = await self.store.compare_and_set(
            identity.id,
            hash_refresh_token(token),
            hash_refresh_token(pair.refresh_token),
            pair.refresh_expires_at,
        )
        if not swapped:
            logger.warning("Refresh token for user %s was superseded during rotation", identity.id)
            raise TokenRevoked()
        return pair

    async def revoke(self, user_id: int) -> None:
        """Clear the session record. Safe to call repeatedly."""
        await self.store.clear(user_id)
