"""
Session store: the single refresh-token slot per user (hash + expiry on the users row).
Pure persistence, no policy; CredentialIssuer decides what to write.

Each write is one conditional UPDATE, so a concurrent login and logout for the
same user cannot interleave into a half-written record.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from quill.models.user import User


class SessionStore(Protocol):
    async def get(self, user_id: int) -> str | None: ...

    async def set(self, user_id: int, token_hash: str, expires_at: datetime) -> None: ...

    async def compare_and_set(
        self, user_id: int, expected_hash: str, token_hash: str, expires_at: datetime
    ) -> bool: ...

    async def clear(self, user_id: int) -> None: ...


class SqlSessionStore:
    """SessionStore backed by users.refresh_token_hash."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, user_id: int) -> str | None:
        r = await self.session.execute(select(User.refresh_token_hash).where(User.id == user_id))
        return r.scalar_one_or_none() or None

    async def set(self, user_id: int, token_hash: str, expires_at: datetime) -> None:
        await self.session.execute(
            update(User)
            .where(User.id == user_id)
            .values(refresh_token_hash=token_hash, refresh_token_expires_at=expires_at)
            .execution_options(synchronize_session=False)
        )

    async def compare_and_set(
        self, user_id: int, expected_hash: str, token_hash: str, expires_at: datetime
    ) -> bool:
        """Replace the stored hash only if it still equals expected_hash."""
        r = await self.session.execute(
            update(User)
            .where(User.id == user_id, User.refresh_token_hash == expected_hash)
            .values(refresh_token_hash=token_hash, refresh_token_expires_at=expires_at)
            .execution_options(synchronize_session=False)
        )
        return r.rowcount == 1

    async def clear(self, user_id: int) -> None:
        await self.session.execute(
            update(User)
            .where(User.id == user_id)
            .values(refresh_token_hash=None, refresh_token_expires_at=None)
            .execution_options(synchronize_session=False)
        )
