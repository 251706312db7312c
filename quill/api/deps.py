"""FastAPI dependencies: session store, credential issuer, current user from bearer token."""

from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from quill.db.session import get_db
from quill.errors import TokenInvalid
from quill.models.user import User
from quill.services.credentials import CredentialIssuer
from quill.services.session_store import SqlSessionStore


def get_issuer(session: Annotated[AsyncSession, Depends(get_db)]) -> CredentialIssuer:
    return CredentialIssuer(SqlSessionStore(session))


def bearer_token(request: Request) -> str:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise TokenInvalid("Unauthorized request")
    token = auth_header[7:].strip()
    if not token:
        raise TokenInvalid("Unauthorized request")
    return token


async def get_current_user(
    token: Annotated[str, Depends(bearer_token)],
    session: Annotated[AsyncSession, Depends(get_db)],
    issuer: Annotated[CredentialIssuer, Depends(get_issuer)],
) -> User:
    user_id = issuer.verify_access(token)
    r = await session.execute(select(User).where(User.id == user_id))
    user = r.scalar_one_or_none()
    if not user:
        raise TokenInvalid()
    return user
