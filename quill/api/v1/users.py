"""Users: register, login, logout, refresh-token, me."""

import logging
from typing import Annotated

from fastapi import APIRouter, Body, Cookie, Depends, File, Form, Request, Response, UploadFile
from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from quill.api.deps import get_current_user, get_issuer
from quill.config import settings
from quill.core.auth import hash_password, verify_password
from quill.core.cookies import clear_refresh_cookie, set_refresh_cookie
from quill.core.rate_limit import credential_limit
from quill.db.session import get_db
from quill.errors import DuplicateIdentity, InvalidCredentials, TokenInvalid, ValidationError
from quill.models.user import User
from quill.schemas.envelope import ApiResponse, ok
from quill.schemas.user import AccessTokenData, AuthData, CurrentUserData, LoginBody, RefreshBody, UserOut
from quill.services.audit import log_action
from quill.services.credentials import CredentialIssuer
from quill.services.images import shrink_image
from quill.services.storage import upload_image

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/users", tags=["users"])


def _client_ip(request: Request) -> str | None:
    return request.client.host if request.client else None


async def _read_image(file: UploadFile, field: str) -> bytes:
    label = "Avatar" if field == "avatar" else "Cover image"
    if not file.content_type or not file.content_type.startswith("image/"):
        raise ValidationError({field: f"{label} must be an image"})
    image_bytes = await file.read()
    if len(image_bytes) == 0:
        raise ValidationError({field: f"{label} is empty or invalid"})
    if len(image_bytes) > settings.max_upload_bytes:
        raise ValidationError({field: f"{label} is too large"})
    magic = image_bytes[:12]
    if not (
        magic.startswith(b"\xff\xd8\xff")
        or magic.startswith(b"\x89PNG\r\n\x1a\n")
        or magic.startswith(b"GIF87a")
        or magic.startswith(b"GIF89a")
        or (magic[:4] == b"RIFF" and magic[8:12] == b"WEBP")
    ):
        raise ValidationError({field: f"{label} must be a JPEG, PNG, GIF or WebP image"})
    return await shrink_image(image_bytes, settings.max_image_side)


def _auth_payload(user: User, access_token: str, expires_in: int) -> AuthData:
    return AuthData(user=UserOut.model_validate(user), access_token=access_token, expires_in=expires_in)


@router.post(
    "/register",
    response_model=ApiResponse[AuthData],
    status_code=201,
    summary="Register a new user (multipart, avatar required)",
    responses={
        400: {"description": "Missing or invalid fields"},
        409: {"description": "Username or email already registered"},
    },
)
@credential_limit
async def register(
    request: Request,
    response: Response,
    session: Annotated[AsyncSession, Depends(get_db)],
    issuer: Annotated[CredentialIssuer, Depends(get_issuer)],
    username: Annotated[str, Form()] = "",
    email: Annotated[str, Form()] = "",
    password: Annotated[str, Form()] = "",
    full_name: Annotated[str, Form(alias="fullName")] = "",
    avatar: Annotated[UploadFile | None, File()] = None,
    cover_image: Annotated[UploadFile | None, File(alias="coverImage")] = None,
) -> ApiResponse[AuthData]:
    username = username.strip().lower()
    email = email.strip().lower()
    full_name = full_name.strip()
    missing: dict[str, str] = {}
    if not username:
        missing["username"] = "Username is required"
    if not email:
        missing["email"] = "Email is required"
    if not password:
        missing["password"] = "Password is required"
    if not full_name:
        missing["fullName"] = "Full name is required"
    if avatar is None:
        missing["avatar"] = "Avatar is required"
    if missing:
        raise ValidationError(missing)

    r = await session.execute(select(User.id).where(or_(User.username == username, User.email == email)))
    if r.first() is not None:
        raise DuplicateIdentity()

    avatar_bytes = await _read_image(avatar, "avatar")
    cover_bytes = await _read_image(cover_image, "coverImage") if cover_image is not None else None
    avatar_key = await upload_image(avatar_bytes, username, "avatars", avatar.content_type)
    cover_key = None
    if cover_bytes is not None:
        cover_key = await upload_image(cover_bytes, username, "covers", cover_image.content_type)

    user = User(
        username=username,
        email=email,
        full_name=full_name,
        avatar=avatar_key,
        cover_image=cover_key,
        password_hash=hash_password(password),
    )
    try:
        session.add(user)
        await session.flush()
        await session.refresh(user)
    except IntegrityError as e:
        logger.warning("Register IntegrityError: %s", e)
        raise DuplicateIdentity() from e

    pair = await issuer.issue(user)
    await log_action(session, user.id, "register", ip_address=_client_ip(request))
    set_refresh_cookie(response, pair.refresh_token)
    logger.info("Registered user %s", user.id)
    return ok(
        _auth_payload(user, pair.access_token, pair.access_expires_in),
        message="User registered successfully",
        status_code=201,
    )


@router.post(
    "/login",
    response_model=ApiResponse[AuthData],
    summary="Login with email or username and password",
    responses={
        400: {"description": "Username/email or password missing"},
        401: {"description": "Invalid credentials"},
    },
)
@credential_limit
async def login(
    request: Request,
    response: Response,
    session: Annotated[AsyncSession, Depends(get_db)],
    issuer: Annotated[CredentialIssuer, Depends(get_issuer)],
    body: LoginBody,
) -> ApiResponse[AuthData]:
    email = (body.email or "").strip().lower()
    username = (body.username or "").strip().lower()
    query = select(User)
    if email:
        query = query.where(func.lower(User.email) == email)
    else:
        query = query.where(func.lower(User.username) == username)
    r = await session.execute(query)
    user = r.scalar_one_or_none()
    if not user or not verify_password(body.password, user.password_hash):
        raise InvalidCredentials()
    pair = await issuer.issue(user)
    await log_action(session, user.id, "login", ip_address=_client_ip(request))
    set_refresh_cookie(response, pair.refresh_token)
    logger.info("User %s logged in", user.id)
    return ok(_auth_payload(user, pair.access_token, pair.access_expires_in), message="User logged in successfully")


@router.post(
    "/logout",
    response_model=ApiResponse[dict],
    summary="Logout: revoke the session and clear the refresh cookie",
    responses={401: {"description": "Not authenticated"}},
)
async def logout(
    request: Request,
    response: Response,
    session: Annotated[AsyncSession, Depends(get_db)],
    issuer: Annotated[CredentialIssuer, Depends(get_issuer)],
    user: Annotated[User, Depends(get_current_user)],
) -> ApiResponse[dict]:
    await issuer.revoke(user.id)
    await log_action(session, user.id, "logout", ip_address=_client_ip(request))
    clear_refresh_cookie(response)
    logger.info("User %s logged out", user.id)
    return ok({}, message="User logged out")


@router.post(
    "/refresh-token",
    response_model=ApiResponse[AccessTokenData],
    summary="Exchange the refresh cookie for a new access token",
    responses={401: {"description": "Refresh token missing, invalid, expired or revoked"}},
)
@credential_limit
async def refresh_token(
    request: Request,
    response: Response,
    session: Annotated[AsyncSession, Depends(get_db)],
    issuer: Annotated[CredentialIssuer, Depends(get_issuer)],
    refresh_cookie: Annotated[str | None, Cookie(alias=settings.refresh_token_cookie_name)] = None,
    body: Annotated[RefreshBody | None, Body()] = None,
) -> ApiResponse[AccessTokenData]:
    """Cookie first; a JSON body `refreshToken` is accepted for non-browser callers."""
    token = refresh_cookie or (body.refresh_token if body else None)
    if not token or not token.strip():
        raise TokenInvalid("Refresh token required")
    user_id = await issuer.verify_refresh(token)
    r = await session.execute(select(User).where(User.id == user_id))
    user = r.scalar_one_or_none()
    if not user:
        raise TokenInvalid()
    pair = await issuer.rotate(token, user)
    if pair.refresh_token != token.strip():
        set_refresh_cookie(response, pair.refresh_token)
    await log_action(session, user.id, "refresh", ip_address=_client_ip(request))
    return ok(
        AccessTokenData(access_token=pair.access_token, expires_in=pair.access_expires_in),
        message="Access token refreshed",
    )


@router.get(
    "/me",
    response_model=ApiResponse[CurrentUserData],
    summary="Get current authenticated user",
    responses={401: {"description": "Not authenticated or invalid token"}},
)
async def me(user: Annotated[User, Depends(get_current_user)]) -> ApiResponse[CurrentUserData]:
    return ok(CurrentUserData(user=UserOut.model_validate(user)), message="Current user fetched")
