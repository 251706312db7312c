"""HTTP cookie helpers for the refresh token."""
from fastapi import Response

from quill.config import settings


def set_refresh_cookie(response: Response, token: str, *, expires_days: int | None = None) -> None:
    """Set the refresh token cookie: HTTP-only, same-site, scoped to the users API path.

    Secure is only disabled for local development where the API is served over plain HTTP.
    """
    days = expires_days or settings.refresh_token_expire_days
    max_age = days * 24 * 60 * 60
    response.set_cookie(
        key=settings.refresh_token_cookie_name,
        value=token,
        httponly=True,
        secure=settings.secure_cookies,
        samesite=settings.refresh_cookie_samesite,
        max_age=max_age,
        expires=max_age,
        path=settings.refresh_cookie_path,
    )


def clear_refresh_cookie(response: Response) -> None:
    """Remove the refresh token cookie from the client."""
    response.delete_cookie(
        key=settings.refresh_token_cookie_name,
        path=settings.refresh_cookie_path,
        httponly=True,
        secure=settings.secure_cookies,
        samesite=settings.refresh_cookie_samesite,
    )
