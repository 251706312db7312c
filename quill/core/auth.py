"""Password hashing and JWT encoding/decoding."""

import hashlib
import secrets
from datetime import datetime
from typing import Any

import bcrypt
from jose import jwt

from quill.config import settings

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


def hash_password(password: str) -> str:
    """Hash password with bcrypt. Bytes truncated to 72 (bcrypt limit); no passlib re-encoding."""
    pwd_bytes = password.encode("utf-8")[:72]
    hashed = bcrypt.hashpw(pwd_bytes, bcrypt.gensalt())
    return hashed.decode("utf-8")


def verify_password(plain_password: str, password_hash: str) -> bool:
    """Verify password with bcrypt. Plain password truncated to 72 bytes."""
    plain_bytes = plain_password.encode("utf-8")[:72]
    return bcrypt.checkpw(plain_bytes, password_hash.encode("utf-8"))


def hash_refresh_token(token: str) -> str:
    """SHA256 hash of refresh token for storage."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _get_jwt_signing_key_and_algorithm() -> tuple[str, str]:
    """Return (key, algorithm) for signing tokens."""
    if settings.use_rs256:
        return settings.jwt_private_key.strip(), "RS256"
    return settings.secret_key, settings.jwt_algorithm


def _get_jwt_verification_key_and_algorithms() -> tuple[str, list[str]]:
    """Return (key, algorithms) for verifying tokens."""
    if settings.use_rs256:
        return settings.jwt_public_key.strip(), ["RS256"]
    return settings.secret_key, [settings.jwt_algorithm]


def encode_token(user_id: int, token_type: str, issued_at: datetime, expires_at: datetime, **claims: Any) -> str:
    payload = {
        "sub": str(user_id),
        "typ": token_type,
        "iat": issued_at,
        "exp": expires_at,
        **claims,
    }
    if token_type == REFRESH_TOKEN_TYPE:
        payload.setdefault("jti", secrets.token_urlsafe(16))
    key, algorithm = _get_jwt_signing_key_and_algorithm()
    result = jwt.encode(payload, key, algorithm=algorithm)
    return result if isinstance(result, str) else result.decode("utf-8")


def create_access_token(user_id: int, email: str, issued_at: datetime, expires_at: datetime) -> str:
    return encode_token(user_id, ACCESS_TOKEN_TYPE, issued_at, expires_at, email=email)


def create_refresh_token(user_id: int, issued_at: datetime, expires_at: datetime) -> str:
    """Signed refresh token with a random jti; caller stores only its hash."""
    return encode_token(user_id, REFRESH_TOKEN_TYPE, issued_at, expires_at)


def decode_token(token: str, *, verify_exp: bool = True) -> dict[str, Any]:
    """Verify signature and return claims. Raises jose.JWTError on any failure."""
    key, algorithms = _get_jwt_verification_key_and_algorithms()
    return jwt.decode(token, key, algorithms=algorithms, options={"verify_exp": verify_exp})
