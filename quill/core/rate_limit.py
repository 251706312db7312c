"""
Request rate limiting (slowapi). One shared Limiter: a global default for every
route plus a stricter limit for the credential endpoints (login, register, refresh).
"""

from __future__ import annotations

from slowapi import Limiter
from slowapi.util import get_remote_address

from quill.config import settings

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[settings.default_rate_limit],
    enabled=settings.rate_limit_enabled,
)

credential_limit = limiter.limit(settings.login_rate_limit)
