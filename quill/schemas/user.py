"""User and credential payloads (camelCase on the wire)."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, model_validator
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class UserOut(_CamelModel):
    id: int
    username: str
    email: str
    full_name: str
    avatar: str
    cover_image: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class LoginBody(_CamelModel):
    email: str | None = None
    username: str | None = None
    password: str

    @model_validator(mode="after")
    def _require_identifier(self) -> "LoginBody":
        if not (self.email or "").strip() and not (self.username or "").strip():
            raise ValueError("Username or email is required")
        return self


class RefreshBody(_CamelModel):
    refresh_token: str | None = None


class AuthData(_CamelModel):
    user: UserOut
    access_token: str
    expires_in: int  # seconds until access token expires


class AccessTokenData(_CamelModel):
    access_token: str
    expires_in: int


class CurrentUserData(_CamelModel):
    user: UserOut
