"""Client-side input checks run before anything is sent to the API."""

from __future__ import annotations

from dataclasses import dataclass

from quill.errors import ValidationError


@dataclass(frozen=True, slots=True)
class FilePart:
    filename: str
    content: bytes
    content_type: str = "application/octet-stream"

    def as_upload(self) -> tuple[str, bytes, str]:
        return (self.filename, self.content, self.content_type)


@dataclass(slots=True)
class LoginForm:
    password: str
    email: str = ""
    username: str = ""

    def validate(self) -> None:
        errors: dict[str, str] = {}
        if not self.username.strip() and not self.email.strip():
            errors["username"] = "Username or email is required"
            errors["email"] = "Username or email is required"
        if not self.password:
            errors["password"] = "Password is required"
        if errors:
            raise ValidationError(errors)

    def to_json(self) -> dict[str, str]:
        body = {"password": self.password}
        if self.email.strip():
            body["email"] = self.email.strip()
        else:
            body["username"] = self.username.strip()
        return body


@dataclass(slots=True)
class SignupForm:
    username: str
    email: str
    password: str
    full_name: str
    avatar: FilePart | None = None
    cover_image: FilePart | None = None

    def validate(self) -> None:
        errors: dict[str, str] = {}
        if not self.username.strip():
            errors["username"] = "Username is required"
        if not self.email.strip():
            errors["email"] = "Email is required"
        if not self.password:
            errors["password"] = "Password is required"
        if not self.full_name.strip():
            errors["fullName"] = "Full name is required"
        if self.avatar is None or not self.avatar.content:
            errors["avatar"] = "Avatar is required"
        if errors:
            raise ValidationError(errors)

    def to_multipart(self) -> tuple[dict[str, str], dict[str, tuple[str, bytes, str]]]:
        data = {
            "username": self.username.strip(),
            "email": self.email.strip(),
            "password": self.password,
            "fullName": self.full_name.strip(),
        }
        files = {"avatar": self.avatar.as_upload()}
        if self.cover_image is not None:
            files["coverImage"] = self.cover_image.as_upload()
        return data, files
