"""Uniform response envelope: {success, statusCode, message, data?, errors?}."""

from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    success: bool = True
    status_code: int = 200
    message: str = "OK"
    data: T | None = None
    errors: list[str] = Field(default_factory=list)


def ok(data: T | None = None, message: str = "OK", status_code: int = 200) -> ApiResponse[T]:
    return ApiResponse(success=True, status_code=status_code, message=message, data=data)
