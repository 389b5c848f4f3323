from __future__ import annotations

from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    success: bool = True
    data: T | None = None


class ErrorBody(BaseModel):
    kind: str
    code: str
    message: str
    fields: list[dict] | None = None


class ErrorResponse(BaseModel):
    success: bool = False
    error: ErrorBody
