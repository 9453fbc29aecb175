"""Response envelope shared by all endpoints."""

from __future__ import annotations

from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """Successful response: `{"ok": true, "data": ...}`."""

    ok: bool = True
    data: T


def ok(data: T) -> ApiResponse[T]:
    """Wrap payload into success envelope."""
    return ApiResponse(data=data)
