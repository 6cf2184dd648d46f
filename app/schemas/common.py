# Shared response pieces

from datetime import datetime, timezone
import math
from typing import Any

from pydantic import BaseModel


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive values (SQLite drops tzinfo) and convert aware ones"""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class Location(BaseModel):
    latitude: float
    longitude: float


class Pagination(BaseModel):
    """Offset/limit page description"""
    total: int
    page: int
    limit: int
    pages: int

    @classmethod
    def build(cls, total: int, page: int, limit: int) -> "Pagination":
        return cls(total=total, page=page, limit=limit, pages=math.ceil(total / limit) if limit else 0)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def envelope(data: Any = None, message: str | None = None) -> dict[str, Any]:
    """Success envelope: {success, message?, data?}"""
    body: dict[str, Any] = {"success": True}
    if message is not None:
        body["message"] = message
    if data is not None:
        body["data"] = data
    return body


def error_envelope(message: str, errors: list[dict[str, Any]] | None = None) -> dict[str, Any]:
    body: dict[str, Any] = {"success": False, "message": message}
    if errors:
        body["errors"] = errors
    return body
