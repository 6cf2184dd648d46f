# Query parameter objects for the event store

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from app.schemas.common import as_utc


class EventFilters(BaseModel):
    """Filters shared by listing and location search"""

    category_ids: list[int] = Field(default_factory=list)
    creator_id: int | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=10, ge=1)

    @field_validator('category_ids')
    @classmethod
    def dedupe(cls, v: list[int]) -> list[int]:
        return list(dict.fromkeys(v))

    @field_validator('start_date', 'end_date')
    @classmethod
    def normalize_timezone(cls, v: datetime | None) -> datetime | None:
        return as_utc(v)


class LocationSearch(EventFilters):
    """Filters plus the search circle"""

    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    radius_km: float = Field(..., gt=0)


class SearchParameters(BaseModel):
    """Echo of the effective search inputs"""

    latitude: float
    longitude: float
    radius: float
    origin: str
    category_ids: list[int]
    start_date: datetime | None = None
    end_date: datetime | None = None
