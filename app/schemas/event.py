# Pydantic schemas

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from app.schemas.category import CategoryResponse
from app.schemas.common import Location, as_utc


class EventCreate(BaseModel):
    """Schema for creating an event"""

    model_config = ConfigDict(populate_by_name=True)

    title: str = Field(..., min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=1000)
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    address: str | None = Field(default=None, max_length=255)
    start_time: datetime = Field(..., alias="startTime")
    end_time: datetime | None = Field(default=None, alias="endTime")
    categories: list[int] = Field(default_factory=list)

    @field_validator('title')
    @classmethod
    def validate_not_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError('Field cannot be empty or whitespace')
        return v.strip()

    @field_validator('start_time', 'end_time')
    @classmethod
    def normalize_timezone(cls, v: datetime | None) -> datetime | None:
        return as_utc(v)

    @field_validator('categories')
    @classmethod
    def dedupe_categories(cls, v: list[int]) -> list[int]:
        return list(dict.fromkeys(v))

    @model_validator(mode='after')
    def validate_time_range(self) -> "EventCreate":
        if self.end_time is not None and self.end_time <= self.start_time:
            raise ValueError('End time must be after start time')
        return self


class EventUpdate(BaseModel):
    """Partial update; only fields present in the payload are applied"""

    model_config = ConfigDict(populate_by_name=True)

    title: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=1000)
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)
    address: str | None = Field(default=None, max_length=255)
    start_time: datetime | None = Field(default=None, alias="startTime")
    end_time: datetime | None = Field(default=None, alias="endTime")
    categories: list[int] | None = None

    @field_validator('start_time', 'end_time')
    @classmethod
    def normalize_timezone(cls, v: datetime | None) -> datetime | None:
        return as_utc(v)

    @field_validator('categories')
    @classmethod
    def dedupe_categories(cls, v: list[int] | None) -> list[int] | None:
        return None if v is None else list(dict.fromkeys(v))

    @model_validator(mode='after')
    def validate_update(self) -> "EventUpdate":
        provided = self.model_fields_set

        for name in ('title', 'latitude', 'longitude', 'start_time', 'categories'):
            if name in provided and getattr(self, name) is None:
                raise ValueError(f'{name} cannot be null')

        if ('latitude' in provided) != ('longitude' in provided):
            raise ValueError('latitude and longitude must be updated together')

        if self.start_time is not None and self.end_time is not None and self.end_time <= self.start_time:
            raise ValueError('End time must be after start time')
        return self

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True)


class EventResponse(BaseModel):
    """Response schema for event operations"""

    id: int
    title: str
    description: str | None
    location: Location
    address: str | None
    start_time: datetime
    end_time: datetime | None
    creator_id: int | None
    created_at: datetime | None
    updated_at: datetime | None
    categories: list[CategoryResponse]
    distance_km: str | None = None

    @classmethod
    def from_model(cls, event, distance_km: float | None = None) -> "EventResponse":
        return cls(
            id=event.id,
            title=event.title,
            description=event.description,
            location=Location(latitude=event.latitude, longitude=event.longitude),
            address=event.address,
            start_time=as_utc(event.start_time),
            end_time=as_utc(event.end_time),
            creator_id=event.creator_id,
            created_at=as_utc(event.created_at),
            updated_at=as_utc(event.updated_at),
            categories=[CategoryResponse.model_validate(c) for c in event.categories],
            distance_km=None if distance_km is None else f"{distance_km:.2f}",
        )


class FavoriteEventResponse(EventResponse):
    favorited_at: datetime | None = None


class ReviewCreate(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    review: str | None = Field(default=None, max_length=500)


class ReviewResponse(BaseModel):
    id: int
    event_id: int
    user_id: int
    rating: int
    review: str | None
    created_at: datetime | None
    updated_at: datetime | None
    username: str | None = None
    reviewer_name: str | None = None

    @classmethod
    def from_model(cls, review, username: str | None = None, full_name: str | None = None) -> "ReviewResponse":
        return cls(
            id=review.id,
            event_id=review.event_id,
            user_id=review.user_id,
            rating=review.rating,
            review=review.review,
            created_at=as_utc(review.created_at),
            updated_at=as_utc(review.updated_at),
            username=username,
            reviewer_name=full_name or username,
        )


class RatingSummary(BaseModel):
    average_rating: float | None
    review_count: int
