# Pydantic schemas

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_validator

from app.schemas.category import CategoryResponse
from app.schemas.common import Location, as_utc

Language = Literal["en", "fr"]


def _check_location_pair(model: BaseModel, require_values: bool) -> None:
    provided = model.model_fields_set
    lat = getattr(model, "latitude")
    lon = getattr(model, "longitude")
    if require_values:
        if (lat is None) != (lon is None):
            raise ValueError('latitude and longitude must be provided together')
    else:
        if ('latitude' in provided) != ('longitude' in provided) or (lat is None) != (lon is None):
            raise ValueError('latitude and longitude must be provided together')


class UserRegister(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    username: str = Field(..., min_length=3, max_length=50, pattern=r"^[A-Za-z0-9]+$")
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)
    full_name: str | None = Field(default=None, max_length=100, alias="fullName")
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)
    preferred_language: Language = Field(default="en", alias="preferredLanguage")
    categories: list[int] | None = None

    @model_validator(mode='after')
    def validate_location(self) -> "UserRegister":
        _check_location_pair(self, require_values=True)
        return self


class UserLogin(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    username_or_email: str = Field(..., min_length=1, alias="usernameOrEmail")
    password: str = Field(..., min_length=1)


class UserUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    username: str | None = Field(default=None, min_length=3, max_length=50, pattern=r"^[A-Za-z0-9]+$")
    email: EmailStr | None = None
    full_name: str | None = Field(default=None, max_length=100, alias="fullName")
    preferred_language: Language | None = Field(default=None, alias="preferredLanguage")
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)

    @model_validator(mode='after')
    def validate_update(self) -> "UserUpdate":
        provided = self.model_fields_set
        for name in ('username', 'email', 'preferred_language'):
            if name in provided and getattr(self, name) is None:
                raise ValueError(f'{name} cannot be null')
        # Both null clears the stored location
        _check_location_pair(self, require_values=False)
        return self

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True)


class CategoriesUpdate(BaseModel):
    categories: list[int]


class PasswordChange(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    current_password: str = Field(..., min_length=1, alias="currentPassword")
    new_password: str = Field(..., min_length=6, max_length=128, alias="newPassword")


class UserResponse(BaseModel):
    id: int
    username: str
    email: str
    full_name: str | None
    location: Location | None
    preferred_language: str
    created_at: datetime | None = None
    updated_at: datetime | None = None
    preferred_categories: list[CategoryResponse] = Field(default_factory=list)

    @classmethod
    def from_model(cls, user) -> "UserResponse":
        location = None
        if user.has_location:
            location = Location(latitude=user.latitude, longitude=user.longitude)
        return cls(
            id=user.id,
            username=user.username,
            email=user.email,
            full_name=user.full_name,
            location=location,
            preferred_language=user.preferred_language,
            created_at=as_utc(user.created_at),
            updated_at=as_utc(user.updated_at),
            preferred_categories=[CategoryResponse.model_validate(c) for c in user.preferred_categories],
        )


class AuthResponse(BaseModel):
    user: UserResponse
    token: str
    token_type: str = "bearer"
