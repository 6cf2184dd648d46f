from pydantic import BaseModel, Field, field_validator


class CategoryCreate(BaseModel):
    """Schema for creating (or fetching) a category by name"""

    name: str = Field(..., min_length=1, max_length=100)

    @field_validator('name')
    @classmethod
    def validate_not_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError('Field cannot be empty or whitespace')
        return v.strip()


class CategoryResponse(BaseModel):
    id: int
    name: str

    model_config = {"from_attributes": True}
