from datetime import datetime

from fastapi import APIRouter, Depends, Query

from app.api.deps import get_category_store, get_optional_user, get_search_service
from app.models.user import User
from app.schemas.category import CategoryResponse
from app.schemas.common import envelope
from app.services.category_store import CategoryStore
from app.services.search import SearchService

router = APIRouter(prefix="/search", tags=["search"])


@router.get("/location")
async def search_by_location(
        latitude: float | None = Query(None),
        longitude: float | None = Query(None),
        radius: float | None = Query(None, ge=0.1, le=20000),
        categories: list[str] | None = Query(None),
        start_date: datetime | None = Query(None, alias="startDate"),
        end_date: datetime | None = Query(None, alias="endDate"),
        page: int = Query(1, ge=1),
        limit: int | None = Query(None, ge=1),
        user: User | None = Depends(get_optional_user),
        search: SearchService = Depends(get_search_service)
):
    """
    Events within `radius` km of a point, nearest first.

    Without a valid latitude/longitude pair the caller's saved location is used,
    then the configured default. `categories` takes repeated or comma-separated
    ids and matches any of them.
    """
    result = await search.search_by_location(
        latitude=latitude,
        longitude=longitude,
        radius_km=radius,
        categories=categories,
        start_date=start_date,
        end_date=end_date,
        page=page,
        limit=limit,
        user=user
    )
    return envelope(result)


@router.get("/nearby")
async def nearby(
        latitude: float | None = Query(None),
        longitude: float | None = Query(None),
        radius: float | None = Query(None, ge=0.1, le=20000),
        limit: int | None = Query(None, ge=1),
        user: User | None = Depends(get_optional_user),
        search: SearchService = Depends(get_search_service)
):
    result = await search.nearby(
        latitude=latitude,
        longitude=longitude,
        radius_km=radius,
        limit=limit,
        user=user
    )
    return envelope(result)


@router.get("/categories")
async def search_categories(categories: CategoryStore = Depends(get_category_store)):
    """Categories available as search filters"""
    items = await categories.get_all()
    return envelope([CategoryResponse.model_validate(c) for c in items])
