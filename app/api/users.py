from fastapi import APIRouter, Depends, Query

from app.api.deps import get_current_user, get_event_store, get_localizer, get_user_store
from app.core.errors import NotFoundError
from app.core.i18n import Localizer
from app.models.user import User
from app.schemas.category import CategoryResponse
from app.schemas.common import envelope
from app.schemas.event import EventResponse, FavoriteEventResponse
from app.schemas.user import CategoriesUpdate, UserResponse, UserUpdate
from app.services.event_store import EventStore
from app.services.user_store import UserStore

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/profile")
async def get_profile(user: User = Depends(get_current_user)):
    return envelope(UserResponse.from_model(user))


@router.put("/profile")
async def update_profile(
        payload: UserUpdate,
        user: User = Depends(get_current_user),
        users: UserStore = Depends(get_user_store),
        _: Localizer = Depends(get_localizer)
):
    updated = await users.update(user.id, payload.changes())
    if updated is None:
        raise NotFoundError()
    return envelope(UserResponse.from_model(updated), _("profileUpdated"))


@router.delete("/profile")
async def delete_profile(
        user: User = Depends(get_current_user),
        users: UserStore = Depends(get_user_store),
        _: Localizer = Depends(get_localizer)
):
    """Close the caller's account; events they created stay listed without a creator"""
    if not await users.delete(user.id):
        raise NotFoundError()
    return envelope(message=_("accountDeleted"))


@router.put("/categories")
async def update_categories(
        payload: CategoriesUpdate,
        user: User = Depends(get_current_user),
        users: UserStore = Depends(get_user_store),
        _: Localizer = Depends(get_localizer)
):
    """Replace the caller's preferred categories"""
    categories = await users.set_preferred_categories(user.id, payload.categories)
    return envelope(
        [CategoryResponse.model_validate(c) for c in categories],
        _("categoriesUpdated")
    )


@router.get("/favorites")
async def list_favorites(
        page: int = Query(1, ge=1),
        limit: int = Query(10, ge=1, le=100),
        user: User = Depends(get_current_user),
        events: EventStore = Depends(get_event_store)
):
    favorites, pagination = await events.get_user_favorites(user.id, page, limit)
    data = [
        FavoriteEventResponse(**EventResponse.from_model(event).model_dump(), favorited_at=favorited_at)
        for event, favorited_at in favorites
    ]
    return envelope({"events": data, "pagination": pagination})


@router.post("/favorites/{event_id}")
async def add_favorite(
        event_id: int,
        user: User = Depends(get_current_user),
        events: EventStore = Depends(get_event_store),
        _: Localizer = Depends(get_localizer)
):
    if await events.get_by_id(event_id) is None:
        raise NotFoundError()

    created = await events.favorite_event(user.id, event_id)
    return envelope({"event_id": event_id, "favorited": True, "created": created}, _("eventFavorited"))


@router.delete("/favorites/{event_id}")
async def remove_favorite(
        event_id: int,
        user: User = Depends(get_current_user),
        events: EventStore = Depends(get_event_store),
        _: Localizer = Depends(get_localizer)
):
    if not await events.unfavorite_event(user.id, event_id):
        raise NotFoundError()
    return envelope({"event_id": event_id, "favorited": False}, _("eventUnfavorited"))
