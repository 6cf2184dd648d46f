from datetime import datetime, timedelta

from fastapi import APIRouter, Depends, Query, status
import structlog

from app.api.deps import (
    get_current_user, get_event_store, get_localizer, get_notifier,
    get_optional_user, get_search_service, get_settings
)
from app.core.config import Settings
from app.core.errors import ForbiddenError, NotFoundError, ValidationError, field_error
from app.core.i18n import Localizer
from app.models.user import User
from app.schemas.common import envelope
from app.schemas.event import EventCreate, EventResponse, EventUpdate, ReviewCreate, ReviewResponse
from app.schemas.search import EventFilters
from app.services.event_store import EventStore
from app.services.notifications import Notifier, notify_event_created
from app.services.search import SearchService

logger = structlog.get_logger()
router = APIRouter(prefix="/events", tags=["events"])


async def _get_owned_event(event_id: int, user: User, events: EventStore):
    event = await events.get_by_id(event_id)
    if event is None:
        raise NotFoundError()
    if event.creator_id != user.id:
        raise ForbiddenError()
    return event


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_event(
        event_in: EventCreate,
        user: User = Depends(get_current_user),
        events: EventStore = Depends(get_event_store),
        notifier: Notifier = Depends(get_notifier),
        settings: Settings = Depends(get_settings),
        _: Localizer = Depends(get_localizer)
):
    """
    Create an event owned by the caller.

    - **categories**: ids of existing categories; unknown ids reject the request
    - **end_time**: optional, must be after **start_time**
    """
    event = await events.create(event_in, creator_id=user.id)
    await notify_event_created(notifier, event, timedelta(hours=settings.reminder_lead_hours))
    return envelope(EventResponse.from_model(event), _("eventCreated"))


@router.get("")
async def list_events(
        categories: list[str] | None = Query(None),
        creator_id: int | None = Query(None, alias="creatorId"),
        start_date: datetime | None = Query(None, alias="startDate"),
        end_date: datetime | None = Query(None, alias="endDate"),
        page: int = Query(1, ge=1),
        limit: int = Query(10, ge=1, le=100),
        events: EventStore = Depends(get_event_store),
        search: SearchService = Depends(get_search_service)
):
    """Events ordered by start time; category ids match any"""
    filters = EventFilters(
        category_ids=search.normalize_categories(categories),
        creator_id=creator_id,
        start_date=start_date,
        end_date=end_date,
        page=page,
        limit=limit
    )
    if filters.start_date and filters.end_date and filters.end_date < filters.start_date:
        raise ValidationError(
            "endBeforeStart",
            errors=[field_error("endDate", "End date must not be before start date")]
        )

    items, pagination = await events.get_all(filters)
    return envelope({
        "events": [EventResponse.from_model(event) for event in items],
        "pagination": pagination
    })


@router.get("/{event_id}")
async def get_event(
        event_id: int,
        user: User | None = Depends(get_optional_user),
        events: EventStore = Depends(get_event_store)
):
    event = await events.get_by_id(event_id)
    if event is None:
        raise NotFoundError()

    rating = await events.get_average_rating(event_id)
    is_favorited = await events.is_favorited(user.id, event_id) if user else False
    return envelope({
        "event": EventResponse.from_model(event),
        "rating": rating,
        "is_favorited": is_favorited
    })


@router.put("/{event_id}")
async def update_event(
        event_id: int,
        payload: EventUpdate,
        user: User = Depends(get_current_user),
        events: EventStore = Depends(get_event_store),
        _: Localizer = Depends(get_localizer)
):
    await _get_owned_event(event_id, user, events)

    event = await events.update(event_id, payload.changes())
    if event is None:
        raise NotFoundError()
    return envelope(EventResponse.from_model(event), _("eventUpdated"))


@router.delete("/{event_id}")
async def delete_event(
        event_id: int,
        user: User = Depends(get_current_user),
        events: EventStore = Depends(get_event_store),
        _: Localizer = Depends(get_localizer)
):
    await _get_owned_event(event_id, user, events)

    if not await events.delete(event_id):
        raise NotFoundError()
    return envelope(message=_("eventDeleted"))


@router.post("/{event_id}/reviews", status_code=status.HTTP_201_CREATED)
async def add_review(
        event_id: int,
        payload: ReviewCreate,
        user: User = Depends(get_current_user),
        events: EventStore = Depends(get_event_store),
        _: Localizer = Depends(get_localizer)
):
    """Rate an event; a second review by the same user replaces the first"""
    if await events.get_by_id(event_id) is None:
        raise NotFoundError()

    # Read before the store may roll back and expire the session's objects
    user_id, username, full_name = user.id, user.username, user.full_name

    review = await events.add_review(event_id, user_id, payload.rating, payload.review)
    return envelope(
        ReviewResponse.from_model(review, username, full_name),
        _("reviewAdded")
    )


@router.get("/{event_id}/reviews")
async def list_reviews(
        event_id: int,
        page: int = Query(1, ge=1),
        limit: int = Query(10, ge=1, le=100),
        events: EventStore = Depends(get_event_store)
):
    if await events.get_by_id(event_id) is None:
        raise NotFoundError()

    reviews, pagination = await events.get_reviews(event_id, page, limit)
    rating = await events.get_average_rating(event_id)
    return envelope({"reviews": reviews, "rating": rating, "pagination": pagination})
