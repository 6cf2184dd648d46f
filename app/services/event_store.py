from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Any

from sqlalchemy import select, func, delete, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
import structlog

from app.core.database import dialect_insert
from app.core.errors import ValidationError, field_error, translate_integrity_error
from app.models.base import utcnow
from app.models.event import Event, Review, Favorite, event_categories
from app.models.user import User
from app.schemas.common import Pagination, as_utc
from app.schemas.event import EventCreate, RatingSummary, ReviewResponse
from app.schemas.search import EventFilters, LocationSearch
from app.services.category_store import CategoryStore
from app.services.geo import BoundingBox, bounding_box, distance_km_sql

logger = structlog.get_logger()


def check_time_range(start_time: datetime | None, end_time: datetime | None) -> None:
    if start_time is None or end_time is None:
        return
    if as_utc(end_time) <= as_utc(start_time):
        raise ValidationError(
            "endBeforeStart",
            errors=[field_error("end_time", "End time must be after start time")]
        )


class EventStore:
    """Storage and geospatial retrieval of events, reviews and favorites"""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.categories = CategoryStore(db)

    # Events

    async def create(self, event_in: EventCreate, creator_id: int | None) -> Event:
        """Insert the event and its category associations in one transaction"""
        check_time_range(event_in.start_time, event_in.end_time)
        categories = await self.categories.get_many(event_in.categories)

        try:
            event = Event(
                title=event_in.title,
                description=event_in.description,
                latitude=event_in.latitude,
                longitude=event_in.longitude,
                address=event_in.address,
                start_time=event_in.start_time,
                end_time=event_in.end_time,
                creator_id=creator_id,
            )
            event.categories = categories
            self.db.add(event)
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            raise translate_integrity_error(e) from e

        logger.info(
            "event_created",
            event_id=event.id,
            creator_id=creator_id,
            categories=[c.id for c in categories]
        )
        return await self.get_by_id(event.id)

    async def get_by_id(self, event_id: int) -> Event | None:
        stmt = (
            select(Event)
            .where(Event.id == event_id)
            .options(selectinload(Event.categories))
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalars().first()

    async def update(self, event_id: int, changes: dict[str, Any]) -> Event | None:
        """
        Apply a partial update.

        Omitted fields keep their stored values; a supplied `categories` list
        replaces every existing association. The merged start/end pair is
        validated, so an end-only change is checked against the stored start.
        """
        event = await self.get_by_id(event_id)
        if event is None:
            return None

        changes = dict(changes)
        category_ids = changes.pop("categories", None)

        start_time = changes.get("start_time", event.start_time)
        end_time = changes["end_time"] if "end_time" in changes else event.end_time
        check_time_range(start_time, end_time)
        categories = None if category_ids is None else await self.categories.get_many(category_ids)

        try:
            for field, value in changes.items():
                setattr(event, field, value)
            if categories is not None:
                event.categories = categories
            if changes or categories is not None:
                event.updated_at = utcnow()
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            raise translate_integrity_error(e) from e

        logger.info(
            "event_updated",
            event_id=event_id,
            fields=sorted(changes),
            categories_replaced=category_ids is not None
        )
        return await self.get_by_id(event_id)

    async def delete(self, event_id: int) -> bool:
        """Hard delete of the event with its favorites, reviews and associations"""
        exists = await self.db.scalar(select(Event.id).where(Event.id == event_id))
        if exists is None:
            return False

        try:
            await self.db.execute(delete(Favorite).where(Favorite.event_id == event_id))
            await self.db.execute(delete(Review).where(Review.event_id == event_id))
            await self.db.execute(
                delete(event_categories).where(event_categories.c.event_id == event_id)
            )
            result = await self.db.execute(delete(Event).where(Event.id == event_id))
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            raise translate_integrity_error(e) from e
        except Exception:
            await self.db.rollback()
            raise

        logger.info("event_deleted", event_id=event_id)
        return result.rowcount > 0

    # Listing and search

    @staticmethod
    def _filter_conditions(filters: EventFilters) -> list:
        conditions = []

        if filters.creator_id is not None:
            conditions.append(Event.creator_id == filters.creator_id)

        if filters.start_date is not None:
            conditions.append(Event.start_time >= filters.start_date)

        if filters.end_date is not None:
            conditions.append(Event.start_time <= filters.end_date)

        if filters.category_ids:
            # Any of the requested categories
            tagged = select(event_categories.c.event_id).where(
                event_categories.c.category_id.in_(filters.category_ids)
            )
            conditions.append(Event.id.in_(tagged))

        return conditions

    @staticmethod
    def _box_conditions(box: BoundingBox) -> list:
        conditions = [Event.latitude.between(box.min_lat, box.max_lat)]
        if not box.covers_all_longitudes:
            conditions.append(
                or_(*[Event.longitude.between(low, high) for low, high in box.lon_ranges])
            )
        return conditions

    async def _load_events(self, event_ids: list[int]) -> dict[int, Event]:
        if not event_ids:
            return {}
        stmt = (
            select(Event)
            .where(Event.id.in_(event_ids))
            .options(selectinload(Event.categories))
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return {event.id: event for event in result.scalars().all()}

    async def get_all(self, filters: EventFilters) -> tuple[list[Event], Pagination]:
        """Events matching every filter, ordered by start time"""
        conditions = self._filter_conditions(filters)

        total = await self.db.scalar(select(func.count(Event.id)).where(*conditions)) or 0
        pagination = Pagination.build(total, filters.page, filters.limit)

        stmt = (
            select(Event)
            .where(*conditions)
            .options(selectinload(Event.categories))
            .order_by(Event.start_time.asc(), Event.id.asc())
            .offset(pagination.offset)
            .limit(filters.limit)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all()), pagination

    def location_query(self, search: LocationSearch):
        """
        Count and page statements for a location search.

        The radius bounding box keeps the lat/lon index in play; the haversine
        expression then decides membership and order (distance, then start
        time, then id). Counting, ordering and paging all run in the database.
        """
        box = bounding_box(search.latitude, search.longitude, search.radius_km)
        distance = distance_km_sql(Event.latitude, Event.longitude, search.latitude, search.longitude)
        conditions = (
            self._filter_conditions(search)
            + self._box_conditions(box)
            + [distance <= search.radius_km]
        )

        count_stmt = select(func.count(Event.id)).where(*conditions)

        distance_column = distance.label("distance_km")
        page_stmt = (
            select(Event.id, distance_column)
            .where(*conditions)
            .order_by(distance_column, Event.start_time.asc(), Event.id.asc())
            .offset((search.page - 1) * search.limit)
            .limit(search.limit)
        )
        return count_stmt, page_stmt

    async def search_by_location(self, search: LocationSearch) -> tuple[list[tuple[Event, float]], Pagination]:
        """Events within `radius_km` of the center, nearest first; only the page is hydrated"""
        count_stmt, page_stmt = self.location_query(search)

        total = await self.db.scalar(count_stmt) or 0
        pagination = Pagination.build(total, search.page, search.limit)

        rows = (await self.db.execute(page_stmt)).all()
        events = await self._load_events([row.id for row in rows])
        hits = [(events[row.id], row.distance_km) for row in rows if row.id in events]

        logger.info(
            "location_search_executed",
            latitude=search.latitude,
            longitude=search.longitude,
            radius_km=search.radius_km,
            total=pagination.total
        )
        return hits, pagination

    # Reviews

    async def get_average_rating(self, event_id: int) -> RatingSummary:
        stmt = select(func.avg(Review.rating), func.count(Review.id)).where(Review.event_id == event_id)
        average, count = (await self.db.execute(stmt)).one()

        if average is None:
            return RatingSummary(average_rating=None, review_count=count or 0)

        rounded = Decimal(str(average)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)
        return RatingSummary(average_rating=float(rounded), review_count=count)

    async def _find_review(self, event_id: int, user_id: int) -> Review | None:
        stmt = select(Review).where(Review.event_id == event_id, Review.user_id == user_id)
        return await self.db.scalar(stmt)

    async def _update_review(self, review: Review, rating: int, text: str | None) -> Review:
        review.rating = rating
        review.review = text
        review.updated_at = utcnow()
        await self.db.commit()
        return review

    async def add_review(self, event_id: int, user_id: int, rating: int, text: str | None = None) -> Review:
        """One review per (event, user); re-submission updates it"""
        existing = await self._find_review(event_id, user_id)

        try:
            if existing is not None:
                review = await self._update_review(existing, rating, text)
            else:
                review = Review(event_id=event_id, user_id=user_id, rating=rating, review=text)
                self.db.add(review)
                await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            if existing is None:
                # A concurrent first review won the insert
                existing = await self._find_review(event_id, user_id)
                if existing is not None:
                    return await self._update_review(existing, rating, text)
            raise translate_integrity_error(e) from e

        logger.info("review_saved", event_id=event_id, user_id=user_id, rating=rating, updated=existing is not None)
        return review

    async def get_reviews(self, event_id: int, page: int = 1, limit: int = 10) -> tuple[list[ReviewResponse], Pagination]:
        """Reviews newest first, annotated with the reviewer's name"""
        total = await self.db.scalar(select(func.count(Review.id)).where(Review.event_id == event_id)) or 0
        pagination = Pagination.build(total, page, limit)

        stmt = (
            select(Review, User.username, User.full_name)
            .join(User, User.id == Review.user_id)
            .where(Review.event_id == event_id)
            .order_by(Review.created_at.desc(), Review.id.desc())
            .offset(pagination.offset)
            .limit(limit)
        )
        rows = (await self.db.execute(stmt)).all()
        reviews = [ReviewResponse.from_model(review, username, full_name) for review, username, full_name in rows]
        return reviews, pagination

    # Favorites

    async def favorite_event(self, user_id: int, event_id: int) -> bool:
        """Bookmark an event; returns False when it was already a favorite"""
        stmt = (
            dialect_insert(self.db, Favorite.__table__)
            .values(user_id=user_id, event_id=event_id)
            .on_conflict_do_nothing(index_elements=["user_id", "event_id"])
        )
        try:
            result = await self.db.execute(stmt)
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            raise translate_integrity_error(e) from e

        inserted = result.rowcount > 0
        logger.info("event_favorited", user_id=user_id, event_id=event_id, inserted=inserted)
        return inserted

    async def unfavorite_event(self, user_id: int, event_id: int) -> bool:
        stmt = delete(Favorite).where(Favorite.user_id == user_id, Favorite.event_id == event_id)
        result = await self.db.execute(stmt)
        await self.db.commit()
        return result.rowcount > 0

    async def is_favorited(self, user_id: int, event_id: int) -> bool:
        stmt = select(Favorite.event_id).where(Favorite.user_id == user_id, Favorite.event_id == event_id)
        return (await self.db.scalar(stmt)) is not None

    async def get_user_favorites(self, user_id: int, page: int = 1, limit: int = 10) -> tuple[list[tuple[Event, datetime]], Pagination]:
        """Favorite events, most recently favorited first"""
        total = await self.db.scalar(select(func.count()).select_from(Favorite).where(Favorite.user_id == user_id)) or 0
        pagination = Pagination.build(total, page, limit)

        stmt = (
            select(Event, Favorite.created_at)
            .join(Favorite, Favorite.event_id == Event.id)
            .where(Favorite.user_id == user_id)
            .options(selectinload(Event.categories))
            .order_by(Favorite.created_at.desc(), Event.id.desc())
            .offset(pagination.offset)
            .limit(limit)
        )
        rows = (await self.db.execute(stmt)).all()
        return [(event, as_utc(favorited_at)) for event, favorited_at in rows], pagination
