from datetime import datetime
from typing import Any

import structlog

from app.core.config import Settings
from app.core.errors import ValidationError, field_error
from app.schemas.common import as_utc
from app.schemas.event import EventResponse
from app.schemas.search import LocationSearch, SearchParameters
from app.services.event_store import EventStore
from app.services.geo import is_valid_coordinate

logger = structlog.get_logger()


class SearchService:
    """Resolves the search origin and filters, then runs the location query"""

    def __init__(self, event_store: EventStore, settings: Settings):
        self.event_store = event_store
        self.settings = settings

    def resolve_origin(self, latitude: float | None, longitude: float | None, user=None) -> tuple[float, float, str]:
        """
        Center of the search, as (latitude, longitude, source).

        An explicit valid pair wins, then the caller's stored location, then the
        configured default.
        """
        if is_valid_coordinate(latitude, longitude):
            return float(latitude), float(longitude), "query"

        if user is not None and is_valid_coordinate(user.latitude, user.longitude):
            return user.latitude, user.longitude, "user"

        return self.settings.default_latitude, self.settings.default_longitude, "default"

    def normalize_categories(self, raw: Any) -> list[int]:
        """Category ids from a single value, a list, or comma-separated strings"""
        if raw is None:
            return []

        values = raw if isinstance(raw, (list, tuple)) else [raw]

        tokens = []
        for value in values:
            if isinstance(value, str):
                tokens.extend(part.strip() for part in value.split(","))
            else:
                tokens.append(value)

        ids = []
        invalid = []
        for token in tokens:
            if token is None or token == "":
                continue
            if isinstance(token, bool) or (isinstance(token, float) and not token.is_integer()):
                invalid.append(str(token))
                continue
            try:
                ids.append(int(token))
            except (TypeError, ValueError):
                invalid.append(str(token))

        if invalid and self.settings.strict_category_filter:
            raise ValidationError(
                "invalidCategories",
                errors=[field_error("categories", f"Invalid category ids: {', '.join(invalid)}")],
                values=", ".join(invalid)
            )

        return list(dict.fromkeys(ids))

    def _page_size(self, limit: int | None) -> int:
        if limit is None:
            return self.settings.default_page_size
        return min(limit, self.settings.max_page_size)

    async def search_by_location(
            self,
            latitude: float | None = None,
            longitude: float | None = None,
            radius_km: float | None = None,
            categories: Any = None,
            start_date: datetime | None = None,
            end_date: datetime | None = None,
            page: int = 1,
            limit: int | None = None,
            user=None
    ) -> dict[str, Any]:
        """Paginated, distance-sorted events around the resolved origin"""
        lat, lon, origin = self.resolve_origin(latitude, longitude, user)
        radius = radius_km if radius_km is not None else self.settings.default_search_radius_km
        category_ids = self.normalize_categories(categories)

        start_date = as_utc(start_date)
        end_date = as_utc(end_date)
        if start_date is not None and end_date is not None and end_date < start_date:
            raise ValidationError(
                "endBeforeStart",
                errors=[field_error("endDate", "End date must not be before start date")]
            )

        search = LocationSearch(
            latitude=lat,
            longitude=lon,
            radius_km=radius,
            category_ids=category_ids,
            start_date=start_date,
            end_date=end_date,
            page=page,
            limit=self._page_size(limit),
        )
        hits, pagination = await self.event_store.search_by_location(search)

        logger.info(
            "search_completed",
            origin=origin,
            radius_km=radius,
            categories=category_ids,
            returned=len(hits),
            total=pagination.total
        )

        return {
            "search_parameters": SearchParameters(
                latitude=lat,
                longitude=lon,
                radius=radius,
                origin=origin,
                category_ids=category_ids,
                start_date=start_date,
                end_date=end_date,
            ),
            "events": [EventResponse.from_model(event, distance_km=distance) for event, distance in hits],
            "pagination": pagination,
        }

    async def nearby(
            self,
            latitude: float | None = None,
            longitude: float | None = None,
            radius_km: float | None = None,
            limit: int | None = None,
            user=None
    ) -> dict[str, Any]:
        """First page of an unfiltered location search"""
        return await self.search_by_location(
            latitude=latitude,
            longitude=longitude,
            radius_km=radius_km,
            page=1,
            limit=limit,
            user=user
        )
