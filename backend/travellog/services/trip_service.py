"""
Travel Log API — Trip Service
===============================

What:  Creation, listing, retrieval, update and deletion of trips.
Who:   Called by the /api/trips route handlers.

The owner of a trip is the authenticated user who created it and cannot be
changed afterwards. Trips are always loaded with their owner, which the
response needs for `userId` / `userHref`.
"""

import logging
from typing import List, Optional

from sqlalchemy import Select, delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from starlette.requests import Request
from starlette.responses import Response

from travellog.exceptions import NotFoundError, ValidationError
from travellog.models.mixins import ensure_api_id, flush_unique
from travellog.models.place import Place
from travellog.models.trip import Trip
from travellog.models.user import User
from travellog.schemas.trip import TripCreate, TripResponse, TripUpdate
from travellog.services.query_pipeline import (
    add_related_properties,
    count_related,
    identity_filters,
    include_requested,
    paginate,
    query_values,
    sort_pipeline_factory,
)

logger = logging.getLogger(__name__)

sort_trips = sort_pipeline_factory(
    allowed=[
        "title",
        {
            "placesCount": "places_count",
            "createdAt": "created_at",
            "updatedAt": "updated_at",
            "id": "api_id",
            "href": "api_id",
            "user.name": "user_name",
            "user.id": "user_api_id",
            "user.href": "user_api_id",
        },
    ],
    default="-createdAt",
)


def trip_filters(request: Request) -> List:
    """
    ?user    owned by the user(s) with these ids
    ?title   exact title, case-insensitive (repeatable, any may match)
    ?search  title or description contains the term (repeatable, all must match)
    """
    filters = identity_filters(request, Trip)

    user_ids = query_values(request, "user")
    if user_ids:
        filters.append(Trip.user_id.in_(select(User.id).where(User.api_id.in_(user_ids))))

    titles = query_values(request, "title")
    if titles:
        filters.append(or_(*(func.lower(Trip.title) == title.lower() for title in titles)))

    for term in query_values(request, "search"):
        filters.append(or_(
            Trip.title.icontains(term, autoescape=True),
            Trip.description.icontains(term, autoescape=True),
        ))

    return filters


class TripService:

    def trips_query(self) -> Select:
        """Selects trips with their number of places, owner loaded."""
        return count_related(select(Trip), Trip, Place).options(selectinload(Trip.user))

    async def list_trips(self, db: AsyncSession, request: Request, response: Response) -> List[TripResponse]:
        stmt = add_related_properties(self.trips_query(), Trip, User, ["name", "api_id"])
        stmt = sort_trips(request, stmt)
        stmt = await paginate(request, response, db, Trip, stmt, trip_filters)

        include_user = include_requested(request, "user")

        trips = []
        for row in (await db.execute(stmt)).all():
            trip = row[0]
            trip.places_count = row.places_count
            trips.append(TripResponse.from_document(trip, include_user=include_user))
        return trips

    async def get_trip(self, db: AsyncSession, api_id: str) -> Trip:
        """
        Loads a trip, its owner and its number of places.

        Raises:
            NotFoundError: no trip has this id (→ 404)
        """
        row = (await db.execute(self.trips_query().where(Trip.api_id == api_id))).first()
        if row is None:
            raise NotFoundError(resource="trip", resource_id=api_id)

        trip = row[0]
        trip.places_count = row.places_count
        return trip

    async def create_trip(self, db: AsyncSession, payload: TripCreate, owner: User) -> Trip:
        await self._ensure_title_available(db, payload.title)

        trip = Trip().parse_from(payload)
        trip.user = owner
        trip.places_count = 0
        await ensure_api_id(db, trip)

        db.add(trip)
        await flush_unique(db, trip, "Trip")
        await db.commit()

        logger.info('Created trip %s titled "%s" for user %s', trip.api_id, trip.title, owner.api_id)
        return trip

    async def update_trip(self, db: AsyncSession, trip: Trip, payload: TripUpdate) -> Trip:
        if payload.title is not None:
            await self._ensure_title_available(db, payload.title, exclude_id=trip.id)

        trip.parse_from(payload)
        await flush_unique(db, trip, "Trip")
        await db.commit()

        logger.info('Updated trip %s titled "%s"', trip.api_id, trip.title)
        return trip

    async def delete_trip(self, db: AsyncSession, trip: Trip) -> None:
        places = await db.execute(
            delete(Place)
            .where(Place.trip_id == trip.id)
            .execution_options(synchronize_session=False)
        )
        await db.delete(trip)
        await db.commit()

        logger.info(
            'Removed trip %s titled "%s" with %d place(s)',
            trip.api_id, trip.title, places.rowcount,
        )

    async def _ensure_title_available(self, db: AsyncSession, title: str, exclude_id: Optional[int] = None) -> None:
        stmt = select(Trip.id).where(Trip.title == title)
        if exclude_id is not None:
            stmt = stmt.where(Trip.id != exclude_id)

        if await db.scalar(stmt) is not None:
            raise ValidationError("Trip", {"title": Trip.unique_error("title", title)})


# ── Singleton Instance ────────────────────────────────────────────────────
trip_service = TripService()
