"""
Travel Log API — Place Service
================================

What:  Creation, listing, retrieval, update and deletion of places, including
       the geographic list filters.
Who:   Called by the /api/places route handlers.

Geographic filters:
    ?bbox=minLng,minLat,maxLng,maxLat   places inside the bounding box
    ?near=lng,lat[,alt],meters          places within a distance of a point

    Both may be repeated; a place matching any of the boxes or circles is
    selected. Distances are great-circle distances on a spherical Earth
    (haversine formula), computed in SQL so that they combine with the other
    filters and with pagination. Altitude is accepted but ignored.

Authorization:
    Only the owner of a trip may add places to it, or move a place into it.
    The place routes check ownership of the place itself; the checks on the
    target trip happen here, once the trip reference has been resolved.
"""

import logging
import math
from typing import List, Optional, Tuple

from sqlalchemy import Float, Select, and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from starlette.requests import Request
from starlette.responses import Response

from travellog.exceptions import ForbiddenError, InvalidQueryParamError, NotFoundError, ValidationError
from travellog.models.mixins import ensure_api_id, flush_unique, resolve_related
from travellog.models.place import Place
from travellog.models.trip import Trip
from travellog.models.user import User
from travellog.schemas.place import PlaceCreate, PlaceResponse, PlaceUpdate
from travellog.services.query_pipeline import (
    add_related_properties,
    identity_filters,
    include_requested,
    paginate,
    query_values,
    sort_pipeline_factory,
)

logger = logging.getLogger(__name__)

# Mean Earth radius in meters (IUGG)
EARTH_RADIUS = 6371008.8

BBOX_FORMAT = (
    "a comma-delimited string of 4 numbers: the longitude and latitude of the "
    "south-west corner followed by the longitude and latitude of the north-east corner"
)
NEAR_FORMAT = (
    "a comma-delimited string of 3 or 4 numbers: a longitude, a latitude, an optional "
    "altitude and a distance in meters"
)

sort_places = sort_pipeline_factory(
    allowed=[
        "name",
        {
            "createdAt": "created_at",
            "updatedAt": "updated_at",
            "id": "api_id",
            "href": "api_id",
            "trip.title": "trip_title",
            "trip.id": "trip_api_id",
            "trip.href": "trip_api_id",
        },
    ],
    default="createdAt",
)


# ══════════════════════════════════════════════════════════════════════════
# Geographic filters
# ══════════════════════════════════════════════════════════════════════════

def _parse_numbers(param: str, value: str, expected: str) -> List[float]:
    numbers = []
    for part in value.split(","):
        try:
            number = float(part)
        except ValueError:
            number = math.nan
        if not math.isfinite(number):
            raise InvalidQueryParamError(
                param,
                f'Query parameter "{param}" must be {expected}, but its value is "{value}"',
            )
        numbers.append(number)
    return numbers


def _check_coordinates(param: str, value: str, longitudes: List[float], latitudes: List[float]) -> None:
    if any(not -180 <= lng <= 180 for lng in longitudes) or any(not -90 <= lat <= 90 for lat in latitudes):
        raise InvalidQueryParamError(
            param,
            f'Query parameter "{param}" has invalid coordinates (longitudes must be between '
            f'-180 and 180 and latitudes between -90 and 90), but its value is "{value}"',
        )


def parse_bbox(value: str) -> Tuple[float, float, float, float]:
    """Parses "minLng,minLat,maxLng,maxLat"."""
    numbers = _parse_numbers("bbox", value, BBOX_FORMAT)
    if len(numbers) != 4:
        raise InvalidQueryParamError(
            "bbox",
            f'Query parameter "bbox" must be {BBOX_FORMAT}, but its value is "{value}"',
        )

    min_lng, min_lat, max_lng, max_lat = numbers
    _check_coordinates("bbox", value, [min_lng, max_lng], [min_lat, max_lat])
    return min_lng, min_lat, max_lng, max_lat


def parse_near(value: str) -> Tuple[float, float, float]:
    """Parses "lng,lat[,alt],meters" into (lng, lat, meters)."""
    numbers = _parse_numbers("near", value, NEAR_FORMAT)
    if len(numbers) not in (3, 4):
        raise InvalidQueryParamError(
            "near",
            f'Query parameter "near" must be {NEAR_FORMAT}, but its value is "{value}"',
        )

    lng, lat, distance = numbers[0], numbers[1], numbers[-1]
    _check_coordinates("near", value, [lng], [lat])
    if distance < 0:
        raise InvalidQueryParamError(
            "near",
            f'Query parameter "near" must end with a distance greater than or equal to 0, '
            f'but its value is "{value}"',
        )

    return lng, lat, distance


def distance_to(lng: float, lat: float):
    """SQL expression of the great-circle distance in meters from a place to a point."""
    lat1 = math.radians(lat)
    lat2 = func.radians(Place.latitude, type_=Float)
    half_dlat = (lat2 - lat1) / 2
    half_dlng = (func.radians(Place.longitude, type_=Float) - math.radians(lng)) / 2

    haversine = (
        func.sin(half_dlat, type_=Float) * func.sin(half_dlat, type_=Float)
        + math.cos(lat1) * func.cos(lat2, type_=Float)
        * func.sin(half_dlng, type_=Float) * func.sin(half_dlng, type_=Float)
    )
    # LEAST absorbs rounding errors that would push asin out of its domain
    return 2 * EARTH_RADIUS * func.asin(func.least(1.0, func.sqrt(haversine)), type_=Float)


def place_filters(request: Request) -> List:
    """
    ?trip    in the trip(s) with these ids
    ?name    exact name, case-insensitive (repeatable, any may match)
    ?search  name or description contains the term (repeatable, all must match)
    ?bbox    inside any of the bounding boxes
    ?near    within the distance of any of the points
    """
    filters = identity_filters(request, Place)

    trip_ids = query_values(request, "trip")
    if trip_ids:
        filters.append(Place.trip_id.in_(select(Trip.id).where(Trip.api_id.in_(trip_ids))))

    names = query_values(request, "name")
    if names:
        filters.append(or_(*(func.lower(Place.name) == name.lower() for name in names)))

    for term in query_values(request, "search"):
        filters.append(or_(
            Place.name.icontains(term, autoescape=True),
            Place.description.icontains(term, autoescape=True),
        ))

    boxes = [parse_bbox(value) for value in query_values(request, "bbox")]
    if boxes:
        filters.append(or_(*(
            and_(
                Place.longitude.between(min_lng, max_lng),
                Place.latitude.between(min_lat, max_lat),
            )
            for min_lng, min_lat, max_lng, max_lat in boxes
        )))

    points = [parse_near(value) for value in query_values(request, "near")]
    if points:
        filters.append(or_(*(distance_to(lng, lat) <= distance for lng, lat, distance in points)))

    return filters


# ══════════════════════════════════════════════════════════════════════════
# Service
# ══════════════════════════════════════════════════════════════════════════

class PlaceService:

    def places_query(self) -> Select:
        """Selects places with their trip and the trip's owner loaded."""
        return select(Place).options(selectinload(Place.trip).selectinload(Trip.user))

    async def list_places(self, db: AsyncSession, request: Request, response: Response) -> List[PlaceResponse]:
        stmt = add_related_properties(self.places_query(), Place, Trip, ["title", "api_id"])
        stmt = sort_places(request, stmt)
        stmt = await paginate(request, response, db, Place, stmt, place_filters)

        include_trip_user = include_requested(request, "user", "trip")
        include_trip = include_trip_user or include_requested(request, "trip")

        return [
            PlaceResponse.from_document(
                row[0],
                include_trip=include_trip,
                include_trip_user=include_trip_user,
            )
            for row in (await db.execute(stmt)).all()
        ]

    async def get_place(self, db: AsyncSession, api_id: str) -> Place:
        """
        Raises:
            NotFoundError: no place has this id (→ 404)
        """
        place = await db.scalar(self.places_query().where(Place.api_id == api_id))
        if place is None:
            raise NotFoundError(resource="place", resource_id=api_id)
        return place

    async def create_place(self, db: AsyncSession, payload: PlaceCreate, actor: User) -> Place:
        """
        Adds a place to one of the actor's trips.

        Raises:
            ValidationError: invalid or missing trip reference, or name taken
                in the trip (→ 422)
            ForbiddenError: the trip belongs to another user (→ 403)
        """
        trip = await self._load_target_trip(db, payload.trip_id, payload.trip_href, actor)
        await self._ensure_name_available(db, payload.name, trip)

        place = Place().parse_from(payload, exclude=("trip_id", "trip_href"))
        place.trip = trip
        await ensure_api_id(db, place)

        db.add(place)
        await flush_unique(db, place, "Place")
        await db.commit()

        logger.info(
            'Created place %s named "%s" in trip %s',
            place.api_id, place.name, trip.api_id,
        )
        return place

    async def update_place(self, db: AsyncSession, place: Place, payload: PlaceUpdate, actor: User) -> Place:
        """Applies a partial update; the place may be moved to another trip of the actor."""
        trip = place.trip
        if payload.moves_trip:
            trip = await self._load_target_trip(db, payload.trip_id, payload.trip_href, actor)

        name = payload.name if payload.name is not None else place.name
        if name != place.name or trip.id != place.trip_id:
            await self._ensure_name_available(db, name, trip, exclude_id=place.id)

        place.parse_from(payload, exclude=("trip_id", "trip_href"))
        place.trip = trip

        await flush_unique(db, place, "Place")
        await db.commit()

        logger.info('Updated place %s named "%s"', place.api_id, place.name)
        return place

    async def delete_place(self, db: AsyncSession, place: Place) -> None:
        await db.delete(place)
        await db.commit()

        logger.info('Removed place %s named "%s"', place.api_id, place.name)

    async def _load_target_trip(
        self,
        db: AsyncSession,
        trip_id: Optional[str],
        trip_href: Optional[str],
        actor: User,
    ) -> Trip:
        trip, error = await resolve_related(
            db,
            Trip,
            "trip",
            api_id=trip_id,
            href=trip_href,
            options=[selectinload(Trip.user)],
        )
        if error is not None:
            raise ValidationError("Place", {error["path"]: error})

        if trip.user_id != actor.id:
            logger.debug("User %s may not add places to trip %s", actor.api_id, trip.api_id)
            raise ForbiddenError()

        return trip

    async def _ensure_name_available(
        self,
        db: AsyncSession,
        name: str,
        trip: Trip,
        exclude_id: Optional[int] = None,
    ) -> None:
        stmt = select(Place.id).where(
            func.lower(Place.name) == name.lower(),
            Place.trip_id == trip.id,
        )
        if exclude_id is not None:
            stmt = stmt.where(Place.id != exclude_id)

        if await db.scalar(stmt) is not None:
            raise ValidationError("Place", {"name": Place.unique_error("name", name)})


# ── Singleton Instance ────────────────────────────────────────────────────
place_service = PlaceService()
