"""
Travel Log API — Place Schemas
================================

Places carry a GeoJSON point:

    {"type": "Point", "coordinates": [longitude, latitude, altitude?]}

The parent trip of a new place is given either as `tripId` or `tripHref`;
when both are present the hyperlink wins.
"""

import math
from typing import Any, ClassVar, List, Literal, Optional

from pydantic import Field, field_validator
from pydantic_core import PydanticCustomError

from travellog.models.place import (
    DESCRIPTION_MAX_LENGTH,
    DESCRIPTION_MIN_LENGTH,
    NAME_MAX_LENGTH,
    NAME_MIN_LENGTH,
    PICTURE_URL_MAX_LENGTH,
    PICTURE_URL_MIN_LENGTH,
    Place,
)
from travellog.schemas.common import ApiModel, Timestamp, WriteModel
from travellog.schemas.trip import TripResponse

COORDINATES_MESSAGE = (
    "Coordinates must be an array of 2 to 3 numbers: longitude (between -180 and 180) "
    "and latitude (between -90 and 90) and an optional altitude"
)


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


class GeoJsonPoint(ApiModel):
    type: Literal["Point"]
    coordinates: List[float]

    @field_validator("coordinates", mode="before")
    @classmethod
    def validate_coordinates(cls, value: Any) -> Any:
        valid = (
            isinstance(value, list)
            and 2 <= len(value) <= 3
            and all(is_number(n) for n in value)
            and -180 <= value[0] <= 180
            and -90 <= value[1] <= 90
        )
        if not valid:
            raise PydanticCustomError("coordinates", COORDINATES_MESSAGE)
        return value


class PlaceCreate(WriteModel):
    document_name: ClassVar[str] = "Place"

    name: str = Field(min_length=NAME_MIN_LENGTH, max_length=NAME_MAX_LENGTH)
    description: str = Field(
        min_length=DESCRIPTION_MIN_LENGTH,
        max_length=DESCRIPTION_MAX_LENGTH,
    )
    location: GeoJsonPoint
    picture_url: Optional[str] = Field(
        default=None,
        min_length=PICTURE_URL_MIN_LENGTH,
        max_length=PICTURE_URL_MAX_LENGTH,
    )
    trip_id: Optional[str] = None
    trip_href: Optional[str] = None


class PlaceUpdate(WriteModel):
    """Every field is optional; `pictureUrl` may be set to null to remove the picture."""

    document_name: ClassVar[str] = "Place"

    name: str = Field(
        default=None,
        min_length=NAME_MIN_LENGTH,
        max_length=NAME_MAX_LENGTH,
    )
    description: str = Field(
        default=None,
        min_length=DESCRIPTION_MIN_LENGTH,
        max_length=DESCRIPTION_MAX_LENGTH,
    )
    location: GeoJsonPoint = None
    picture_url: Optional[str] = Field(
        default=None,
        min_length=PICTURE_URL_MIN_LENGTH,
        max_length=PICTURE_URL_MAX_LENGTH,
    )
    trip_id: str = None
    trip_href: str = None

    @property
    def moves_trip(self) -> bool:
        return "trip_id" in self.model_fields_set or "trip_href" in self.model_fields_set


class PlaceResponse(ApiModel):
    id: str
    href: str
    name: str
    description: str
    location: GeoJsonPoint
    picture_url: Optional[str] = None
    trip_id: str
    trip_href: str
    created_at: Timestamp
    updated_at: Timestamp

    # Present only when requested with ?include=trip (and ?include=trip.user)
    trip: Optional[TripResponse] = None

    @classmethod
    def from_document(
        cls,
        place: Place,
        include_trip: bool = False,
        include_trip_user: bool = False,
    ) -> "PlaceResponse":
        trip = None
        if include_trip:
            trip = TripResponse.from_document(place.trip, include_user=include_trip_user)

        return cls(
            id=place.api_id,
            href=place.href,
            name=place.name,
            description=place.description,
            location=GeoJsonPoint.model_validate(place.location),
            picture_url=place.picture_url,
            trip_id=place.trip_api_id,
            trip_href=place.trip_href,
            created_at=place.created_at,
            updated_at=place.updated_at,
            trip=trip,
        )
