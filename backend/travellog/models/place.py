"""
Travel Log API — Place Model
==============================

What:  ORM model for the `places` table: a geolocated point of interest
       visited during a trip.

Location storage:
    The GeoJSON point exposed by the API ({"type": "Point", "coordinates":
    [lng, lat, alt?]}) is stored as three float columns so that bounding box
    and distance filters can be expressed in plain SQL on any backend.

Uniqueness:
    A place name is unique within its trip regardless of case, enforced by an
    expression index on (lower(name), trip_id).
"""

from typing import Any, Dict, Optional

from sqlalchemy import Float, ForeignKey, Index, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from travellog.database import Base
from travellog.models.mixins import (
    ApiIdMixin,
    HrefMixin,
    ParseMixin,
    TimestampsMixin,
    UniqueFieldsMixin,
)
from travellog.models.trip import Trip

NAME_MIN_LENGTH = 3
NAME_MAX_LENGTH = 100
DESCRIPTION_MIN_LENGTH = 5
DESCRIPTION_MAX_LENGTH = 50000
PICTURE_URL_MIN_LENGTH = 10
PICTURE_URL_MAX_LENGTH = 1000


class Place(ApiIdMixin, HrefMixin, ParseMixin, TimestampsMixin, UniqueFieldsMixin, Base):
    __tablename__ = "places"

    api_resource = "/api/places"
    unique_message = 'There is already a place named "{value}" in this trip'
    unique_fields = {
        "uq_places_trip_name_lower": "name",
    }

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    name: Mapped[str] = mapped_column(String(NAME_MAX_LENGTH), nullable=False)

    description: Mapped[str] = mapped_column(Text, nullable=False)

    # ── Location ──────────────────────────────────────────────────────────
    longitude: Mapped[float] = mapped_column(Float, nullable=False)
    latitude: Mapped[float] = mapped_column(Float, nullable=False)
    altitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    picture_url: Mapped[Optional[str]] = mapped_column(
        String(PICTURE_URL_MAX_LENGTH),
        nullable=True,
    )

    trip_id: Mapped[int] = mapped_column(
        ForeignKey("trips.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    trip: Mapped[Trip] = relationship(lazy="raise")

    __table_args__ = (
        Index("uq_places_trip_name_lower", func.lower(name), trip_id, unique=True),
        Index("idx_places_location", longitude, latitude),
    )

    @property
    def location(self) -> Dict[str, Any]:
        coordinates = [self.longitude, self.latitude]
        if self.altitude is not None:
            coordinates.append(self.altitude)
        return {"type": "Point", "coordinates": coordinates}

    @location.setter
    def location(self, point: Dict[str, Any]) -> None:
        coordinates = list(point["coordinates"])
        self.longitude = coordinates[0]
        self.latitude = coordinates[1]
        self.altitude = coordinates[2] if len(coordinates) > 2 else None

    @property
    def trip_api_id(self) -> str:
        return self.trip.api_id

    @property
    def trip_href(self) -> str:
        return self.trip.href

    def __repr__(self) -> str:
        return f"<Place(api_id={self.api_id}, name='{self.name}')>"
