"""
Travel Log API — Trip Schemas
===============================
"""

from typing import ClassVar, Optional

from pydantic import Field

from travellog.models.trip import (
    DESCRIPTION_MAX_LENGTH,
    DESCRIPTION_MIN_LENGTH,
    TITLE_MAX_LENGTH,
    TITLE_MIN_LENGTH,
    Trip,
)
from travellog.schemas.common import ApiModel, Timestamp, WriteModel
from travellog.schemas.user import UserResponse


class TripCreate(WriteModel):
    document_name: ClassVar[str] = "Trip"

    title: str = Field(min_length=TITLE_MIN_LENGTH, max_length=TITLE_MAX_LENGTH)
    description: str = Field(
        min_length=DESCRIPTION_MIN_LENGTH,
        max_length=DESCRIPTION_MAX_LENGTH,
    )


class TripUpdate(WriteModel):
    """The owner of a trip is not editable; only title and description are."""

    document_name: ClassVar[str] = "Trip"

    title: str = Field(
        default=None,
        min_length=TITLE_MIN_LENGTH,
        max_length=TITLE_MAX_LENGTH,
    )
    description: str = Field(
        default=None,
        min_length=DESCRIPTION_MIN_LENGTH,
        max_length=DESCRIPTION_MAX_LENGTH,
    )


class TripResponse(ApiModel):
    id: str
    href: str
    title: str
    description: str
    places_count: Optional[int] = None
    user_id: str = Field(description="Public identifier of the user who created the trip")
    user_href: str
    created_at: Timestamp
    updated_at: Timestamp

    # Present only when requested with ?include=user
    user: Optional[UserResponse] = None

    @classmethod
    def from_document(cls, trip: Trip, include_user: bool = False) -> "TripResponse":
        return cls(
            id=trip.api_id,
            href=trip.href,
            title=trip.title,
            description=trip.description,
            places_count=trip.places_count,
            user_id=trip.user_api_id,
            user_href=trip.user_href,
            created_at=trip.created_at,
            updated_at=trip.updated_at,
            user=UserResponse.from_document(trip.user) if include_user else None,
        )
