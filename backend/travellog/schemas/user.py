"""
Travel Log API — User Schemas
===============================

Request payloads for registration and account updates, and the public
representation of a user. The password hash never leaves the server.
"""

from typing import ClassVar, Optional

from pydantic import Field

from travellog.models.user import (
    NAME_MAX_LENGTH,
    NAME_MIN_LENGTH,
    NAME_PATTERN,
    PASSWORD_MIN_LENGTH,
    User,
)
from travellog.schemas.common import ApiModel, Timestamp, WriteModel


class UserCreate(WriteModel):
    """Body of POST /api/users."""

    document_name: ClassVar[str] = "User"

    name: str = Field(
        min_length=NAME_MIN_LENGTH,
        max_length=NAME_MAX_LENGTH,
        pattern=NAME_PATTERN,
    )
    password: str = Field(min_length=PASSWORD_MIN_LENGTH)


class UserUpdate(WriteModel):
    """
    Body of PATCH /api/users/{id}.

    Fields default to None so that they may be omitted, but an explicit null
    is rejected as a missing required value.
    """

    document_name: ClassVar[str] = "User"

    name: str = Field(
        default=None,
        min_length=NAME_MIN_LENGTH,
        max_length=NAME_MAX_LENGTH,
        pattern=NAME_PATTERN,
    )
    password: str = Field(default=None, min_length=PASSWORD_MIN_LENGTH)


class UserResponse(ApiModel):
    id: str = Field(description="Public user identifier (UUID)")
    href: str = Field(description="Path of the user resource")
    name: str
    trips_count: Optional[int] = Field(default=None, description="Number of trips created by the user")
    created_at: Timestamp
    updated_at: Timestamp

    @classmethod
    def from_document(cls, user: User) -> "UserResponse":
        return cls(
            id=user.api_id,
            href=user.href,
            name=user.name,
            trips_count=user.trips_count,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )
