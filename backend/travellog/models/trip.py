"""
Travel Log API — Trip Model
=============================

What:  ORM model for the `trips` table. A trip belongs to the user who
       created it and groups the places visited during it.

Relationships:
    user  many-to-one, lazy="raise": the owner must be eagerly loaded
          (selectinload) before `user_api_id` / `user_href` are read.
"""

from sqlalchemy import ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from travellog.database import Base
from travellog.models.mixins import (
    ApiIdMixin,
    HrefMixin,
    ParseMixin,
    TimestampsMixin,
    UniqueFieldsMixin,
)
from travellog.models.user import User

TITLE_MIN_LENGTH = 3
TITLE_MAX_LENGTH = 100
DESCRIPTION_MIN_LENGTH = 5
DESCRIPTION_MAX_LENGTH = 50000


class Trip(ApiIdMixin, HrefMixin, ParseMixin, TimestampsMixin, UniqueFieldsMixin, Base):
    __tablename__ = "trips"

    api_resource = "/api/trips"
    unique_message = "Error, expected `{path}` to be unique. Value: `{value}`"
    unique_fields = {
        "uq_trips_title": "title",
        "trips.title": "title",
    }

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    title: Mapped[str] = mapped_column(String(TITLE_MAX_LENGTH), nullable=False)

    description: Mapped[str] = mapped_column(Text, nullable=False)

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Owner of the trip; fixed at creation",
    )

    user: Mapped[User] = relationship(lazy="raise")

    # Number of places in the trip; only set by the list and detail queries
    places_count = None

    __table_args__ = (
        UniqueConstraint("title", name="uq_trips_title"),
    )

    @property
    def user_api_id(self) -> str:
        return self.user.api_id

    @property
    def user_href(self) -> str:
        return self.user.href

    def __repr__(self) -> str:
        return f"<Trip(api_id={self.api_id}, title='{self.title}')>"
