"""
Travel Log API — User Model
=============================

What:  ORM model for the `users` table: registered accounts that own trips.

Table Design:
    - id: internal integer key, never exposed
    - api_id: public identifier (ApiIdMixin)
    - name: unique regardless of case, enforced by an expression index on
      lower(name) in addition to the service-level availability check
    - password_hash: bcrypt hash; the clear password is never stored
"""

from typing import Optional

from sqlalchemy import Index, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from travellog.database import Base
from travellog.models.mixins import (
    ApiIdMixin,
    HrefMixin,
    ParseMixin,
    TimestampsMixin,
    UniqueFieldsMixin,
)

NAME_PATTERN = r"^[a-zA-Z0-9]+(?:-[a-zA-Z0-9]+)*$"
NAME_MIN_LENGTH = 3
NAME_MAX_LENGTH = 25
PASSWORD_MIN_LENGTH = 4


class User(ApiIdMixin, HrefMixin, ParseMixin, TimestampsMixin, UniqueFieldsMixin, Base):
    __tablename__ = "users"

    api_resource = "/api/users"
    unique_fields = {
        "uq_users_name_lower": "name",
        "users.name": "name",
    }

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    name: Mapped[str] = mapped_column(
        String(NAME_MAX_LENGTH),
        nullable=False,
        comment="Unique user name (alphanumeric segments joined by hyphens)",
    )

    password_hash: Mapped[Optional[str]] = mapped_column(
        String(60),
        nullable=True,
        comment="bcrypt hash of the password",
    )

    # Number of trips owned by the user; only set by the list and detail queries
    trips_count = None

    __table_args__ = (
        Index("uq_users_name_lower", func.lower(name), unique=True),
    )

    def __repr__(self) -> str:
        return f"<User(api_id={self.api_id}, name='{self.name}')>"
