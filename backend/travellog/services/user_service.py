"""
Travel Log API — User Service
===============================

What:  Registration, listing, retrieval, update and deletion of users.
Who:   Called by the /api/users route handlers.

Deletion cascade:
    DELETE /api/users/{id} removes the places of the user's trips, then the
    trips, then the user, in the request's single transaction.
"""

import logging
from typing import List, Optional

from sqlalchemy import Select, delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.requests import Request
from starlette.responses import Response

from travellog.exceptions import NotFoundError, ValidationError
from travellog.models.mixins import ensure_api_id, flush_unique
from travellog.models.place import Place
from travellog.models.trip import Trip
from travellog.models.user import User
from travellog.schemas.user import UserCreate, UserResponse, UserUpdate
from travellog.services.auth_service import auth_service
from travellog.services.query_pipeline import (
    count_related,
    identity_filters,
    paginate,
    query_values,
    sort_pipeline_factory,
)

logger = logging.getLogger(__name__)

sort_users = sort_pipeline_factory(
    allowed=[
        "name",
        {
            "tripsCount": "trips_count",
            "createdAt": "created_at",
            "updatedAt": "updated_at",
            "id": "api_id",
            "href": "api_id",
        },
    ],
    default="name",
)


def user_filters(request: Request) -> List:
    """
    ?name    exact name, case-insensitive (repeatable, any may match)
    ?search  name contains the term, case-insensitive (repeatable, all must match)
    """
    filters = identity_filters(request, User)

    names = query_values(request, "name")
    if names:
        filters.append(or_(*(func.lower(User.name) == name.lower() for name in names)))

    for term in query_values(request, "search"):
        filters.append(User.name.icontains(term, autoescape=True))

    return filters


class UserService:

    def users_query(self) -> Select:
        """Selects users along with their number of trips."""
        return count_related(select(User), User, Trip)

    async def list_users(self, db: AsyncSession, request: Request, response: Response) -> List[UserResponse]:
        stmt = sort_users(request, self.users_query())
        stmt = await paginate(request, response, db, User, stmt, user_filters)

        users = []
        for user, trips_count in (await db.execute(stmt)).all():
            user.trips_count = trips_count
            users.append(UserResponse.from_document(user))
        return users

    async def get_user(self, db: AsyncSession, api_id: str) -> User:
        """
        Loads a user and their number of trips.

        Raises:
            NotFoundError: no user has this id (→ 404)
        """
        row = (await db.execute(self.users_query().where(User.api_id == api_id))).first()
        if row is None:
            raise NotFoundError(resource="user", resource_id=api_id)

        user, trips_count = row
        user.trips_count = trips_count
        return user

    async def create_user(self, db: AsyncSession, payload: UserCreate) -> User:
        await self._ensure_name_available(db, payload.name)

        user = User().parse_from(payload, exclude=("password",))
        user.password_hash = await auth_service.hash_password(payload.password)
        user.trips_count = 0
        await ensure_api_id(db, user)

        db.add(user)
        await flush_unique(db, user, "User")
        await db.commit()

        logger.info('Created user %s named "%s"', user.api_id, user.name)
        return user

    async def update_user(self, db: AsyncSession, user: User, payload: UserUpdate) -> User:
        """Applies a partial update; a new password is hashed before storage."""
        if payload.name is not None:
            await self._ensure_name_available(db, payload.name, exclude_id=user.id)

        user.parse_from(payload, exclude=("password",))
        if payload.password:
            user.password_hash = await auth_service.hash_password(payload.password)

        await flush_unique(db, user, "User")
        await db.commit()

        logger.info('Updated user %s named "%s"', user.api_id, user.name)
        return user

    async def delete_user(self, db: AsyncSession, user: User) -> None:
        trip_ids = select(Trip.id).where(Trip.user_id == user.id)

        places = await db.execute(
            delete(Place)
            .where(Place.trip_id.in_(trip_ids))
            .execution_options(synchronize_session=False)
        )
        trips = await db.execute(
            delete(Trip)
            .where(Trip.user_id == user.id)
            .execution_options(synchronize_session=False)
        )
        await db.delete(user)
        await db.commit()

        logger.info(
            'Removed user %s named "%s" with %d trip(s) and %d place(s)',
            user.api_id, user.name, trips.rowcount, places.rowcount,
        )

    async def _ensure_name_available(self, db: AsyncSession, name: str, exclude_id: Optional[int] = None) -> None:
        stmt = select(User.id).where(func.lower(User.name) == name.lower())
        if exclude_id is not None:
            stmt = stmt.where(User.id != exclude_id)

        if await db.scalar(stmt) is not None:
            raise ValidationError("User", {"name": User.unique_error("name", name)})


# ── Singleton Instance ────────────────────────────────────────────────────
user_service = UserService()
