"""
Travel Log API — Authentication & Authorization Dependencies
==============================================================

What:  FastAPI dependencies guarding protected routes.

    authenticate                   Authorization: Bearer <token> → current User
    authorize(predicate, loader)   authenticate, load the target resource, then
                                   require predicate(actor, resource)

Order of checks on a protected route:
    1. authentication   401 authHeaderMissing / authHeaderMalformed /
                        authTokenExpired / authTokenInvalid
    2. resource lookup  404 recordNotFound
    3. authorization    403 forbidden

FastAPI caches dependencies per request, so a route depending on both
`authenticate` and `authorize(...)` authenticates only once.
"""

import re
from typing import Any, Callable, Optional

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from travellog.database import get_db_session
from travellog.exceptions import AuthenticationError, ForbiddenError
from travellog.models.place import Place
from travellog.models.trip import Trip
from travellog.models.user import User
from travellog.services.auth_service import auth_service

BEARER_PATTERN = re.compile(r"^Bearer (.+)$")

Predicate = Callable[[User, Any], bool]


async def authenticate(
    authorization: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_db_session),
) -> User:
    if not authorization:
        raise AuthenticationError("authHeaderMissing", "Authorization header is missing")

    match = BEARER_PATTERN.match(authorization)
    if not match:
        raise AuthenticationError(
            "authHeaderMalformed",
            'Authorization header is not a valid bearer token (format must be "Bearer TOKEN")',
        )

    return await auth_service.user_for_token(db, match.group(1))


def authorize(predicate: Predicate, loader: Callable[..., Any]) -> Callable[..., Any]:
    """
    Creates a dependency returning the resource loaded by `loader` if the
    authenticated user passes `predicate`.

    Raises:
        ForbiddenError: the predicate returned a falsy value (→ 403)
    """

    async def dependency(
        actor: User = Depends(authenticate),
        resource: Any = Depends(loader),
    ) -> Any:
        if not predicate(actor, resource):
            raise ForbiddenError()
        return resource

    return dependency


# ── Ownership predicates ──────────────────────────────────────────────────

def is_self(actor: User, user: User) -> bool:
    return actor.api_id == user.api_id


def owns_trip(actor: User, trip: Trip) -> bool:
    return trip.user_id == actor.id


def owns_place(actor: User, place: Place) -> bool:
    return place.trip.user_id == actor.id
