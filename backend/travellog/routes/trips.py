"""
Travel Log API — Trip Routes
==============================

    POST    /api/trips        create a trip owned by the current user
    GET     /api/trips        list (paginated, filtered, sorted)
    GET     /api/trips/{id}   retrieve
    PATCH   /api/trips/{id}   update title or description   owner only
    DELETE  /api/trips/{id}   delete with its places        owner only, 204

List query parameters: user, title, search, id, href, sort (title,
placesCount, createdAt, updatedAt, id, href, user.name, user.id, user.href;
default -createdAt), page, pageSize. `?include=user` embeds the owner.
"""

from typing import Any, Dict, List

from fastapi import APIRouter, BackgroundTasks, Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from travellog.config import settings
from travellog.database import get_db_session
from travellog.middleware.auth import authenticate, authorize, owns_trip
from travellog.middleware.json_body import require_json
from travellog.models.trip import Trip
from travellog.models.user import User
from travellog.schemas.common import ERROR_RESPONSES
from travellog.schemas.trip import TripCreate, TripResponse, TripUpdate
from travellog.services.query_pipeline import include_requested
from travellog.services.stats_service import stats_broadcaster
from travellog.services.trip_service import trip_service

router = APIRouter(prefix="/api/trips", tags=["Trips"])


async def load_trip(trip_id: str, db: AsyncSession = Depends(get_db_session)) -> Trip:
    return await trip_service.get_trip(db, trip_id)


@router.post(
    "",
    status_code=201,
    response_model=TripResponse,
    response_model_exclude_none=True,
    responses={code: ERROR_RESPONSES[code] for code in (400, 401, 415, 422)},
    summary="Create a trip",
)
async def create_trip(
    request: Request,
    response: Response,
    background_tasks: BackgroundTasks,
    actor: User = Depends(authenticate),
    body: Dict[str, Any] = Depends(require_json),
    db: AsyncSession = Depends(get_db_session),
) -> TripResponse:
    trip = await trip_service.create_trip(db, TripCreate.parse(body), actor)

    response.headers["Location"] = settings.join_url(trip.href)
    background_tasks.add_task(stats_broadcaster.broadcast)
    return TripResponse.from_document(trip, include_user=include_requested(request, "user"))


@router.get(
    "",
    response_model=List[TripResponse],
    response_model_exclude_none=True,
    responses={400: ERROR_RESPONSES[400]},
    summary="List or search trips",
)
async def list_trips(
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db_session),
) -> List[TripResponse]:
    return await trip_service.list_trips(db, request, response)


@router.get(
    "/{trip_id}",
    response_model=TripResponse,
    response_model_exclude_none=True,
    responses={404: ERROR_RESPONSES[404]},
    summary="Retrieve a trip",
)
async def get_trip(request: Request, trip: Trip = Depends(load_trip)) -> TripResponse:
    return TripResponse.from_document(trip, include_user=include_requested(request, "user"))


@router.patch(
    "/{trip_id}",
    response_model=TripResponse,
    response_model_exclude_none=True,
    responses=ERROR_RESPONSES,
    summary="Update a trip",
)
async def update_trip(
    request: Request,
    background_tasks: BackgroundTasks,
    trip: Trip = Depends(authorize(owns_trip, load_trip)),
    body: Dict[str, Any] = Depends(require_json),
    db: AsyncSession = Depends(get_db_session),
) -> TripResponse:
    trip = await trip_service.update_trip(db, trip, TripUpdate.parse(body))

    background_tasks.add_task(stats_broadcaster.broadcast)
    return TripResponse.from_document(trip, include_user=include_requested(request, "user"))


@router.delete(
    "/{trip_id}",
    status_code=204,
    responses={code: ERROR_RESPONSES[code] for code in (401, 403, 404)},
    summary="Delete a trip with all its places",
)
async def delete_trip(
    background_tasks: BackgroundTasks,
    trip: Trip = Depends(authorize(owns_trip, load_trip)),
    db: AsyncSession = Depends(get_db_session),
) -> Response:
    await trip_service.delete_trip(db, trip)

    background_tasks.add_task(stats_broadcaster.broadcast)
    return Response(status_code=204)
