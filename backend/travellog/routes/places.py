"""
Travel Log API — Place Routes
===============================

    POST    /api/places        add a place to one of the current user's trips
    GET     /api/places        list (paginated, filtered, sorted)
    GET     /api/places/{id}   retrieve
    PATCH   /api/places/{id}   update, possibly moving it to another own trip
    DELETE  /api/places/{id}   delete                                   204

Writes on an existing place are reserved to the owner of its trip.

List query parameters: trip, name, search, bbox, near, id, href, sort (name,
createdAt, updatedAt, id, href, trip.title, trip.id, trip.href; default
createdAt), page, pageSize. `?include=trip` embeds the trip and
`?include=trip.user` also embeds the trip's owner.
"""

from typing import Any, Dict, List

from fastapi import APIRouter, BackgroundTasks, Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from travellog.config import settings
from travellog.database import get_db_session
from travellog.middleware.auth import authenticate, authorize, owns_place
from travellog.middleware.json_body import require_json
from travellog.models.place import Place
from travellog.models.user import User
from travellog.schemas.common import ERROR_RESPONSES
from travellog.schemas.place import PlaceCreate, PlaceResponse, PlaceUpdate
from travellog.services.place_service import place_service
from travellog.services.query_pipeline import include_requested
from travellog.services.stats_service import stats_broadcaster

router = APIRouter(prefix="/api/places", tags=["Places"])


async def load_place(place_id: str, db: AsyncSession = Depends(get_db_session)) -> Place:
    return await place_service.get_place(db, place_id)


def serialize(request: Request, place: Place) -> PlaceResponse:
    include_trip_user = include_requested(request, "user", "trip")
    return PlaceResponse.from_document(
        place,
        include_trip=include_trip_user or include_requested(request, "trip"),
        include_trip_user=include_trip_user,
    )


@router.post(
    "",
    status_code=201,
    response_model=PlaceResponse,
    response_model_exclude_none=True,
    responses={code: ERROR_RESPONSES[code] for code in (400, 401, 403, 415, 422)},
    summary="Create a place",
)
async def create_place(
    request: Request,
    response: Response,
    background_tasks: BackgroundTasks,
    actor: User = Depends(authenticate),
    body: Dict[str, Any] = Depends(require_json),
    db: AsyncSession = Depends(get_db_session),
) -> PlaceResponse:
    place = await place_service.create_place(db, PlaceCreate.parse(body), actor)

    response.headers["Location"] = settings.join_url(place.href)
    background_tasks.add_task(stats_broadcaster.broadcast)
    return serialize(request, place)


@router.get(
    "",
    response_model=List[PlaceResponse],
    response_model_exclude_none=True,
    responses={400: ERROR_RESPONSES[400]},
    summary="List or search places",
)
async def list_places(
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db_session),
) -> List[PlaceResponse]:
    return await place_service.list_places(db, request, response)


@router.get(
    "/{place_id}",
    response_model=PlaceResponse,
    response_model_exclude_none=True,
    responses={404: ERROR_RESPONSES[404]},
    summary="Retrieve a place",
)
async def get_place(request: Request, place: Place = Depends(load_place)) -> PlaceResponse:
    return serialize(request, place)


@router.patch(
    "/{place_id}",
    response_model=PlaceResponse,
    response_model_exclude_none=True,
    responses=ERROR_RESPONSES,
    summary="Update a place",
)
async def update_place(
    request: Request,
    background_tasks: BackgroundTasks,
    place: Place = Depends(authorize(owns_place, load_place)),
    actor: User = Depends(authenticate),
    body: Dict[str, Any] = Depends(require_json),
    db: AsyncSession = Depends(get_db_session),
) -> PlaceResponse:
    place = await place_service.update_place(db, place, PlaceUpdate.parse(body), actor)

    background_tasks.add_task(stats_broadcaster.broadcast)
    return serialize(request, place)


@router.delete(
    "/{place_id}",
    status_code=204,
    responses={code: ERROR_RESPONSES[code] for code in (401, 403, 404)},
    summary="Delete a place",
)
async def delete_place(
    background_tasks: BackgroundTasks,
    place: Place = Depends(authorize(owns_place, load_place)),
    db: AsyncSession = Depends(get_db_session),
) -> Response:
    await place_service.delete_place(db, place)

    background_tasks.add_task(stats_broadcaster.broadcast)
    return Response(status_code=204)
