"""
Travel Log API — User Routes
==============================

    POST    /api/users        register                       201 + Location
    GET     /api/users        list (paginated, filtered, sorted)
    GET     /api/users/{id}   retrieve                       404 if unknown
    PATCH   /api/users/{id}   update name or password        the user only
    DELETE  /api/users/{id}   delete with trips and places   the user only, 204

List query parameters: name, search, id, href, sort (name, tripsCount,
createdAt, updatedAt, id, href; default name), page, pageSize.
"""

from typing import Any, Dict, List

from fastapi import APIRouter, BackgroundTasks, Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from travellog.config import settings
from travellog.database import get_db_session
from travellog.middleware.auth import authorize, is_self
from travellog.middleware.json_body import require_json
from travellog.models.user import User
from travellog.schemas.common import ERROR_RESPONSES
from travellog.schemas.user import UserCreate, UserResponse, UserUpdate
from travellog.services.stats_service import stats_broadcaster
from travellog.services.user_service import user_service

router = APIRouter(prefix="/api/users", tags=["Users"])


async def load_user(user_id: str, db: AsyncSession = Depends(get_db_session)) -> User:
    return await user_service.get_user(db, user_id)


@router.post(
    "",
    status_code=201,
    response_model=UserResponse,
    response_model_exclude_none=True,
    responses={code: ERROR_RESPONSES[code] for code in (400, 415, 422)},
    summary="Register a new user",
)
async def create_user(
    response: Response,
    background_tasks: BackgroundTasks,
    body: Dict[str, Any] = Depends(require_json),
    db: AsyncSession = Depends(get_db_session),
) -> UserResponse:
    user = await user_service.create_user(db, UserCreate.parse(body))

    response.headers["Location"] = settings.join_url(user.href)
    background_tasks.add_task(stats_broadcaster.broadcast)
    return UserResponse.from_document(user)


@router.get(
    "",
    response_model=List[UserResponse],
    response_model_exclude_none=True,
    responses={400: ERROR_RESPONSES[400]},
    summary="List users",
)
async def list_users(
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db_session),
) -> List[UserResponse]:
    return await user_service.list_users(db, request, response)


@router.get(
    "/{user_id}",
    response_model=UserResponse,
    response_model_exclude_none=True,
    responses={404: ERROR_RESPONSES[404]},
    summary="Retrieve a user",
)
async def get_user(user: User = Depends(load_user)) -> UserResponse:
    return UserResponse.from_document(user)


@router.patch(
    "/{user_id}",
    response_model=UserResponse,
    response_model_exclude_none=True,
    responses=ERROR_RESPONSES,
    summary="Update a user",
)
async def update_user(
    background_tasks: BackgroundTasks,
    user: User = Depends(authorize(is_self, load_user)),
    body: Dict[str, Any] = Depends(require_json),
    db: AsyncSession = Depends(get_db_session),
) -> UserResponse:
    user = await user_service.update_user(db, user, UserUpdate.parse(body))

    background_tasks.add_task(stats_broadcaster.broadcast)
    return UserResponse.from_document(user)


@router.delete(
    "/{user_id}",
    status_code=204,
    responses={code: ERROR_RESPONSES[code] for code in (401, 403, 404)},
    summary="Delete a user with all their trips and places",
)
async def delete_user(
    background_tasks: BackgroundTasks,
    user: User = Depends(authorize(is_self, load_user)),
    db: AsyncSession = Depends(get_db_session),
) -> Response:
    await user_service.delete_user(db, user)

    background_tasks.add_task(stats_broadcaster.broadcast)
    return Response(status_code=204)
