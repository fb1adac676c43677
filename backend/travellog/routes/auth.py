"""
Travel Log API — Authentication Route
=======================================

    POST /api/auth   {"username": "...", "password": "..."} → {"token", "user"}

The token is sent back on protected routes as `Authorization: Bearer <token>`.
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from travellog.database import get_db_session
from travellog.middleware.json_body import require_json
from travellog.schemas.auth import AuthTokenResponse, Credentials
from travellog.schemas.common import ERROR_RESPONSES
from travellog.services.auth_service import auth_service

router = APIRouter(prefix="/api", tags=["Authentication"])


@router.post(
    "/auth",
    response_model=AuthTokenResponse,
    response_model_exclude_none=True,
    responses={code: ERROR_RESPONSES[code] for code in (400, 401, 415)},
    summary="Log in",
)
async def create_authentication_token(
    body: Dict[str, Any] = Depends(require_json),
    db: AsyncSession = Depends(get_db_session),
) -> AuthTokenResponse:
    return await auth_service.authenticate_credentials(db, Credentials.model_validate(body))
