"""
Travel Log API — Authentication Schemas
=========================================
"""

from typing import Any

from pydantic import Field

from travellog.schemas.common import ApiModel
from travellog.schemas.user import UserResponse


class Credentials(ApiModel):
    """
    Body of POST /api/auth.

    Both fields are deliberately loose: absent or empty credentials are
    reported by the auth service as `authCredentialsMissing` (401), not as a
    422 validation error.
    """

    username: Any = None
    password: Any = None


class AuthTokenResponse(ApiModel):
    token: str = Field(description="Bearer token valid for 14 days")
    user: UserResponse
