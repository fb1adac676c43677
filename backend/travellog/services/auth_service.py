"""
Travel Log API — Authentication Service
=========================================

What:  Password hashing, bearer token issuance and verification.
How:   Passwords are hashed with bcrypt at the configured cost. Tokens are
       HS256 JWTs signed with settings.secret whose subject is the user's
       api_id and which expire after TOKEN_LIFETIME.
Who:   POST /api/auth (credentials → token), the `authenticate` dependency
       (token → user), and the user service (password changes).

bcrypt is CPU-bound (tens of milliseconds at cost 10), so hashing and
verification run in Starlette's thread pool to keep the event loop free.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import bcrypt
import jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from travellog.config import settings
from travellog.exceptions import AuthenticationError
from travellog.models.user import User
from travellog.schemas.auth import AuthTokenResponse, Credentials
from travellog.schemas.user import UserResponse

logger = logging.getLogger(__name__)

JWT_ALGORITHM = "HS256"
TOKEN_LIFETIME = timedelta(days=14)

# bcrypt only considers the first 72 bytes of a password
BCRYPT_MAX_BYTES = 72


def _password_bytes(password: str) -> bytes:
    return password.encode("utf-8")[:BCRYPT_MAX_BYTES]


def _hash_password(password: str, rounds: int) -> str:
    return bcrypt.hashpw(_password_bytes(password), bcrypt.gensalt(rounds=rounds)).decode("ascii")


def _check_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(_password_bytes(password), password_hash.encode("ascii"))
    except ValueError:
        # Malformed hash in the database
        logger.warning("Stored password hash could not be verified", exc_info=True)
        return False


class AuthService:
    """Stateless; use the `auth_service` singleton."""

    async def hash_password(self, password: str) -> str:
        return await run_in_threadpool(_hash_password, password, settings.bcrypt_cost)

    async def verify_password(self, password: str, password_hash: Optional[str]) -> bool:
        if not password_hash:
            return False
        return await run_in_threadpool(_check_password, password, password_hash)

    def create_token(self, user: User, now: Optional[datetime] = None) -> str:
        """
        Issues a bearer token for a user.

        `now` sets the issue time, which is only useful to tests creating
        already expired tokens.
        """
        issued_at = now or datetime.now(timezone.utc)
        claims = {
            "sub": user.api_id,
            "exp": issued_at + TOKEN_LIFETIME,
        }
        return jwt.encode(claims, settings.secret, algorithm=JWT_ALGORITHM)

    def decode_token(self, token: str) -> Dict[str, Any]:
        """
        Verifies the signature and expiry of a token and returns its claims.

        Raises:
            AuthenticationError: authTokenExpired or authTokenInvalid
        """
        try:
            return jwt.decode(
                token,
                settings.secret,
                algorithms=[JWT_ALGORITHM],
                options={"require": ["exp", "sub"]},
            )
        except jwt.ExpiredSignatureError:
            raise AuthenticationError("authTokenExpired", "Authentication token has expired")
        except jwt.InvalidTokenError as e:
            logger.debug("Rejected authentication token: %s", e)
            raise token_invalid_error()

    async def user_for_token(self, db: AsyncSession, token: str) -> User:
        claims = self.decode_token(token)
        user = await db.scalar(select(User).where(User.api_id == claims["sub"]))
        if user is None:
            # Valid signature, but the user has since been deleted
            raise token_invalid_error()
        return user

    async def authenticate_credentials(self, db: AsyncSession, credentials: Credentials) -> AuthTokenResponse:
        """
        Exchanges a user name and password for a bearer token.

        Raises:
            AuthenticationError: authCredentialsMissing (lists the missing
                fields), authCredentialsUnknown or authCredentialsInvalid
        """
        missing: List[str] = []
        if not credentials.username:
            missing.append("username")
        if not credentials.password:
            missing.append("password")
        if missing:
            raise AuthenticationError(
                "authCredentialsMissing",
                "Username or password is missing",
                {"missing": missing},
            )

        username = str(credentials.username)
        user = await db.scalar(select(User).where(User.name == username))
        if user is None:
            raise AuthenticationError("authCredentialsUnknown", f'There is no user named "{username}"')

        if not await self.verify_password(str(credentials.password), user.password_hash):
            raise AuthenticationError("authCredentialsInvalid", "Password is incorrect")

        token = self.create_token(user)
        logger.info('Authenticated user %s named "%s"', user.api_id, user.name)

        return AuthTokenResponse(token=token, user=UserResponse.from_document(user))


def token_invalid_error() -> AuthenticationError:
    return AuthenticationError("authTokenInvalid", "Authentication token is invalid")


# ── Singleton Instance ────────────────────────────────────────────────────
auth_service = AuthService()
