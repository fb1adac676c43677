"""
Travel Log API — Authentication Tests
=======================================

What we test:
    ✅ POST /api/auth exchanges valid credentials for a token
    ✅ Each credential and token failure has its own 401 code
    ✅ Protected routes check authentication before existence and ownership
"""

from datetime import datetime, timedelta, timezone

import jwt
import pytest

from travellog.config import settings
from travellog.models.user import User
from travellog.services.auth_service import TOKEN_LIFETIME, auth_service


class TestLogin:

    @pytest.mark.asyncio
    async def test_valid_credentials(self, client, api):
        user = await api.create_user("jdoe", "letmein")

        response = await client.post("/api/auth", json={"username": "jdoe", "password": "letmein"})

        assert response.status_code == 200
        body = response.json()
        assert body["user"]["id"] == user["id"]
        claims = jwt.decode(body["token"], settings.secret, algorithms=["HS256"])
        assert claims["sub"] == user["id"]

    @pytest.mark.asyncio
    async def test_missing_credentials(self, client):
        response = await client.post("/api/auth", json={"username": "jdoe"})

        assert response.status_code == 401
        assert response.json()["code"] == "authCredentialsMissing"
        assert response.json()["missing"] == ["password"]

    @pytest.mark.asyncio
    async def test_unknown_user(self, client, api):
        await api.create_user("jdoe")

        response = await client.post("/api/auth", json={"username": "nobody", "password": "letmein"})

        assert response.status_code == 401
        assert response.json()["code"] == "authCredentialsUnknown"

    @pytest.mark.asyncio
    async def test_wrong_password(self, client, api):
        await api.create_user("jdoe", "letmein")

        response = await client.post("/api/auth", json={"username": "jdoe", "password": "wrong"})

        assert response.status_code == 401
        assert response.json()["code"] == "authCredentialsInvalid"

    @pytest.mark.asyncio
    async def test_body_must_be_json(self, client):
        response = await client.post("/api/auth", content="username=jdoe", headers={"Content-Type": "text/plain"})

        assert response.status_code == 415
        assert response.json()["code"] == "wrongRequestFormat"

    @pytest.mark.asyncio
    async def test_body_must_be_valid_json(self, client):
        response = await client.post(
            "/api/auth",
            content="{not json",
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json()["code"] == "invalidRequestBody"


class TestBearerToken:

    @pytest.mark.asyncio
    async def test_missing_header(self, client):
        response = await client.post("/api/trips", json={"title": "Trip", "description": "Somewhere"})

        assert response.status_code == 401
        assert response.json()["code"] == "authHeaderMissing"

    @pytest.mark.asyncio
    async def test_malformed_header(self, client):
        response = await client.post(
            "/api/trips",
            json={"title": "Trip", "description": "Somewhere"},
            headers={"Authorization": "Basic amRvZTpsZXRtZWlu"},
        )

        assert response.status_code == 401
        assert response.json()["code"] == "authHeaderMalformed"

    @pytest.mark.asyncio
    async def test_expired_token(self, client, api):
        user = await api.create_user("jdoe")
        token = auth_service.create_token(
            User(api_id=user["id"]),
            now=datetime.now(timezone.utc) - TOKEN_LIFETIME - timedelta(minutes=1),
        )

        response = await client.post(
            "/api/trips",
            json={"title": "Trip", "description": "Somewhere"},
            headers=api.auth(token),
        )

        assert response.status_code == 401
        assert response.json()["code"] == "authTokenExpired"

    @pytest.mark.asyncio
    async def test_token_signed_with_another_secret(self, client, api):
        user = await api.create_user("jdoe")
        token = jwt.encode(
            {"sub": user["id"], "exp": datetime.now(timezone.utc) + timedelta(hours=1)},
            "some-other-secret",
            algorithm="HS256",
        )

        response = await client.get("/api/users", headers=api.auth(token))
        assert response.status_code == 200  # listing is public

        response = await client.delete(f"/api/users/{user['id']}", headers=api.auth(token))
        assert response.status_code == 401
        assert response.json()["code"] == "authTokenInvalid"

    @pytest.mark.asyncio
    async def test_token_of_a_deleted_user(self, client, api):
        user, token = await api.register("jdoe")
        response = await client.delete(f"/api/users/{user['id']}", headers=api.auth(token))
        assert response.status_code == 204

        response = await client.post(
            "/api/trips",
            json={"title": "Trip", "description": "Somewhere"},
            headers=api.auth(token),
        )

        assert response.status_code == 401
        assert response.json()["code"] == "authTokenInvalid"

    @pytest.mark.asyncio
    async def test_authentication_is_checked_before_existence(self, client, api):
        response = await client.delete("/api/trips/does-not-exist")
        assert response.status_code == 401

        _, token = await api.register("jdoe")
        response = await client.delete("/api/trips/does-not-exist", headers=api.auth(token))
        assert response.status_code == 404
        assert response.json()["code"] == "recordNotFound"


class TestPasswordHashing:

    @pytest.mark.asyncio
    async def test_hash_and_verify(self):
        password_hash = await auth_service.hash_password("letmein")

        assert password_hash != "letmein"
        assert await auth_service.verify_password("letmein", password_hash)
        assert not await auth_service.verify_password("wrong", password_hash)

    @pytest.mark.asyncio
    async def test_missing_hash_never_verifies(self):
        assert not await auth_service.verify_password("letmein", None)
