"""
Travel Log API — User Endpoint Tests
======================================

What we test:
    ✅ Registration: 201, Location header, public representation
    ✅ Name uniqueness regardless of case
    ✅ Listing: pagination headers, Link header, filters and sorts
    ✅ Updates and deletions restricted to the user themselves
    ✅ Deleting a user deletes their trips and the places of those trips
"""

import pytest
from sqlalchemy import func, select

from travellog.models.place import Place
from travellog.models.trip import Trip


class TestCreateUser:

    @pytest.mark.asyncio
    async def test_create(self, client):
        response = await client.post("/api/users", json={"name": "jdoe", "password": "letmein"})

        assert response.status_code == 201
        body = response.json()
        assert body["name"] == "jdoe"
        assert body["href"] == f"/api/users/{body['id']}"
        assert body["tripsCount"] == 0
        assert body["createdAt"] == body["updatedAt"]
        assert "password" not in body and "passwordHash" not in body
        assert response.headers["Location"] == f"http://localhost:3000/api/users/{body['id']}"

    @pytest.mark.asyncio
    async def test_invalid_user(self, client):
        response = await client.post("/api/users", json={"name": "-jdoe-"})

        assert response.status_code == 422
        body = response.json()
        assert body["code"] == "invalid"
        assert body["errors"]["name"]["kind"] == "regexp"
        assert body["errors"]["password"]["kind"] == "required"

    @pytest.mark.asyncio
    async def test_name_is_unique_regardless_of_case(self, client, api):
        await api.create_user("jdoe")

        response = await client.post("/api/users", json={"name": "JDoe", "password": "letmein"})

        assert response.status_code == 422
        error = response.json()["errors"]["name"]
        assert error["kind"] == "unique"
        assert error["message"] == "JDoe is already taken"

    @pytest.mark.asyncio
    async def test_body_must_be_an_object(self, client):
        response = await client.post("/api/users", json=["jdoe", "letmein"])

        assert response.status_code == 400
        assert response.json()["code"] == "invalidRequestBody"


class TestListUsers:

    @pytest.mark.asyncio
    async def test_default_sort_by_name(self, client, api):
        for name in ("charlie", "alice", "bob"):
            await api.create_user(name)

        response = await client.get("/api/users")

        assert response.status_code == 200
        assert [user["name"] for user in response.json()] == ["alice", "bob", "charlie"]
        assert response.headers["Pagination-Page"] == "1"
        assert response.headers["Pagination-Page-Size"] == "10"
        assert response.headers["Pagination-Total"] == "3"
        assert response.headers["Pagination-Filtered-Total"] == "3"

    @pytest.mark.asyncio
    async def test_pages(self, client, api):
        for name in ("user-a", "user-b", "user-c", "user-d", "user-e"):
            await api.create_user(name)

        response = await client.get("/api/users", params={"page": 2, "pageSize": 2})

        assert [user["name"] for user in response.json()] == ["user-c", "user-d"]
        link = response.headers["Link"]
        assert '<http://localhost:3000/api/users?page=1&pageSize=2>; rel="prev"' in link
        assert '<http://localhost:3000/api/users?page=3&pageSize=2>; rel="next"' in link
        assert 'rel="last"' in link

    @pytest.mark.asyncio
    async def test_page_size_zero_only_counts(self, client, api):
        await api.create_user("jdoe")

        response = await client.get("/api/users", params={"pageSize": 0})

        assert response.json() == []
        assert response.headers["Pagination-Total"] == "1"

    @pytest.mark.asyncio
    async def test_invalid_page(self, client):
        response = await client.get("/api/users", params={"page": "zero"})

        assert response.status_code == 400
        assert response.json()["code"] == "invalidQueryParam"
        assert response.json()["queryParam"] == "page"

    @pytest.mark.asyncio
    async def test_filters(self, client, api):
        alice = await api.create_user("alice")
        await api.create_user("alicia")
        await api.create_user("bob")

        by_name = await client.get("/api/users", params={"name": "ALICE"})
        by_search = await client.get("/api/users", params={"search": "ali"})
        by_href = await client.get("/api/users", params={"href": alice["href"]})

        assert [user["name"] for user in by_name.json()] == ["alice"]
        assert [user["name"] for user in by_search.json()] == ["alice", "alicia"]
        assert by_search.headers["Pagination-Total"] == "3"
        assert by_search.headers["Pagination-Filtered-Total"] == "2"
        assert [user["id"] for user in by_href.json()] == [alice["id"]]

    @pytest.mark.asyncio
    async def test_sort_by_trips_count(self, client, api):
        _, alice_token = await api.register("alice")
        _, bob_token = await api.register("bob")
        await api.create_trip(bob_token, title="Trip one")
        await api.create_trip(bob_token, title="Trip two")
        await api.create_trip(alice_token, title="Trip three")

        response = await client.get("/api/users", params={"sort": "-tripsCount"})

        assert [(user["name"], user["tripsCount"]) for user in response.json()] == [
            ("bob", 2),
            ("alice", 1),
        ]

    @pytest.mark.asyncio
    async def test_unknown_sort(self, client):
        response = await client.get("/api/users", params={"sort": "password"})

        assert response.status_code == 400
        assert response.json()["queryParam"] == "sort"


class TestRetrieveUser:

    @pytest.mark.asyncio
    async def test_retrieve(self, client, api):
        user = await api.create_user("jdoe")

        response = await client.get(user["href"])

        assert response.status_code == 200
        assert response.json() == user

    @pytest.mark.asyncio
    async def test_not_found(self, client):
        response = await client.get("/api/users/unknown")

        assert response.status_code == 404
        assert response.json() == {
            "code": "recordNotFound",
            "message": "No user found with ID unknown",
        }


class TestUpdateUser:

    @pytest.mark.asyncio
    async def test_update_name_and_password(self, client, api):
        user, token = await api.register("jdoe", "letmein")

        response = await client.patch(
            user["href"],
            json={"name": "john-doe", "password": "changeit"},
            headers=api.auth(token),
        )

        assert response.status_code == 200
        assert response.json()["name"] == "john-doe"
        assert response.json()["updatedAt"] >= user["updatedAt"]
        assert await api.login("john-doe", "changeit")

    @pytest.mark.asyncio
    async def test_keeping_the_same_name_is_not_a_conflict(self, client, api):
        user, token = await api.register("jdoe")

        response = await client.patch(user["href"], json={"name": "JDOE"}, headers=api.auth(token))

        assert response.status_code == 200
        assert response.json()["name"] == "JDOE"

    @pytest.mark.asyncio
    async def test_other_users_are_forbidden(self, client, api):
        user = await api.create_user("jdoe")
        _, intruder_token = await api.register("intruder")

        response = await client.patch(user["href"], json={"name": "hacked"}, headers=api.auth(intruder_token))

        assert response.status_code == 403
        assert response.json()["code"] == "forbidden"


class TestDeleteUser:

    @pytest.mark.asyncio
    async def test_delete_cascades_to_trips_and_places(self, client, api, db_session):
        user, token = await api.register("jdoe")
        trip = await api.create_trip(token)
        await api.create_place(token, trip)
        _, other_token = await api.register("other")
        other_trip = await api.create_trip(other_token, title="Other trip")
        await api.create_place(other_token, other_trip)

        response = await client.delete(user["href"], headers=api.auth(token))

        assert response.status_code == 204
        assert response.content == b""
        assert (await client.get(user["href"])).status_code == 404
        assert (await client.get(trip["href"])).status_code == 404
        assert await db_session.scalar(select(func.count()).select_from(Trip)) == 1
        assert await db_session.scalar(select(func.count()).select_from(Place)) == 1

    @pytest.mark.asyncio
    async def test_other_users_are_forbidden(self, client, api):
        user = await api.create_user("jdoe")
        _, intruder_token = await api.register("intruder")

        response = await client.delete(user["href"], headers=api.auth(intruder_token))

        assert response.status_code == 403
        assert (await client.get(user["href"])).status_code == 200
