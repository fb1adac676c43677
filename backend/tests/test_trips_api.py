"""
Travel Log API — Trip Endpoint Tests
======================================

What we test:
    ✅ Trips are created for the authenticated user
    ✅ Titles are unique (case-sensitive)
    ✅ Listing by owner, title and search term; sorting on owner properties
    ✅ ?include=user embeds the owner
    ✅ Only the owner may update or delete a trip; deletion removes its places
"""

import pytest
from sqlalchemy import func, select

from travellog.models.place import Place


class TestCreateTrip:

    @pytest.mark.asyncio
    async def test_create(self, client, api):
        user, token = await api.register("jdoe")

        response = await client.post(
            "/api/trips",
            json={"title": "Road trip", "description": "Driving along the coast", "userId": "forged"},
            headers=api.auth(token),
        )

        assert response.status_code == 201
        body = response.json()
        assert body["title"] == "Road trip"
        assert body["placesCount"] == 0
        assert body["userId"] == user["id"]
        assert body["userHref"] == user["href"]
        assert "user" not in body
        assert response.headers["Location"].endswith(body["href"])

    @pytest.mark.asyncio
    async def test_include_user(self, client, api):
        user, token = await api.register("jdoe")

        response = await client.post(
            "/api/trips",
            params={"include": "user"},
            json={"title": "Road trip", "description": "Driving along the coast"},
            headers=api.auth(token),
        )

        assert response.json()["user"]["name"] == "jdoe"

    @pytest.mark.asyncio
    async def test_invalid_trip(self, client, api):
        _, token = await api.register("jdoe")

        response = await client.post(
            "/api/trips",
            json={"title": "Go", "description": "x" * 50001},
            headers=api.auth(token),
        )

        assert response.status_code == 422
        errors = response.json()["errors"]
        assert errors["title"]["kind"] == "minlength"
        assert errors["description"]["kind"] == "maxlength"

    @pytest.mark.asyncio
    async def test_title_is_unique(self, client, api):
        _, token = await api.register("jdoe")
        await api.create_trip(token, title="Road trip")

        duplicate = await client.post(
            "/api/trips",
            json={"title": "Road trip", "description": "Another one"},
            headers=api.auth(token),
        )
        other_case = await client.post(
            "/api/trips",
            json={"title": "ROAD TRIP", "description": "Another one"},
            headers=api.auth(token),
        )

        assert duplicate.status_code == 422
        assert duplicate.json()["errors"]["title"]["kind"] == "unique"
        assert other_case.status_code == 201


class TestListTrips:

    @pytest.mark.asyncio
    async def test_default_sort_is_newest_first(self, client, api):
        _, token = await api.register("jdoe")
        for title in ("First trip", "Second trip", "Third trip"):
            await api.create_trip(token, title=title)

        response = await client.get("/api/trips")

        assert [trip["title"] for trip in response.json()] == ["Third trip", "Second trip", "First trip"]

    @pytest.mark.asyncio
    async def test_filter_by_user_and_search(self, client, api):
        alice, alice_token = await api.register("alice")
        _, bob_token = await api.register("bob")
        await api.create_trip(alice_token, title="Alps", description="Hiking in the mountains")
        await api.create_trip(alice_token, title="Beach", description="Swimming all day")
        await api.create_trip(bob_token, title="Mountains", description="Skiing")

        by_user = await client.get("/api/trips", params={"user": alice["id"], "sort": "title"})
        by_search = await client.get("/api/trips", params={"search": "mountain", "sort": "title"})
        by_title = await client.get("/api/trips", params={"title": "beach"})

        assert [trip["title"] for trip in by_user.json()] == ["Alps", "Beach"]
        assert [trip["title"] for trip in by_search.json()] == ["Alps", "Mountains"]
        assert [trip["title"] for trip in by_title.json()] == ["Beach"]
        assert by_user.headers["Pagination-Total"] == "3"
        assert by_user.headers["Pagination-Filtered-Total"] == "2"

    @pytest.mark.asyncio
    async def test_sort_by_user_name_and_places_count(self, client, api):
        _, zoe_token = await api.register("zoe")
        _, adam_token = await api.register("adam")
        zoe_trip = await api.create_trip(zoe_token, title="Zoe's trip")
        await api.create_trip(adam_token, title="Adam's trip")
        await api.create_place(zoe_token, zoe_trip)

        by_user_name = await client.get("/api/trips", params={"sort": "user.name"})
        by_places = await client.get("/api/trips", params={"sort": "-placesCount"})

        assert [trip["title"] for trip in by_user_name.json()] == ["Adam's trip", "Zoe's trip"]
        assert [(trip["title"], trip["placesCount"]) for trip in by_places.json()] == [
            ("Zoe's trip", 1),
            ("Adam's trip", 0),
        ]

    @pytest.mark.asyncio
    async def test_include_user(self, client, api):
        _, token = await api.register("jdoe")
        await api.create_trip(token)

        response = await client.get("/api/trips", params={"include": "user"})

        assert response.json()[0]["user"]["name"] == "jdoe"


class TestRetrieveTrip:

    @pytest.mark.asyncio
    async def test_retrieve_with_places_count(self, client, api):
        _, token = await api.register("jdoe")
        trip = await api.create_trip(token)
        await api.create_place(token, trip, name="Lighthouse")
        await api.create_place(token, trip, name="Harbour")

        response = await client.get(trip["href"])

        assert response.status_code == 200
        assert response.json()["placesCount"] == 2

    @pytest.mark.asyncio
    async def test_not_found(self, client):
        response = await client.get("/api/trips/unknown")

        assert response.status_code == 404
        assert response.json()["message"] == "No trip found with ID unknown"


class TestUpdateTrip:

    @pytest.mark.asyncio
    async def test_update(self, client, api):
        _, token = await api.register("jdoe")
        trip = await api.create_trip(token)

        response = await client.patch(
            trip["href"],
            json={"description": "Driving along the whole coast"},
            headers=api.auth(token),
        )

        assert response.status_code == 200
        assert response.json()["title"] == trip["title"]
        assert response.json()["description"] == "Driving along the whole coast"

    @pytest.mark.asyncio
    async def test_explicit_null_is_invalid(self, client, api):
        _, token = await api.register("jdoe")
        trip = await api.create_trip(token)

        response = await client.patch(trip["href"], json={"title": None}, headers=api.auth(token))

        assert response.status_code == 422
        assert response.json()["errors"]["title"]["kind"] == "required"

    @pytest.mark.asyncio
    async def test_title_conflict(self, client, api):
        _, token = await api.register("jdoe")
        await api.create_trip(token, title="Taken title")
        trip = await api.create_trip(token, title="Free title")

        response = await client.patch(trip["href"], json={"title": "Taken title"}, headers=api.auth(token))

        assert response.status_code == 422
        assert response.json()["errors"]["title"]["message"] == (
            "Error, expected `title` to be unique. Value: `Taken title`"
        )

    @pytest.mark.asyncio
    async def test_other_users_are_forbidden(self, client, api):
        _, token = await api.register("jdoe")
        trip = await api.create_trip(token)
        _, intruder_token = await api.register("intruder")

        response = await client.patch(trip["href"], json={"title": "Mine now"}, headers=api.auth(intruder_token))

        assert response.status_code == 403


class TestDeleteTrip:

    @pytest.mark.asyncio
    async def test_delete_removes_places(self, client, api, db_session):
        _, token = await api.register("jdoe")
        trip = await api.create_trip(token)
        place = await api.create_place(token, trip)

        response = await client.delete(trip["href"], headers=api.auth(token))

        assert response.status_code == 204
        assert (await client.get(place["href"])).status_code == 404
        assert await db_session.scalar(select(func.count()).select_from(Place)) == 0

    @pytest.mark.asyncio
    async def test_other_users_are_forbidden(self, client, api):
        _, token = await api.register("jdoe")
        trip = await api.create_trip(token)
        _, intruder_token = await api.register("intruder")

        response = await client.delete(trip["href"], headers=api.auth(intruder_token))

        assert response.status_code == 403
        assert (await client.get(trip["href"])).status_code == 200
