"""
Travel Log API — Document Plugin & Payload Validation Tests
=============================================================

What we test:
    ✅ Hyperlinks built from and parsed back into external ids
    ✅ External id generation retries on collisions, then gives up
    ✅ Unique constraint errors mapped back to the offending field
    ✅ Request payloads rejected with per-field validation errors
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import IntegrityError

from travellog.exceptions import ValidationError
from travellog.models.mixins import API_ID_ATTEMPTS, api_id_from_href, ensure_api_id, flush_unique
from travellog.models.place import Place
from travellog.models.trip import Trip
from travellog.models.user import User
from travellog.schemas.place import PlaceCreate, PlaceUpdate
from travellog.schemas.trip import TripUpdate
from travellog.schemas.user import UserCreate, UserUpdate

API_ID = "0b7a7d5e-8f5e-4c36-9f3e-4c1f2d3a5b6c"


class TestHref:

    def test_href_of_a_document(self):
        assert Trip(api_id=API_ID).href == f"/api/trips/{API_ID}"

    def test_href_requires_an_api_id(self):
        with pytest.raises(RuntimeError, match="api_id"):
            User().href

    def test_api_id_from_href(self):
        assert api_id_from_href(Trip, f"/api/trips/{API_ID}") == API_ID

    @pytest.mark.parametrize("href", [f"/api/users/{API_ID}", "/api/trips/", 42, None])
    def test_api_id_from_unrelated_href(self, href):
        assert api_id_from_href(Trip, href) is None


class TestEnsureApiId:

    @pytest.mark.asyncio
    async def test_keeps_an_existing_id(self):
        db = AsyncMock()
        user = User(api_id=API_ID)

        assert await ensure_api_id(db, user) == API_ID
        db.scalar.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_retries_when_the_id_is_taken(self):
        db = AsyncMock()
        db.scalar = AsyncMock(side_effect=["taken", "taken", None])
        user = User()

        api_id = await ensure_api_id(db, user)

        assert user.api_id == api_id
        assert len(api_id) == 36
        assert db.scalar.await_count == 3

    @pytest.mark.asyncio
    async def test_gives_up_after_too_many_collisions(self):
        db = AsyncMock()
        db.scalar = AsyncMock(return_value="taken")

        with pytest.raises(RuntimeError, match="unique API ID"):
            await ensure_api_id(db, User())
        assert db.scalar.await_count == API_ID_ATTEMPTS


class TestUniqueFields:

    def integrity_error(self, message: str) -> IntegrityError:
        return IntegrityError("INSERT ...", {}, Exception(message))

    def test_postgresql_index_name(self):
        error = self.integrity_error(
            'duplicate key value violates unique constraint "uq_users_name_lower"'
        )
        assert User.field_for_integrity_error(error) == "name"

    def test_sqlite_column_name(self):
        error = self.integrity_error("UNIQUE constraint failed: trips.title")
        assert Trip.field_for_integrity_error(error) == "title"

    def test_unknown_constraint(self):
        error = self.integrity_error("FOREIGN KEY constraint failed")
        assert Place.field_for_integrity_error(error) is None

    def test_unique_messages(self):
        assert User.unique_error("name", "jdoe")["message"] == "jdoe is already taken"
        assert Trip.unique_error("title", "Road trip")["message"] == (
            "Error, expected `title` to be unique. Value: `Road trip`"
        )
        assert Place.unique_error("name", "Louvre")["message"] == (
            'There is already a place named "Louvre" in this trip'
        )

    @pytest.mark.asyncio
    async def test_flush_unique_raises_a_validation_error(self):
        db = MagicMock()
        db.flush = AsyncMock(side_effect=self.integrity_error("UNIQUE constraint failed: trips.title"))

        with pytest.raises(ValidationError) as exc_info:
            await flush_unique(db, Trip(title="Road trip"), "Trip")

        assert exc_info.value.status == 422
        assert exc_info.value.errors["title"]["kind"] == "unique"
        assert exc_info.value.errors["title"]["value"] == "Road trip"

    @pytest.mark.asyncio
    async def test_flush_unique_reraises_other_integrity_errors(self):
        db = MagicMock()
        db.flush = AsyncMock(side_effect=self.integrity_error("NOT NULL constraint failed: trips.user_id"))

        with pytest.raises(IntegrityError):
            await flush_unique(db, Trip(), "Trip")


class TestPayloadValidation:

    def test_missing_fields(self):
        with pytest.raises(ValidationError) as exc_info:
            UserCreate.parse({})

        errors = exc_info.value.errors
        assert set(errors) == {"name", "password"}
        assert errors["name"]["kind"] == "required"
        assert errors["name"]["message"] == "Path `name` is required"
        assert exc_info.value.message.startswith("User validation failed: ")

    def test_length_and_pattern(self):
        with pytest.raises(ValidationError) as exc_info:
            UserCreate.parse({"name": "ab", "password": "abc"})
        errors = exc_info.value.errors
        assert errors["name"]["kind"] == "minlength"
        assert errors["name"]["message"] == (
            "Path `name` is shorter than the minimum allowed length (3)"
        )
        assert errors["password"]["kind"] == "minlength"

        with pytest.raises(ValidationError) as exc_info:
            UserCreate.parse({"name": "john doe", "password": "letmein"})
        assert exc_info.value.errors["name"]["kind"] == "regexp"

    def test_unknown_properties_are_ignored(self):
        payload = UserCreate.parse({"name": "jdoe", "password": "letmein", "admin": True})
        assert payload.model_dump() == {"name": "jdoe", "password": "letmein"}

    def test_partial_update_only_sets_given_fields(self):
        payload = TripUpdate.parse({"description": "A whole new story"})
        assert payload.model_dump(exclude_unset=True) == {"description": "A whole new story"}

    def test_explicit_null_is_rejected_on_update(self):
        with pytest.raises(ValidationError) as exc_info:
            UserUpdate.parse({"name": None})
        assert exc_info.value.errors["name"]["kind"] == "required"

    def test_camel_case_paths(self):
        with pytest.raises(ValidationError) as exc_info:
            PlaceCreate.parse({
                "name": "Louvre",
                "description": "Museum in Paris",
                "location": {"type": "Point", "coordinates": [2.33, 48.86]},
                "pictureUrl": "short",
            })
        assert set(exc_info.value.errors) == {"pictureUrl"}

    @pytest.mark.parametrize("coordinates", [[2.33], [2.33, 48.86, 35, 1], [181, 0], [0, -91], ["2", "48"]])
    def test_invalid_coordinates(self, coordinates):
        with pytest.raises(ValidationError) as exc_info:
            PlaceUpdate.parse({"location": {"type": "Point", "coordinates": coordinates}})
        assert "location.coordinates" in exc_info.value.errors

    def test_location_type_must_be_point(self):
        with pytest.raises(ValidationError) as exc_info:
            PlaceUpdate.parse({"location": {"type": "LineString", "coordinates": [0, 0]}})
        assert exc_info.value.errors["location.type"]["kind"] == "enum"

    def test_moves_trip(self):
        assert PlaceUpdate.parse({"tripId": API_ID}).moves_trip
        assert not PlaceUpdate.parse({"name": "Louvre"}).moves_trip
