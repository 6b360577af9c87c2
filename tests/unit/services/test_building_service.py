"""
Unit tests for BuildingService (candidate search, dedup, popularity)
"""

from datetime import timedelta

import pytest
from pymongo.errors import ServerSelectionTimeoutError

from flipapp.models.building import BuildingInfo, Place
from flipapp.services.building_service import (
    BuildingService,
    NoBuildingFoundError,
    UserNotFoundError,
    dedupe_places,
)
from flipapp.services.geocoding_service import GeocodingError

from geo_support import offset_north


class FakeGeocoder:
    """Geocoder double: fixed answers per query, optional failures."""

    def __init__(self, reverse=None, results=None, failing=()):
        self.reverse = reverse
        self.results = results or {}
        self.failing = set(failing)
        self.queries = []

    async def reverse_geocode(self, coordinate):
        if "reverse" in self.failing:
            raise GeocodingError("reverse down")
        return self.reverse

    async def search_nearby(self, query, center, span_degrees=0.002):
        self.queries.append(query)
        if query in self.failing:
            raise GeocodingError(f"{query} down")
        return self.results.get(query, [])


@pytest.fixture
def places(campus):
    return {
        "library": Place(name="Green Library", coordinate=offset_north(campus, 40)),
        "hall": Place(name="Memorial Hall", coordinate=offset_north(campus, 20)),
        "center": Place(name="Tresidder Center", coordinate=offset_north(campus, 90)),
    }


class TestDedupePlaces:
    """Test suite for candidate deduplication."""

    def test_same_name_different_case(self, campus):
        result = dedupe_places([
            Place(name="Green Library", coordinate=campus),
            Place(name="GREEN LIBRARY", coordinate=offset_north(campus, 30)),
        ])

        assert [p.name for p in result] == ["Green Library"]

    def test_same_exact_coordinate(self, campus):
        result = dedupe_places([
            Place(name="Main Quad", coordinate=campus),
            Place(name="Building 60", coordinate=campus),
        ])

        assert [p.name for p in result] == ["Main Quad"]

    def test_unknown_buildings_are_dropped(self, campus):
        result = dedupe_places([Place(coordinate=campus)])
        assert result == []


class TestIdentifyNearbyBuildings:
    """Test suite for the fan-out / fan-in building search."""

    @pytest.mark.asyncio
    async def test_searches_every_term(self, test_db, test_settings, campus):
        geocoder = FakeGeocoder()
        service = BuildingService(test_db, geocoder, test_settings)

        await service.identify_nearby_buildings(campus)

        assert sorted(geocoder.queries) == ["building", "center", "department", "hall", "library"]

    @pytest.mark.asyncio
    async def test_sorted_by_distance_without_sessions(self, test_db, test_settings, campus, places, now):
        geocoder = FakeGeocoder(results={
            "library": [places["library"]],
            "hall": [places["hall"]],
            "center": [places["center"]],
        })
        service = BuildingService(test_db, geocoder, test_settings)

        buildings = await service.identify_nearby_buildings(campus, now=now)

        assert [b.name for b in buildings] == ["Memorial Hall", "Green Library", "Tresidder Center"]

    @pytest.mark.asyncio
    async def test_popular_building_first(
        self, test_db, test_settings, campus, places, make_session, now
    ):
        center = places["center"].to_building()
        await test_db["sessions"].insert_many([
            make_session("u1", building_id=center.id),
            make_session("u2", location=center.coordinate),
            # Más vieja que 7 días: no cuenta
            make_session("u3", building_id=places["hall"].to_building().id, start=now - timedelta(days=9)),
        ])
        geocoder = FakeGeocoder(results={
            "hall": [places["hall"]],
            "center": [places["center"]],
        })
        service = BuildingService(test_db, geocoder, test_settings)

        buildings = await service.identify_nearby_buildings(campus, now=now)

        assert [b.name for b in buildings] == ["Tresidder Center", "Memorial Hall"]

    @pytest.mark.asyncio
    async def test_failed_search_is_tolerated(self, test_db, test_settings, campus, places, now):
        geocoder = FakeGeocoder(
            results={"library": [places["library"]], "hall": [places["hall"]]},
            failing=["hall", "reverse"],
        )
        service = BuildingService(test_db, geocoder, test_settings)

        buildings = await service.identify_nearby_buildings(campus, now=now)

        assert [b.name for b in buildings] == ["Green Library"]

    @pytest.mark.asyncio
    async def test_reverse_geocode_result_included(self, test_db, test_settings, campus, now):
        reverse = Place(thoroughfare="Serra Mall", sub_thoroughfare="450", coordinate=campus)
        service = BuildingService(test_db, FakeGeocoder(reverse=reverse), test_settings)

        buildings = await service.identify_nearby_buildings(campus, now=now)

        assert [b.name for b in buildings] == ["450 Serra Mall"]
        assert buildings[0].id == f"building-{campus.latitude:.6f}-{campus.longitude:.6f}"

    @pytest.mark.asyncio
    async def test_at_most_five_candidates(self, test_db, test_settings, campus, now):
        results = {
            "building": [
                Place(name=f"Building {i}", coordinate=offset_north(campus, 10 * i))
                for i in range(1, 9)
            ]
        }
        service = BuildingService(test_db, FakeGeocoder(results=results), test_settings)

        buildings = await service.identify_nearby_buildings(campus, now=now)

        assert [b.name for b in buildings] == [f"Building {i}" for i in range(1, 6)]

    @pytest.mark.asyncio
    async def test_popularity_failure_counts_as_zero(
        self, test_db, test_settings, campus, places, now, monkeypatch
    ):
        service = BuildingService(test_db, FakeGeocoder(results={"hall": [places["hall"]]}), test_settings)

        async def broken(*args, **kwargs):
            raise ServerSelectionTimeoutError("no servers")

        monkeypatch.setattr(service.session_repo, "find_ended_near", broken)

        buildings = await service.identify_nearby_buildings(campus, now=now)

        assert [b.name for b in buildings] == ["Memorial Hall"]


class TestCurrentBuilding:
    """Test suite for the user's selected building."""

    def test_should_update_when_far(self, test_db, test_settings, campus):
        service = BuildingService(test_db, FakeGeocoder(), test_settings)
        building = BuildingInfo(name="Hall", coordinate=campus)

        assert service.should_update_building(offset_north(campus, 150), building)
        assert not service.should_update_building(offset_north(campus, 50), building)
        assert service.should_update_building(campus, None)

    @pytest.mark.asyncio
    async def test_select_building_standardizes_id(self, test_db, test_settings, sample_user_data, campus):
        await test_db["users"].insert_one(sample_user_data)
        service = BuildingService(test_db, FakeGeocoder(), test_settings)

        building = await service.select_building(sample_user_data["_id"], "Green Library", campus)
        stored = await service.get_current_building(sample_user_data["_id"])

        assert stored == building
        assert building.id.startswith("building-")

    @pytest.mark.asyncio
    async def test_select_building_unknown_user(self, test_db, test_settings, campus):
        service = BuildingService(test_db, FakeGeocoder(), test_settings)

        with pytest.raises(UserNotFoundError):
            await service.select_building("missing", "Hall", campus)

    @pytest.mark.asyncio
    async def test_refresh_keeps_nearby_building(self, test_db, test_settings, sample_user_data, campus):
        current = BuildingInfo(name="Hall", coordinate=campus)
        sample_user_data["current_building"] = current.model_dump()
        await test_db["users"].insert_one(sample_user_data)
        geocoder = FakeGeocoder()
        service = BuildingService(test_db, geocoder, test_settings)
        user = await service.user_repo.get_by_id(sample_user_data["_id"])

        building = await service.refresh_current_building(user, offset_north(campus, 30))

        assert building == current
        assert geocoder.queries == []

    @pytest.mark.asyncio
    async def test_refresh_picks_best_candidate(
        self, test_db, test_settings, sample_user_data, campus, places
    ):
        await test_db["users"].insert_one(sample_user_data)
        geocoder = FakeGeocoder(results={"hall": [places["hall"]], "library": [places["library"]]})
        service = BuildingService(test_db, geocoder, test_settings)
        user = await service.user_repo.get_by_id(sample_user_data["_id"])

        building = await service.refresh_current_building(user, campus)
        stored = await service.get_current_building(user.id)

        assert building.name == "Memorial Hall"
        assert stored.id == building.id

    @pytest.mark.asyncio
    async def test_refresh_keeps_current_when_best_is_same_building(
        self, test_db, test_settings, sample_user_data, campus
    ):
        """A candidate within 10 m of the stored building is the same building."""
        # Arrange
        current = BuildingInfo(name="Old Hall", coordinate=campus)
        sample_user_data["current_building"] = current.model_dump()
        await test_db["users"].insert_one(sample_user_data)
        geocoder = FakeGeocoder(results={
            "hall": [Place(name="Memorial Hall", coordinate=offset_north(campus, 5))]
        })
        service = BuildingService(test_db, geocoder, test_settings)
        user = await service.user_repo.get_by_id(sample_user_data["_id"])

        # Act
        building = await service.refresh_current_building(user, offset_north(campus, 150))
        stored = await service.get_current_building(user.id)

        # Assert
        assert building == current
        assert stored == current

    @pytest.mark.asyncio
    async def test_refresh_switches_to_different_building(
        self, test_db, test_settings, sample_user_data, campus
    ):
        current = BuildingInfo(name="Old Hall", coordinate=campus)
        sample_user_data["current_building"] = current.model_dump()
        await test_db["users"].insert_one(sample_user_data)
        geocoder = FakeGeocoder(results={
            "hall": [Place(name="Memorial Hall", coordinate=offset_north(campus, 40))]
        })
        service = BuildingService(test_db, geocoder, test_settings)
        user = await service.user_repo.get_by_id(sample_user_data["_id"])

        building = await service.refresh_current_building(user, offset_north(campus, 150))

        assert building.name == "Memorial Hall"
        assert not building.same_storage_key(current)
        assert (await service.get_current_building(user.id)).name == "Memorial Hall"

    @pytest.mark.asyncio
    async def test_refresh_without_candidates(self, test_db, test_settings, sample_user_data, campus):
        await test_db["users"].insert_one(sample_user_data)
        service = BuildingService(test_db, FakeGeocoder(), test_settings)
        user = await service.user_repo.get_by_id(sample_user_data["_id"])

        with pytest.raises(NoBuildingFoundError):
            await service.refresh_current_building(user, campus)
