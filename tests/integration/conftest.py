"""
Fixtures for integration tests
"""

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from flipapp.core.dependencies import get_geocoding_service, get_profile_cache
from flipapp.core.security import create_access_token
from flipapp.database import Database
from flipapp.main import app
from flipapp.services.geocoding_service import GeocodingService
from flipapp.services.profile_cache import ProfileCache

# Respuesta de Nominatim usada por defecto en las pruebas HTTP
REVERSE_RESULT = {
    "lat": "37.4274745",
    "lon": "-122.1697190",
    "name": "Cecil H. Green Library",
    "address": {"road": "Escondido Mall", "city": "Palo Alto", "state": "California"},
}


def _geocoder_handler(request: httpx.Request) -> httpx.Response:
    if request.url.path == "/reverse":
        return httpx.Response(200, json=REVERSE_RESULT)
    if request.url.params.get("q") == "hall":
        return httpx.Response(200, json=[
            {"lat": "37.4276", "lon": "-122.1702", "name": "Memorial Hall", "address": {}}
        ])
    return httpx.Response(200, json=[])


@pytest.fixture
async def client(test_db, test_settings):
    """
    HTTP client for testing API endpoints.

    Points the app at the test database, a fresh profile cache and a
    geocoder answered by httpx.MockTransport.
    """
    original_db = Database.db
    Database.db = test_db

    app.dependency_overrides[get_profile_cache] = lambda: ProfileCache()
    app.dependency_overrides[get_geocoding_service] = lambda: GeocodingService(
        test_settings, transport=httpx.MockTransport(_geocoder_handler)
    )

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
    Database.db = original_db


@pytest.fixture
async def auth_headers(test_db, sample_user_data):
    """
    Provides authentication headers for protected endpoints.

    Creates the test user and returns valid JWT token headers.
    """
    await test_db["users"].update_one(
        {"_id": sample_user_data["_id"]},
        {"$set": {k: v for k, v in sample_user_data.items() if k != "_id"}},
        upsert=True
    )

    token = create_access_token(sample_user_data["_id"])
    return {"Authorization": f"Bearer {token}"}
