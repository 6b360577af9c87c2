"""
Pytest fixtures and configuration for all tests.
"""

import os

# Settings obligatorios: tienen que existir antes de importar flipapp
os.environ.setdefault("MONGODB_URI", "mongodb://localhost:27017")
os.environ.setdefault("JWT_SECRET", "test-secret-key-at-least-32-chars-long")

import uuid
from datetime import datetime, timedelta
from typing import AsyncGenerator

import pytest
from mongomock_motor import AsyncMongoMockClient
from motor.motor_asyncio import AsyncIOMotorDatabase

from flipapp.core.config import Settings
from flipapp.models.location import GeoPoint

TEST_DB_NAME = "flipapp_test"

# Miércoles 14/10/2026 12:00 UTC -> la semana empieza el lunes 12/10 00:00
NOW = datetime(2026, 10, 14, 12, 0)
WEEK_START = datetime(2026, 10, 12, 0, 0)

CAMPUS = GeoPoint(latitude=37.427467, longitude=-122.170244)


@pytest.fixture(scope="function")
async def test_db() -> AsyncGenerator[AsyncIOMotorDatabase, None]:
    """
    Provide a clean in-memory database for each test.

    mongomock shares data between clients of the same host, so every test
    gets its own database name.
    """
    client = AsyncMongoMockClient()
    db = client[f"{TEST_DB_NAME}_{uuid.uuid4().hex[:8]}"]

    yield db


@pytest.fixture
def test_settings() -> Settings:
    """Settings with the production defaults (no .env involved)."""
    return Settings(
        _env_file=None,
        mongodb_uri="mongodb://localhost:27017",
        jwt_secret="test-secret-key-at-least-32-chars-long",
    )


@pytest.fixture
def make_session():
    """
    Factory for raw session documents as stored in `sessions`.

    Defaults: successful, 30 minutes, started two hours before NOW.
    """
    def _make(
        user_id: str,
        minutes: int = 30,
        success: bool = True,
        building_id: str = None,
        location: GeoPoint = None,
        building_location: GeoPoint = None,
        start: datetime = None,
        username: str = None,
        include_in_leaderboards: bool = True,
    ) -> dict:
        start = start or NOW - timedelta(hours=2)
        return {
            "_id": uuid.uuid4().hex,
            "user_id": user_id,
            "username": username or f"name-{user_id}",
            "duration_minutes": minutes,
            "was_successful": success,
            "location": location.model_dump() if location else None,
            "building_id": building_id,
            "building_location": building_location.model_dump() if building_location else None,
            "start_time": start,
            "end_time": start + timedelta(minutes=minutes),
            "include_in_leaderboards": include_in_leaderboards,
        }

    return _make


@pytest.fixture
def sample_user_data():
    """Sample user document for testing."""
    return {
        "_id": "user_123",
        "username": "focus_fan",
        "email": "test@example.com",
        "profile_image_url": "https://example.com/avatar.jpg",
        "total_focus_time": 0,
        "created_at": NOW - timedelta(days=30),
        "is_active": True,
    }


@pytest.fixture
def now() -> datetime:
    """Fixed 'current' instant (Wednesday, naive UTC)."""
    return NOW


@pytest.fixture
def week_start() -> datetime:
    return WEEK_START


@pytest.fixture
def campus() -> GeoPoint:
    """Reference coordinate used as building / region center."""
    return CAMPUS
