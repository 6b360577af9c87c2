"""
Unit tests for PrivacyService
"""

import pytest

from flipapp.models.privacy import DisplayMode
from flipapp.services.privacy_service import EmptyPrivacyUpdateError, PrivacyService


class TestPrivacyService:
    """Test suite for privacy settings reads and lazy writes."""

    @pytest.mark.asyncio
    async def test_defaults_when_absent(self, test_db):
        service = PrivacyService(test_db)

        setting = await service.get_settings("u1")

        assert setting.opt_out is False
        assert setting.display_mode == DisplayMode.NORMAL

    @pytest.mark.asyncio
    async def test_first_write_creates_document(self, test_db):
        service = PrivacyService(test_db)

        setting = await service.update_settings("u1", opt_out=True)

        assert setting.opt_out is True
        stored = await test_db["user_settings"].find_one({"_id": "u1"})
        assert stored["regional_opt_out"] is True

    @pytest.mark.asyncio
    async def test_partial_update_keeps_other_field(self, test_db):
        service = PrivacyService(test_db)
        await service.update_settings("u1", display_mode=DisplayMode.ANONYMOUS)

        setting = await service.update_settings("u1", opt_out=False)

        assert setting.display_mode == DisplayMode.ANONYMOUS
        assert setting.opt_out is False

    @pytest.mark.asyncio
    async def test_empty_update_rejected(self, test_db):
        service = PrivacyService(test_db)

        with pytest.raises(EmptyPrivacyUpdateError):
            await service.update_settings("u1")

    @pytest.mark.asyncio
    async def test_bulk_lookup(self, test_db):
        await test_db["user_settings"].insert_one({"_id": "u2", "regional_opt_out": True})
        service = PrivacyService(test_db)

        settings = await service.get_settings_for(["u1", "u2", "u1"])

        assert set(settings) == {"u1", "u2"}
        assert settings["u2"].opt_out is True
        assert settings["u1"].opt_out is False
