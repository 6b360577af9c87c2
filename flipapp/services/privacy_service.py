"""
PrivacyService - Preferencias de privacidad de leaderboards.

Nunca se cachea: cada carga de leaderboard lee el valor más reciente.
"""

import asyncio
import logging
from typing import Iterable, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from flipapp.models.privacy import DisplayMode, PrivacySetting
from flipapp.repositories.privacy_repository import PrivacyRepository

logger = logging.getLogger(__name__)


class PrivacyServiceError(Exception):
    """Base exception for privacy service errors."""
    pass


class EmptyPrivacyUpdateError(PrivacyServiceError):
    """Raised when an update carries no fields."""
    pass


class PrivacyService:
    def __init__(self, db: AsyncIOMotorDatabase):
        self.privacy_repo = PrivacyRepository(db)

    async def get_settings(self, user_id: str) -> PrivacySetting:
        """Settings del usuario, {false, normal} si nunca guardó nada."""
        doc = await self.privacy_repo.get(user_id)
        return PrivacySetting.from_document(user_id, doc)

    async def get_settings_for(self, user_ids: Iterable[str]) -> dict[str, PrivacySetting]:
        """
        Settings de varios usuarios (lecturas puntuales en paralelo).

        Si una lectura falla, el error se propaga: sin privacidad confiable
        no se arma el leaderboard.
        """
        unique_ids = list(dict.fromkeys(user_ids))
        settings = await asyncio.gather(*(self.get_settings(uid) for uid in unique_ids))
        return {s.user_id: s for s in settings}

    async def update_settings(
        self,
        user_id: str,
        opt_out: Optional[bool] = None,
        display_mode: Optional[DisplayMode] = None,
    ) -> PrivacySetting:
        """
        Actualiza las preferencias (crea el documento la primera vez).
        """
        fields = {}
        if opt_out is not None:
            fields["regional_opt_out"] = opt_out
        if display_mode is not None:
            fields["regional_display_mode"] = DisplayMode(display_mode).value

        if not fields:
            raise EmptyPrivacyUpdateError("No privacy fields to update")

        doc = await self.privacy_repo.upsert(user_id, fields)
        logger.info(f"🔒 Privacidad actualizada para {user_id}: {fields}")
        return PrivacySetting.from_document(user_id, doc)
