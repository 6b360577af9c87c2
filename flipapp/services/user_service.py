"""
UserService - Perfil del usuario.

Al cambiar el username se invalida el cache de perfiles y se corrigen las
sesiones recientes que todavía tienen el username genérico.
"""

import logging
from datetime import timedelta
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from flipapp.core.clock import utc_now
from flipapp.models.user import DEFAULT_USERNAME, User
from flipapp.repositories.session_repository import SessionRepository
from flipapp.repositories.user_repository import UserRepository
from flipapp.services.profile_cache import ProfileCache

logger = logging.getLogger(__name__)

BACKFILL_WINDOW = timedelta(days=30)
BACKFILL_LIMIT = 20


class UserServiceError(Exception):
    """Base exception for user service errors."""
    pass


class UserNotFoundError(UserServiceError):
    """Raised when user is not found."""
    pass


class UserService:
    def __init__(self, db: AsyncIOMotorDatabase, profile_cache: Optional[ProfileCache] = None):
        self.user_repo = UserRepository(db)
        self.session_repo = SessionRepository(db)
        self.profile_cache = profile_cache

    async def update_profile(
        self,
        user_id: str,
        username: Optional[str] = None,
        profile_image_url: Optional[str] = None,
    ) -> User:
        user = await self.user_repo.update_profile(user_id, username, profile_image_url)
        if not user:
            raise UserNotFoundError(f"User {user_id} not found")

        if self.profile_cache is not None:
            self.profile_cache.invalidate(user_id)

        if username is not None and username != DEFAULT_USERNAME:
            fixed = await self._backfill_session_usernames(user_id, username)
            if fixed:
                logger.info(f"✏️ {fixed} sesiones de {user_id} ahora muestran '{username}'")

        return user

    async def _backfill_session_usernames(self, user_id: str, username: str) -> int:
        """Reemplaza el username genérico en las sesiones recientes del usuario"""
        since = utc_now() - BACKFILL_WINDOW
        sessions = await self.session_repo.find_with_username(
            user_id, DEFAULT_USERNAME, since, BACKFILL_LIMIT
        )
        return await self.session_repo.set_username([s.id for s in sessions], username)
