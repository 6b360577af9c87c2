"""
SessionService - Registro de sesiones de foco.

Valida y normaliza lo que manda la app antes de guardarlo: duración mínima,
hora de fin, ID de edificio estandarizado y snapshot del username.
"""

import logging
import uuid
from datetime import timedelta

from motor.motor_asyncio import AsyncIOMotorDatabase

from flipapp.core.clock import to_storage_datetime, utc_now
from flipapp.models.building import standardized_building_id
from flipapp.models.session import SessionCreate, SessionRecord
from flipapp.models.user import User
from flipapp.repositories.session_repository import SessionRepository
from flipapp.repositories.user_repository import UserRepository

logger = logging.getLogger(__name__)


class SessionServiceError(Exception):
    """Base exception for session service errors."""
    pass


class InvalidSessionError(SessionServiceError):
    """Raised when session data is invalid."""
    pass


class SessionService:
    def __init__(self, db: AsyncIOMotorDatabase):
        self.session_repo = SessionRepository(db)
        self.user_repo = UserRepository(db)

    async def record_session(self, user: User, data: SessionCreate) -> SessionRecord:
        """
        Guarda una sesión terminada.

        - La duración real es al menos 1 minuto
        - end_time = start_time + duración real
        - El building_id siempre se recalcula desde la coordenada del edificio
        - Las exitosas suman sus minutos a users.total_focus_time
        """
        if data.building_name and data.building_location is None:
            raise InvalidSessionError("building_location is required when building_name is set")

        start_time = to_storage_datetime(data.start_time)
        duration = max(1, data.duration_minutes)

        building_id = None
        if data.building_location is not None:
            building_id = standardized_building_id(data.building_location)

        session = SessionRecord(
            _id=uuid.uuid4().hex,
            user_id=user.id,
            username=user.username,
            duration_minutes=duration,
            planned_duration_minutes=data.planned_duration_minutes,
            was_successful=data.was_successful,
            location=data.location,
            building_id=building_id,
            building_name=data.building_name,
            building_location=data.building_location,
            start_time=start_time,
            end_time=start_time + timedelta(minutes=duration),
            include_in_leaderboards=data.include_in_leaderboards,
            created_at=utc_now(),
        )

        await self.session_repo.create(session)

        if session.was_successful:
            await self.user_repo.add_focus_time(user.id, duration)

        logger.info(
            f"✅ Sesión {session.id} de {user.id}: {duration} min "
            f"({'exitosa' if session.was_successful else 'fallida'})"
        )
        return session

    async def get_user_sessions(self, user_id: str, limit: int = 50) -> list[SessionRecord]:
        """Historial del usuario, más recientes primero."""
        return await self.session_repo.get_user_sessions(user_id, limit)
