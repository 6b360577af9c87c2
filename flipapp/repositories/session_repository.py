"""
⏱️ SessionRepository - Acceso a la colección `sessions`

Las sesiones son de solo lectura para los leaderboards: se filtran en el
servidor por éxito / fecha / edificio y el resto (radio, cercanía) se hace
en memoria con `flipapp.core.geo`.
"""

import logging
from datetime import datetime
from typing import AsyncIterator, Optional
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import ValidationError
from pymongo.errors import DuplicateKeyError

from flipapp.core.geo import meters_to_latitude_degrees
from flipapp.models.location import GeoPoint
from flipapp.models.session import SessionRecord

logger = logging.getLogger(__name__)

# Vecindad por defecto para la franja de latitud de find_ended_near
DEFAULT_VICINITY_METERS = 100.0


def _eligible_query(since: Optional[datetime] = None) -> dict:
    """Sesiones que cuentan para leaderboards (exitosas y con consentimiento)"""
    query = {
        "was_successful": True,
        "include_in_leaderboards": {"$ne": False},
    }
    if since is not None:
        query["start_time"] = {"$gt": since}
    return query


def _decode_sessions(docs: list[dict]) -> list[SessionRecord]:
    """
    Convierte documentos en SessionRecord

    Los que no se pueden leer (campos nulos, tipos raros) se saltean con un
    warning: una sesión rota no tumba el leaderboard entero.
    """
    sessions = []
    for doc in docs:
        try:
            sessions.append(SessionRecord(**doc))
        except ValidationError as e:
            logger.warning(f"⚠️ Sesión {doc.get('_id')} ignorada, no se pudo leer: {e.error_count()} errores")
    return sessions


class SessionRepository:
    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.collection = db["sessions"]

    # ============================================
    # 📌 CREATE
    # ============================================

    async def create(self, session: SessionRecord) -> SessionRecord:
        """Guarda una sesión terminada"""
        session_dict = session.model_dump(by_alias=True)

        try:
            await self.collection.insert_one(session_dict)
            return session
        except DuplicateKeyError:
            raise ValueError(f"Session {session.id} already exists")

    # ============================================
    # 📌 READ
    # ============================================

    async def find_successful(
        self,
        since: Optional[datetime] = None,
        building_id: Optional[str] = None,
        limit: Optional[int] = None,
        user_ids: Optional[list[str]] = None,
    ) -> list[SessionRecord]:
        """
        Sesiones elegibles para leaderboards

        - since: solo sesiones con start_time > since (ventana semanal)
        - building_id: igualdad exacta con el ID guardado
        - user_ids: solo sesiones de estos usuarios (amigos)
        - limit: top N por duración (las más largas primero)
        """
        query = _eligible_query(since)
        if building_id is not None:
            query["building_id"] = building_id
        if user_ids is not None:
            query["user_id"] = {"$in": user_ids}

        cursor = self.collection.find(query)
        if limit is not None:
            cursor = cursor.sort("duration_minutes", -1).limit(limit)

        docs = await cursor.to_list(length=limit)
        return _decode_sessions(docs)

    async def find_ended_near(
        self,
        building_id: str,
        point: GeoPoint,
        ended_after: datetime,
        vicinity_meters: float = DEFAULT_VICINITY_METERS,
    ) -> list[SessionRecord]:
        """
        Sesiones terminadas después de `ended_after` que podrían ser de un edificio

        Trae las que tienen el ID exacto o una ubicación en una franja de
        latitud de `vicinity_meters` alrededor del punto; la distancia real la
        mide quien llama.
        """
        band = meters_to_latitude_degrees(vicinity_meters)
        lat_range = {
            "$gte": point.latitude - band,
            "$lte": point.latitude + band,
        }
        cursor = self.collection.find({
            "end_time": {"$gt": ended_after},
            "$or": [
                {"building_id": building_id},
                {"location.latitude": lat_range},
                {"building_location.latitude": lat_range},
            ],
        })

        docs = await cursor.to_list(length=None)
        return _decode_sessions(docs)

    async def get_user_sessions(self, user_id: str, limit: int = 50) -> list[SessionRecord]:
        """Historial de un usuario (las más recientes primero)"""
        cursor = self.collection.find(
            {"user_id": user_id}
        ).sort("start_time", -1).limit(limit)

        docs = await cursor.to_list(length=limit)
        return _decode_sessions(docs)

    async def find_with_username(
        self,
        user_id: str,
        username: str,
        since: datetime,
        limit: int,
    ) -> list[SessionRecord]:
        """Sesiones recientes del usuario que todavía tienen cierto username"""
        cursor = self.collection.find({
            "user_id": user_id,
            "username": username,
            "start_time": {"$gt": since},
        }).sort("start_time", -1).limit(limit)

        docs = await cursor.to_list(length=limit)
        return _decode_sessions(docs)

    # ============================================
    # 📌 UPDATE
    # ============================================

    async def set_username(self, session_ids: list[str], username: str) -> int:
        """Actualiza el snapshot de username en un lote de sesiones"""
        if not session_ids:
            return 0

        result = await self.collection.update_many(
            {"_id": {"$in": session_ids}},
            {"$set": {"username": username}}
        )
        return result.modified_count

    # ============================================
    # 📡 REALTIME
    # ============================================

    async def watch_successful(
        self,
        since: Optional[datetime] = None,
    ) -> AsyncIterator[list[SessionRecord]]:
        """
        Suscripción en tiempo real a las sesiones elegibles

        Entrega el conjunto completo primero y lo vuelve a entregar entero
        cada vez que cambia algo en la colección (change stream de MongoDB,
        requiere replica set).
        """
        yield await self.find_successful(since)

        async with self.collection.watch() as stream:
            async for _change in stream:
                yield await self.find_successful(since)
