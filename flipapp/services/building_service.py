"""
BuildingService - Identifica el edificio donde está el usuario.

Para una coordenada lanza en paralelo el reverse geocoding y varias búsquedas
de lugares cercanos, espera a que terminen todas (las que fallan no aportan
nada), deduplica y ordena los candidatos por popularidad: cuántas sesiones
hubo a <= 100 m del lugar en los últimos 7 días.
"""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import PyMongoError

from flipapp.core.clock import to_storage_datetime, utc_now
from flipapp.core.config import Settings, get_settings
from flipapp.core.geo import haversine_meters
from flipapp.models.building import BuildingInfo, Place
from flipapp.models.location import GeoPoint
from flipapp.models.user import User
from flipapp.repositories.session_repository import SessionRepository
from flipapp.repositories.user_repository import UserRepository
from flipapp.services.geocoding_service import GeocodingService

logger = logging.getLogger(__name__)

# Términos de búsqueda para encontrar edificios/departamentos cercanos
SEARCH_TERMS = ("department", "building", "library", "hall", "center")

MAX_CANDIDATES = 5
POPULARITY_WINDOW = timedelta(days=7)


class BuildingServiceError(Exception):
    """Base exception for building service errors."""
    pass


class UserNotFoundError(BuildingServiceError):
    """Raised when the user to update doesn't exist."""
    pass


class NoBuildingFoundError(BuildingServiceError):
    """Raised when no candidate building could be identified."""
    pass


def dedupe_places(places: list[Place]) -> list[Place]:
    """
    Deduplica candidatos: mismo nombre (sin mayúsculas) o misma coordenada exacta.

    Gana el primero que aparece. Se descartan los que no tienen un nombre útil.
    """
    unique = []
    seen_names = set()
    seen_coordinates = set()

    for place in places:
        name = place.building_name.lower()
        if not name or name == "unknown building":
            continue

        coordinate_key = place.coordinate.storage_key()
        if name in seen_names or coordinate_key in seen_coordinates:
            continue

        unique.append(place)
        seen_names.add(name)
        seen_coordinates.add(coordinate_key)

    return unique


class BuildingService:
    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        geocoder: Optional[GeocodingService] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.session_repo = SessionRepository(db)
        self.user_repo = UserRepository(db)
        self.geocoder = geocoder or GeocodingService(self.settings)

    async def identify_nearby_buildings(
        self,
        coordinate: GeoPoint,
        now: Optional[datetime] = None,
    ) -> list[BuildingInfo]:
        """
        Top 5 edificios candidatos para la coordenada, más populares primero.

        Empates de popularidad: el más cercano a la coordenada primero.
        """
        now = to_storage_datetime(now) if now else utc_now()

        searches = [self.geocoder.reverse_geocode(coordinate)]
        searches += [self.geocoder.search_nearby(term, coordinate) for term in SEARCH_TERMS]
        results = await asyncio.gather(*searches, return_exceptions=True)

        places: list[Place] = []
        for term, result in zip(("reverse",) + SEARCH_TERMS, results):
            if isinstance(result, Exception):
                logger.warning(f"⚠️ Búsqueda '{term}' falló: {result}")
                continue
            if result is None:
                continue
            places.extend(result if isinstance(result, list) else [result])

        candidates = [p.to_building() for p in dedupe_places(places)]
        if not candidates:
            return []

        since = now - POPULARITY_WINDOW
        counts = await asyncio.gather(*(self._popularity(b, since) for b in candidates))

        ranked = sorted(
            zip(candidates, counts),
            key=lambda item: (-item[1], haversine_meters(coordinate, item[0].coordinate)),
        )
        logger.info(f"🏢 {len(candidates)} candidatos cerca de {coordinate.storage_key()}")
        return [building for building, _count in ranked[:MAX_CANDIDATES]]

    async def _popularity(self, building: BuildingInfo, since: datetime) -> int:
        """Sesiones terminadas desde `since` en el edificio; si la consulta falla, 0"""
        vicinity = self.settings.building_vicinity_meters
        try:
            sessions = await self.session_repo.find_ended_near(
                building.id, building.coordinate, since, vicinity
            )
        except PyMongoError as e:
            logger.warning(f"⚠️ No se pudo contar sesiones de {building.id}: {e}")
            return 0

        return sum(
            1 for s in sessions
            if s.building_id == building.id
            or any(
                p is not None and building.contains(p, vicinity)
                for p in (s.location, s.building_location)
            )
        )

    def should_update_building(self, location: GeoPoint, building: Optional[BuildingInfo]) -> bool:
        """True si el usuario se alejó del edificio actual (o no tiene uno)"""
        if building is None:
            return True
        return not building.contains(location, self.settings.building_vicinity_meters)

    async def get_current_building(self, user_id: str) -> Optional[BuildingInfo]:
        user = await self.user_repo.get_by_id(user_id)
        if not user:
            raise UserNotFoundError(f"User {user_id} not found")
        return user.current_building

    async def select_building(self, user_id: str, name: str, coordinate: GeoPoint) -> BuildingInfo:
        """Guarda el edificio elegido con su ID estandarizado"""
        building = BuildingInfo(name=name, coordinate=coordinate)
        user = await self.user_repo.set_current_building(user_id, building)
        if not user:
            raise UserNotFoundError(f"User {user_id} not found")

        logger.info(f"🏢 {user_id} ahora está en {building.name} ({building.id})")
        return building

    async def refresh_current_building(self, user: User, coordinate: GeoPoint) -> BuildingInfo:
        """
        Mantiene el edificio actual mientras el usuario siga cerca; si no,
        identifica candidatos y se queda con el más popular.

        Si el mejor candidato es el mismo edificio (mismo ID o a <= 10 m) se
        conserva el actual tal cual, con su ID y nombre guardados.
        """
        current = user.current_building
        if not self.should_update_building(coordinate, current):
            return current

        candidates = await self.identify_nearby_buildings(coordinate)
        if not candidates:
            raise NoBuildingFoundError("No buildings found near this location")

        best = candidates[0]
        if current is not None and (best.same_storage_key(current) or best.is_nearby(current)):
            logger.info(f"🏢 {user.id} sigue en {current.name}")
            return current

        return await self.select_building(user.id, best.name, best.coordinate)
