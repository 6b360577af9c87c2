"""
Controlador de leaderboards - Endpoints de clasificación

Los leaderboards se calculan en cada request (no hay cache de resultados):
la privacidad de cada usuario se lee siempre fresca.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect
from pydantic import BaseModel

from flipapp.core.config import get_settings
from flipapp.core.dependencies import CurrentUser, Database, Geocoder, Profiles
from flipapp.models.building import BuildingInfo
from flipapp.models.leaderboard import LeaderboardEntry, LeaderboardScope, TimeWindow
from flipapp.models.location import GeoPoint
from flipapp.repositories.session_repository import SessionRepository
from flipapp.services.leaderboard_service import LeaderboardService
from flipapp.services.live_leaderboard import LeaderboardBoard, LiveLeaderboard

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/leaderboard", tags=["leaderboard"])


class LeaderboardResponse(BaseModel):
    """Leaderboard rankeado para un scope y una ventana."""
    scope: str
    window: TimeWindow
    entries: list[LeaderboardEntry]
    building: Optional[BuildingInfo] = None
    location_name: Optional[str] = None
    radius_miles: Optional[float] = None


@router.get("/building/{building_id}", response_model=LeaderboardResponse)
async def get_building_leaderboard(
    building_id: str,
    db: Database,
    profiles: Profiles,
    latitude: float = Query(..., ge=-90, le=90),
    longitude: float = Query(..., ge=-180, le=180),
    name: str = Query("Building", description="Nombre para mostrar del edificio"),
    window: TimeWindow = Query(TimeWindow.WEEK),
    limit: Optional[int] = Query(None, ge=1, le=100)
):
    """
    Obtener el leaderboard de un edificio (cantidad de sesiones).
    """
    building = BuildingInfo(
        id=building_id,
        name=name,
        coordinate=GeoPoint(latitude=latitude, longitude=longitude)
    )
    leaderboard_service = LeaderboardService(db, profiles)
    entries = await leaderboard_service.get_leaderboard(
        LeaderboardScope.for_building(building), window, limit=limit
    )

    return LeaderboardResponse(scope="building", window=window, entries=entries, building=building)


@router.get("/region", response_model=LeaderboardResponse)
async def get_region_leaderboard(
    db: Database,
    profiles: Profiles,
    geocoder: Geocoder,
    latitude: float = Query(..., ge=-90, le=90),
    longitude: float = Query(..., ge=-180, le=180),
    radius_miles: Optional[float] = Query(None, gt=0, le=500),
    window: TimeWindow = Query(TimeWindow.WEEK),
    limit: Optional[int] = Query(None, ge=1, le=100)
):
    """
    Obtener el leaderboard regional (minutos dentro de un radio).
    """
    center = GeoPoint(latitude=latitude, longitude=longitude)
    radius = radius_miles or get_settings().region_radius_miles

    leaderboard_service = LeaderboardService(db, profiles)
    entries = await leaderboard_service.get_leaderboard(
        LeaderboardScope.for_region(center, radius), window, limit=limit
    )
    location_name = await geocoder.region_name(center)

    return LeaderboardResponse(
        scope="region",
        window=window,
        entries=entries,
        location_name=location_name,
        radius_miles=radius
    )


@router.get("/global", response_model=LeaderboardResponse)
async def get_global_leaderboard(
    db: Database,
    profiles: Profiles,
    window: TimeWindow = Query(TimeWindow.WEEK),
    latitude: Optional[float] = Query(None, ge=-90, le=90),
    longitude: Optional[float] = Query(None, ge=-180, le=180),
    limit: Optional[int] = Query(None, ge=1, le=100)
):
    """
    Obtener el leaderboard global.

    La ubicación es opcional: solo sirve para desempatar por cercanía.
    """
    center = None
    if latitude is not None and longitude is not None:
        center = GeoPoint(latitude=latitude, longitude=longitude)

    leaderboard_service = LeaderboardService(db, profiles)
    entries = await leaderboard_service.get_leaderboard(
        LeaderboardScope.global_scope(center), window, limit=limit
    )

    return LeaderboardResponse(scope="global", window=window, entries=entries)


@router.get("/friends", response_model=LeaderboardResponse)
async def get_friends_leaderboard(
    user: CurrentUser,
    db: Database,
    profiles: Profiles,
    window: TimeWindow = Query(TimeWindow.WEEK)
):
    """
    Obtener el leaderboard del usuario y sus amigos (minutos de la semana).

    Aparecen todos los amigos, aunque no tengan sesiones en la ventana.
    """
    leaderboard_service = LeaderboardService(db, profiles)
    entries = await leaderboard_service.get_leaderboard(
        LeaderboardScope.for_friends(user.id, user.friends), window
    )

    return LeaderboardResponse(scope="friends", window=window, entries=entries)


async def _wait_for_disconnect(websocket: WebSocket) -> None:
    """Lee el socket hasta que el cliente se va (lo que mande el cliente se ignora)"""
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            return


@router.websocket("/live")
async def live_leaderboard(
    websocket: WebSocket,
    db: Database,
    profiles: Profiles,
    window: TimeWindow = Query(TimeWindow.WEEK),
    latitude: Optional[float] = Query(None, ge=-90, le=90),
    longitude: Optional[float] = Query(None, ge=-180, le=180),
    radius_miles: Optional[float] = Query(None, gt=0, le=500)
):
    """
    Leaderboard en vivo (global, o regional si llegan centro y radio).

    Manda el leaderboard completo cada vez que cambian las sesiones.
    Requiere MongoDB con change streams (replica set).
    """
    if latitude is not None and longitude is not None and radius_miles is not None:
        scope = LeaderboardScope.for_region(GeoPoint(latitude=latitude, longitude=longitude), radius_miles)
    else:
        scope = LeaderboardScope.global_scope()

    await websocket.accept()

    async def push(board: LeaderboardBoard):
        await websocket.send_json({
            "scope": scope.kind.value,
            "window": window.value,
            "entries": [e.model_dump(mode="json") for e in board.entries],
        })

    board = LeaderboardBoard(LeaderboardService(db, profiles), on_update=push)
    live = LiveLeaderboard(board, SessionRepository(db).watch_successful)

    try:
        await live.run(scope, window, stop_when=_wait_for_disconnect(websocket))
    except WebSocketDisconnect as e:
        logger.info(f"📡 Cliente de leaderboard en vivo desconectado al enviar (code {e.code})")
    else:
        logger.info("📡 Cliente de leaderboard en vivo desconectado")
