"""
Aggregation - Núcleo puro de los leaderboards.

Todo lo que hay acá trabaja en memoria sobre sesiones ya traídas del store:
filtros geográficos, agrupación por usuario, privacidad y ranking. El
LeaderboardService decide qué consultar y en qué orden llamar a esto.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from flipapp.core.geo import haversine_meters
from flipapp.models.building import BuildingInfo
from flipapp.models.leaderboard import MetricKind
from flipapp.models.location import GeoPoint
from flipapp.models.privacy import ANONYMOUS_NAME, PrivacySetting
from flipapp.models.session import SessionRecord
from flipapp.models.user import DEFAULT_USERNAME


@dataclass
class UserAggregate:
    """Acumulado de un usuario dentro del scope"""

    user_id: str
    username: str
    session_count: int = 0
    total_minutes: int = 0
    metric: int = 0
    distance_meters: Optional[float] = None
    is_anonymous: bool = False


def start_of_week(now: datetime, tz: str = "UTC") -> datetime:
    """
    Lunes 00:00 de la semana de `now` en la zona `tz`, como UTC naive

    `now` naive se interpreta como UTC (formato de MongoDB).
    """
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    local = now.astimezone(ZoneInfo(tz))
    monday = (local - timedelta(days=local.weekday())).replace(
        hour=0, minute=0, second=0, microsecond=0
    )
    # Reconstruyo el datetime para que el offset sea el del lunes (DST)
    monday = datetime(monday.year, monday.month, monday.day, tzinfo=ZoneInfo(tz))
    return monday.astimezone(timezone.utc).replace(tzinfo=None)


def _session_points(session: SessionRecord) -> list[GeoPoint]:
    return [p for p in (session.location, session.building_location) if p is not None]


def select_building_sessions(
    sessions: list[SessionRecord],
    building: BuildingInfo,
    vicinity_meters: float = 100.0,
) -> list[SessionRecord]:
    """
    Sesiones de un edificio

    Primero por ID exacto. Si ninguna coincide (sesiones viejas o mal
    etiquetadas) cae a cercanía: ubicación de la sesión o del edificio
    guardado a <= `vicinity_meters` de la coordenada del edificio.
    """
    exact = [s for s in sessions if s.building_id == building.id]
    if exact:
        return exact

    return [
        s for s in sessions
        if any(building.contains(p, vicinity_meters) for p in _session_points(s))
    ]


def filter_within_radius(
    sessions: list[SessionRecord],
    center: GeoPoint,
    radius_meters: float,
) -> tuple[list[SessionRecord], dict[str, float]]:
    """
    Sesiones con ubicación a <= radio del centro (borde incluido)

    Devuelve también la distancia de cada sesión que quedó, por ID.
    """
    kept = []
    distances = {}
    for session in sessions:
        if session.location is None:
            continue
        distance = haversine_meters(center, session.location)
        if distance <= radius_meters:
            kept.append(session)
            distances[session.id] = distance
    return kept, distances


def session_distances(sessions: list[SessionRecord], center: GeoPoint) -> dict[str, float]:
    """Distancia al centro de cada sesión que tiene ubicación"""
    return {
        s.id: haversine_meters(center, s.location)
        for s in sessions
        if s.location is not None
    }


def aggregate_sessions(
    sessions: list[SessionRecord],
    metric_kind: MetricKind,
    distances: Optional[dict[str, float]] = None,
) -> list[UserAggregate]:
    """
    Agrupa por usuario (orden de primera aparición)

    El username sale del snapshot de la primera sesión vista. La distancia del
    usuario es la mínima de sus sesiones.
    """
    distances = distances or {}
    by_user: dict[str, UserAggregate] = {}

    for session in sessions:
        agg = by_user.get(session.user_id)
        if agg is None:
            agg = UserAggregate(user_id=session.user_id, username=session.username)
            by_user[session.user_id] = agg

        agg.session_count += 1
        agg.total_minutes += session.duration_minutes

        distance = distances.get(session.id)
        if distance is not None and (agg.distance_meters is None or distance < agg.distance_meters):
            agg.distance_meters = distance

    for agg in by_user.values():
        if metric_kind == MetricKind.SESSION_COUNT:
            agg.metric = agg.session_count
        else:
            agg.metric = agg.total_minutes

    return list(by_user.values())


def add_idle_members(aggregates: list[UserAggregate], member_ids: list[str]) -> list[UserAggregate]:
    """
    Agrega con métrica 0 a los miembros que no tuvieron sesiones

    Van después de los que sí tienen, en el orden de `member_ids`. Su nombre
    provisorio es "User " + el principio del ID hasta que se decore.
    """
    present = {agg.user_id for agg in aggregates}
    idle = [
        UserAggregate(user_id=uid, username=f"{DEFAULT_USERNAME} {uid[:5]}")
        for uid in member_ids
        if uid not in present
    ]
    return aggregates + idle


def apply_privacy(
    aggregates: list[UserAggregate],
    settings: dict[str, PrivacySetting],
) -> list[UserAggregate]:
    """
    Aplica la privacidad de cada usuario

    opt_out: el usuario desaparece. anonymous: se queda con su métrica y su
    posición pero se muestra como "Anonymous".
    """
    visible = []
    for agg in aggregates:
        setting = settings.get(agg.user_id) or PrivacySetting(user_id=agg.user_id)
        if setting.opt_out:
            continue
        if setting.is_anonymous:
            agg.username = ANONYMOUS_NAME
            agg.is_anonymous = True
        visible.append(agg)
    return visible


def rank_aggregates(
    aggregates: list[UserAggregate],
    tie_break_by_distance: bool = False,
) -> list[UserAggregate]:
    """
    Ordena por métrica descendente (sort estable)

    Con `tie_break_by_distance` los empates se resuelven por cercanía: el más
    cercano queda arriba, los que no tienen distancia al final del empate.
    """
    if tie_break_by_distance:
        return sorted(
            aggregates,
            key=lambda a: (
                -a.metric,
                a.distance_meters is None,
                a.distance_meters or 0.0,
            ),
        )
    return sorted(aggregates, key=lambda a: a.metric, reverse=True)
