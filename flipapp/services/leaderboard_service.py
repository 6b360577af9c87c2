"""
LeaderboardService - Calcula los leaderboards de foco en tiempo real.

Un solo agregador parametrizado por scope (edificio / región / global) y
ventana (semana actual / all-time). El núcleo en memoria vive en
`flipapp.services.aggregation`; acá se decide qué consultar al store, se
une la privacidad (siempre fresca) y se decoran las entradas.

Si el store falla, el leaderboard queda vacío: sin reintentos ni resultados
parciales.
"""

import asyncio
import logging
from datetime import datetime
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import PyMongoError

from flipapp.core.clock import to_storage_datetime, utc_now
from flipapp.core.config import Settings, get_settings
from flipapp.core.geo import miles_to_meters
from flipapp.models.leaderboard import (
    LeaderboardEntry,
    LeaderboardScope,
    MetricKind,
    ScopeKind,
    StreakStatus,
    TimeWindow,
    rank_name_for_score,
)
from flipapp.repositories.session_repository import SessionRepository
from flipapp.repositories.streak_repository import StreakRepository
from flipapp.repositories.user_repository import UserRepository
from flipapp.services.aggregation import (
    UserAggregate,
    add_idle_members,
    aggregate_sessions,
    apply_privacy,
    filter_within_radius,
    rank_aggregates,
    select_building_sessions,
    session_distances,
    start_of_week,
)
from flipapp.services.privacy_service import PrivacyService
from flipapp.services.profile_cache import ProfileCache

logger = logging.getLogger(__name__)

# Usuarios que se consideran para el all-time global (por total_focus_time)
GLOBAL_ALL_TIME_CANDIDATES = 100


class LeaderboardService:
    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        profile_cache: Optional[ProfileCache] = None,
        settings: Optional[Settings] = None,
    ):
        self.db = db
        self.settings = settings or get_settings()
        self.session_repo = SessionRepository(db)
        self.user_repo = UserRepository(db)
        self.streak_repo = StreakRepository(db)
        self.privacy_service = PrivacyService(db)
        self.profile_cache = profile_cache or ProfileCache(self.settings.profile_cache_ttl_seconds)

    async def get_leaderboard(
        self,
        scope: LeaderboardScope,
        window: TimeWindow,
        now: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> list[LeaderboardEntry]:
        """
        Leaderboard rankeado y con privacidad aplicada.

        1. Consulta las sesiones candidatas (exitosas, semana actual si aplica)
        2. Filtra por scope y agrega por usuario
        3. Une la privacidad (opt-out fuera, anónimos enmascarados)
        4. Ordena, corta al top N y decora (score / racha, best-effort)
        """
        now = to_storage_datetime(now) if now else utc_now()
        if limit is None:
            # Los amigos se muestran todos; el resto, top N
            limit = (
                len(scope.member_ids) if scope.kind == ScopeKind.FRIENDS
                else self.settings.leaderboard_display_limit
            )

        try:
            aggregates, metric_kind, tie_break = await self._collect(scope, window, now)

            privacy = await self.privacy_service.get_settings_for(a.user_id for a in aggregates)
            visible = apply_privacy(aggregates, privacy)

            ranked = rank_aggregates(visible, tie_break_by_distance=tie_break)[:limit]
            entries = await self._build_entries(ranked, metric_kind)
        except PyMongoError:
            logger.exception(f"❌ Error cargando leaderboard {scope.kind.value}/{window.value}")
            return []

        logger.info(
            f"📊 Leaderboard {scope.kind.value}/{window.value}: "
            f"{len(entries)} entradas (de {len(aggregates)} usuarios)"
        )
        return entries

    # ============================================
    # 🔎 CANDIDATOS POR SCOPE
    # ============================================

    async def _collect(
        self,
        scope: LeaderboardScope,
        window: TimeWindow,
        now: datetime,
    ) -> tuple[list[UserAggregate], MetricKind, bool]:
        """Devuelve (agregados sin ordenar, tipo de métrica, desempate por distancia)"""
        since = start_of_week(now, self.settings.leaderboard_timezone) if window == TimeWindow.WEEK else None

        if scope.kind == ScopeKind.BUILDING:
            sessions = await self._building_sessions(scope, since)
            return aggregate_sessions(sessions, MetricKind.SESSION_COUNT), MetricKind.SESSION_COUNT, False

        if scope.kind == ScopeKind.REGION:
            sessions = await self.session_repo.find_successful(since)
            kept, distances = filter_within_radius(
                sessions, scope.center, miles_to_meters(scope.radius_miles)
            )
            aggregates = aggregate_sessions(kept, MetricKind.TOTAL_MINUTES, distances)

            if window == TimeWindow.WEEK:
                return aggregates, MetricKind.TOTAL_MINUTES, True

            await self._use_lifetime_totals(aggregates)
            return aggregates, MetricKind.LIFETIME_MINUTES, False

        if scope.kind == ScopeKind.FRIENDS:
            sessions = await self.session_repo.find_successful(since, user_ids=scope.member_ids)
            aggregates = aggregate_sessions(sessions, MetricKind.TOTAL_MINUTES)
            return add_idle_members(aggregates, scope.member_ids), MetricKind.TOTAL_MINUTES, False

        # Global
        if window == TimeWindow.WEEK:
            sessions = await self.session_repo.find_successful(since)
            distances = session_distances(sessions, scope.center) if scope.center else None
            aggregates = aggregate_sessions(sessions, MetricKind.TOTAL_MINUTES, distances)
            return aggregates, MetricKind.TOTAL_MINUTES, scope.center is not None

        return await self._global_all_time(), MetricKind.LIFETIME_MINUTES, False

    async def _building_sessions(self, scope: LeaderboardScope, since: Optional[datetime]):
        """
        Sesiones del edificio, acotadas a las N más largas.

        Primero por ID exacto en el servidor; si no hay ninguna, busca por
        cercanía entre las sesiones de la ventana.
        """
        building = scope.building
        candidate_limit = self.settings.building_candidate_limit

        sessions = await self.session_repo.find_successful(
            since, building_id=building.id, limit=candidate_limit
        )
        if sessions:
            return sessions

        logger.info(f"🏢 Sin sesiones con ID {building.id}, buscando por cercanía")
        window_sessions = await self.session_repo.find_successful(since)
        nearby = select_building_sessions(
            window_sessions, building, self.settings.building_vicinity_meters
        )
        nearby.sort(key=lambda s: s.duration_minutes, reverse=True)
        return nearby[:candidate_limit]

    async def _use_lifetime_totals(self, aggregates: list[UserAggregate]) -> None:
        """Reemplaza la suma por el total_focus_time guardado cuando existe"""
        users = await self.user_repo.get_many([a.user_id for a in aggregates])
        for agg in aggregates:
            user = users.get(agg.user_id)
            if user and user.total_focus_time > 0:
                agg.metric = user.total_focus_time

    async def _global_all_time(self) -> list[UserAggregate]:
        """Top por total_focus_time; si nadie tiene totales, suma todas las sesiones"""
        users = await self.user_repo.get_top_by_focus_time(GLOBAL_ALL_TIME_CANDIDATES)
        if users:
            for user in users:
                self.profile_cache.put(user.id, user.username, user.profile_image_url)
            return [
                UserAggregate(
                    user_id=user.id,
                    username=user.username,
                    total_minutes=user.total_focus_time,
                    metric=user.total_focus_time,
                )
                for user in users
            ]

        sessions = await self.session_repo.find_successful()
        aggregates = aggregate_sessions(sessions, MetricKind.TOTAL_MINUTES)
        await self._use_lifetime_totals(aggregates)
        return aggregates

    # ============================================
    # 🎨 ENTRADAS + DECORACIÓN
    # ============================================

    async def _build_entries(
        self,
        ranked: list[UserAggregate],
        metric_kind: MetricKind,
    ) -> list[LeaderboardEntry]:
        await self._warm_profiles([a.user_id for a in ranked if not a.is_anonymous])

        decorations = await asyncio.gather(
            *(self._fetch_decoration(a.user_id) for a in ranked),
            return_exceptions=True,
        )

        entries = []
        for position, (agg, decoration) in enumerate(zip(ranked, decorations), start=1):
            if isinstance(decoration, Exception):
                logger.debug(f"Decoración no disponible para {agg.user_id}: {decoration}")
                score, streak = None, StreakStatus.NONE
            else:
                score, streak = decoration

            display_name = agg.username
            image_url = None
            if not agg.is_anonymous:
                profile = self.profile_cache.get(agg.user_id)
                if profile is not None:
                    display_name = profile.username
                    image_url = profile.profile_image_url

            entries.append(LeaderboardEntry(
                rank=position,
                user_id=agg.user_id,
                display_name=display_name,
                metric=agg.metric,
                metric_kind=metric_kind,
                session_count=agg.session_count,
                total_minutes=agg.total_minutes,
                distance_meters=agg.distance_meters,
                is_anonymous=agg.is_anonymous,
                profile_image_url=image_url,
                score=score,
                rank_name=rank_name_for_score(score),
                streak_status=streak,
            ))

        return entries

    async def _warm_profiles(self, user_ids: list[str]) -> None:
        """Trae de `users` los perfiles que no están en cache (best-effort)"""
        missing = [uid for uid in user_ids if self.profile_cache.get(uid) is None]
        if not missing:
            return

        try:
            users = await self.user_repo.get_many(missing)
        except PyMongoError as e:
            logger.warning(f"⚠️ No se pudieron cargar perfiles, uso los snapshots: {e}")
            return

        for user_id, user in users.items():
            self.profile_cache.put(user_id, user.username, user.profile_image_url)

    async def _fetch_decoration(self, user_id: str) -> tuple[Optional[float], StreakStatus]:
        """Score y racha del usuario, en paralelo"""
        user, streak = await asyncio.gather(
            self.user_repo.get_by_id(user_id),
            self.streak_repo.get_status(user_id),
        )
        return (user.score if user else None), streak
