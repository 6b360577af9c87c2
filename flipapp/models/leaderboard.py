from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field, model_validator

from flipapp.models.building import BuildingInfo
from flipapp.models.location import GeoPoint


class ScopeKind(str, Enum):
    BUILDING = "building"
    REGION = "region"
    GLOBAL = "global"
    FRIENDS = "friends"


class TimeWindow(str, Enum):
    WEEK = "week"          # Semana calendario actual (empieza el lunes 00:00)
    ALL_TIME = "all_time"


class MetricKind(str, Enum):
    SESSION_COUNT = "session_count"
    TOTAL_MINUTES = "total_minutes"
    LIFETIME_MINUTES = "lifetime_minutes"


class StreakStatus(str, Enum):
    NONE = "none"
    ORANGE_FLAME = "orangeFlame"
    RED_FLAME = "redFlame"

    @classmethod
    def parse(cls, raw) -> "StreakStatus":
        try:
            return cls(raw)
        except ValueError:
            return cls.NONE


class LeaderboardScope(BaseModel):
    """
    Dimensión que restringe el leaderboard.

    - building: sesiones de un edificio (por ID exacto o cercanía)
    - region: sesiones dentro de un radio (millas) alrededor de un centro
    - global: sin filtro geográfico (el centro solo sirve de desempate)
    - friends: el usuario y sus amigos (aparecen aunque no tengan minutos)
    """

    kind: ScopeKind
    building: Optional[BuildingInfo] = None
    center: Optional[GeoPoint] = None
    radius_miles: Optional[float] = Field(None, gt=0)
    member_ids: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_parameters(self):
        if self.kind == ScopeKind.BUILDING and self.building is None:
            raise ValueError("building scope requires a building")
        if self.kind == ScopeKind.REGION and (self.center is None or self.radius_miles is None):
            raise ValueError("region scope requires center and radius_miles")
        if self.kind == ScopeKind.FRIENDS and not self.member_ids:
            raise ValueError("friends scope requires at least one member")
        return self

    @classmethod
    def for_building(cls, building: BuildingInfo) -> "LeaderboardScope":
        return cls(kind=ScopeKind.BUILDING, building=building, center=building.coordinate)

    @classmethod
    def for_region(cls, center: GeoPoint, radius_miles: float) -> "LeaderboardScope":
        return cls(kind=ScopeKind.REGION, center=center, radius_miles=radius_miles)

    @classmethod
    def global_scope(cls, center: Optional[GeoPoint] = None) -> "LeaderboardScope":
        return cls(kind=ScopeKind.GLOBAL, center=center)

    @classmethod
    def for_friends(cls, user_id: str, friend_ids: list[str]) -> "LeaderboardScope":
        """Amigos primero y el usuario al final, sin repetidos"""
        members = list(dict.fromkeys([*friend_ids, user_id]))
        return cls(kind=ScopeKind.FRIENDS, member_ids=members)


class LeaderboardEntry(BaseModel):
    """Entrada en una tabla de clasificación (resultado agregado, post-privacidad)"""

    rank: int
    user_id: str
    display_name: str

    metric: int
    metric_kind: MetricKind

    session_count: int = 0
    total_minutes: int = 0
    distance_meters: Optional[float] = None

    is_anonymous: bool = False
    profile_image_url: Optional[str] = None

    # Decoración best-effort: si falta, la entrada se muestra igual
    score: Optional[float] = None
    rank_name: Optional[str] = None
    streak_status: StreakStatus = StreakStatus.NONE

    class Config:
        populate_by_name = True


# Rangos de score: (límite superior exclusivo, nombre)
SCORE_RANKS = [
    (30, "Novice"),
    (60, "Apprentice"),
    (90, "Beginner"),
    (120, "Steady"),
    (150, "Focused"),
    (180, "Disciplined"),
    (210, "Resolute"),
    (240, "Master"),
    (270, "Guru"),
]


def rank_name_for_score(score: Optional[float]) -> Optional[str]:
    """Nombre del rango para un score; None si no hay score (sin badge)"""
    if score is None:
        return None
    if score < 0 or score > 300:
        return "Unranked"
    for upper, name in SCORE_RANKS:
        if score < upper:
            return name
    return "Enlightened"
