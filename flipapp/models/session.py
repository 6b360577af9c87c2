from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field

from flipapp.models.location import GeoPoint
from flipapp.models.user import DEFAULT_USERNAME


class SessionRecord(BaseModel):
    """Sesión de foco (teléfono boca abajo) tal como está en la colección `sessions`"""

    id: str = Field(..., alias="_id")

    user_id: str
    username: str = DEFAULT_USERNAME  # Snapshot al momento de la sesión (puede estar viejo)

    duration_minutes: int = 0  # Duración realmente completada
    planned_duration_minutes: Optional[int] = None
    was_successful: bool = False

    location: Optional[GeoPoint] = None
    building_id: Optional[str] = None
    building_name: Optional[str] = None
    building_location: Optional[GeoPoint] = None

    start_time: datetime
    end_time: Optional[datetime] = None

    # Consentimiento por sesión para aparecer en leaderboards
    include_in_leaderboards: bool = True

    created_at: Optional[datetime] = None

    class Config:
        populate_by_name = True


class SessionCreate(BaseModel):
    """Datos que manda la app al terminar una sesión"""

    start_time: datetime
    duration_minutes: int = Field(..., ge=0)
    planned_duration_minutes: Optional[int] = Field(None, ge=1)
    was_successful: bool

    location: Optional[GeoPoint] = None
    building_name: Optional[str] = None
    building_location: Optional[GeoPoint] = None

    include_in_leaderboards: bool = True


class SessionResponse(BaseModel):
    id: str
    user_id: str
    username: str
    duration_minutes: int
    planned_duration_minutes: Optional[int] = None
    was_successful: bool
    location: Optional[GeoPoint] = None
    building_id: Optional[str] = None
    building_name: Optional[str] = None
    start_time: datetime
    end_time: Optional[datetime] = None
