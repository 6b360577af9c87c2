from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field

from flipapp.models.building import BuildingInfo

# Username genérico que tienen las sesiones grabadas antes de elegir nombre
DEFAULT_USERNAME = "User"


class User(BaseModel):
    id: str = Field(..., alias="_id")
    username: str = DEFAULT_USERNAME
    email: Optional[str] = None

    profile_image_url: Optional[str] = None

    # Minutos acumulados de sesiones exitosas (pre-calculado al grabar sesiones)
    total_focus_time: int = 0
    score: Optional[float] = None

    current_building: Optional[BuildingInfo] = None
    friends: list[str] = Field(default_factory=list)  # IDs de amigos

    created_at: Optional[datetime] = None
    is_active: bool = True

    class Config:
        populate_by_name = True


class UserUpdate(BaseModel):
    """Campos editables del perfil"""
    username: Optional[str] = Field(None, min_length=1, max_length=40)
    profile_image_url: Optional[str] = None


class UserResponse(BaseModel):
    id: str
    username: str
    profile_image_url: Optional[str] = None
    total_focus_time: int
    score: Optional[float] = None
    rank_name: Optional[str] = None
    current_building: Optional[BuildingInfo] = None
