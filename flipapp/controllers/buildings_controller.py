"""
Controlador de edificios - Identificación y selección del edificio actual
"""

from typing import Optional

from fastapi import APIRouter, HTTPException, Query, status
from pydantic import BaseModel, Field

from flipapp.core.dependencies import CurrentUser, Database, Geocoder
from flipapp.models.building import BuildingInfo
from flipapp.models.location import GeoPoint
from flipapp.services.building_service import (
    BuildingService,
    NoBuildingFoundError,
    UserNotFoundError,
)


router = APIRouter(prefix="/buildings", tags=["buildings"])


class BuildingSelection(BaseModel):
    """Edificio elegido por el usuario (el ID se recalcula desde la coordenada)."""
    name: str = Field(..., min_length=1, max_length=120)
    coordinate: GeoPoint


class CurrentBuildingResponse(BaseModel):
    building: Optional[BuildingInfo] = None


@router.get("/nearby", response_model=list[BuildingInfo])
async def get_nearby_buildings(
    db: Database,
    geocoder: Geocoder,
    latitude: float = Query(..., ge=-90, le=90),
    longitude: float = Query(..., ge=-180, le=180)
):
    """
    Obtener hasta 5 edificios candidatos cerca de una coordenada.

    Ordenados por cantidad de sesiones en los últimos 7 días y luego por distancia.
    """
    building_service = BuildingService(db, geocoder)
    return await building_service.identify_nearby_buildings(
        GeoPoint(latitude=latitude, longitude=longitude)
    )


@router.get("/current", response_model=CurrentBuildingResponse)
async def get_current_building(user: CurrentUser, db: Database, geocoder: Geocoder):
    """
    Obtener el edificio actual del usuario.
    """
    building_service = BuildingService(db, geocoder)

    try:
        building = await building_service.get_current_building(user.id)
    except UserNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e)
        )

    return CurrentBuildingResponse(building=building)


@router.put("/current", response_model=BuildingInfo)
async def select_current_building(
    selection: BuildingSelection,
    user: CurrentUser,
    db: Database,
    geocoder: Geocoder
):
    """
    Guardar el edificio elegido por el usuario.
    """
    building_service = BuildingService(db, geocoder)

    try:
        return await building_service.select_building(user.id, selection.name, selection.coordinate)
    except UserNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e)
        )


@router.post("/current/refresh", response_model=BuildingInfo)
async def refresh_current_building(
    coordinate: GeoPoint,
    user: CurrentUser,
    db: Database,
    geocoder: Geocoder
):
    """
    Actualizar el edificio actual según la ubicación.

    Si el usuario sigue a menos de 100 m de su edificio, no cambia nada.
    """
    building_service = BuildingService(db, geocoder)

    try:
        return await building_service.refresh_current_building(user, coordinate)
    except NoBuildingFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e)
        )
    except UserNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e)
        )
