from typing import Optional
from pydantic import BaseModel, model_validator

from flipapp.core import geo
from flipapp.models.location import GeoPoint

# Distancia a la que dos BuildingInfo se consideran el mismo edificio (display/dedup)
SAME_BUILDING_METERS = 10.0


def standardized_building_id(coordinate: GeoPoint) -> str:
    """ID de almacenamiento derivado de la coordenada (6 decimales)"""
    return f"building-{coordinate.latitude:.6f}-{coordinate.longitude:.6f}"


class BuildingInfo(BaseModel):
    """Edificio seleccionado / candidato"""

    id: str = ""  # Vacío = se deriva de la coordenada
    name: str
    coordinate: GeoPoint

    @model_validator(mode="after")
    def _derive_id(self):
        if not self.id:
            self.id = standardized_building_id(self.coordinate)
        return self

    def same_storage_key(self, other: "BuildingInfo") -> bool:
        """Mismo edificio para el store: comparación exacta de IDs"""
        return self.id == other.id

    def is_nearby(self, other: "BuildingInfo", meters: float = SAME_BUILDING_METERS) -> bool:
        """Mismo edificio para mostrar/deduplicar: coordenadas a <= 10 m"""
        return geo.haversine_meters(self.coordinate, other.coordinate) <= meters

    def contains(self, point: GeoPoint, meters: float = 100.0) -> bool:
        """True si `point` cae dentro del radio del edificio"""
        return geo.haversine_meters(self.coordinate, point) <= meters

    class Config:
        populate_by_name = True


class Place(BaseModel):
    """Resultado del geocoder (reverse o búsqueda cercana)"""

    name: Optional[str] = None
    coordinate: GeoPoint

    thoroughfare: Optional[str] = None
    sub_thoroughfare: Optional[str] = None
    locality: Optional[str] = None
    sub_administrative_area: Optional[str] = None
    administrative_area: Optional[str] = None

    @property
    def building_name(self) -> str:
        if self.name:
            return self.name
        if self.thoroughfare:
            if self.sub_thoroughfare:
                return f"{self.sub_thoroughfare} {self.thoroughfare}"
            return self.thoroughfare
        if self.locality:
            return self.locality
        return "Unknown Building"

    def to_building(self) -> BuildingInfo:
        return BuildingInfo(name=self.building_name, coordinate=self.coordinate)
