from pydantic import BaseModel, Field


class GeoPoint(BaseModel):
    """Coordenada (lat/lon en grados)"""

    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)

    def storage_key(self) -> str:
        """Clave exacta usada para deduplicar por coordenada"""
        return f"{self.latitude},{self.longitude}"
