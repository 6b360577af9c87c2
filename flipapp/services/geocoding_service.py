"""
GeocodingService - Reverse geocoding y búsqueda de lugares cercanos

Habla con una API compatible con Nominatim:
- /reverse: coordenada → lugar (nombre, calle, ciudad, estado)
- /search: texto + caja → lugares con coordenadas

Sin timeout propio ni reintentos: se usan los defaults de httpx. Quien llama
decide cómo degradar ("Your Area", lista vacía).
"""

import logging
from typing import Optional

import httpx

from flipapp.core.config import Settings, get_settings
from flipapp.core.geo import bounding_box
from flipapp.models.building import Place
from flipapp.models.location import GeoPoint

logger = logging.getLogger(__name__)

# Nombre genérico cuando no se puede resolver la región
FALLBACK_REGION_NAME = "Your Area"

# Span de la caja de búsqueda (~200 m)
NEARBY_SPAN_DEGREES = 0.002


class GeocodingError(Exception):
    """Raised when the geocoder can't be reached or answers with an error."""
    pass


def _place_from_result(result: dict) -> Optional[Place]:
    """Convierte un resultado de Nominatim en Place (None si no trae coordenadas)"""
    try:
        coordinate = GeoPoint(latitude=float(result["lat"]), longitude=float(result["lon"]))
    except (KeyError, TypeError, ValueError):
        return None

    address = result.get("address") or {}
    return Place(
        name=result.get("name") or None,
        coordinate=coordinate,
        thoroughfare=address.get("road"),
        sub_thoroughfare=address.get("house_number"),
        locality=address.get("city") or address.get("town") or address.get("village"),
        sub_administrative_area=address.get("county"),
        administrative_area=address.get("state"),
    )


class GeocodingService:
    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or get_settings()
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.settings.geocoder_base_url,
            headers={
                # Nominatim exige identificar la aplicación
                "User-Agent": self.settings.geocoder_user_agent,
                "Accept": "application/json",
            },
            transport=self._transport,
        )

    async def _get(self, path: str, params: dict):
        try:
            async with self._client() as client:
                response = await client.get(path, params={"format": "jsonv2", **params})
        except httpx.HTTPError as e:
            raise GeocodingError(f"Geocoder unreachable: {e}") from e

        if response.status_code != 200:
            raise GeocodingError(f"Geocoder answered {response.status_code} for {path}")

        try:
            return response.json()
        except ValueError as e:
            raise GeocodingError(f"Invalid geocoder response for {path}") from e

    async def reverse_geocode(self, coordinate: GeoPoint) -> Optional[Place]:
        """Lugar en la coordenada, o None si el geocoder no encuentra nada"""
        data = await self._get("/reverse", {
            "lat": coordinate.latitude,
            "lon": coordinate.longitude,
            "addressdetails": 1,
        })

        if not isinstance(data, dict) or "error" in data:
            return None
        return _place_from_result(data)

    async def search_nearby(
        self,
        query: str,
        center: GeoPoint,
        span_degrees: float = NEARBY_SPAN_DEGREES,
    ) -> list[Place]:
        """Lugares que coinciden con `query` dentro de una caja alrededor del centro"""
        west, north, east, south = bounding_box(center, span_degrees)
        data = await self._get("/search", {
            "q": query,
            "viewbox": f"{west},{north},{east},{south}",
            "bounded": 1,
            "addressdetails": 1,
            "limit": 10,
        })

        if not isinstance(data, list):
            return []
        places = (_place_from_result(item) for item in data if isinstance(item, dict))
        return [p for p in places if p is not None]

    async def region_name(self, coordinate: GeoPoint) -> str:
        """
        Nombre para mostrar de la región

        Ciudad, si no condado, si no estado. Si todo falla: "Your Area".
        """
        try:
            place = await self.reverse_geocode(coordinate)
        except GeocodingError as e:
            logger.warning(f"⚠️ Reverse geocoding falló: {e}")
            return FALLBACK_REGION_NAME

        if place is None:
            return FALLBACK_REGION_NAME
        return (
            place.locality
            or place.sub_administrative_area
            or place.administrative_area
            or FALLBACK_REGION_NAME
        )
