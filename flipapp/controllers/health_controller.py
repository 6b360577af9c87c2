"""
Controlador de salud - Ping a MongoDB

Los leaderboards se calculan en cada request contra la base, así que sin
MongoDB el servicio no sirve: en ese caso responde 503.
"""

import logging
import time
from typing import Optional

from fastapi import APIRouter, Response, status
from pydantic import BaseModel
from pymongo.errors import PyMongoError

from flipapp.database import Database

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    status: str  # "ok" | "degraded"
    database: str  # "connected" | "unreachable" | "disconnected"
    latency_ms: Optional[float] = None


@router.get("/health", response_model=HealthResponse)
async def health_check(response: Response):
    """
    Hace `ping` a la base y mide cuánto tarda.
    """
    if Database.db is None:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return HealthResponse(status="degraded", database="disconnected")

    started = time.perf_counter()
    try:
        await Database.db.command("ping")
    except PyMongoError as e:
        logger.warning(f"⚠️ Health check: MongoDB no responde: {e}")
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return HealthResponse(status="degraded", database="unreachable")

    latency_ms = round((time.perf_counter() - started) * 1000, 2)
    return HealthResponse(status="ok", database="connected", latency_ms=latency_ms)
