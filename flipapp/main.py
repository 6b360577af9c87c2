"""
Entry point de la API de leaderboards de FlipApp
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from flipapp.core.config import get_settings
from flipapp.database import Database, create_indexes

from flipapp.controllers.health_controller import router as health_router
from flipapp.controllers.leaderboard_controller import router as leaderboard_router
from flipapp.controllers.buildings_controller import router as buildings_router
from flipapp.controllers.sessions_controller import router as sessions_router
from flipapp.controllers.privacy_controller import router as privacy_router
from flipapp.controllers.users_controller import router as users_router

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await Database.connect()
    await create_indexes()
    logger.info(f"🏆 Leaderboards listos (semana en {settings.leaderboard_timezone})")
    yield
    await Database.disconnect()

# Creo la app
app = FastAPI(
    title="FlipApp Leaderboards API",
    description="Leaderboards de sesiones de foco por edificio, región, amigos y global",
    version="1.0.0",
    lifespan=lifespan
)

# La app móvil no manda Origin; CORS solo importa para herramientas web (dashboard, docs)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_origin_regex=settings.cors_origin_regex,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "Accept"],
)

# Agrego todos los routers de los controllers al app
app.include_router(health_router)
app.include_router(leaderboard_router)
app.include_router(buildings_router)
app.include_router(sessions_router)
app.include_router(privacy_router)
app.include_router(users_router)


@app.get("/")
async def root():
    # Endpoint raíz, sirve para verificar que la API está levantada
    return {
        "name": "FlipApp Leaderboards API",
        "version": "1.0.0",
        "docs": "/docs"  # Link a la documentación interactiva de Swagger
    }
