"""
🔌 Database Connection Setup - MongoDB

Configuración centralizada para conectar a MongoDB
"""

import logging
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from flipapp.core.config import get_settings

logger = logging.getLogger(__name__)


class Database:
    """Singleton para la conexión a MongoDB"""

    client: Optional[AsyncIOMotorClient] = None
    db: Optional[AsyncIOMotorDatabase] = None

    @classmethod
    async def connect(cls):
        """Conecta a MongoDB"""
        if cls.client is None:
            settings = get_settings()

            cls.client = AsyncIOMotorClient(
                settings.mongodb_uri,
                maxPoolSize=10,
                minPoolSize=2,
            )
            cls.db = cls.client[settings.mongodb_db_name]

            # Test de conexión
            await cls.client.admin.command("ping")
            logger.info(f"✅ Connected to MongoDB: {settings.mongodb_db_name}")

    @classmethod
    async def disconnect(cls):
        """Cierra la conexión"""
        if cls.client is not None:
            cls.client.close()
            cls.client = None
            cls.db = None
            logger.info("❌ Disconnected from MongoDB")

    @classmethod
    def get_db(cls) -> AsyncIOMotorDatabase:
        """Retorna la instancia de la base de datos"""
        if cls.db is None:
            raise RuntimeError("Database not connected. Call Database.connect() first.")
        return cls.db


# ============================================
# 🎯 DEPENDENCY para FastAPI
# ============================================

async def get_database() -> AsyncIOMotorDatabase:
    """
    FastAPI dependency para inyectar la DB

    Uso:
        @router.get("/sessions/me")
        async def get_my_sessions(
            db: AsyncIOMotorDatabase = Depends(get_database)
        ):
            repo = SessionRepository(db)
            return await repo.get_user_sessions(user_id)
    """
    return Database.get_db()


# ============================================
# 🏗️ CREAR ÍNDICES (en el arranque)
# ============================================

async def create_indexes(db: Optional[AsyncIOMotorDatabase] = None):
    """
    Crea los índices que usan las consultas de leaderboards

    Se corre en el arranque de la app; create_index es idempotente.
    """
    db = db if db is not None else Database.get_db()

    # Índices para sessions
    await db.sessions.create_index([("was_successful", 1), ("start_time", -1)])
    await db.sessions.create_index([("building_id", 1), ("duration_minutes", -1)])
    await db.sessions.create_index([("user_id", 1), ("start_time", -1)])
    await db.sessions.create_index("end_time")

    # Índices para users
    await db.users.create_index([("total_focus_time", -1)])
    await db.users.create_index("username")

    logger.info("✅ Indexes created successfully")
