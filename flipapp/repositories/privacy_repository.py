"""
PrivacyRepository - Preferencias de privacidad (colección `user_settings`)

Un documento por usuario, `_id` = user_id. Se crea de forma perezosa en
la primera escritura.
"""

from typing import Optional

from motor.motor_asyncio import AsyncIOMotorDatabase


class PrivacyRepository:
    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.collection = db["user_settings"]

    async def get(self, user_id: str) -> Optional[dict]:
        """Documento crudo de settings, o None si el usuario nunca los guardó"""
        return await self.collection.find_one({"_id": user_id})

    async def upsert(self, user_id: str, fields: dict) -> dict:
        """Guarda los campos dados (crea el documento si no existe)"""
        result = await self.collection.find_one_and_update(
            {"_id": user_id},
            {"$set": fields},
            upsert=True,
            return_document=True
        )
        return result
