"""
StreakRepository - Estado de racha por usuario (colección `streaks`)
"""

from motor.motor_asyncio import AsyncIOMotorDatabase

from flipapp.models.leaderboard import StreakStatus


class StreakRepository:
    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.collection = db["streaks"]

    async def get_status(self, user_id: str) -> StreakStatus:
        """Racha actual; documento ausente o valor desconocido = none"""
        doc = await self.collection.find_one({"_id": user_id})
        if not doc:
            return StreakStatus.NONE
        return StreakStatus.parse(doc.get("streak_status"))
