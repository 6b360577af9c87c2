"""
UserRepository - MongoDB access for users collection.
"""

import logging
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import ValidationError

from flipapp.models.building import BuildingInfo
from flipapp.models.user import User

logger = logging.getLogger(__name__)


def _decode_users(docs: list[dict]) -> list[User]:
    """Users from raw documents, skipping (and logging) the ones that don't validate."""
    users = []
    for doc in docs:
        try:
            users.append(User(**doc))
        except ValidationError as e:
            logger.warning(f"⚠️ Usuario {doc.get('_id')} ignorado, no se pudo leer: {e.error_count()} errores")
    return users


class UserRepository:
    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.collection = db["users"]

    async def get_by_id(self, user_id: str) -> Optional[User]:
        """Get user by ID."""
        doc = await self.collection.find_one({"_id": user_id})
        return User(**doc) if doc else None

    async def get_many(self, user_ids: list[str]) -> dict[str, User]:
        """Get several users at once, keyed by ID. Missing users are left out."""
        if not user_ids:
            return {}

        docs = await self.collection.find({"_id": {"$in": user_ids}}).to_list(length=None)
        return {user.id: user for user in _decode_users(docs)}

    async def get_top_by_focus_time(self, limit: int = 100) -> list[User]:
        """Users with lifetime focus time, highest first."""
        cursor = self.collection.find(
            {"total_focus_time": {"$gt": 0}}
        ).sort("total_focus_time", -1).limit(limit)

        docs = await cursor.to_list(length=limit)
        return _decode_users(docs)

    async def add_focus_time(self, user_id: str, minutes: int) -> None:
        """Add minutes to the pre-aggregated lifetime total."""
        await self.collection.update_one(
            {"_id": user_id},
            {"$inc": {"total_focus_time": minutes}}
        )

    async def update_profile(
        self,
        user_id: str,
        username: Optional[str] = None,
        profile_image_url: Optional[str] = None
    ) -> Optional[User]:
        """Update user profile fields."""
        updates = {}

        if username is not None:
            updates["username"] = username
        if profile_image_url is not None:
            updates["profile_image_url"] = profile_image_url

        if not updates:
            return await self.get_by_id(user_id)

        result = await self.collection.find_one_and_update(
            {"_id": user_id},
            {"$set": updates},
            return_document=True
        )

        return User(**result) if result else None

    async def set_current_building(self, user_id: str, building: BuildingInfo) -> Optional[User]:
        """Store the building the user is currently studying in."""
        result = await self.collection.find_one_and_update(
            {"_id": user_id},
            {"$set": {"current_building": building.model_dump()}},
            return_document=True
        )

        return User(**result) if result else None
