from .session_repository import SessionRepository
from .user_repository import UserRepository
from .privacy_repository import PrivacyRepository
from .streak_repository import StreakRepository

__all__ = [
    "SessionRepository",
    "UserRepository",
    "PrivacyRepository",
    "StreakRepository",
]
