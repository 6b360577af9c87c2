from .location import GeoPoint
from .building import BuildingInfo, Place
from .user import User
from .session import SessionRecord
from .privacy import PrivacySetting, DisplayMode
from .leaderboard import LeaderboardEntry, LeaderboardScope, TimeWindow

__all__ = [
    "GeoPoint",
    "BuildingInfo",
    "Place",
    "User",
    "SessionRecord",
    "PrivacySetting",
    "DisplayMode",
    "LeaderboardEntry",
    "LeaderboardScope",
    "TimeWindow",
]
