"""
ProfileCache - Cache de username / avatar por usuario.

Los leaderboards muestran el username actual del usuario en vez del snapshot
guardado en la sesión. Para no ir a `users` en cada carga se guarda acá con
un TTL. Se invalida explícitamente cuando el usuario edita su perfil.

Solo guarda datos de presentación: la privacidad nunca pasa por este cache.
"""

import time
from dataclasses import dataclass
from typing import Callable, Optional


@dataclass(frozen=True)
class CachedProfile:
    username: str
    profile_image_url: Optional[str] = None


class ProfileCache:
    def __init__(self, ttl_seconds: float = 300, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        # {user_id: (perfil, timestamp)}
        self._entries: dict[str, tuple[CachedProfile, float]] = {}

    def get(self, user_id: str) -> Optional[CachedProfile]:
        """Perfil cacheado, o None si no hay o ya expiró"""
        item = self._entries.get(user_id)
        if item is None:
            return None

        profile, stored_at = item
        if self._clock() - stored_at > self.ttl_seconds:
            del self._entries[user_id]
            return None
        return profile

    def put(self, user_id: str, username: str, profile_image_url: Optional[str] = None) -> None:
        self._entries[user_id] = (CachedProfile(username, profile_image_url), self._clock())

    def invalidate(self, user_id: str) -> None:
        self._entries.pop(user_id, None)
