"""
Live leaderboards - Estado de un leaderboard mostrado y su actualización en vivo.

Cada carga recibe un número de generación creciente. Cuando termina, solo
publica su resultado si sigue siendo la última pedida: una carga lenta de un
scope viejo no pisa el resultado de un scope nuevo.
"""

import asyncio
import logging
from datetime import datetime
from typing import AsyncIterator, Awaitable, Callable, Optional

from flipapp.core.clock import utc_now
from flipapp.models.leaderboard import LeaderboardEntry, LeaderboardScope, TimeWindow
from flipapp.models.session import SessionRecord
from flipapp.services.aggregation import start_of_week
from flipapp.services.leaderboard_service import LeaderboardService

logger = logging.getLogger(__name__)

Subscription = Callable[[Optional[datetime]], AsyncIterator[list[SessionRecord]]]
UpdateCallback = Callable[["LeaderboardBoard"], Awaitable[None]]


class LeaderboardBoard:
    """Lo que se está mostrando: entradas, scope/ventana y si está cargando"""

    def __init__(self, service: LeaderboardService, on_update: Optional[UpdateCallback] = None):
        self.service = service
        self.on_update = on_update
        self.entries: list[LeaderboardEntry] = []
        self.scope: Optional[LeaderboardScope] = None
        self.window: Optional[TimeWindow] = None
        self.is_loading = False
        self._generation = 0

    @property
    def generation(self) -> int:
        return self._generation

    async def load(
        self,
        scope: LeaderboardScope,
        window: TimeWindow,
        now: Optional[datetime] = None,
    ) -> bool:
        """
        Carga el leaderboard. Devuelve False si el resultado se descartó
        porque mientras tanto se pidió otra carga.

        Si la carga falla, el board queda vacío y sin "cargando".
        """
        self._generation += 1
        generation = self._generation
        self.is_loading = True

        try:
            entries = await self.service.get_leaderboard(scope, window, now=now)
        except Exception:
            logger.exception(f"❌ Falló la carga #{generation} ({scope.kind.value}/{window.value})")
            entries = []
        finally:
            if generation == self._generation:
                self.is_loading = False

        if generation != self._generation:
            logger.debug(f"Descarto carga #{generation}, la actual es #{self._generation}")
            return False

        self.entries = entries
        self.scope = scope
        self.window = window

        if self.on_update is not None:
            await self.on_update(self)
        return True


class LiveLeaderboard:
    """
    Recalcula un leaderboard cada vez que cambian las sesiones.

    `subscribe(since)` entrega el conjunto de sesiones elegibles completo al
    principio y de nuevo con cada cambio (SessionRepository.watch_successful).
    Las cargas pueden solaparse; el guard de generación de LeaderboardBoard
    hace que gane la última pedida.

    Se corta (y cierra la suscripción) cuando:
    - la suscripción termina
    - `stop_when` termina (por ejemplo, el cliente se desconectó)
    - publicar una actualización falla: el error sale de `run()`
    """

    def __init__(self, board: LeaderboardBoard, subscribe: Subscription):
        self.board = board
        self.subscribe = subscribe
        self._pending: set[asyncio.Task] = set()
        self._failure: Optional[asyncio.Future] = None

    async def run(
        self,
        scope: LeaderboardScope,
        window: TimeWindow,
        stop_when: Optional[Awaitable] = None,
    ) -> None:
        since = None
        if window == TimeWindow.WEEK:
            since = start_of_week(utc_now(), self.board.service.settings.leaderboard_timezone)

        self._failure = asyncio.get_running_loop().create_future()
        consumer = asyncio.create_task(self._consume(scope, window, since))
        waiters = {consumer, self._failure}
        if stop_when is not None:
            waiters.add(asyncio.ensure_future(stop_when))

        try:
            done, _ = await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for waiter in waiters:
                if waiter is not self._failure and not waiter.done():
                    waiter.cancel()
            # Cancelar el consumidor cierra el change stream
            await asyncio.gather(consumer, return_exceptions=True)
            if self._pending:
                await asyncio.gather(*self._pending, return_exceptions=True)

        if consumer in done:
            consumer.result()
        if self._failure.done():
            self._failure.result()

    async def _consume(self, scope: LeaderboardScope, window: TimeWindow, since: Optional[datetime]):
        async for _sessions in self.subscribe(since):
            task = asyncio.create_task(self.board.load(scope, window))
            self._pending.add(task)
            task.add_done_callback(self._load_done)

    def _load_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return

        error = task.exception()
        if error is not None and not self._failure.done():
            logger.warning(f"📡 No se pudo publicar el leaderboard, corto la suscripción: {error!r}")
            self._failure.set_exception(error)
