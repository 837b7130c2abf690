# clubbot/core/event_ticker.py
from __future__ import annotations
import asyncio, random, logging

from clubbot.domain import events as events_domain

log = logging.getLogger(__name__)

class EventCompletionTicker:
    """Passe en `completed` les événements dont la date est dépassée (+ délai de grâce)."""
    _task: asyncio.Task | None = None
    interval_s: int = 600

    @classmethod
    def start(cls, client) -> None:
        if cls._task and not cls._task.done():
            return
        cls._task = asyncio.create_task(cls._run())

    @classmethod
    def stop(cls) -> None:
        if cls._task and not cls._task.done():
            cls._task.cancel()
        cls._task = None

    @classmethod
    def tick(cls) -> list[int]:
        return events_domain.complete_due_events()

    @classmethod
    async def _run(cls):
        # Jitter initial pour ne pas tirer pile au boot
        await asyncio.sleep(random.randint(5, 20))
        while True:
            try:
                cls.tick()
                await asyncio.sleep(cls.interval_s + random.randint(-30, 30))
            except asyncio.CancelledError:
                raise
            except Exception:
                log.exception("Event completion ticker error")
                await asyncio.sleep(30)
