"""
quiz/timer.py — Question countdown for the quiz overlay.

The timer ticks every half second so the overlay stays responsive, but only
takes a second off every second tick. Each tick publishes
`timer.tick {s, phase}`; the first one goes out as soon as the timer starts.
The loop ends by itself once it reaches 0 on a whole-second boundary.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional

log = logging.getLogger(__name__)

Publish = Callable[[str, dict], Awaitable]


class QuizTimer:
    def __init__(self, publish: Publish, tick_interval: float = 0.5):
        self._publish = publish
        self.tick_interval = tick_interval
        self._seconds = 0
        self._phase = "idle"
        self._running = False
        self._ticks = 0
        self._task: Optional[asyncio.Task] = None

    @property
    def remaining(self) -> int:
        return self._seconds

    @property
    def running(self) -> bool:
        return self._running

    @property
    def phase(self) -> str:
        return self._phase

    def state(self) -> dict:
        return {"remaining": self._seconds, "running": self._running, "phase": self._phase}

    async def _emit(self) -> None:
        await self._publish("timer.tick", {"s": self._seconds, "phase": self._phase})

    async def start(self, seconds: int, phase: str = "accept_answers") -> None:
        await self.stop()
        self._seconds = max(0, int(seconds))
        self._phase = phase
        self._running = True
        self._ticks = 0
        await self._emit()
        self._task = asyncio.create_task(self._run())
        log.debug(f"Quiz timer started: {self._seconds}s ({phase})")

    async def _run(self) -> None:
        try:
            while True:
                await asyncio.sleep(self.tick_interval)
                if not self._running:
                    continue
                self._ticks += 1
                if self._ticks >= 2:
                    self._ticks = 0
                    if self._seconds > 0:
                        self._seconds -= 1
                try:
                    await self._emit()
                except Exception as e:
                    log.error(f"Failed to publish timer tick: {e}")
                if self._seconds == 0 and self._ticks == 0:
                    self._running = False
                    self._task = None
                    log.debug("Quiz timer reached 0")
                    return
        except asyncio.CancelledError:
            pass

    async def stop(self) -> None:
        task, self._task = self._task, None
        self._running = False
        if task and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def pause(self) -> None:
        self._running = False

    async def resume(self, phase: Optional[str] = None) -> None:
        if phase:
            self._phase = phase
        if self._task is not None and not self._running:
            self._running = True
            await self._emit()
            log.debug(f"Quiz timer resumed at {self._seconds}s")
        elif self._task is None:
            await self.start(self._seconds, self._phase)

    async def add_time(self, delta: int) -> None:
        self._seconds = max(0, self._seconds + int(delta))
        await self._emit()
        log.debug(f"Quiz timer adjusted by {delta}s → {self._seconds}s")
