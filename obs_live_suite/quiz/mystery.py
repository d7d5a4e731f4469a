"""
quiz/mystery.py — Progressive square reveal for mystery_image questions.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional

log = logging.getLogger(__name__)

Publish = Callable[[str, dict], Awaitable]

DEFAULT_INTERVAL_MS = 60


class MysteryImageController:
    def __init__(self, publish: Publish, interval_ms: int = DEFAULT_INTERVAL_MS):
        self._publish = publish
        self.interval_ms = interval_ms
        self._task: Optional[asyncio.Task] = None
        self._revealed = 0
        self._total = 0

    @property
    def running(self) -> bool:
        return self._task is not None

    def state(self) -> dict:
        return {"revealed": self._revealed, "total": self._total, "running": self.running}

    def _progress(self) -> dict:
        return {"revealed_squares": self._revealed, "total_squares": self._total}

    async def start(self, total_squares: int) -> None:
        self._cancel()
        self._total = max(0, int(total_squares))
        self._revealed = 0
        log.info(f"Mystery reveal started: {self._total} squares every {self.interval_ms}ms")
        await self._publish("mystery.start", {"total_squares": self._total})
        self._task = asyncio.create_task(self._run())

    async def _run(self) -> None:
        try:
            while True:
                await asyncio.sleep(self.interval_ms / 1000)
                if self._revealed >= self._total:
                    log.info("All squares revealed")
                    await self.stop()
                    return
                self._revealed += 1
                try:
                    await self._publish("mystery.step", self._progress())
                except Exception as e:
                    log.error(f"Failed to publish mystery step: {e}")
        except asyncio.CancelledError:
            pass

    def _cancel(self) -> None:
        task, self._task = self._task, None
        if task and not task.done() and task is not asyncio.current_task():
            task.cancel()

    async def stop(self) -> None:
        self._cancel()
        await self._publish("mystery.stop", self._progress())
        log.info(f"Mystery reveal paused at {self._revealed}/{self._total}")

    async def resume(self) -> None:
        if self._task is not None or self._revealed >= self._total:
            return
        log.info(f"Mystery reveal resumed at {self._revealed}/{self._total}")
        self._task = asyncio.create_task(self._run())

    async def step(self, count: int = 1) -> None:
        if self._revealed + count <= self._total:
            self._revealed += count
            await self._publish("mystery.step", self._progress())

    def reset(self) -> None:
        self._cancel()
        self._revealed = 0
        self._total = 0
