"""
quiz/zoom.py — Zoom-out reveal for image_zoombuzz questions.

The overlay starts fully zoomed in (maxZoom) and walks back to 1x over
`steps` frames. steps = round(duration * fps), one step every round(1000/fps) ms.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from .models import ZoomConfig

log = logging.getLogger(__name__)

Publish = Callable[[str, dict], Awaitable]


class ZoomController:
    def __init__(self, publish: Publish, config: Optional[ZoomConfig] = None):
        self._publish = publish
        self._task: Optional[asyncio.Task] = None
        self._current = 0
        self._running = False
        self.configure(config or ZoomConfig())

    def configure(self, config: ZoomConfig) -> None:
        self.config = config
        self.steps = round(config.duration * config.fps)
        self.interval_ms = round(1000 / config.fps)

    @property
    def max_zoom(self) -> float:
        return self.config.max_zoom

    @property
    def running(self) -> bool:
        return self._running

    @property
    def complete(self) -> bool:
        return self._current >= self.steps

    def state(self) -> dict:
        return {
            "current": self._current,
            "steps": self.steps,
            "maxZoom": self.max_zoom,
            "intervalMs": self.interval_ms,
            "running": self._running,
        }

    async def _emit_step(self) -> None:
        await self._publish("zoom.step", {"cur_step": self._current, "total": self.steps, "maxZoom": self.max_zoom})

    async def start(self, config: Optional[ZoomConfig] = None) -> None:
        if self._running:
            return
        if config is not None:
            self.configure(config)
        self._running = True
        self._current = 0
        await self._publish("zoom.start", {"steps": self.steps, "maxZoom": self.max_zoom})
        self._task = asyncio.create_task(self._run())
        log.debug(f"Zoom started: {self.steps} steps @ {self.interval_ms}ms")

    async def _run(self) -> None:
        try:
            while self._running:
                await asyncio.sleep(self.interval_ms / 1000)
                if not self._running:
                    break
                self._current += 1
                try:
                    await self._emit_step()
                except Exception as e:
                    log.error(f"Failed to publish zoom step: {e}")
                if self._current >= self.steps:
                    self._task = None
                    await self.stop()
        except asyncio.CancelledError:
            pass

    def _cancel(self) -> None:
        task, self._task = self._task, None
        if task and not task.done() and task is not asyncio.current_task():
            task.cancel()

    async def stop(self) -> None:
        if not self._running:
            return
        self._running = False
        self._cancel()
        await self._publish("zoom.stop", {})
        log.debug(f"Zoom stopped at step {self._current}/{self.steps}")

    async def resume(self) -> None:
        if self._running or self.complete:
            return
        self._running = True
        self._task = asyncio.create_task(self._run())
        log.debug(f"Zoom resumed at step {self._current}")

    async def step(self, delta: int) -> None:
        if not self._running:
            return
        self._current = max(0, min(self.steps, self._current + int(delta)))
        await self._emit_step()

    def reset(self) -> None:
        self._running = False
        self._current = 0
        self._cancel()
