"""
overlays/manager.py — Lower third, countdown and poster controllers.

How it works:
  1. Every action is validated, optionally theme-enriched from the active
     profile, and published on the overlay's hub channel.
  2. Lower thirds with a `duration` hide themselves: a timer task publishes
     `hide` after `duration` seconds. A new show cancels the pending hide.
  3. The countdown is driven server-side: one task decrements `remaining`
     every second and publishes `tick {seconds}` until it reaches 0.
  4. Poster `next` / `previous` walk the active profile's poster rotation.
     With no rotation the raw action is forwarded to the browser source.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from obs_live_suite.hub import ChannelManager
from .payloads import CountdownAddTime, CountdownSet, LowerThirdShow, PosterSeek, PosterShow
from .themes import enrich_countdown, enrich_lower_third, enrich_poster

log = logging.getLogger(__name__)

OVERLAYS = ("lower", "countdown", "poster", "poster-bigpicture")
LOWER_ACTIONS = ("show", "hide", "update")
COUNTDOWN_ACTIONS = ("set", "start", "pause", "reset", "update", "add-time")
POSTER_ACTIONS = ("show", "hide", "next", "previous", "play", "pause", "seek", "mute", "unmute")


class InvalidActionError(ValueError):
    def __init__(self, message: str = "Invalid action"):
        super().__init__(message)


# ──────────────────────────────────────────────────────────────────────────────
# State
# ──────────────────────────────────────────────────────────────────────────────

@dataclass
class LowerThirdState:
    visible: bool = False
    payload: dict = field(default_factory=dict)


@dataclass
class CountdownState:
    seconds: int = 0          # value from the last `set`
    remaining: int = 0
    running: bool = False
    config: dict = field(default_factory=dict)


@dataclass
class PosterState:
    visible: bool = False
    payload: dict = field(default_factory=dict)
    playing: bool = False
    muted: bool = False


# ──────────────────────────────────────────────────────────────────────────────
# OverlayManager
# ──────────────────────────────────────────────────────────────────────────────

class OverlayManager:
    def __init__(
        self,
        channels: ChannelManager,
        theme_provider: Optional[Callable[[], Any]] = None,
        rotation_provider: Optional[Callable[[], list[dict]]] = None,
        tick_interval: float = 1.0,
    ):
        self._channels = channels
        self._theme_provider = theme_provider
        self._rotation_provider = rotation_provider
        self.tick_interval = tick_interval

        self._lower = LowerThirdState()
        self._countdown = CountdownState()
        self._posters = {False: PosterState(), True: PosterState()}
        self._hide_task: Optional[asyncio.Task] = None
        self._countdown_task: Optional[asyncio.Task] = None

    def _theme(self) -> Any:
        if self._theme_provider is None:
            return None
        try:
            return self._theme_provider()
        except Exception as e:
            log.error(f"Theme lookup failed, publishing unthemed: {e}")
            return None

    async def dispatch(self, overlay: str, action: str, payload: Optional[dict] = None) -> dict:
        match overlay:
            case "lower":
                return await self.lower(action, payload)
            case "countdown":
                return await self.countdown(action, payload)
            case "poster":
                return await self.poster(action, payload)
            case "poster-bigpicture":
                return await self.poster(action, payload, big_picture=True)
            case _:
                raise InvalidActionError(f"Invalid overlay: {overlay}")

    # ──────────────────────────────────────────────────────────────────
    # Lower third
    # ──────────────────────────────────────────────────────────────────

    async def lower(self, action: str, payload: Optional[dict] = None) -> dict:
        payload = payload or {}
        if action not in LOWER_ACTIONS:
            raise InvalidActionError()

        if action == "show":
            data = enrich_lower_third(LowerThirdShow.model_validate(payload).to_wire(), self._theme())
            self._cancel_hide()
            event = await self._channels.publish_lower_third("show", data)
            self._lower = LowerThirdState(visible=True, payload=data)
            duration = data.get("duration")
            if duration:
                self._hide_task = asyncio.create_task(self._auto_hide(float(duration)))
            log.info(f"Lower third shown: {data.get('title') or data.get('body', '')[:40]!r}")
        elif action == "hide":
            self._cancel_hide()
            event = await self._channels.publish_lower_third("hide", {})
            self._lower.visible = False
        else:
            event = await self._channels.publish_lower_third("update", payload)
            self._lower.payload = {**self._lower.payload, **payload}

        return {"status": "ok", "overlay": "lower", "action": action, "eventId": event["id"]}

    async def _auto_hide(self, duration: float) -> None:
        try:
            await asyncio.sleep(duration)
            await self._channels.publish_lower_third("hide", {})
            self._lower.visible = False
            log.debug(f"Lower third auto-hidden after {duration}s")
        except asyncio.CancelledError:
            log.debug("Lower third auto-hide cancelled")

    def _cancel_hide(self) -> None:
        if self._hide_task and not self._hide_task.done():
            self._hide_task.cancel()
        self._hide_task = None

    # ──────────────────────────────────────────────────────────────────
    # Countdown
    # ──────────────────────────────────────────────────────────────────

    async def countdown(self, action: str, payload: Optional[dict] = None) -> dict:
        payload = payload or {}
        state = self._countdown

        match action:
            case "set":
                await self._countdown_set(payload)
            case "start":
                if "seconds" in payload:
                    await self._countdown_set({**state.config, **payload})
                    state = self._countdown
                if state.remaining <= 0:
                    raise ValueError("Countdown has no time left; set it first")
                self._stop_countdown_task()
                state.running = True
                await self._channels.publish_countdown("start", {"seconds": state.remaining})
                self._countdown_task = asyncio.create_task(self._run_countdown())
            case "pause":
                self._stop_countdown_task()
                state.running = False
                await self._channels.publish_countdown("pause", {"seconds": state.remaining})
            case "reset":
                self._stop_countdown_task()
                state.running = False
                state.remaining = state.seconds
                await self._channels.publish_countdown("reset", {"seconds": state.seconds})
            case "update":
                state.config = {**state.config, **payload}
                await self._channels.publish_countdown("update", payload)
            case "add-time":
                delta = CountdownAddTime.model_validate(payload).seconds
                state.remaining = max(0, state.remaining + delta)
                await self._channels.publish_countdown("add-time", {"seconds": delta, "remaining": state.remaining})
            case _:
                raise InvalidActionError()

        return {"status": "ok", "overlay": "countdown", "action": action, **self.countdown_status()}

    async def _countdown_set(self, payload: dict) -> None:
        data = enrich_countdown(CountdownSet.model_validate(payload).to_wire(), self._theme())
        self._stop_countdown_task()
        self._countdown = CountdownState(
            seconds=data["seconds"], remaining=data["seconds"], running=False, config=data,
        )
        await self._channels.publish_countdown("set", data)
        log.info(f"Countdown set: {data['seconds']}s")

    async def _run_countdown(self) -> None:
        state = self._countdown
        try:
            while state.remaining > 0:
                await asyncio.sleep(self.tick_interval)
                state.remaining -= 1
                await self._channels.publish_countdown("tick", {"seconds": state.remaining})
            log.info("Countdown finished")
        except asyncio.CancelledError:
            log.debug("Countdown task cancelled")
        finally:
            state.running = False

    def _stop_countdown_task(self) -> None:
        if self._countdown_task and not self._countdown_task.done():
            self._countdown_task.cancel()
        self._countdown_task = None

    def countdown_status(self) -> dict:
        s = self._countdown
        return {"seconds": s.seconds, "remaining": s.remaining, "running": s.running}

    # ──────────────────────────────────────────────────────────────────
    # Posters
    # ──────────────────────────────────────────────────────────────────

    async def poster(self, action: str, payload: Optional[dict] = None, big_picture: bool = False) -> dict:
        payload = payload or {}
        if action not in POSTER_ACTIONS:
            raise InvalidActionError()
        state = self._posters[big_picture]
        name = "poster-bigpicture" if big_picture else "poster"

        match action:
            case "show":
                event = await self._poster_show(payload, big_picture)
            case "hide":
                event = await self._channels.publish_poster("hide", {}, big_picture)
                state.visible = False
                state.playing = False
            case "next" | "previous":
                target = self._rotation_step(state, 1 if action == "next" else -1)
                if target is None:
                    event = await self._channels.publish_poster(action, payload, big_picture)
                else:
                    event = await self._poster_show(target, big_picture)
            case "seek":
                event = await self._channels.publish_poster("seek", PosterSeek.model_validate(payload).to_wire(), big_picture)
            case _:
                state.playing = {"play": True, "pause": False}.get(action, state.playing)
                state.muted = {"mute": True, "unmute": False}.get(action, state.muted)
                event = await self._channels.publish_poster(action, payload, big_picture)

        return {"status": "ok", "overlay": name, "action": action, "eventId": event["id"]}

    async def _poster_show(self, payload: dict, big_picture: bool) -> dict:
        data = PosterShow.model_validate(payload).to_wire()
        if not big_picture:
            data = enrich_poster(data, self._theme())
        event = await self._channels.publish_poster("show", data, big_picture)
        self._posters[big_picture] = PosterState(visible=True, payload=data, playing=data["type"] != "image")
        log.info(f"Poster shown{' (big picture)' if big_picture else ''}: {data['fileUrl']}")
        return event

    def _rotation_step(self, state: PosterState, step: int) -> Optional[dict]:
        rotation = self._rotation_provider() if self._rotation_provider else []
        if not rotation:
            return None
        current = state.payload.get("posterId")
        ids = [p["posterId"] for p in rotation]
        if current in ids:
            idx = (ids.index(current) + step) % len(rotation)
        else:
            idx = 0 if step > 0 else len(rotation) - 1
        return rotation[idx]

    # ──────────────────────────────────────────────────────────────────
    # State
    # ──────────────────────────────────────────────────────────────────

    def get_state(self) -> dict:
        def poster_state(s: PosterState) -> dict:
            return {"visible": s.visible, "playing": s.playing, "muted": s.muted, "payload": s.payload}

        return {
            "lower": {"visible": self._lower.visible, "payload": self._lower.payload},
            "countdown": {**self.countdown_status(), "config": self._countdown.config},
            "poster": poster_state(self._posters[False]),
            "posterBigPicture": poster_state(self._posters[True]),
        }

    async def clear_all(self) -> dict:
        """Hide every overlay and reset the countdown."""
        await self.lower("hide")
        await self.poster("hide")
        await self.poster("hide", big_picture=True)
        await self.countdown("reset")
        log.info("All overlays cleared")
        return {"status": "cleared"}

    async def shutdown(self) -> None:
        self._cancel_hide()
        self._stop_countdown_task()
