"""
macros/engine.py — Sequential macro execution and stored-preset dispatch.

A macro is an ordered list of actions, each followed by an optional
`delay_after` pause (milliseconds). Only one macro runs at a time; a second
execute() while one is in flight raises MacroBusyError.

Action types:
  lower.show / lower.hide
  countdown.start (set + start) / countdown.pause / countdown.reset
  poster.show / poster.hide
  delay            params.duration (ms)
  obs.scene.switch params.sceneName
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Optional

log = logging.getLogger(__name__)


class MacroError(Exception):
    pass


class MacroBusyError(MacroError):
    def __init__(self):
        super().__init__("Another macro is already executing")


def _field(obj: Any, name: str, default: Any = None) -> Any:
    """Read from an ORM row or a plain dict."""
    if isinstance(obj, dict):
        return obj.get(name, default)
    return getattr(obj, name, default)


def _delay_after(action: dict) -> int:
    return int(action.get("delay_after", action.get("delayAfter", 0)) or 0)


def estimate_duration(macro: Any) -> int:
    """Total milliseconds spent waiting: every delay_after plus explicit delay actions."""
    total = 0
    for action in _field(macro, "actions", []):
        total += _delay_after(action)
        if action.get("type") == "delay":
            total += int(action.get("params", {}).get("duration", 0) or 0)
    return total


class MacroEngine:
    """
    Usage:
        engine = MacroEngine(overlay_manager, obs_client_getter)
        await engine.execute(macro)
    """

    def __init__(self, overlays: Any, obs_getter: Optional[Callable[[], Any]] = None):
        self._overlays = overlays
        self._obs_getter = obs_getter
        self._executing = False
        self._current: Optional[str] = None

    @property
    def is_executing(self) -> bool:
        return self._executing

    @property
    def current_macro(self) -> Optional[str]:
        return self._current

    async def execute(self, macro: Any) -> dict:
        if self._executing:
            raise MacroBusyError()

        name = _field(macro, "name", "macro")
        actions = list(_field(macro, "actions", []) or [])
        self._executing = True
        self._current = name
        results = []
        log.info(f"Executing macro '{name}' ({len(actions)} actions)")
        try:
            for idx, action in enumerate(actions):
                try:
                    result = await self._run_action(action)
                except Exception as e:
                    log.error(f"Macro '{name}' action {idx} ({action.get('type')}) failed: {e}")
                    raise MacroError(f"Action {idx} ({action.get('type')}) failed: {e}") from e
                results.append({"action": action.get("type"), **result})

                delay_ms = _delay_after(action)
                if delay_ms > 0:
                    await asyncio.sleep(delay_ms / 1000)
        finally:
            self._executing = False
            self._current = None

        log.info(f"Macro '{name}' completed")
        return {"macro": name, "status": "completed", "actions": results}

    async def _run_action(self, action: dict) -> dict:
        p = action.get("params", {}) or {}
        match action.get("type"):
            case "lower.show":
                return await self._overlays.lower("show", p)
            case "lower.hide":
                return await self._overlays.lower("hide")
            case "countdown.start":
                await self._overlays.countdown("set", {"seconds": int(p.get("seconds", 60))})
                return await self._overlays.countdown("start")
            case "countdown.pause":
                return await self._overlays.countdown("pause")
            case "countdown.reset":
                return await self._overlays.countdown("reset")
            case "poster.show":
                return await self._overlays.poster("show", p)
            case "poster.hide":
                return await self._overlays.poster("hide")
            case "delay":
                duration = int(p.get("duration", 0))
                await asyncio.sleep(duration / 1000)
                return {"status": "ok", "waited_ms": duration}
            case "obs.scene.switch":
                return await self._switch_scene(p.get("sceneName", ""))
            case other:
                raise MacroError(f"Unknown action type: {other}")

    async def _switch_scene(self, scene_name: str) -> dict:
        if not scene_name:
            raise MacroError("obs.scene.switch requires params.sceneName")
        obs = self._obs_getter() if self._obs_getter else None
        if obs is None or not obs.is_connected():
            log.warning(f"OBS not connected — scene switch to '{scene_name}' skipped.")
            return {"status": "skipped (not connected)", "scene": scene_name}
        return await obs.switch_scene(scene_name)


class PresetRunner:
    """
    Applies a stored Preset row by type.

    Lookups (poster by id, macro by id) go through callables so the runner
    never owns a database session.
    """

    def __init__(
        self,
        overlays: Any,
        engine: MacroEngine,
        poster_lookup: Callable[[str], Any],
        macro_lookup: Callable[[str], Any],
    ):
        self._overlays = overlays
        self._engine = engine
        self._poster_lookup = poster_lookup
        self._macro_lookup = macro_lookup

    async def apply(self, preset: Any) -> dict:
        payload = dict(_field(preset, "payload", {}) or {})
        preset_type = _field(preset, "type")
        log.info(f"Applying {preset_type} preset '{_field(preset, 'name')}'")

        match preset_type:
            case "lower_third":
                data = {k: payload[k] for k in ("title", "subtitle", "side", "duration") if payload.get(k) is not None}
                if payload.get("guest_id"):
                    data["guestId"] = payload["guest_id"]
                return await self._overlays.lower("show", data)
            case "countdown":
                result = await self._overlays.countdown("set", {"seconds": payload["seconds"]})
                if payload.get("auto_start"):
                    result = await self._overlays.countdown("start")
                return result
            case "poster":
                poster = self._poster_lookup(payload["poster_id"])
                if poster is None:
                    raise LookupError(f"Poster {payload['poster_id']} not found")
                data = {
                    "posterId": poster.id,
                    "fileUrl": poster.file_url,
                    "type": poster.type,
                    "transition": payload.get("transition", "fade"),
                }
                if payload.get("duration"):
                    data["duration"] = payload["duration"]
                return await self._overlays.poster("show", data)
            case "macro":
                macro = self._macro_lookup(payload["macro_id"])
                if macro is None:
                    raise LookupError(f"Macro {payload['macro_id']} not found")
                return await self._engine.execute(macro)
            case _:
                raise ValueError(f"Unknown preset type: {preset_type}")
