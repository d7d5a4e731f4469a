"""
core/obs_client.py — Async OBS WebSocket 5.x client with reconnect & scene listeners.

obs-websocket-py is synchronous; every request runs in the default executor
so route handlers and the hub never block the event loop.

  - on_scene_changed()  → CurrentProgramSceneChanged passthrough to the hub
  - get_status()        → snapshot used by /api/obs/status and the dashboard
  - set_scene_item_enabled() → DSK / source visibility toggles
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Coroutine, Optional

from obswebsocket import obsws, requests as obs_requests, events as obs_events

log = logging.getLogger(__name__)

EventCallback = Callable[[Any], Coroutine[Any, Any, None]]


class OBSConnectionError(Exception):
    pass


class OBSClient:
    def __init__(
        self,
        host: str = "localhost",
        port: int = 4455,
        password: str = "",
        reconnect_interval: float = 5.0,
        max_reconnect_attempts: int = 0,
    ):
        self.host = host
        self.port = port
        self.password = password
        self.reconnect_interval = reconnect_interval
        self.max_reconnect_attempts = max_reconnect_attempts

        self._ws: Optional[Any] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._connected = False
        self._reconnecting = False
        self._reconnect_task: Optional[asyncio.Task] = None
        self._connection_listeners: list[EventCallback] = []
        self._scene_changed_listeners: list[Callable] = []
        self._background: set = set()

    # ── Connection ────────────────────────────────────────────────────

    async def connect(self) -> bool:
        self._loop = asyncio.get_running_loop()
        try:
            self._ws = obsws(self.host, self.port, self.password)
            self._ws.register(self._on_disconnect, obs_events.ExitStarted)
            self._ws.register(self._on_scene_changed, obs_events.CurrentProgramSceneChanged)
            await self._loop.run_in_executor(None, self._ws.connect)
            self._connected = True
            log.info(f"Connected to OBS at {self.host}:{self.port}")
            await self._emit_connection_event()
            return True
        except Exception as e:
            log.warning(f"OBS connection failed: {e}")
            self._connected = False
            return False

    async def disconnect(self) -> None:
        if self._reconnect_task and not self._reconnect_task.done():
            self._reconnect_task.cancel()
        if self._ws and self._connected:
            try:
                self._ws.disconnect()
            except Exception as e:
                log.warning(f"OBS disconnect error: {e}")
        self._connected = False
        log.info("Disconnected from OBS")

    async def reconnect(self) -> bool:
        await self.disconnect()
        return await self.connect()

    def is_connected(self) -> bool:
        return self._connected

    async def start_reconnect_loop(self) -> None:
        if self._reconnecting:
            return
        self._reconnecting = True
        attempts = 0
        try:
            while True:
                if self.max_reconnect_attempts and attempts >= self.max_reconnect_attempts:
                    log.error("Max OBS reconnect attempts reached.")
                    break
                log.info(f"Reconnect attempt {attempts + 1}...")
                if await self.connect():
                    break
                attempts += 1
                await asyncio.sleep(self.reconnect_interval)
        finally:
            self._reconnecting = False

    def _on_disconnect(self, _event: Any = None) -> None:
        # Called from the obs-websocket-py receive thread
        if self._connected and self._loop:
            self._connected = False
            log.warning("OBS disconnected. Scheduling reconnect...")
            self._loop.call_soon_threadsafe(self._schedule_reconnect)

    def _schedule_reconnect(self) -> None:
        self.start_background_reconnect()

    def start_background_reconnect(self) -> asyncio.Task:
        """Run the reconnect loop as a task on the current loop."""
        self._reconnect_task = asyncio.ensure_future(self.start_reconnect_loop())
        self.track_background(self._reconnect_task, "OBS reconnect loop")
        return self._reconnect_task

    def track_background(self, fut: Any, label: str) -> None:
        """Hold a reference to a task or future until it finishes and log its failure."""
        self._background.add(fut)
        fut.add_done_callback(lambda done: self._background_done(done, label))

    def _background_done(self, fut: Any, label: str) -> None:
        self._background.discard(fut)
        if fut.cancelled():
            return
        exc = fut.exception()
        if exc is not None:
            log.error(f"{label} failed: {exc!r}")

    # ── OBS event handlers ────────────────────────────────────────────

    def _on_scene_changed(self, event: Any) -> None:
        """Fired when program scene changes from ANY source (OBS UI, hotkeys, other clients)."""
        scene_name = event.datain.get("sceneName", "")
        log.debug(f"CurrentProgramSceneChanged: {scene_name}")
        if not self._loop:
            return
        for cb in self._scene_changed_listeners:
            fut = asyncio.run_coroutine_threadsafe(cb(scene_name), self._loop)
            self.track_background(fut, "Scene change listener")

    # ── Event subscriptions ───────────────────────────────────────────

    def on_scene_changed(self, callback: Callable) -> None:
        """
        Subscribe to program scene changes from any source.
        Callback receives scene_name: str.
        """
        self._scene_changed_listeners.append(callback)

    def on_connect(self, callback: EventCallback) -> None:
        self._connection_listeners.append(callback)

    async def _emit_connection_event(self) -> None:
        for cb in self._connection_listeners:
            try:
                await cb(None)
            except Exception as e:
                log.error(f"Connection listener error: {e}")

    # ── Core request helper ───────────────────────────────────────────

    def _call(self, request: Any) -> Any:
        if not self._connected or not self._ws:
            raise OBSConnectionError("Not connected to OBS")
        return self._ws.call(request)

    async def call_async(self, request: Any) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._call, request)

    # ── Scenes ───────────────────────────────────────────────────────

    async def switch_scene(self, scene_name: str) -> dict:
        await self.call_async(obs_requests.SetCurrentProgramScene(sceneName=scene_name))
        log.info(f"Switched to scene: {scene_name}")
        return {"scene": scene_name, "status": "ok"}

    async def get_scenes(self) -> list[dict]:
        result = await self.call_async(obs_requests.GetSceneList())
        return [{"name": s["sceneName"], "index": s["sceneIndex"]} for s in result.datain.get("scenes", [])]

    async def get_current_scene(self) -> str:
        result = await self.call_async(obs_requests.GetCurrentProgramScene())
        return result.datain.get("currentProgramSceneName", "")

    # ── Streaming ─────────────────────────────────────────────────────

    async def start_stream(self) -> dict:
        await self.call_async(obs_requests.StartStream())
        return {"status": "streaming_started"}

    async def stop_stream(self) -> dict:
        await self.call_async(obs_requests.StopStream())
        return {"status": "streaming_stopped"}

    async def get_stream_status(self) -> dict:
        result = await self.call_async(obs_requests.GetStreamStatus())
        d = result.datain
        return {
            "active": d.get("outputActive", False),
            "reconnecting": d.get("outputReconnecting", False),
            "timecode": d.get("outputTimecode", ""),
        }

    # ── Recording ─────────────────────────────────────────────────────

    async def start_recording(self) -> dict:
        await self.call_async(obs_requests.StartRecord())
        return {"status": "recording_started"}

    async def stop_recording(self) -> dict:
        result = await self.call_async(obs_requests.StopRecord())
        d = result.datain if result and hasattr(result, "datain") else {}
        return {"status": "recording_stopped", "output_path": d.get("outputPath", "")}

    async def get_recording_status(self) -> dict:
        result = await self.call_async(obs_requests.GetRecordStatus())
        d = result.datain
        return {
            "active": d.get("outputActive", False),
            "paused": d.get("outputPaused", False),
            "timecode": d.get("outputTimecode", ""),
        }

    # ── Scene item visibility ─────────────────────────────────────────

    async def get_scene_item_id(self, scene_name: str, source_name: str) -> int:
        """
        Look up the sceneItemId for a source within a scene.
        Returns -1 if OBS reports no such item.
        """
        try:
            result = await self.call_async(
                obs_requests.GetSceneItemId(sceneName=scene_name, sourceName=source_name)
            )
        except OBSConnectionError:
            raise
        except Exception as e:
            log.debug(f"GetSceneItemId failed for '{source_name}' in '{scene_name}': {e}")
            return -1
        return result.datain.get("sceneItemId", -1)

    async def set_scene_item_enabled(
        self, scene_name: str, source_name: str, enabled: bool
    ) -> dict:
        """Show or hide a source within a scene (the eye icon in the Sources panel)."""
        item_id = await self.get_scene_item_id(scene_name, source_name)
        if item_id == -1:
            raise ValueError(
                f"Source '{source_name}' not found in scene '{scene_name}'."
            )
        await self.call_async(
            obs_requests.SetSceneItemEnabled(
                sceneName=scene_name,
                sceneItemId=item_id,
                sceneItemEnabled=enabled,
            )
        )
        log.debug(f"Scene item '{source_name}' in '{scene_name}' → {'visible' if enabled else 'hidden'}")
        return {
            "scene": scene_name,
            "source": source_name,
            "enabled": enabled,
            "scene_item_id": item_id,
            "status": "ok",
        }

    # ── System ────────────────────────────────────────────────────────

    async def get_version(self) -> dict:
        result = await self.call_async(obs_requests.GetVersion())
        d = result.datain
        return {
            "obs_version": d.get("obsVersion", ""),
            "obs_web_socket_version": d.get("obsWebSocketVersion", ""),
            "platform": d.get("platform", ""),
        }

    async def get_status(self) -> dict:
        """Connection + program snapshot. Never raises; disconnected → defaults."""
        status = {
            "connected": self._connected,
            "currentScene": None,
            "streaming": False,
            "recording": False,
        }
        if not self._connected:
            return status
        try:
            status["currentScene"] = await self.get_current_scene()
            status["streaming"] = (await self.get_stream_status())["active"]
            status["recording"] = (await self.get_recording_status())["active"]
        except OBSConnectionError:
            status["connected"] = False
        except Exception as e:
            log.warning(f"OBS status refresh failed: {e}")
        return status
