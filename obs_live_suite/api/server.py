"""
api/server.py — FastAPI app: REST control surface + overlay WebSocket hub.

Layout:
  /health, /healthz          liveness (healthz answers 503 while OBS is down)
  /api/obs/...               OBS status, scenes, stream/record, source visibility
  /api/overlays/...          lower third, countdown, posters
  /api/media/{A|B}/...       A/B media playlists
  /api/actions/...           one-shot Stream Deck buttons
  /api/<crud resources>      see api/crud.py
  /api/quiz/..., /api/quiz-bot/chat   see api/quiz.py
  /ws                        overlay hub (subscribe / ack / ping)

When api.api_key is set every /api route needs `Authorization: Bearer <key>`
and /ws needs `?token=<key>`.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, Literal, Optional

from fastapi import Body, Depends, FastAPI, HTTPException, Query, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field
from sqlmodel import Session

from obs_live_suite import __version__
from obs_live_suite.config import get_settings
from obs_live_suite.db import get_session
from obs_live_suite.db.repositories import (
    GuestRepository,
    MacroRepository,
    PosterRepository,
    PresetRepository,
    TextPresetRepository,
)
from obs_live_suite.hub import OverlayChannel
from obs_live_suite.macros import PresetRunner, estimate_duration
from obs_live_suite.media import MediaItem
from obs_live_suite.overlays import OVERLAYS
from . import deps
from .crud import router as crud_router
from .deps import auth, register_error_handlers, require_macros, require_media, require_obs, require_overlays
from .quiz import bot_router as quiz_bot_router
from .quiz import router as quiz_router

log = logging.getLogger(__name__)


# ──────────────────────────────────────────────────────────────────────────────
# Request bodies
# ──────────────────────────────────────────────────────────────────────────────

class OutputBody(BaseModel):
    action: Literal["start", "stop"]


class SceneBody(BaseModel):
    sceneName: str = Field(min_length=1)


class VisibilityBody(BaseModel):
    sceneName: str = Field(min_length=1)
    sourceName: str = Field(min_length=1)
    visible: bool


class OverlayActionBody(BaseModel):
    action: str
    payload: Optional[dict[str, Any]] = None


class MediaActionBody(BaseModel):
    on: Optional[bool] = None
    muted: Optional[bool] = None
    index: Optional[int] = None
    order: Optional[list[str]] = None


class DurationBody(BaseModel):
    duration: Optional[int] = Field(None, gt=0)


class MacroRunBody(BaseModel):
    macroId: Optional[str] = None


class CountdownStartBody(BaseModel):
    seconds: int = Field(gt=0)


# ──────────────────────────────────────────────────────────────────────────────
# App factory
# ──────────────────────────────────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    log.info(f"OBS Live Suite API starting on {settings.api.host}:{settings.api.port}")

    hub = deps.current_hub()
    if hub is not None:
        hub.start_heartbeat()

    # OBS scene changes are relayed to every overlay on the system channel
    obs_client = deps.obs_or_none()
    if obs_client is not None and deps._channels is not None:
        channels = deps._channels

        async def on_scene_changed(scene_name: str):
            await channels.publish(OverlayChannel.SYSTEM, "obs.scene_changed", {"scene": scene_name})

        obs_client.on_scene_changed(on_scene_changed)
        log.info("OBS scene-change passthrough registered")

    yield

    log.info("OBS Live Suite API shutting down.")
    for manager in (deps._overlays, deps._quiz):
        if manager is not None:
            await manager.shutdown()
    if deps._channels is not None:
        deps._channels.clear_pending()
    if hub is not None:
        await hub.stop()


def create_app() -> FastAPI:
    settings = get_settings()

    app = FastAPI(
        title="OBS Live Suite",
        description="Live production overlays, quiz engine and OBS control",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.api.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_error_handlers(app)

    # ─────────────────────────────────────────────────────────────────
    # Health
    # ─────────────────────────────────────────────────────────────────

    @app.get("/health", tags=["System"])
    async def health():
        client = deps.obs_or_none()
        hub = deps.current_hub()
        return {
            "status": "ok",
            "obs_connected": client.is_connected() if client else False,
            "ws_clients": hub.client_count() if hub else 0,
            "channels": hub.channel_stats() if hub else {},
            "version": __version__,
        }

    @app.get("/healthz", tags=["System"])
    async def healthz():
        """Machine-readable health check. Returns 503 when OBS is disconnected."""
        client = deps.obs_or_none()
        if client is None or not client.is_connected():
            raise HTTPException(status_code=503, detail={"status": "degraded", "reason": "OBS not connected"})
        return {"status": "ok"}

    # ─────────────────────────────────────────────────────────────────
    # OBS
    # ─────────────────────────────────────────────────────────────────

    @app.get("/api/obs/status", tags=["OBS"], dependencies=[auth])
    async def obs_status():
        client = deps.obs_or_none()
        if client is None:
            return {"connected": False, "currentScene": None, "streaming": False, "recording": False}
        return await client.get_status()

    @app.post("/api/obs/reconnect", tags=["OBS"], dependencies=[auth])
    async def obs_reconnect():
        connected = await require_obs().reconnect()
        return {"connected": connected}

    @app.get("/api/obs/scenes", tags=["OBS"], dependencies=[auth])
    async def obs_scenes():
        return await require_obs().get_scenes()

    @app.post("/api/obs/scene", tags=["OBS"], dependencies=[auth])
    async def obs_switch_scene(body: SceneBody):
        return await require_obs().switch_scene(body.sceneName)

    @app.post("/api/obs/stream", tags=["OBS"], dependencies=[auth])
    async def obs_stream(body: OutputBody):
        client = require_obs()
        return await (client.start_stream() if body.action == "start" else client.stop_stream())

    @app.post("/api/obs/record", tags=["OBS"], dependencies=[auth])
    async def obs_record(body: OutputBody):
        client = require_obs()
        return await (client.start_recording() if body.action == "start" else client.stop_recording())

    @app.post("/api/obs/source/visibility", tags=["OBS"], dependencies=[auth])
    async def obs_source_visibility(body: VisibilityBody):
        return await require_obs().set_scene_item_enabled(body.sceneName, body.sourceName, body.visible)

    # ─────────────────────────────────────────────────────────────────
    # Overlays
    # ─────────────────────────────────────────────────────────────────

    @app.get("/api/overlays/state", tags=["Overlays"], dependencies=[auth])
    async def overlays_state():
        return require_overlays().get_state()

    @app.post("/api/overlays/clear", tags=["Overlays"], dependencies=[auth])
    async def overlays_clear():
        return await require_overlays().clear_all()

    @app.post("/api/overlays/{overlay}", tags=["Overlays"], dependencies=[auth])
    async def overlay_action(overlay: str, body: OverlayActionBody):
        if overlay not in OVERLAYS:
            raise HTTPException(status_code=400, detail=f"Invalid overlay: {overlay}")
        return await require_overlays().dispatch(overlay, body.action, body.payload)

    # ─────────────────────────────────────────────────────────────────
    # Media playlists
    # ─────────────────────────────────────────────────────────────────

    @app.get("/api/media/{instance}", tags=["Media"], dependencies=[auth])
    async def media_state(instance: str):
        media = require_media()
        pl = media.playlist(instance)
        return {**media.get_state(instance), "items": [i.model_dump(exclude_none=True) for i in pl.items]}

    @app.post("/api/media/{instance}/items", tags=["Media"], dependencies=[auth], status_code=201)
    async def media_add_item(instance: str, body: dict = Body(...)):
        item: MediaItem = await require_media().add_item(instance, body)
        return item.model_dump(exclude_none=True)

    @app.patch("/api/media/{instance}/items/{item_id}", tags=["Media"], dependencies=[auth])
    async def media_update_item(instance: str, item_id: str, body: dict = Body(...)):
        item = await require_media().update_item(instance, item_id, body)
        return item.model_dump(exclude_none=True)

    @app.delete("/api/media/{instance}/items/{item_id}", tags=["Media"], dependencies=[auth])
    async def media_remove_item(instance: str, item_id: str):
        return await require_media().remove_item(instance, item_id)

    @app.post("/api/media/{instance}/{action}", tags=["Media"], dependencies=[auth])
    async def media_action(instance: str, action: str, body: Optional[MediaActionBody] = None):
        media = require_media()
        body = body or MediaActionBody()
        media.playlist(instance)
        match action:
            case "toggle":
                return await media.toggle(instance, body.on)
            case "mute":
                return await media.mute(instance, body.muted)
            case "next":
                return await media.next(instance)
            case "prev":
                return await media.prev(instance)
            case "select":
                if body.index is None:
                    raise HTTPException(status_code=400, detail="index is required")
                return await media.select(instance, body.index)
            case "reorder":
                if body.order is None:
                    raise HTTPException(status_code=400, detail="order is required")
                return await media.reorder(instance, body.order)
            case _:
                raise HTTPException(status_code=400, detail=f"Invalid media action: {action}")

    # ─────────────────────────────────────────────────────────────────
    # Actions (Stream Deck surface)
    # ─────────────────────────────────────────────────────────────────

    @app.get("/api/actions/catalog", tags=["Actions"], dependencies=[auth])
    def actions_catalog(session: Session = Depends(get_session)):
        """Everything a button grid can bind to, with the route each button calls."""
        return {
            "guests": [
                {"id": g.id, "label": g.display_name, "route": f"/api/actions/lower/guest/{g.id}"}
                for g in GuestRepository(session).list_enabled()
            ],
            "textPresets": [
                {"id": t.id, "label": t.name, "route": f"/api/actions/lower/text-preset/{t.id}"}
                for t in TextPresetRepository(session).list_all() if t.is_enabled
            ],
            "posters": [
                {"id": p.id, "label": p.title, "type": p.type, "route": f"/api/actions/poster/show/{p.id}"}
                for p in PosterRepository(session).list_enabled()
            ],
            "macros": [
                {"id": m.id, "label": m.name, "durationMs": estimate_duration(m), "route": "/api/actions/macro"}
                for m in MacroRepository(session).list_all()
            ],
            "presets": [
                {"id": p.id, "label": p.name, "type": p.type, "route": f"/api/actions/preset/{p.id}"}
                for p in PresetRepository(session).list_all()
            ],
        }

    @app.post("/api/actions/lower/guest/{guest_id}", tags=["Actions"], dependencies=[auth])
    async def action_lower_guest(
        guest_id: str,
        body: Optional[DurationBody] = None,
        session: Session = Depends(get_session),
    ):
        guest = GuestRepository(session).require(guest_id)
        payload = {
            "contentType": "guest",
            "title": guest.display_name,
            "subtitle": guest.subtitle,
            "accentColor": guest.accent_color,
            "avatarUrl": guest.avatar_url,
            "duration": (body.duration if body and body.duration else get_settings().overlay.lower_third_duration),
        }
        return await require_overlays().lower("show", {k: v for k, v in payload.items() if v is not None})

    @app.post("/api/actions/lower/text-preset/{preset_id}", tags=["Actions"], dependencies=[auth])
    async def action_lower_text(
        preset_id: str,
        body: Optional[DurationBody] = None,
        session: Session = Depends(get_session),
    ):
        preset = TextPresetRepository(session).require(preset_id)
        payload = {
            "contentType": "text",
            "body": preset.body,
            "side": preset.side,
            "imageUrl": preset.image_url,
            "imageAlt": preset.image_alt,
            "duration": (body.duration if body and body.duration else get_settings().overlay.lower_third_duration),
        }
        return await require_overlays().lower("show", {k: v for k, v in payload.items() if v is not None})

    @app.post("/api/actions/poster/show/{poster_id}", tags=["Actions"], dependencies=[auth])
    async def action_poster_show(poster_id: str, session: Session = Depends(get_session)):
        poster = PosterRepository(session).require(poster_id)
        payload = {"posterId": poster.id, "fileUrl": poster.file_url, "type": poster.type}
        if poster.duration:
            payload["duration"] = poster.duration
        return await require_overlays().poster("show", payload)

    @app.post("/api/actions/macro", tags=["Actions"], dependencies=[auth])
    async def action_macro(body: MacroRunBody, session: Session = Depends(get_session)):
        if not body.macroId:
            raise HTTPException(status_code=400, detail="macroId is required")
        macro = MacroRepository(session).require(body.macroId)
        return await require_macros().execute(macro)

    @app.post("/api/actions/preset/{preset_id}", tags=["Actions"], dependencies=[auth])
    async def action_preset(preset_id: str, session: Session = Depends(get_session)):
        preset = PresetRepository(session).require(preset_id)
        runner = PresetRunner(
            require_overlays(),
            require_macros(),
            poster_lookup=PosterRepository(session).get,
            macro_lookup=MacroRepository(session).get,
        )
        return await runner.apply(preset)

    @app.post("/api/actions/countdown/start", tags=["Actions"], dependencies=[auth])
    async def action_countdown_start(body: CountdownStartBody):
        return await require_overlays().countdown("start", {"seconds": body.seconds})

    # ─────────────────────────────────────────────────────────────────
    # Routers
    # ─────────────────────────────────────────────────────────────────

    app.include_router(crud_router)
    app.include_router(quiz_router)
    app.include_router(quiz_bot_router)

    # ─────────────────────────────────────────────────────────────────
    # WebSocket hub (token auth)
    # ─────────────────────────────────────────────────────────────────

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket, token: Optional[str] = Query(None)):
        api_key = get_settings().api.api_key
        if api_key and token != api_key:
            await websocket.close(code=4001, reason="Unauthorized")
            return

        hub = deps.current_hub()
        if hub is None:
            await websocket.close(code=1013, reason="Hub not ready")
            return

        client_id = await hub.connect(websocket)
        try:
            while True:
                raw = await websocket.receive_text()
                await hub.handle_message(client_id, raw)
        except WebSocketDisconnect:
            log.debug(f"WS client {client_id} closed the connection")
        finally:
            hub.disconnect(client_id)

    return app
