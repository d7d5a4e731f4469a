"""
hub/channels.py — Overlay channels, event envelopes and ack-tracked publishing.

Every event that reaches a browser source goes through ChannelManager.publish():

  {channel, type, payload, timestamp (ms), id (uuid4)}

Overlays answer with an ack frame carrying the event id. Events that are not
acked within `ack_timeout` seconds are logged and forgotten.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from enum import Enum
from typing import Any, Callable, Optional

from .websocket_hub import WebSocketHub

log = logging.getLogger(__name__)

ROOM_PREFIX = "room:"


class OverlayChannel(str, Enum):
    LOWER = "lower"
    COUNTDOWN = "countdown"
    POSTER = "poster"
    POSTER_BIGPICTURE = "poster-bigpicture"
    QUIZ = "quiz"
    SYSTEM = "system"


def build_event(channel: str, event_type: str, payload: Any = None) -> dict:
    return {
        "channel": channel,
        "type": event_type,
        "payload": payload if payload is not None else {},
        "timestamp": int(time.time() * 1000),
        "id": str(uuid.uuid4()),
    }


def room_channel(room_id: str) -> str:
    return f"{ROOM_PREFIX}{room_id}"


class ChannelManager:
    def __init__(self, hub: WebSocketHub, ack_timeout: float = 5.0):
        self._hub = hub
        self.ack_timeout = ack_timeout
        self._pending: dict[str, asyncio.TimerHandle] = {}
        self._listeners: list[Callable] = []
        hub.set_ack_handler(self.handle_ack)

    def add_listener(self, callback: Callable) -> None:
        """Callback receives every published event dict (sync or async)."""
        self._listeners.append(callback)

    async def publish(self, channel: str | OverlayChannel, event_type: str, payload: Any = None) -> dict:
        channel = channel.value if isinstance(channel, OverlayChannel) else channel
        event = build_event(channel, event_type, payload)
        self._track_ack(event)
        recipients = await self._hub.broadcast(channel, event)
        log.debug(f"Published {channel}/{event_type} → {recipients} client(s)")

        for cb in self._listeners:
            try:
                result = cb(event)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as e:
                log.error(f"Channel listener error: {e}")
        return event

    # ── Ack tracking ──────────────────────────────────────────────────

    def _track_ack(self, event: dict) -> None:
        loop = asyncio.get_running_loop()
        event_id = event["id"]
        self._pending[event_id] = loop.call_later(
            self.ack_timeout, self._ack_timed_out, event_id, event["channel"], event["type"]
        )

    def _ack_timed_out(self, event_id: str, channel: str, event_type: str) -> None:
        if self._pending.pop(event_id, None) is not None:
            log.warning(f"No ack for {channel}/{event_type} ({event_id}) within {self.ack_timeout}s")

    def handle_ack(self, ack: dict) -> None:
        event_id = ack.get("eventId", "")
        handle = self._pending.pop(event_id, None)
        if handle is not None:
            handle.cancel()
        if ack.get("success") is False:
            log.warning(f"Overlay reported failure for {ack.get('channel')} event {event_id}: {ack.get('error')}")

    def pending_ack_count(self) -> int:
        return len(self._pending)

    def clear_pending(self) -> None:
        for handle in self._pending.values():
            handle.cancel()
        self._pending.clear()

    # ── Typed helpers ─────────────────────────────────────────────────

    async def publish_lower_third(self, event_type: str, payload: Optional[dict] = None) -> dict:
        return await self.publish(OverlayChannel.LOWER, event_type, payload)

    async def publish_countdown(self, event_type: str, payload: Optional[dict] = None) -> dict:
        return await self.publish(OverlayChannel.COUNTDOWN, event_type, payload)

    async def publish_poster(self, event_type: str, payload: Optional[dict] = None, big_picture: bool = False) -> dict:
        channel = OverlayChannel.POSTER_BIGPICTURE if big_picture else OverlayChannel.POSTER
        return await self.publish(channel, event_type, payload)

    async def publish_quiz(self, event_type: str, payload: Optional[dict] = None) -> dict:
        return await self.publish(OverlayChannel.QUIZ, event_type, payload)

    async def publish_to_room(self, room_id: str, event_type: str, payload: Optional[dict] = None) -> dict:
        return await self.publish(room_channel(room_id), event_type, payload)
