"""
hub/websocket_hub.py — Channel-aware WebSocket fan-out for overlay browser sources.

Every overlay page opens one socket to /ws and subscribes to the channels it
renders. Messages from the client:

  {"type": "subscribe",   "channel": "lower"}
  {"type": "unsubscribe", "channel": "lower"}
  {"type": "ack", "eventId": "...", "channel": "lower", "success": true}
  {"type": "ping"}

Outgoing frames are always {"channel": <name>, "data": <event>}.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from fastapi import WebSocket

log = logging.getLogger(__name__)


@dataclass
class HubClient:
    id: str
    ws: WebSocket
    channels: set[str] = field(default_factory=set)
    last_seen: float = field(default_factory=time.time)


class WebSocketHub:
    def __init__(self, heartbeat_interval: float = 30.0):
        self.heartbeat_interval = heartbeat_interval
        self._clients: dict[str, HubClient] = {}
        self._ack_handler: Optional[Callable[[dict], None]] = None
        self._heartbeat_task: Optional[asyncio.Task] = None

    # ── Registry ──────────────────────────────────────────────────────

    async def connect(self, ws: WebSocket) -> str:
        await ws.accept()
        client_id = str(uuid.uuid4())
        self._clients[client_id] = HubClient(id=client_id, ws=ws)
        log.info(f"WS client connected: {client_id}. Total: {len(self._clients)}")
        await self._send(self._clients[client_id], {
            "channel": "system",
            "data": {"type": "connected", "payload": {"clientId": client_id}},
        })
        return client_id

    def disconnect(self, client_id: str) -> None:
        if self._clients.pop(client_id, None) is not None:
            log.info(f"WS client disconnected: {client_id}. Total: {len(self._clients)}")

    def set_ack_handler(self, handler: Callable[[dict], None]) -> None:
        self._ack_handler = handler

    def client_count(self) -> int:
        return len(self._clients)

    def channel_stats(self) -> dict[str, int]:
        stats: dict[str, int] = {}
        for client in self._clients.values():
            for ch in client.channels:
                stats[ch] = stats.get(ch, 0) + 1
        return stats

    # ── Inbound ───────────────────────────────────────────────────────

    async def handle_message(self, client_id: str, raw: str) -> None:
        client = self._clients.get(client_id)
        if client is None:
            return
        client.last_seen = time.time()

        try:
            msg = json.loads(raw)
        except json.JSONDecodeError:
            await self._error(client, "Invalid JSON")
            return
        if not isinstance(msg, dict):
            await self._error(client, "Invalid message")
            return

        match msg.get("type"):
            case "subscribe" | "unsubscribe" as kind:
                channel = msg.get("channel")
                if not isinstance(channel, str) or not channel:
                    await self._error(client, f"{kind} needs a channel name")
                    return
                if kind == "subscribe":
                    client.channels.add(channel)
                else:
                    client.channels.discard(channel)
                log.debug(f"{client_id} {kind}d {channel}")
            case "ack":
                if not isinstance(msg.get("eventId"), str):
                    await self._error(client, "ack needs an eventId")
                    return
                if self._ack_handler:
                    self._ack_handler(msg)
            case "ping":
                await self._send(client, {"channel": "system", "data": {"type": "pong", "payload": {}}})
            case other:
                await self._error(client, f"Unknown message type: {other}")

    # ── Outbound ──────────────────────────────────────────────────────

    async def _error(self, client: HubClient, error: str) -> None:
        await self._send(client, {"channel": "system", "data": {"type": "error", "payload": {"error": error}}})

    async def _send(self, client: HubClient, message: dict) -> bool:
        try:
            await client.ws.send_text(json.dumps(message))
            return True
        except Exception as e:
            log.debug(f"Send to {client.id} failed: {e}")
            return False

    async def broadcast(self, channel: str, event: dict) -> int:
        """Send an event to every client subscribed to channel. Returns recipients."""
        targets = [c for c in self._clients.values() if channel in c.channels]
        if not targets:
            return 0
        message = {"channel": channel, "data": event}
        dead = []
        sent = 0
        for client in targets:
            if await self._send(client, message):
                sent += 1
            else:
                dead.append(client.id)
        for client_id in dead:
            self.disconnect(client_id)
        return sent

    async def broadcast_all(self, message: dict) -> None:
        dead = [c.id for c in list(self._clients.values()) if not await self._send(c, message)]
        for client_id in dead:
            self.disconnect(client_id)

    # ── Heartbeat ─────────────────────────────────────────────────────

    def start_heartbeat(self) -> None:
        if self._heartbeat_task and not self._heartbeat_task.done():
            return
        self._heartbeat_task = asyncio.create_task(self._heartbeat_loop())

    async def _heartbeat_loop(self) -> None:
        try:
            while True:
                await asyncio.sleep(self.heartbeat_interval)
                await self.broadcast_all({"channel": "system", "data": {"type": "ping", "payload": {"ts": int(time.time() * 1000)}}})
        except asyncio.CancelledError:
            log.debug("Hub heartbeat stopped")

    async def stop(self) -> None:
        if self._heartbeat_task:
            self._heartbeat_task.cancel()
            try:
                await self._heartbeat_task
            except asyncio.CancelledError:
                pass
            self._heartbeat_task = None
        for client in list(self._clients.values()):
            try:
                await client.ws.close()
            except Exception as e:
                log.debug(f"Close {client.id}: {e}")
        self._clients.clear()
