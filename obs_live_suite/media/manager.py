"""
media/manager.py — A/B media playlists for the media overlay browser sources.

Two independent instances ("A" and "B") each hold an ordered list of items
(YouTube, mp4 or image), an on/off switch, a mute flag and the current index.
Every mutation publishes the instance state on its `media:<instance>` channel
and persists all instances to a JSON state file for crash recovery.
"""

from __future__ import annotations

import json
import logging
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from obs_live_suite.hub import ChannelManager
from obs_live_suite.utils import TIMECODE_RE, build_youtube_embed_url, extract_youtube_id, parse_duration

log = logging.getLogger(__name__)

INSTANCES = ("A", "B")
MediaType = Literal["youtube", "mp4", "image"]
_IMAGE_EXTS = (".png", ".jpg", ".jpeg", ".gif", ".webp", ".avif")


def infer_media_type(url: str) -> str:
    if extract_youtube_id(url):
        return "youtube"
    if url.lower().split("?", 1)[0].endswith(_IMAGE_EXTS):
        return "image"
    return "mp4"


def _check_timecode(value: Optional[str]) -> Optional[str]:
    if value is not None and not TIMECODE_RE.match(value):
        raise ValueError("Invalid timecode format (expected HH:MM:SS or MM:SS)")
    return value


def _saved_index(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


class Pan(BaseModel):
    x: float = Field(0, ge=-100, le=100)
    y: float = Field(0, ge=-100, le=100)


class MediaItem(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    url: str = Field(min_length=1)
    type: Optional[MediaType] = None
    title: Optional[str] = None
    thumb: Optional[str] = None
    start: Optional[str] = None
    end: Optional[str] = None
    zoom: float = Field(1.0, ge=0.1, le=10)
    pan: Optional[Pan] = None

    @field_validator("start", "end")
    @classmethod
    def check_timecodes(cls, value: Optional[str]) -> Optional[str]:
        return _check_timecode(value)

    @model_validator(mode="after")
    def fill_type(self) -> "MediaItem":
        if self.type is None:
            self.type = infer_media_type(self.url)
        return self


class MediaItemUpdate(BaseModel):
    """url and type are fixed once an item exists."""
    title: Optional[str] = None
    thumb: Optional[str] = None
    start: Optional[str] = None
    end: Optional[str] = None
    zoom: Optional[float] = Field(None, ge=0.1, le=10)
    pan: Optional[Pan] = None

    @field_validator("start", "end")
    @classmethod
    def check_timecodes(cls, value: Optional[str]) -> Optional[str]:
        return _check_timecode(value)


@dataclass
class MediaPlaylist:
    instance: str
    on: bool = False
    muted: bool = True
    index: int = 0
    items: list[MediaItem] = field(default_factory=list)

    @property
    def current(self) -> Optional[MediaItem]:
        if not self.items:
            return None
        return self.items[self.index % len(self.items)]


class MediaManager:
    STATE_FILE = "media_state.json"

    def __init__(self, channels: Optional[ChannelManager] = None, state_dir: Optional[Path] = None):
        self._channels = channels
        self._state_dir = state_dir
        self._playlists: dict[str, MediaPlaylist] = {name: MediaPlaylist(instance=name) for name in INSTANCES}

    def playlist(self, instance: str) -> MediaPlaylist:
        pl = self._playlists.get(instance.upper())
        if pl is None:
            raise KeyError(f"Unknown media instance '{instance}'")
        return pl

    # ──────────────────────────────────────────────────────────────────
    # State persistence
    # ──────────────────────────────────────────────────────────────────

    def save_state(self) -> None:
        if self._state_dir is None:
            return
        state = {
            name: {
                "on": pl.on,
                "muted": pl.muted,
                "index": pl.index,
                "items": [i.model_dump(exclude_none=True) for i in pl.items],
            }
            for name, pl in self._playlists.items()
        }
        state_file = self._state_dir / self.STATE_FILE
        try:
            self._state_dir.mkdir(parents=True, exist_ok=True)
            with open(state_file, "w") as f:
                json.dump(state, f, indent=2)
            log.debug(f"Media state saved → {state_file}")
        except OSError as e:
            log.warning(f"Could not save media state: {e}")

    def load_state(self) -> Optional[dict]:
        if self._state_dir is None:
            return None
        state_file = self._state_dir / self.STATE_FILE
        if not state_file.exists():
            return None
        try:
            with open(state_file) as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            log.warning(f"Could not load media state: {e}")
            return None

    def restore_state(self) -> bool:
        """Rebuild both instances from the state file. Returns True if anything was restored."""
        state = self.load_state()
        if not state:
            return False
        restored = False
        for name in INSTANCES:
            data = state.get(name)
            if not isinstance(data, dict):
                continue
            try:
                items = [MediaItem.model_validate(i) for i in data.get("items", [])]
            except ValueError as e:
                log.warning(f"Media state for {name} is invalid, skipping: {e}")
                continue
            self._playlists[name] = MediaPlaylist(
                instance=name,
                on=bool(data.get("on", False)),
                muted=bool(data.get("muted", True)),
                index=min(max(0, _saved_index(data.get("index"))), max(0, len(items) - 1)),
                items=items,
            )
            restored = True
        if restored:
            log.info("Media playlists restored from previous session")
        return restored

    # ──────────────────────────────────────────────────────────────────
    # Publishing
    # ──────────────────────────────────────────────────────────────────

    def get_state(self, instance: str) -> dict:
        pl = self.playlist(instance)
        current = pl.current
        return {
            "on": pl.on,
            "muted": pl.muted,
            "currentId": current.id if current else None,
            "index": pl.index,
            "count": len(pl.items),
        }

    def embed_url(self, item: MediaItem, muted: bool = True) -> Optional[str]:
        if item.type != "youtube":
            return None
        video_id = extract_youtube_id(item.url)
        if not video_id:
            return None
        return build_youtube_embed_url(
            video_id,
            start=parse_duration(item.start) if item.start else None,
            end=parse_duration(item.end) if item.end else None,
            mute=muted,
        )

    async def _changed(self, pl: MediaPlaylist, item_changed: bool = False) -> dict:
        self.save_state()
        state = self.get_state(pl.instance)
        if self._channels:
            channel = f"media:{pl.instance}"
            await self._channels.publish(channel, "state", state)
            current = pl.current
            if item_changed and current:
                await self._channels.publish(channel, "item", {
                    "item": current.model_dump(exclude_none=True),
                    "embedUrl": self.embed_url(current, pl.muted),
                })
        return state

    # ──────────────────────────────────────────────────────────────────
    # Playback control
    # ──────────────────────────────────────────────────────────────────

    async def toggle(self, instance: str, on: Optional[bool] = None) -> dict:
        pl = self.playlist(instance)
        pl.on = (not pl.on) if on is None else on
        log.info(f"Media {pl.instance} {'on' if pl.on else 'off'}")
        return await self._changed(pl, item_changed=pl.on)

    async def mute(self, instance: str, muted: Optional[bool] = None) -> dict:
        pl = self.playlist(instance)
        pl.muted = (not pl.muted) if muted is None else muted
        return await self._changed(pl)

    async def next(self, instance: str) -> dict:
        pl = self.playlist(instance)
        if pl.items:
            pl.index = (pl.index + 1) % len(pl.items)
        return await self._changed(pl, item_changed=True)

    async def prev(self, instance: str) -> dict:
        pl = self.playlist(instance)
        if pl.items:
            pl.index = (pl.index - 1) % len(pl.items)
        return await self._changed(pl, item_changed=True)

    async def select(self, instance: str, index: int) -> dict:
        pl = self.playlist(instance)
        if not 0 <= index < len(pl.items):
            raise ValueError(f"Index {index} out of range (0..{len(pl.items) - 1})")
        pl.index = index
        return await self._changed(pl, item_changed=True)

    # ──────────────────────────────────────────────────────────────────
    # Items
    # ──────────────────────────────────────────────────────────────────

    async def add_item(self, instance: str, data: dict) -> MediaItem:
        pl = self.playlist(instance)
        item = MediaItem.model_validate(data)
        if any(i.id == item.id for i in pl.items):
            raise ValueError(f"Media item '{item.id}' already exists in {pl.instance}")
        pl.items.append(item)
        log.info(f"Media {pl.instance}: added {item.type} item {item.id}")
        await self._changed(pl)
        return item

    async def update_item(self, instance: str, item_id: str, patch: dict) -> MediaItem:
        pl = self.playlist(instance)
        updates = MediaItemUpdate.model_validate(patch).model_dump(exclude_unset=True)
        for pos, item in enumerate(pl.items):
            if item.id == item_id:
                pl.items[pos] = MediaItem.model_validate({**item.model_dump(), **updates})
                await self._changed(pl, item_changed=pos == pl.index)
                return pl.items[pos]
        raise KeyError(f"Media item '{item_id}' not found")

    async def remove_item(self, instance: str, item_id: str) -> dict:
        pl = self.playlist(instance)
        remaining = [i for i in pl.items if i.id != item_id]
        if len(remaining) == len(pl.items):
            raise KeyError(f"Media item '{item_id}' not found")
        pl.items = remaining
        pl.index = min(pl.index, max(0, len(pl.items) - 1))
        return await self._changed(pl)

    async def reorder(self, instance: str, order: list[str]) -> dict:
        pl = self.playlist(instance)
        by_id = {i.id: i for i in pl.items}
        if sorted(order) != sorted(by_id):
            raise ValueError("Reorder must list every item id exactly once")
        current = pl.current
        pl.items = [by_id[i] for i in order]
        if current:
            pl.index = order.index(current.id)
        return await self._changed(pl)
