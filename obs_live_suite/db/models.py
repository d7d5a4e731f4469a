"""SQLModel tables.

Ids are uuid4 strings, timestamps are timezone-aware UTC. Nested structures
(theme colors, poster rotation, macro actions...) are stored as JSON columns
and validated on the way in by `db.schemas`.
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel

DEFAULT_ACCENT_COLOR = "#3b82f6"
DEFAULT_DSK_SOURCE = "Habillage"


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TimestampedModel(SQLModel):
    id: str = Field(default_factory=new_id, primary_key=True)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Guest(TimestampedModel, table=True):
    """A person who can be shown in a lower third."""
    display_name: str = Field(index=True)
    subtitle: Optional[str] = None
    accent_color: str = DEFAULT_ACCENT_COLOR
    avatar_url: Optional[str] = None
    is_enabled: bool = True


class Poster(TimestampedModel, table=True):
    """An image, video or YouTube asset shown full-frame or as a side poster."""
    title: str
    file_url: str
    type: str
    duration: Optional[int] = None
    tags: list = Field(default_factory=list, sa_column=Column(JSON))
    profile_ids: list = Field(default_factory=list, sa_column=Column(JSON))
    meta: Optional[dict] = Field(default=None, sa_column=Column("metadata", JSON))
    chat_message: Optional[str] = None
    is_enabled: bool = True


class Theme(TimestampedModel, table=True):
    name: str = Field(index=True)
    colors: dict = Field(sa_column=Column(JSON))
    lower_third_template: str = "classic"
    lower_third_font: dict = Field(sa_column=Column(JSON))
    lower_third_layout: dict = Field(sa_column=Column(JSON))
    lower_third_animation: Optional[dict] = Field(default=None, sa_column=Column(JSON))
    countdown_style: str = "bold"
    countdown_font: dict = Field(sa_column=Column(JSON))
    countdown_layout: dict = Field(sa_column=Column(JSON))
    poster_layout: dict = Field(sa_column=Column(JSON))
    is_global: bool = False


class Profile(TimestampedModel, table=True):
    """A show configuration: theme, poster rotation and audio cues."""
    name: str = Field(index=True)
    description: Optional[str] = None
    theme_id: str
    dsk_source_name: str = DEFAULT_DSK_SOURCE
    default_scene: Optional[str] = None
    poster_rotation: list = Field(default_factory=list, sa_column=Column(JSON))
    audio_settings: dict = Field(default_factory=dict, sa_column=Column(JSON))
    is_active: bool = False


class TextPreset(TimestampedModel, table=True):
    name: str = Field(index=True)
    body: str
    side: str = "left"
    image_url: Optional[str] = None
    image_alt: Optional[str] = None
    is_enabled: bool = True


class Macro(TimestampedModel, table=True):
    """An ordered list of actions run by the macro engine."""
    name: str = Field(index=True)
    description: Optional[str] = None
    actions: list = Field(default_factory=list, sa_column=Column(JSON))
    hotkey: Optional[str] = None
    profile_id: Optional[str] = None


class Preset(TimestampedModel, table=True):
    name: str = Field(index=True)
    type: str
    payload: dict = Field(default_factory=dict, sa_column=Column(JSON))
    profile_id: Optional[str] = None
