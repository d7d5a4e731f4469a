"""
overlays/payloads.py — Validation for overlay action payloads.

Field names are snake_case in Python and camelCase on the wire
(alias_generator), so `model_dump(by_alias=True)` yields what the
browser sources expect.
"""

from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, PositiveInt, model_validator
from pydantic.alias_generators import to_camel

from obs_live_suite.db.schemas import CountdownStyle, HexColor, PosterType, Side, Transition


class WirePayload(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class LowerThirdShow(WirePayload):
    content_type: Literal["guest", "text"] = "guest"
    title: Optional[str] = Field(None, max_length=200)
    subtitle: Optional[str] = Field(None, max_length=200)
    body: Optional[str] = Field(None, max_length=1000)
    side: Side = "left"
    theme_id: Optional[str] = None
    duration: Optional[PositiveInt] = None
    avatar_url: Optional[str] = None
    accent_color: Optional[HexColor] = None
    image_url: Optional[str] = None
    image_alt: Optional[str] = None
    theme: Optional[dict[str, Any]] = None

    @model_validator(mode="after")
    def require_content(self) -> "LowerThirdShow":
        if self.content_type == "guest" and not self.title:
            raise ValueError("title is required for a guest lower third")
        if self.content_type == "text" and not self.body:
            raise ValueError("body is required for a text lower third")
        return self


class Position(BaseModel):
    x: float
    y: float


class Size(BaseModel):
    scale: float = Field(1.0, ge=0.1, le=5.0)


class CountdownSet(WirePayload):
    seconds: PositiveInt
    style: CountdownStyle = "bold"
    position: Optional[Position] = None
    format: Literal["mm:ss", "hh:mm:ss", "seconds"] = "mm:ss"
    size: Optional[Size] = None
    theme: Optional[dict[str, Any]] = None


class CountdownAddTime(WirePayload):
    seconds: int


class PosterShow(WirePayload):
    poster_id: Optional[str] = None
    file_url: str = Field(min_length=1)
    type: PosterType
    transition: Transition = "fade"
    duration: Optional[PositiveInt] = None
    side: Optional[Side] = None
    theme: Optional[dict[str, Any]] = None


class PosterSeek(WirePayload):
    time: float = Field(ge=0)
