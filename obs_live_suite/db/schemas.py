"""Pydantic request schemas for the CRUD routes.

Create schemas carry defaults and full validation. Update schemas make every
field optional and are applied with `model_dump(exclude_unset=True)`.
"""

from typing import Annotated, Any, ClassVar, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, PositiveInt, model_validator

from .models import DEFAULT_ACCENT_COLOR, DEFAULT_DSK_SOURCE

HexColor = Annotated[str, Field(pattern=r"^#[0-9a-fA-F]{6}$")]
PosterType = Literal["image", "video", "youtube"]
Side = Literal["left", "right"]
Transition = Literal["fade", "slide", "cut", "blur"]
LowerThirdTemplate = Literal["classic", "bar", "card", "slide"]
CountdownStyle = Literal["bold", "corner", "banner"]
PresetType = Literal["lower_third", "countdown", "poster", "macro"]
MacroActionType = Literal[
    "lower.show",
    "lower.hide",
    "countdown.start",
    "countdown.pause",
    "countdown.reset",
    "poster.show",
    "poster.hide",
    "delay",
    "obs.scene.switch",
]


class PartialUpdate(BaseModel):
    """Only columns named in `nullable` may be cleared with an explicit null."""
    nullable: ClassVar[frozenset[str]] = frozenset()

    @model_validator(mode="after")
    def reject_nulls(self):
        cleared = sorted(n for n in self.model_fields_set if getattr(self, n) is None and n not in self.nullable)
        if cleared:
            raise ValueError(f"Cannot be null: {', '.join(cleared)}")
        return self


# ── Guests ────────────────────────────────────────────────────────────

class GuestCreate(BaseModel):
    display_name: str = Field(min_length=1, max_length=100)
    subtitle: Optional[str] = Field(None, max_length=200)
    accent_color: HexColor = DEFAULT_ACCENT_COLOR
    avatar_url: Optional[str] = None
    is_enabled: bool = True


class GuestUpdate(PartialUpdate):
    nullable = frozenset({"subtitle", "avatar_url"})

    display_name: Optional[str] = Field(None, min_length=1, max_length=100)
    subtitle: Optional[str] = Field(None, max_length=200)
    accent_color: Optional[HexColor] = None
    avatar_url: Optional[str] = None
    is_enabled: Optional[bool] = None


# ── Posters ───────────────────────────────────────────────────────────

class PosterCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str = Field(min_length=1, max_length=200)
    file_url: str = Field(min_length=1)
    type: PosterType
    duration: Optional[PositiveInt] = None
    tags: list[str] = Field(default_factory=list)
    profile_ids: list[str] = Field(default_factory=list)
    meta: Optional[dict[str, Any]] = Field(None, alias="metadata")
    chat_message: Optional[str] = Field(None, max_length=500)
    is_enabled: bool = True


class PosterUpdate(PartialUpdate):
    model_config = ConfigDict(populate_by_name=True)
    nullable = frozenset({"duration", "meta", "chat_message"})

    title: Optional[str] = Field(None, min_length=1, max_length=200)
    file_url: Optional[str] = Field(None, min_length=1)
    type: Optional[PosterType] = None
    duration: Optional[PositiveInt] = None
    tags: Optional[list[str]] = None
    profile_ids: Optional[list[str]] = None
    meta: Optional[dict[str, Any]] = Field(None, alias="metadata")
    chat_message: Optional[str] = Field(None, max_length=500)
    is_enabled: Optional[bool] = None


# ── Themes ────────────────────────────────────────────────────────────

class ColorScheme(BaseModel):
    primary: HexColor = "#3b82f6"
    accent: HexColor = "#60a5fa"
    surface: HexColor = "#1f2937"
    text: HexColor = "#f9fafb"
    success: HexColor = "#10b981"
    warn: HexColor = "#ef4444"


class FontConfig(BaseModel):
    family: str = Field("Inter, sans-serif", min_length=1)
    size: int = Field(28, ge=12, le=200)
    weight: int = Field(700, ge=100, le=900)


class LayoutConfig(BaseModel):
    x: float = 960
    y: float = 540
    scale: float = Field(1.0, ge=0.5, le=2.0)


def _lower_third_layout() -> LayoutConfig:
    return LayoutConfig(x=60, y=920, scale=1)


class ThemeCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    colors: ColorScheme = Field(default_factory=ColorScheme)
    lower_third_template: LowerThirdTemplate = "classic"
    lower_third_font: FontConfig = Field(default_factory=FontConfig)
    lower_third_layout: LayoutConfig = Field(default_factory=_lower_third_layout)
    lower_third_animation: Optional[dict[str, Any]] = None
    countdown_style: CountdownStyle = "bold"
    countdown_font: FontConfig = Field(default_factory=lambda: FontConfig(size=80))
    countdown_layout: LayoutConfig = Field(default_factory=LayoutConfig)
    poster_layout: LayoutConfig = Field(default_factory=LayoutConfig)
    is_global: bool = False


class ThemeUpdate(PartialUpdate):
    nullable = frozenset({"lower_third_animation"})

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    colors: Optional[ColorScheme] = None
    lower_third_template: Optional[LowerThirdTemplate] = None
    lower_third_font: Optional[FontConfig] = None
    lower_third_layout: Optional[LayoutConfig] = None
    lower_third_animation: Optional[dict[str, Any]] = None
    countdown_style: Optional[CountdownStyle] = None
    countdown_font: Optional[FontConfig] = None
    countdown_layout: Optional[LayoutConfig] = None
    poster_layout: Optional[LayoutConfig] = None
    is_global: Optional[bool] = None


# ── Profiles ──────────────────────────────────────────────────────────

class PosterRotationItem(BaseModel):
    poster_id: str
    duration: PositiveInt
    order: int = Field(ge=0)


class AudioSettings(BaseModel):
    countdown_cue_enabled: bool = True
    countdown_cue_at: int = Field(10, ge=0)
    action_sounds_enabled: bool = False


class ProfileCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    theme_id: str
    dsk_source_name: str = DEFAULT_DSK_SOURCE
    default_scene: Optional[str] = None
    poster_rotation: list[PosterRotationItem] = Field(default_factory=list)
    audio_settings: AudioSettings = Field(default_factory=AudioSettings)
    is_active: bool = False


class ProfileUpdate(PartialUpdate):
    nullable = frozenset({"description", "default_scene"})

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    theme_id: Optional[str] = None
    dsk_source_name: Optional[str] = None
    default_scene: Optional[str] = None
    poster_rotation: Optional[list[PosterRotationItem]] = None
    audio_settings: Optional[AudioSettings] = None


class RotationAdd(BaseModel):
    poster_id: str
    duration: PositiveInt = 10


# ── Text presets ──────────────────────────────────────────────────────

class TextPresetCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    body: str = Field(min_length=1, max_length=1000)
    side: Side = "left"
    image_url: Optional[str] = None
    image_alt: Optional[str] = None
    is_enabled: bool = True


class TextPresetUpdate(PartialUpdate):
    nullable = frozenset({"image_url", "image_alt"})

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    body: Optional[str] = Field(None, min_length=1, max_length=1000)
    side: Optional[Side] = None
    image_url: Optional[str] = None
    image_alt: Optional[str] = None
    is_enabled: Optional[bool] = None


# ── Macros ────────────────────────────────────────────────────────────

class MacroAction(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: MacroActionType
    params: dict[str, Any] = Field(default_factory=dict)
    delay_after: int = Field(0, ge=0, alias="delayAfter", description="Milliseconds to wait after this action")


class MacroCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    actions: list[MacroAction] = Field(min_length=1)
    hotkey: Optional[str] = None
    profile_id: Optional[str] = None


class MacroUpdate(PartialUpdate):
    nullable = frozenset({"description", "hotkey", "profile_id"})

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    actions: Optional[list[MacroAction]] = Field(None, min_length=1)
    hotkey: Optional[str] = None
    profile_id: Optional[str] = None


# ── Presets ───────────────────────────────────────────────────────────

class LowerThirdPresetPayload(BaseModel):
    guest_id: Optional[str] = None
    title: str
    subtitle: Optional[str] = None
    side: Side = "left"
    duration: Optional[PositiveInt] = None


class CountdownPresetPayload(BaseModel):
    seconds: PositiveInt
    auto_start: bool = False
    sound_cue: bool = True
    sound_cue_at: int = 10


class PosterPresetPayload(BaseModel):
    poster_id: str
    transition: Transition = "fade"
    duration: Optional[PositiveInt] = None


class MacroPresetPayload(BaseModel):
    macro_id: str


PRESET_PAYLOADS: dict[str, type[BaseModel]] = {
    "lower_third": LowerThirdPresetPayload,
    "countdown": CountdownPresetPayload,
    "poster": PosterPresetPayload,
    "macro": MacroPresetPayload,
}


def validate_preset_payload(preset_type: str, payload: dict[str, Any]) -> dict[str, Any]:
    return PRESET_PAYLOADS[preset_type].model_validate(payload).model_dump()


class PresetCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    type: PresetType
    payload: dict[str, Any]
    profile_id: Optional[str] = None

    @model_validator(mode="after")
    def check_payload(self) -> "PresetCreate":
        self.payload = validate_preset_payload(self.type, self.payload)
        return self


class PresetUpdate(PartialUpdate):
    nullable = frozenset({"profile_id"})

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    payload: Optional[dict[str, Any]] = None
    profile_id: Optional[str] = None
