"""db — SQLModel storage: engine, tables, schemas, repositories."""
from .database import create_db_and_tables, get_engine, get_session, init_engine
from .repositories import (
    GuestRepository,
    MacroRepository,
    NotFoundError,
    PosterRepository,
    PresetRepository,
    ProfileRepository,
    TextPresetRepository,
    ThemeRepository,
)
from .seed import seed_defaults

__all__ = [
    "create_db_and_tables",
    "get_engine",
    "get_session",
    "init_engine",
    "GuestRepository",
    "MacroRepository",
    "NotFoundError",
    "PosterRepository",
    "PresetRepository",
    "ProfileRepository",
    "TextPresetRepository",
    "ThemeRepository",
    "seed_defaults",
]
