"""Default rows for a fresh database: one global theme and an active profile."""

import logging

from sqlmodel import Session

from . import models
from .repositories import ProfileRepository, ThemeRepository
from .schemas import AudioSettings, ThemeCreate

log = logging.getLogger(__name__)


def seed_defaults(session: Session) -> bool:
    """Insert the default theme + profile if no theme exists. Returns True if seeded."""
    themes = ThemeRepository(session)
    if themes.list_all():
        return False

    theme = themes.create(models.Theme(**ThemeCreate(name="Default", is_global=True).model_dump()))
    ProfileRepository(session).create(models.Profile(
        name="Default",
        description="Default show profile",
        theme_id=theme.id,
        audio_settings=AudioSettings().model_dump(),
        is_active=True,
    ))
    log.info(f"Seeded default theme + profile (theme {theme.id})")
    return True
