"""
overlays/themes.py — Active-profile lookups and theme enrichment of overlay payloads.

Payloads sent to the browser sources use the overlays' camelCase wire keys;
the theme block is added under "theme" unless the caller already supplied one.
"""

from __future__ import annotations

import logging
from typing import Optional

from sqlmodel import Session

from obs_live_suite.db import get_engine
from obs_live_suite.db.models import Theme
from obs_live_suite.db.repositories import PosterRepository, ProfileRepository, ThemeRepository

log = logging.getLogger(__name__)


# ── Theme → wire blocks ───────────────────────────────────────────────

def lower_third_theme(theme: Theme) -> dict:
    data = {
        "colors": theme.colors,
        "template": theme.lower_third_template,
        "font": theme.lower_third_font,
        "layout": theme.lower_third_layout,
    }
    if theme.lower_third_animation:
        data["lowerThirdAnimation"] = theme.lower_third_animation
    return data


def countdown_theme(theme: Theme) -> dict:
    return {
        "colors": theme.colors,
        "style": theme.countdown_style,
        "font": theme.countdown_font,
        "layout": theme.countdown_layout,
    }


def poster_theme(theme: Theme) -> dict:
    return {"layout": theme.poster_layout}


def _enrich(payload: dict, theme: Optional[Theme], extract) -> dict:
    if theme is None or payload.get("theme"):
        return payload
    return {**payload, "theme": extract(theme)}


def enrich_lower_third(payload: dict, theme: Optional[Theme]) -> dict:
    return _enrich(payload, theme, lower_third_theme)


def enrich_countdown(payload: dict, theme: Optional[Theme]) -> dict:
    return _enrich(payload, theme, countdown_theme)


def enrich_poster(payload: dict, theme: Optional[Theme]) -> dict:
    return _enrich(payload, theme, poster_theme)


# ── Database-backed context ───────────────────────────────────────────

class ActiveProfileSource:
    """
    Reads the active profile's theme and poster rotation from the database.
    Each call opens its own short session so overlay controllers never hold one.
    """

    def active_theme(self) -> Optional[Theme]:
        with Session(get_engine()) as session:
            profile = ProfileRepository(session).get_active()
            if profile is None or not profile.theme_id:
                log.debug("No active profile or theme; payload left unthemed")
                return None
            theme = ThemeRepository(session).get(profile.theme_id)
            if theme is None:
                log.warning(f"Active profile '{profile.name}' references missing theme {profile.theme_id}")
            return theme

    def rotation_posters(self) -> list[dict]:
        """Poster show-payloads for the active profile's rotation, in order."""
        with Session(get_engine()) as session:
            profile = ProfileRepository(session).get_active()
            if profile is None:
                return []
            posters = PosterRepository(session)
            result = []
            for entry in sorted(profile.poster_rotation or [], key=lambda r: r.get("order", 0)):
                poster = posters.get(entry.get("poster_id", ""))
                if poster is None or not poster.is_enabled:
                    continue
                result.append({
                    "posterId": poster.id,
                    "fileUrl": poster.file_url,
                    "type": poster.type,
                    "duration": entry.get("duration"),
                })
            return result
