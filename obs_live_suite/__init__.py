"""
obs-live-suite — Live production control for OBS browser overlays.

Modules:
  core/     — OBS WebSocket client & connection manager
  hub/      — WebSocket hub and overlay channel publishing
  db/       — SQLModel tables, repositories and seeding
  overlays/ — Lower third, countdown and poster controllers
  media/    — A/B media playlists
  macros/   — Macro engine and stored presets
  quiz/     — Live quiz engine (phases, timer, buzzer, scoring)
  services/ — Shared services (rate limiting)
  api/      — FastAPI REST + WebSocket server
  config/   — Settings, env loading, YAML config
"""

__version__ = "1.0.0"
__author__ = "obs-live-suite"
