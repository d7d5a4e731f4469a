"""
tests/conftest.py — Shared fixtures: settings, in-memory database, fake hub, API client.
"""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session

from obs_live_suite.api import create_app, set_managers
from obs_live_suite.config import reload_settings
from obs_live_suite.core import reset_obs_client
from obs_live_suite.db import create_db_and_tables, init_engine, seed_defaults
from obs_live_suite.hub import ChannelManager, WebSocketHub
from obs_live_suite.macros import MacroEngine
from obs_live_suite.media import MediaManager
from obs_live_suite.overlays import ActiveProfileSource, OverlayManager
from obs_live_suite.quiz import QuizManager, QuizStore
from obs_live_suite.services import RateLimiter


class FakeWebSocket:
    """Stands in for a starlette WebSocket inside the hub."""

    def __init__(self):
        self.sent: list[dict] = []
        self.accepted = False
        self.closed = False
        self.fail = False

    async def accept(self):
        self.accepted = True

    async def send_text(self, text: str):
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(json.loads(text))

    async def close(self):
        self.closed = True


def make_channels() -> MagicMock:
    """ChannelManager double whose publish helpers record calls and return an event."""
    channels = MagicMock(spec=ChannelManager)
    for name in (
        "publish",
        "publish_lower_third",
        "publish_countdown",
        "publish_poster",
        "publish_quiz",
        "publish_to_room",
    ):
        setattr(channels, name, AsyncMock(return_value={"id": "evt-1"}))
    return channels


def published(mock: AsyncMock) -> list[tuple]:
    """Positional args of every call, e.g. [("show", {...}), ...]."""
    return [c.args for c in mock.call_args_list]


@pytest.fixture
def settings(tmp_path):
    s = reload_settings(tmp_path / "config.yaml")
    s.storage.data_dir = tmp_path / "data"
    s.api.api_key = None
    return s


@pytest.fixture
def engine():
    eng = init_engine("sqlite://")
    create_db_and_tables()
    yield eng
    eng.dispose()


@pytest.fixture
def db_session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def seeded(engine):
    with Session(engine) as session:
        seed_defaults(session)
    return engine


@pytest.fixture
def channels():
    return make_channels()


@pytest.fixture
def quiz_store(tmp_path):
    return QuizStore(tmp_path / "sessions", tmp_path / "questions.json")


@pytest.fixture
def client(settings, seeded, tmp_path):
    reset_obs_client()
    hub = WebSocketHub()
    channels = ChannelManager(hub)
    profile_source = ActiveProfileSource()
    overlays = OverlayManager(
        channels,
        theme_provider=profile_source.active_theme,
        rotation_provider=profile_source.rotation_posters,
    )
    media = MediaManager(channels, state_dir=tmp_path / "media")
    macros = MacroEngine(overlays)
    rate_limiter = RateLimiter()
    quiz = QuizManager(
        channels,
        QuizStore(tmp_path / "sessions", tmp_path / "questions.json"),
        rate_limiter=rate_limiter,
    )
    set_managers(
        hub=hub,
        channels=channels,
        overlays=overlays,
        media=media,
        macros=macros,
        quiz=quiz,
        rate_limiter=rate_limiter,
    )
    with TestClient(create_app()) as c:
        yield c
    set_managers()
    reset_obs_client()
