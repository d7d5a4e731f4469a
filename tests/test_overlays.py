"""
tests/test_overlays.py — Lower third, countdown and poster controllers.
"""

import asyncio

import pytest
from pydantic import ValidationError

from conftest import published
from obs_live_suite.db import models, schemas
from obs_live_suite.overlays import InvalidActionError, OverlayManager, enrich_countdown, enrich_poster


def _theme() -> models.Theme:
    return models.Theme(**schemas.ThemeCreate(name="Night", lower_third_template="card").model_dump())


ROTATION = [
    {"posterId": "p1", "fileUrl": "/img/one.png", "type": "image"},
    {"posterId": "p2", "fileUrl": "https://youtu.be/dQw4w9WgXcQ", "type": "youtube"},
]


# ─── Lower third ──────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_lower_show_publishes_wire_payload(channels):
    mgr = OverlayManager(channels)
    result = await mgr.lower("show", {"title": "Alice", "subtitle": "Host", "accentColor": "#ff0000"})

    assert result == {"status": "ok", "overlay": "lower", "action": "show", "eventId": "evt-1"}
    event_type, data = published(channels.publish_lower_third)[0]
    assert event_type == "show"
    assert data == {"contentType": "guest", "title": "Alice", "subtitle": "Host", "side": "left", "accentColor": "#ff0000"}
    assert mgr.get_state()["lower"] == {"visible": True, "payload": data}


@pytest.mark.asyncio
async def test_lower_show_requires_content(channels):
    mgr = OverlayManager(channels)
    with pytest.raises(ValidationError):
        await mgr.lower("show", {"subtitle": "no title"})
    with pytest.raises(ValidationError):
        await mgr.lower("show", {"contentType": "text"})
    channels.publish_lower_third.assert_not_called()


@pytest.mark.asyncio
async def test_lower_invalid_action(channels):
    with pytest.raises(InvalidActionError):
        await OverlayManager(channels).lower("explode")


@pytest.mark.asyncio
async def test_lower_auto_hide(channels):
    mgr = OverlayManager(channels)
    await mgr.lower("show", {"title": "Alice", "duration": 1})
    await asyncio.sleep(1.1)
    assert published(channels.publish_lower_third)[-1] == ("hide", {})
    assert mgr.get_state()["lower"]["visible"] is False


@pytest.mark.asyncio
async def test_new_show_cancels_pending_hide(channels):
    mgr = OverlayManager(channels)
    await mgr.lower("show", {"title": "Alice", "duration": 1})
    await mgr.lower("show", {"title": "Bob"})
    await asyncio.sleep(1.1)
    assert [c[0] for c in published(channels.publish_lower_third)] == ["show", "show"]
    assert mgr.get_state()["lower"]["visible"] is True


@pytest.mark.asyncio
async def test_lower_theme_enrichment(channels):
    mgr = OverlayManager(channels, theme_provider=_theme)
    await mgr.lower("show", {"title": "Alice"})
    data = published(channels.publish_lower_third)[0][1]
    assert data["theme"]["template"] == "card"
    assert data["theme"]["layout"]["y"] == 920

    await mgr.lower("show", {"title": "Bob", "theme": {"template": "bar"}})
    assert published(channels.publish_lower_third)[1][1]["theme"] == {"template": "bar"}


@pytest.mark.asyncio
async def test_theme_lookup_failure_publishes_unthemed(channels):
    def broken():
        raise RuntimeError("database is locked")

    await OverlayManager(channels, theme_provider=broken).lower("show", {"title": "Alice"})
    assert "theme" not in published(channels.publish_lower_third)[0][1]


def test_enrich_helpers_skip_without_theme():
    assert enrich_poster({"fileUrl": "a.png"}, None) == {"fileUrl": "a.png"}
    themed = enrich_countdown({"seconds": 10}, _theme())
    assert themed["theme"]["style"] == "bold"
    assert themed["theme"]["font"]["size"] == 80


# ─── Countdown ────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_countdown_runs_to_zero(channels):
    mgr = OverlayManager(channels, tick_interval=0.01)
    await mgr.countdown("set", {"seconds": 3})
    result = await mgr.countdown("start")
    assert result["running"] is True
    assert result["remaining"] == 3

    await asyncio.sleep(0.2)
    assert mgr.countdown_status() == {"seconds": 3, "remaining": 0, "running": False}
    ticks = [p for t, p in published(channels.publish_countdown) if t == "tick"]
    assert ticks == [{"seconds": 2}, {"seconds": 1}, {"seconds": 0}]


@pytest.mark.asyncio
async def test_countdown_start_with_seconds_sets_first(channels):
    mgr = OverlayManager(channels, tick_interval=10)
    await mgr.countdown("start", {"seconds": 90})
    assert mgr.countdown_status() == {"seconds": 90, "remaining": 90, "running": True}
    await mgr.countdown("pause")
    assert mgr.countdown_status()["running"] is False
    await mgr.shutdown()


@pytest.mark.asyncio
async def test_countdown_start_needs_time(channels):
    with pytest.raises(ValueError):
        await OverlayManager(channels).countdown("start")


@pytest.mark.asyncio
async def test_countdown_add_time_and_reset(channels):
    mgr = OverlayManager(channels)
    await mgr.countdown("set", {"seconds": 30})
    await mgr.countdown("add-time", {"seconds": -45})
    assert mgr.countdown_status()["remaining"] == 0
    await mgr.countdown("add-time", {"seconds": 15})
    assert mgr.countdown_status()["remaining"] == 15
    await mgr.countdown("reset")
    assert mgr.countdown_status() == {"seconds": 30, "remaining": 30, "running": False}

    with pytest.raises(InvalidActionError):
        await mgr.countdown("rewind")


# ─── Posters ──────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_poster_show_and_transport(channels):
    mgr = OverlayManager(channels, theme_provider=_theme)
    await mgr.poster("show", {"fileUrl": "/v/clip.mp4", "type": "video"})
    event_type, data, big_picture = published(channels.publish_poster)[0]
    assert (event_type, big_picture) == ("show", False)
    assert data["transition"] == "fade"
    assert data["theme"] == {"layout": {"x": 960, "y": 540, "scale": 1.0}}

    state = mgr.get_state()["poster"]
    assert state["visible"] and state["playing"]
    await mgr.poster("pause")
    await mgr.poster("mute")
    state = mgr.get_state()["poster"]
    assert state["playing"] is False
    assert state["muted"] is True

    await mgr.poster("seek", {"time": 12.5})
    assert published(channels.publish_poster)[-1] == ("seek", {"time": 12.5}, False)


@pytest.mark.asyncio
async def test_big_picture_is_separate_and_unthemed(channels):
    mgr = OverlayManager(channels, theme_provider=_theme)
    await mgr.poster("show", {"fileUrl": "/img/a.png", "type": "image"}, big_picture=True)
    _, data, big_picture = published(channels.publish_poster)[0]
    assert big_picture is True
    assert "theme" not in data
    assert mgr.get_state()["posterBigPicture"]["visible"] is True
    assert mgr.get_state()["poster"]["visible"] is False


@pytest.mark.asyncio
async def test_poster_rotation_next_previous(channels):
    mgr = OverlayManager(channels, rotation_provider=lambda: ROTATION)
    await mgr.poster("next")
    assert mgr.get_state()["poster"]["payload"]["posterId"] == "p1"
    await mgr.poster("next")
    assert mgr.get_state()["poster"]["payload"]["posterId"] == "p2"
    await mgr.poster("next")
    assert mgr.get_state()["poster"]["payload"]["posterId"] == "p1"
    await mgr.poster("previous")
    assert mgr.get_state()["poster"]["payload"]["posterId"] == "p2"


@pytest.mark.asyncio
async def test_poster_next_without_rotation_forwards(channels):
    mgr = OverlayManager(channels)
    await mgr.poster("next")
    assert published(channels.publish_poster) == [("next", {}, False)]


@pytest.mark.asyncio
async def test_dispatch_and_clear_all(channels):
    mgr = OverlayManager(channels)
    await mgr.dispatch("lower", "show", {"title": "Alice"})
    await mgr.dispatch("poster-bigpicture", "show", {"fileUrl": "/img/a.png", "type": "image"})
    with pytest.raises(InvalidActionError):
        await mgr.dispatch("banner", "show")

    assert await mgr.clear_all() == {"status": "cleared"}
    state = mgr.get_state()
    assert not state["lower"]["visible"]
    assert not state["poster"]["visible"]
    assert not state["posterBigPicture"]["visible"]
