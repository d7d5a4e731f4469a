"""
tests/test_media.py — A/B media playlists and state persistence.
"""

import json

import pytest
from pydantic import ValidationError

from conftest import published
from obs_live_suite.media import MediaItem, MediaManager, infer_media_type

YT = "https://www.youtube.com/watch?v=dQw4w9WgXcQ"


async def _filled(channels, tmp_path=None) -> MediaManager:
    mgr = MediaManager(channels, state_dir=tmp_path)
    for url in (YT, "/media/clip.mp4", "/media/still.jpg"):
        await mgr.add_item("A", {"url": url})
    return mgr


def test_infer_media_type():
    assert infer_media_type(YT) == "youtube"
    assert infer_media_type("https://youtu.be/dQw4w9WgXcQ") == "youtube"
    assert infer_media_type("/media/photo.PNG?v=2") == "image"
    assert infer_media_type("/media/clip.mov") == "mp4"


@pytest.mark.asyncio
async def test_add_item_publishes_state(channels):
    mgr = MediaManager(channels)
    item = await mgr.add_item("A", {"url": YT, "title": "Intro", "start": "0:30"})
    assert item.type == "youtube"
    assert item.id

    channel, event_type, state = published(channels.publish)[-1]
    assert (channel, event_type) == ("media:A", "state")
    assert state == {"on": False, "muted": True, "currentId": item.id, "index": 0, "count": 1}


@pytest.mark.asyncio
async def test_invalid_timecode_rejected(channels):
    mgr = MediaManager(channels)
    with pytest.raises(ValidationError):
        await mgr.add_item("A", {"url": YT, "start": "1:75"})
    assert mgr.playlist("A").items == []


@pytest.mark.asyncio
async def test_unknown_instance(channels):
    mgr = MediaManager(channels)
    with pytest.raises(KeyError):
        mgr.playlist("C")
    assert mgr.playlist("b").instance == "B"


@pytest.mark.asyncio
async def test_next_prev_wrap_and_publish_item(channels):
    mgr = await _filled(channels)
    state = await mgr.prev("A")
    assert state["index"] == 2
    state = await mgr.next("A")
    assert state["index"] == 0

    channel, event_type, payload = published(channels.publish)[-1]
    assert (channel, event_type) == ("media:A", "item")
    assert payload["item"]["type"] == "youtube"
    assert payload["embedUrl"].startswith("https://www.youtube.com/embed/dQw4w9WgXcQ?")
    assert "mute=1" in payload["embedUrl"]


@pytest.mark.asyncio
async def test_select_bounds(channels):
    mgr = await _filled(channels)
    assert (await mgr.select("A", 1))["index"] == 1
    with pytest.raises(ValueError):
        await mgr.select("A", 3)


@pytest.mark.asyncio
async def test_toggle_and_mute(channels):
    mgr = MediaManager(channels)
    assert (await mgr.toggle("B"))["on"] is True
    assert (await mgr.toggle("B", on=True))["on"] is True
    assert (await mgr.toggle("B"))["on"] is False
    assert (await mgr.mute("B"))["muted"] is False
    assert (await mgr.mute("B", muted=True))["muted"] is True


@pytest.mark.asyncio
async def test_reorder_keeps_current_item(channels):
    mgr = await _filled(channels)
    ids = [i.id for i in mgr.playlist("A").items]
    await mgr.select("A", 1)
    state = await mgr.reorder("A", [ids[2], ids[1], ids[0]])
    assert state["currentId"] == ids[1]
    assert state["index"] == 1

    with pytest.raises(ValueError):
        await mgr.reorder("A", ids[:2])


@pytest.mark.asyncio
async def test_update_and_remove_item(channels):
    mgr = await _filled(channels)
    ids = [i.id for i in mgr.playlist("A").items]

    updated = await mgr.update_item("A", ids[1], {"title": "Clip", "zoom": 2})
    assert updated.title == "Clip"
    assert updated.url == "/media/clip.mp4"
    with pytest.raises(KeyError):
        await mgr.update_item("A", "missing", {"title": "x"})

    await mgr.select("A", 2)
    state = await mgr.remove_item("A", ids[2])
    assert state["count"] == 2
    assert state["index"] == 1
    with pytest.raises(KeyError):
        await mgr.remove_item("A", ids[2])


@pytest.mark.asyncio
async def test_state_survives_restart(channels, tmp_path):
    mgr = await _filled(channels, tmp_path)
    await mgr.toggle("A", on=True)
    await mgr.select("A", 2)

    saved = json.loads((tmp_path / MediaManager.STATE_FILE).read_text())
    assert saved["A"]["index"] == 2

    restored = MediaManager(channels, state_dir=tmp_path)
    assert restored.restore_state() is True
    pl = restored.playlist("A")
    assert pl.on is True
    assert pl.index == 2
    assert [i.url for i in pl.items] == [YT, "/media/clip.mp4", "/media/still.jpg"]


def test_corrupt_state_file_ignored(tmp_path):
    (tmp_path / MediaManager.STATE_FILE).write_text("{ broken")
    mgr = MediaManager(state_dir=tmp_path)
    assert mgr.restore_state() is False
    assert mgr.playlist("A").items == []


def test_embed_url_only_for_youtube():
    mgr = MediaManager()
    item = MediaItem(url=YT, start="1:00", end="1:30")
    assert mgr.embed_url(item, muted=False) == (
        "https://www.youtube.com/embed/dQw4w9WgXcQ?autoplay=1&mute=0&controls=0&start=60&end=90"
    )
    assert mgr.embed_url(MediaItem(url="/media/clip.mp4")) is None


@pytest.mark.asyncio
async def test_duplicate_item_id_rejected(channels):
    mgr = MediaManager(channels)
    await mgr.add_item("A", {"id": "x", "url": YT})
    with pytest.raises(ValueError, match="already exists"):
        await mgr.add_item("A", {"id": "x", "url": "/media/clip.mp4"})
    await mgr.add_item("B", {"id": "x", "url": YT})

    await mgr.add_item("A", {"id": "y", "url": "/media/clip.mp4"})
    await mgr.reorder("A", ["y", "x"])
    assert [i.id for i in mgr.playlist("A").items] == ["y", "x"]


def test_bad_saved_index_falls_back_to_first(tmp_path):
    state = {"A": {"on": True, "index": "last", "items": [{"url": YT}, {"url": "/media/clip.mp4"}]}}
    (tmp_path / MediaManager.STATE_FILE).write_text(json.dumps(state))
    mgr = MediaManager(state_dir=tmp_path)
    assert mgr.restore_state() is True
    assert mgr.playlist("A").index == 0
    assert len(mgr.playlist("A").items) == 2
