"""
tests/test_obs_client.py — Scene listeners and background task bookkeeping.
"""

import asyncio
import logging
from types import SimpleNamespace

import pytest

from obs_live_suite.core import OBSClient


@pytest.mark.asyncio
async def test_scene_listener_failure_is_logged(caplog):
    client = OBSClient()
    client._loop = asyncio.get_running_loop()
    seen = []

    async def record(scene):
        seen.append(scene)

    async def explode(scene):
        raise RuntimeError(f"no overlay for {scene}")

    client.on_scene_changed(record)
    client.on_scene_changed(explode)

    with caplog.at_level(logging.ERROR, logger="obs_live_suite.core.obs_client"):
        client._on_scene_changed(SimpleNamespace(datain={"sceneName": "Main"}))
        await asyncio.sleep(0.05)

    assert seen == ["Main"]
    assert "Scene change listener failed" in caplog.text
    assert "no overlay for Main" in caplog.text
    assert client._background == set()


@pytest.mark.asyncio
async def test_background_reconnect_is_tracked(caplog):
    client = OBSClient(reconnect_interval=0.01, max_reconnect_attempts=1)

    async def broken_connect():
        raise RuntimeError("socket gone")

    client.connect = broken_connect
    with caplog.at_level(logging.ERROR, logger="obs_live_suite.core.obs_client"):
        task = client.start_background_reconnect()
        assert task in client._background
        with pytest.raises(RuntimeError):
            await task
        await asyncio.sleep(0)

    assert "OBS reconnect loop failed" in caplog.text
    assert client._background == set()
