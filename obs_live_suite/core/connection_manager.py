"""
core/connection_manager.py — Process-wide OBSClient, shared by the API, macros and CLI.
"""

from __future__ import annotations

from typing import Optional

from obs_live_suite.config.settings import OBSSettings
from .obs_client import OBSClient

_obs_client: Optional[OBSClient] = None


def init_obs_client(settings: OBSSettings) -> OBSClient:
    global _obs_client
    _obs_client = OBSClient(
        host=settings.host,
        port=settings.port,
        password=settings.password,
        reconnect_interval=settings.reconnect_interval,
        max_reconnect_attempts=settings.max_reconnect_attempts,
    )
    return _obs_client


def get_obs_client() -> OBSClient:
    if _obs_client is None:
        raise RuntimeError("OBS client not initialized. Call init_obs_client() first.")
    return _obs_client


def reset_obs_client() -> None:
    """Drop the singleton (tests and one-shot CLI commands)."""
    global _obs_client
    _obs_client = None
