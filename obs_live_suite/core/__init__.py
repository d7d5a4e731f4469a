"""core — OBS connection management."""
from .obs_client import OBSClient, OBSConnectionError
from .connection_manager import get_obs_client, init_obs_client, reset_obs_client

__all__ = ["OBSClient", "OBSConnectionError", "get_obs_client", "init_obs_client", "reset_obs_client"]
