"""hub — WebSocket hub and channel publishing."""
from .websocket_hub import WebSocketHub, HubClient
from .channels import ChannelManager, OverlayChannel, build_event, room_channel

__all__ = ["WebSocketHub", "HubClient", "ChannelManager", "OverlayChannel", "build_event", "room_channel"]
