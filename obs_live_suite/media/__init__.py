"""media — A/B media playlists."""
from .manager import INSTANCES, MediaItem, MediaManager, MediaPlaylist, infer_media_type

__all__ = ["INSTANCES", "MediaItem", "MediaManager", "MediaPlaylist", "infer_media_type"]
