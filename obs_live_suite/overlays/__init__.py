"""overlays — Lower third, countdown and poster controllers."""
from .manager import OVERLAYS, InvalidActionError, OverlayManager
from .themes import ActiveProfileSource, enrich_countdown, enrich_lower_third, enrich_poster

__all__ = [
    "OVERLAYS",
    "InvalidActionError",
    "OverlayManager",
    "ActiveProfileSource",
    "enrich_countdown",
    "enrich_lower_third",
    "enrich_poster",
]
