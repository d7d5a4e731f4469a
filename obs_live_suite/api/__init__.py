"""api — FastAPI REST + WebSocket server."""
from .deps import set_managers
from .server import create_app

__all__ = ["create_app", "set_managers"]
