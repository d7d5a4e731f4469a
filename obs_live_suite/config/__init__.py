"""config — Settings, env loading, YAML config."""
from .settings import Settings, get_settings, reload_settings

__all__ = ["Settings", "get_settings", "reload_settings"]
