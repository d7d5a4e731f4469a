"""
config/settings.py — Central configuration via env vars + YAML override.

Priority: ENV > config.yaml > defaults
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict


class _Section(BaseSettings):
    """A config.yaml section. Values from config.yaml arrive as init kwargs and rank below env vars."""

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return env_settings, init_settings, dotenv_settings, file_secret_settings


class OBSSettings(_Section):
    host: str = Field("localhost", description="OBS WebSocket host")
    port: int = Field(4455, description="OBS WebSocket port")
    password: str = Field("", description="OBS WebSocket password")
    reconnect_interval: float = Field(5.0, description="Seconds between reconnect attempts")
    max_reconnect_attempts: int = Field(0, description="Max reconnect attempts (0=infinite)")

    model_config = SettingsConfigDict(env_prefix="OBS_")


class APISettings(_Section):
    host: str = Field("0.0.0.0", description="API server bind host")
    port: int = Field(3002, description="API + WebSocket hub port")
    api_key: Optional[str] = Field(None, description="Bearer token for API auth (optional)")
    cors_origins: list[str] = Field(["*"], description="CORS allowed origins")
    log_level: str = Field("info", description="Log level")

    model_config = SettingsConfigDict(env_prefix="API_")


class HubSettings(_Section):
    ack_timeout: float = Field(5.0, description="Seconds to wait for an overlay ack")
    heartbeat_interval: float = Field(30.0, description="Seconds between client pings")

    model_config = SettingsConfigDict(env_prefix="HUB_")


class StorageSettings(_Section):
    data_dir: Path = Field(Path.home() / ".obs-live-suite", description="Root directory for app data")
    database_url: Optional[str] = Field(None, description="SQLAlchemy URL (default: sqlite in data_dir)")

    model_config = SettingsConfigDict(env_prefix="STORAGE_")

    @property
    def resolved_database_url(self) -> str:
        return self.database_url or f"sqlite:///{self.data_dir / 'data.db'}"

    @property
    def media_state_file(self) -> Path:
        return self.data_dir / "media_state.json"

    def ensure_dirs(self) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)


class OverlaySettings(_Section):
    lower_third_duration: int = Field(8, description="Default lower third auto-hide (seconds)")
    dsk_source_name: str = Field("Habillage", description="Default downstream keyer source")

    model_config = SettingsConfigDict(env_prefix="OVERLAY_")


class QuizSettings(_Section):
    sessions_dir: Optional[Path] = Field(None, description="Directory for saved quiz sessions")
    questions_file: Optional[Path] = Field(None, description="Question bank JSON file")

    model_config = SettingsConfigDict(env_prefix="QUIZ_")

    def resolve(self, data_dir: Path) -> tuple[Path, Path]:
        """Return (sessions_dir, questions_file), falling back to data_dir/quiz."""
        base = data_dir / "quiz"
        return (
            self.sessions_dir or base / "sessions",
            self.questions_file or base / "questions.json",
        )


class Settings(BaseSettings):
    obs: OBSSettings = Field(default_factory=OBSSettings)
    api: APISettings = Field(default_factory=APISettings)
    hub: HubSettings = Field(default_factory=HubSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    overlay: OverlaySettings = Field(default_factory=OverlaySettings)
    quiz: QuizSettings = Field(default_factory=QuizSettings)
    config_file: Path = Field(Path("config.yaml"), description="Path to YAML config file")

    model_config = SettingsConfigDict(env_prefix="SUITE_")

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> "Settings":
        """Load settings, merging YAML file if present."""
        path = config_path or Path(os.environ.get("SUITE_CONFIG_FILE", "config.yaml"))
        yaml_data: dict = {}

        if path.exists():
            with open(path) as f:
                yaml_data = yaml.safe_load(f) or {}

        return cls(
            obs=OBSSettings(**yaml_data.get("obs", {})),
            api=APISettings(**yaml_data.get("api", {})),
            hub=HubSettings(**yaml_data.get("hub", {})),
            storage=StorageSettings(**yaml_data.get("storage", {})),
            overlay=OverlaySettings(**yaml_data.get("overlay", {})),
            quiz=QuizSettings(**yaml_data.get("quiz", {})),
            config_file=path,
        )

    def to_yaml(self, path: Path) -> None:
        """Save current settings to YAML."""
        data = {
            "obs": self.obs.model_dump(),
            "api": self.api.model_dump(),
            "hub": self.hub.model_dump(),
            "storage": self.storage.model_dump(mode="json"),
            "overlay": self.overlay.model_dump(),
            "quiz": self.quiz.model_dump(mode="json"),
        }
        with open(path, "w") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings.load()
    return _settings


def reload_settings(config_path: Optional[Path] = None) -> Settings:
    global _settings
    _settings = Settings.load(config_path)
    return _settings
