"""
main.py — obs-live-suite application entrypoint.

Bootstraps:
  1. Config loading
  2. SQLite storage (tables + default theme/profile)
  3. WebSocket hub and channel manager
  4. OBS WebSocket client
  5. Overlay, media, macro and quiz managers
  6. FastAPI server (uvicorn)

CLI:
  python run.py start                      start the server
  python run.py init-config                create a default config.yaml
  python run.py init-db                    create tables and seed defaults
  python run.py check                      test OBS connectivity
  python run.py list-sessions              print saved quiz sessions
  python run.py import-questions FILE.csv  add CSV questions to the bank
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal
import sys
from pathlib import Path
from typing import Optional

import typer
import uvicorn
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table
from sqlmodel import Session

from obs_live_suite import __version__
from obs_live_suite.api import create_app, set_managers
from obs_live_suite.config import Settings, get_settings, reload_settings
from obs_live_suite.core import init_obs_client, reset_obs_client
from obs_live_suite.db import GuestRepository, create_db_and_tables, get_engine, init_engine, seed_defaults
from obs_live_suite.hub import ChannelManager, WebSocketHub
from obs_live_suite.macros import MacroEngine
from obs_live_suite.media import MediaManager
from obs_live_suite.overlays import ActiveProfileSource, OverlayManager
from obs_live_suite.quiz import QuizManager, QuizStore, import_csv
from obs_live_suite.services import RateLimiter

console = Console()
app = typer.Typer(name="obs-live-suite", help="Live production overlays, quiz engine and OBS control")


def setup_logging(level: str = "info") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(message)s",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
    )


def init_storage(settings: Settings) -> bool:
    """Create the engine and tables, seed defaults. Returns True if seeded."""
    settings.storage.ensure_dirs()
    init_engine(settings.storage.resolved_database_url)
    create_db_and_tables()
    with Session(get_engine()) as session:
        return seed_defaults(session)


def quiz_store(settings: Settings) -> QuizStore:
    sessions_dir, questions_file = settings.quiz.resolve(settings.storage.data_dir)
    return QuizStore(sessions_dir, questions_file)


def enabled_guests() -> list:
    with Session(get_engine()) as session:
        return GuestRepository(session).list_enabled()


async def build_and_run(config_path: Optional[Path] = None) -> None:
    settings = reload_settings(config_path)
    setup_logging(settings.api.log_level)
    log = logging.getLogger("obs_live_suite")

    console.rule(f"[bold blue]obs-live-suite v{__version__}[/bold blue]")

    # 1. Storage
    if init_storage(settings):
        console.print("[green]✓ Fresh database seeded with the default theme and profile[/green]")

    # 2. Hub
    hub = WebSocketHub(heartbeat_interval=settings.hub.heartbeat_interval)
    channels = ChannelManager(hub, ack_timeout=settings.hub.ack_timeout)

    # 3. OBS client (non-fatal when OBS is down)
    obs_client = init_obs_client(settings.obs)
    connected = await obs_client.connect()
    if not connected:
        console.print(f"[yellow]⚠ OBS not reachable at {settings.obs.host}:{settings.obs.port} — will retry in background[/yellow]")
        obs_client.start_background_reconnect()

    # 4. Managers
    profile_source = ActiveProfileSource()
    overlays = OverlayManager(
        channels,
        theme_provider=profile_source.active_theme,
        rotation_provider=profile_source.rotation_posters,
    )

    media = MediaManager(channels, state_dir=settings.storage.data_dir)
    if media.restore_state():
        console.print("[green]✓ Media playlists restored from previous session[/green]")

    macros = MacroEngine(overlays, obs_getter=lambda: obs_client)
    rate_limiter = RateLimiter()
    quiz = QuizManager(channels, quiz_store(settings), guests_provider=enabled_guests, rate_limiter=rate_limiter)

    # 5. Wire managers into API
    set_managers(
        hub=hub,
        channels=channels,
        overlays=overlays,
        media=media,
        macros=macros,
        quiz=quiz,
        rate_limiter=rate_limiter,
    )
    fast_app = create_app()

    # 6. Startup summary
    console.print(f"\n[green]✓ OBS[/green]       {settings.obs.host}:{settings.obs.port} ({'connected' if connected else 'retrying'})")
    console.print(f"[green]✓ API[/green]       http://{settings.api.host}:{settings.api.port}")
    console.print(f"[green]✓ Overlays[/green]  ws://{settings.api.host}:{settings.api.port}/ws")
    console.print(f"[green]✓ Data[/green]      {settings.storage.data_dir}")
    console.print(f"[green]✓ Questions[/green] {len(quiz.store.list_questions())} in bank")
    if settings.api.api_key:
        console.print("[green]✓ Auth[/green]      Bearer token required")
    console.print()

    config = uvicorn.Config(
        fast_app,
        host=settings.api.host,
        port=settings.api.port,
        log_level=settings.api.log_level,
        loop="asyncio",
    )
    server = uvicorn.Server(config)

    loop = asyncio.get_running_loop()

    def shutdown():
        log.info("Shutdown signal received.")
        server.should_exit = True
        media.save_state()
        obs_client.track_background(loop.create_task(obs_client.disconnect()), "OBS disconnect")

    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, shutdown)
        except NotImplementedError:
            pass  # Windows

    await server.serve()


# ──────────────────────────────────────────────────────────────────────────────
# CLI commands
# ──────────────────────────────────────────────────────────────────────────────

@app.command()
def start(
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to config.yaml"),
    host: Optional[str] = typer.Option(None, "--host", help="API bind host"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="API port"),
    obs_host: Optional[str] = typer.Option(None, "--obs-host", help="OBS WebSocket host"),
    obs_port: Optional[int] = typer.Option(None, "--obs-port", help="OBS WebSocket port"),
    obs_password: Optional[str] = typer.Option(None, "--obs-password", help="OBS WebSocket password"),
):
    """Start the obs-live-suite server."""
    if host:
        os.environ["API_HOST"] = host
    if port:
        os.environ["API_PORT"] = str(port)
    if obs_host:
        os.environ["OBS_HOST"] = obs_host
    if obs_port:
        os.environ["OBS_PORT"] = str(obs_port)
    if obs_password:
        os.environ["OBS_PASSWORD"] = obs_password
    asyncio.run(build_and_run(config))


@app.command("init-config")
def init_config(
    output: Path = typer.Option(Path("config.yaml"), "--output", "-o"),
):
    """Generate a default config.yaml."""
    s = Settings.load()
    s.to_yaml(output)
    console.print(f"[green]✓[/green] Config written to [bold]{output}[/bold]")


@app.command("init-db")
def init_db(
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to config.yaml"),
):
    """Create the database tables and seed the default theme and profile."""
    settings = reload_settings(config)
    seeded = init_storage(settings)
    console.print(f"[green]✓[/green] Database ready at [bold]{settings.storage.resolved_database_url}[/bold]")
    if seeded:
        console.print("  Seeded default theme + active profile")


@app.command("check")
def check_obs(
    host: Optional[str] = typer.Option(None, "--host"),
    port: Optional[int] = typer.Option(None, "--port"),
    password: Optional[str] = typer.Option(None, "--password"),
):
    """Test OBS WebSocket connectivity."""
    obs_settings = get_settings().obs.model_copy(update={
        k: v for k, v in {"host": host, "port": port, "password": password}.items() if v is not None
    })

    async def _check():
        client = init_obs_client(obs_settings)
        ok = await client.connect()
        if ok:
            version = await client.get_version()
            console.print("[green]✓ Connected to OBS[/green]")
            console.print(f"  OBS version:       {version.get('obs_version')}")
            console.print(f"  WebSocket version: {version.get('obs_web_socket_version')}")
            console.print(f"  Platform:          {version.get('platform')}")
            scenes = await client.get_scenes()
            console.print(f"  Scenes ({len(scenes)}): {', '.join(s['name'] for s in scenes)}")
            await client.disconnect()
        else:
            console.print(f"[red]✗ Could not connect to OBS at {obs_settings.host}:{obs_settings.port}[/red]")
            sys.exit(1)
        reset_obs_client()

    asyncio.run(_check())


@app.command("list-sessions")
def list_sessions_cmd(
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to config.yaml"),
):
    """Print the saved quiz sessions, newest first."""
    store = quiz_store(reload_settings(config))
    sessions = store.list_sessions()
    if not sessions:
        console.print(f"[yellow]No saved sessions in {store.sessions_dir}[/yellow]")
        return

    table = Table(title="Quiz Sessions", show_header=True)
    table.add_column("ID", style="cyan")
    table.add_column("Title", style="green")
    table.add_column("Rounds", justify="right")
    table.add_column("Saved")
    for s in sessions:
        table.add_row(s["id"], s["title"], str(s["rounds"]), s["createdAt"])
    console.print(table)


@app.command("import-questions")
def import_questions_cmd(
    csv_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="CSV file to import"),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to config.yaml"),
):
    """Validate a CSV file and add its questions to the bank."""
    store = quiz_store(reload_settings(config))
    try:
        questions, errors = import_csv(csv_file.read_text(encoding="utf-8"))
    except ValueError as e:
        console.print(f"[red]✗ {e}[/red]")
        sys.exit(1)

    for err in errors:
        console.print(f"  [red]✗[/red] [dim]{err}[/dim]")
    imported = store.import_questions(questions) if questions else []
    console.print(f"[green]✓[/green] Imported {len(imported)} question(s) into [bold]{store.questions_file}[/bold]")
    if errors and not imported:
        sys.exit(1)


if __name__ == "__main__":
    app()
