"""
api/deps.py — Manager registry, auth and error mapping shared by all route modules.

Managers are created in main.build_and_run() (or a test fixture) and handed to
the API through set_managers(). Routes reach them via the require_*() helpers,
which answer 503 while a manager is missing.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from obs_live_suite.config import get_settings
from obs_live_suite.core import OBSConnectionError, get_obs_client
from obs_live_suite.macros import MacroBusyError, MacroError
from obs_live_suite.quiz import QuizError

log = logging.getLogger(__name__)

_hub = None
_channels = None
_overlays = None
_media = None
_macros = None
_quiz = None
_rate_limiter = None


def set_managers(hub=None, channels=None, overlays=None, media=None, macros=None, quiz=None, rate_limiter=None):
    global _hub, _channels, _overlays, _media, _macros, _quiz, _rate_limiter
    _hub = hub
    _channels = channels
    _overlays = overlays
    _media = media
    _macros = macros
    _quiz = quiz
    _rate_limiter = rate_limiter


def _require(manager: Any, name: str) -> Any:
    if manager is None:
        raise HTTPException(status_code=503, detail=f"{name} not initialized")
    return manager


def require_hub():
    return _require(_hub, "WebSocket hub")


def require_overlays():
    return _require(_overlays, "Overlay manager")


def require_media():
    return _require(_media, "Media manager")


def require_macros():
    return _require(_macros, "Macro engine")


def require_quiz():
    return _require(_quiz, "Quiz manager")


def current_hub():
    return _hub


def obs_or_none():
    try:
        return get_obs_client()
    except RuntimeError:
        return None


def require_obs():
    client = obs_or_none()
    if client is None:
        raise HTTPException(status_code=503, detail="OBS client not initialized")
    return client


# ── Auth ──────────────────────────────────────────────────────────────

async def verify_api_key(authorization: Optional[str] = Header(None)):
    api_key = get_settings().api.api_key
    if api_key:
        if not authorization or not authorization.startswith("Bearer "):
            raise HTTPException(status_code=401, detail="Missing Bearer token")
        token = authorization.removeprefix("Bearer ").strip()
        if token != api_key:
            raise HTTPException(status_code=403, detail="Invalid API key")


auth = Depends(verify_api_key)


# ── Error mapping ─────────────────────────────────────────────────────

def _error(status: int, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=status, content={"detail": str(exc)})


def register_error_handlers(app: FastAPI) -> None:
    """
    RequestValidationError          → 400
    ValueError (pydantic included)  → 400
    LookupError / KeyError          → 404
    MacroBusyError                  → 409
    QuizError                       → 400
    OBSConnectionError              → 503
    """

    @app.exception_handler(RequestValidationError)
    async def invalid_request(_request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})

    @app.exception_handler(ValueError)
    async def value_error(_request: Request, exc: ValueError):
        return _error(400, exc)

    @app.exception_handler(LookupError)
    async def not_found(_request: Request, exc: LookupError):
        message = exc.args[0] if exc.args else "Not found"
        return JSONResponse(status_code=404, content={"detail": str(message)})

    @app.exception_handler(MacroBusyError)
    async def macro_busy(_request: Request, exc: MacroBusyError):
        return _error(409, exc)

    @app.exception_handler(MacroError)
    async def macro_failed(_request: Request, exc: MacroError):
        log.error(f"Macro failed: {exc}")
        return _error(500, exc)

    @app.exception_handler(QuizError)
    async def quiz_error(_request: Request, exc: QuizError):
        return _error(400, exc)

    @app.exception_handler(OBSConnectionError)
    async def obs_unavailable(_request: Request, exc: OBSConnectionError):
        return _error(503, exc)
