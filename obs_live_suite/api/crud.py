"""
api/crud.py — REST CRUD over the SQLModel tables.

Every resource gets the same five routes:

  GET    /api/<resource>         list
  POST   /api/<resource>         create (201)
  GET    /api/<resource>/{id}    read
  PATCH  /api/<resource>/{id}    partial update
  DELETE /api/<resource>/{id}    delete

Profiles add activation and poster-rotation routes on top.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query
from sqlmodel import Session

from obs_live_suite.db import get_session
from obs_live_suite.db import models, schemas
from obs_live_suite.db.repositories import (
    BaseRepository,
    GuestRepository,
    MacroRepository,
    PosterRepository,
    PresetRepository,
    ProfileRepository,
    TextPresetRepository,
    ThemeRepository,
)
from .deps import auth

log = logging.getLogger(__name__)

router = APIRouter(prefix="/api", dependencies=[auth])


# Column names that differ from the REST field name.
_OUTPUT_NAMES: dict[type, dict[str, str]] = {
    models.Poster: {"meta": "metadata"},
}


def _dump(obj: Any) -> dict:
    data = obj.model_dump(mode="json")
    for field, name in _OUTPUT_NAMES.get(type(obj), {}).items():
        data[name] = data.pop(field)
    return data


def _register(
    resource: str,
    tag: str,
    repo_cls: type[BaseRepository],
    model: type,
    create_schema: type,
    update_schema: type,
    with_list: bool = True,
) -> None:
    """Attach the CRUD routes for one table to the router."""

    if with_list:
        @router.get(f"/{resource}", tags=[tag], name=f"list_{resource}")
        def list_items(session: Session = Depends(get_session)):
            return [_dump(o) for o in repo_cls(session).list_all()]

    @router.post(f"/{resource}", tags=[tag], status_code=201, name=f"create_{resource}")
    def create_item(body: dict = Body(...), session: Session = Depends(get_session)):
        data = create_schema.model_validate(body).model_dump()
        obj = repo_cls(session).create(model(**data))
        log.info(f"Created {model.__name__} {obj.id}")
        return _dump(obj)

    @router.get(f"/{resource}/{{item_id}}", tags=[tag], name=f"get_{resource}")
    def get_item(item_id: str, session: Session = Depends(get_session)):
        return _dump(repo_cls(session).require(item_id))

    @router.patch(f"/{resource}/{{item_id}}", tags=[tag], name=f"update_{resource}")
    def update_item(item_id: str, body: dict = Body(...), session: Session = Depends(get_session)):
        patch = update_schema.model_validate(body).model_dump(exclude_unset=True)
        obj = repo_cls(session).update(item_id, patch)
        if obj is None:
            raise HTTPException(status_code=404, detail=f"{model.__name__} {item_id} not found")
        return _dump(obj)

    @router.delete(f"/{resource}/{{item_id}}", tags=[tag], name=f"delete_{resource}")
    def delete_item(item_id: str, session: Session = Depends(get_session)):
        if not repo_cls(session).delete(item_id):
            raise HTTPException(status_code=404, detail=f"{model.__name__} {item_id} not found")
        log.info(f"Deleted {model.__name__} {item_id}")
        return {"status": "deleted", "id": item_id}


# Static profile routes go first so /profiles/active is not read as an id.

@router.get("/profiles/active", tags=["Profiles"])
def active_profile(session: Session = Depends(get_session)):
    profile = ProfileRepository(session).get_active()
    if profile is None:
        raise HTTPException(status_code=404, detail="No active profile")
    return _dump(profile)


@router.post("/profiles/{profile_id}/activate", tags=["Profiles"])
def activate_profile(profile_id: str, session: Session = Depends(get_session)):
    profile = ProfileRepository(session).set_active(profile_id)
    log.info(f"Profile '{profile.name}' activated")
    return _dump(profile)


@router.post("/profiles/{profile_id}/rotation", tags=["Profiles"])
def add_to_rotation(profile_id: str, body: dict = Body(...), session: Session = Depends(get_session)):
    # accepts posterId or poster_id
    if "posterId" in body and "poster_id" not in body:
        body = {**body, "poster_id": body["posterId"]}
    entry = schemas.RotationAdd.model_validate(body)
    PosterRepository(session).require(entry.poster_id)
    profile = ProfileRepository(session).add_poster_to_rotation(profile_id, entry.poster_id, entry.duration)
    return _dump(profile)


@router.delete("/profiles/{profile_id}/rotation/{poster_id}", tags=["Profiles"])
def remove_from_rotation(profile_id: str, poster_id: str, session: Session = Depends(get_session)):
    return _dump(ProfileRepository(session).remove_poster_from_rotation(profile_id, poster_id))


@router.get("/presets", tags=["Presets"], name="list_presets")
def list_presets(type: Optional[str] = Query(None), session: Session = Depends(get_session)):
    return [_dump(p) for p in PresetRepository(session).list_by_type(type)]


_register("guests", "Guests", GuestRepository, models.Guest, schemas.GuestCreate, schemas.GuestUpdate)
_register("posters", "Posters", PosterRepository, models.Poster, schemas.PosterCreate, schemas.PosterUpdate)
_register("profiles", "Profiles", ProfileRepository, models.Profile, schemas.ProfileCreate, schemas.ProfileUpdate)
_register("themes", "Themes", ThemeRepository, models.Theme, schemas.ThemeCreate, schemas.ThemeUpdate)
_register("text-presets", "Text presets", TextPresetRepository, models.TextPreset, schemas.TextPresetCreate, schemas.TextPresetUpdate)
_register("macros", "Macros", MacroRepository, models.Macro, schemas.MacroCreate, schemas.MacroUpdate)
_register("presets", "Presets", PresetRepository, models.Preset, schemas.PresetCreate, schemas.PresetUpdate, with_list=False)
