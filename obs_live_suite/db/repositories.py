"""Repository classes encapsulating database operations.

One repository per table. Repositories return SQLModel objects and commit
on every write; callers never touch the session directly.
"""

from typing import Any, Generic, Optional, TypeVar

from sqlmodel import Session, SQLModel, col, select

from . import models, schemas

T = TypeVar("T", bound=SQLModel)


class NotFoundError(LookupError):
    """Raised when an operation targets a row that does not exist."""


class BaseRepository(Generic[T]):
    model: type[T]

    def __init__(self, session: Session):
        self.session = session

    def _ordering(self) -> tuple:
        return ()

    def create(self, obj: T) -> T:
        self.session.add(obj)
        self.session.commit()
        self.session.refresh(obj)
        return obj

    def get(self, obj_id: str) -> Optional[T]:
        return self.session.get(self.model, obj_id)

    def require(self, obj_id: str) -> T:
        obj = self.get(obj_id)
        if obj is None:
            raise NotFoundError(f"{self.model.__name__} {obj_id} not found")
        return obj

    def list_all(self) -> list[T]:
        stmt = select(self.model).order_by(*self._ordering())
        return list(self.session.exec(stmt).all())

    def update(self, obj_id: str, patch: dict[str, Any]) -> Optional[T]:
        """Apply a partial update; returns None if the row is missing."""
        obj = self.get(obj_id)
        if obj is None:
            return None
        for key, value in patch.items():
            setattr(obj, key, value)
        obj.updated_at = models.utcnow()
        self.session.add(obj)
        self.session.commit()
        self.session.refresh(obj)
        return obj

    def delete(self, obj_id: str) -> bool:
        obj = self.get(obj_id)
        if obj is None:
            return False
        self.session.delete(obj)
        self.session.commit()
        return True


class GuestRepository(BaseRepository[models.Guest]):
    model = models.Guest

    def _ordering(self) -> tuple:
        return (col(models.Guest.display_name),)

    def list_enabled(self) -> list[models.Guest]:
        return [g for g in self.list_all() if g.is_enabled]


class PosterRepository(BaseRepository[models.Poster]):
    model = models.Poster

    def _ordering(self) -> tuple:
        return (col(models.Poster.created_at).desc(),)

    def list_enabled(self) -> list[models.Poster]:
        return [p for p in self.list_all() if p.is_enabled]

    def list_by_profile(self, profile_id: str) -> list[models.Poster]:
        return [p for p in self.list_all() if profile_id in (p.profile_ids or [])]


class ThemeRepository(BaseRepository[models.Theme]):
    model = models.Theme

    def _ordering(self) -> tuple:
        return (col(models.Theme.name),)


class ProfileRepository(BaseRepository[models.Profile]):
    model = models.Profile

    def _ordering(self) -> tuple:
        return (col(models.Profile.is_active).desc(), col(models.Profile.name))

    def create(self, obj: models.Profile) -> models.Profile:
        if not obj.is_active:
            return super().create(obj)
        obj.is_active = False
        super().create(obj)
        return self.set_active(obj.id)

    def get_active(self) -> Optional[models.Profile]:
        stmt = select(models.Profile).where(models.Profile.is_active == True)  # noqa: E712
        return self.session.exec(stmt).first()

    def set_active(self, profile_id: str) -> models.Profile:
        """Activate one profile and deactivate every other."""
        target = self.require(profile_id)
        stmt = select(models.Profile).where(models.Profile.is_active == True)  # noqa: E712
        for profile in self.session.exec(stmt).all():
            if profile.id != profile_id:
                profile.is_active = False
                self.session.add(profile)
        target.is_active = True
        target.updated_at = models.utcnow()
        self.session.add(target)
        self.session.commit()
        self.session.refresh(target)
        return target

    def add_poster_to_rotation(self, profile_id: str, poster_id: str, duration: int) -> models.Profile:
        profile = self.require(profile_id)
        rotation = list(profile.poster_rotation or [])
        max_order = max([0] + [r.get("order", 0) for r in rotation])
        rotation.append({"poster_id": poster_id, "duration": duration, "order": max_order + 1})
        return self.update(profile_id, {"poster_rotation": rotation})

    def remove_poster_from_rotation(self, profile_id: str, poster_id: str) -> models.Profile:
        profile = self.require(profile_id)
        rotation = [r for r in (profile.poster_rotation or []) if r.get("poster_id") != poster_id]
        return self.update(profile_id, {"poster_rotation": rotation})


class TextPresetRepository(BaseRepository[models.TextPreset]):
    model = models.TextPreset

    def _ordering(self) -> tuple:
        return (col(models.TextPreset.name),)


class MacroRepository(BaseRepository[models.Macro]):
    model = models.Macro

    def _ordering(self) -> tuple:
        return (col(models.Macro.name),)


class PresetRepository(BaseRepository[models.Preset]):
    model = models.Preset

    def _ordering(self) -> tuple:
        return (col(models.Preset.name),)

    def update(self, obj_id: str, patch: dict[str, Any]) -> Optional[models.Preset]:
        """A new payload is checked against the stored preset type."""
        if "payload" in patch:
            preset = self.get(obj_id)
            if preset is None:
                return None
            patch = {**patch, "payload": schemas.validate_preset_payload(preset.type, patch["payload"])}
        return super().update(obj_id, patch)

    def list_by_type(self, preset_type: Optional[str] = None) -> list[models.Preset]:
        presets = self.list_all()
        if preset_type:
            presets = [p for p in presets if p.type == preset_type]
        return presets
