"""
quiz/store.py — Active quiz session, saved sessions and the question bank.

Layout on disk:
  <sessions_dir>/<session id>.json   one file per saved session
  <questions_file>                   {"questions": [...]}
"""

from __future__ import annotations

import json
import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Optional

from pydantic import ValidationError

from obs_live_suite.db.repositories import NotFoundError
from .models import Player, Question, QuizConfig, Session, new_id

log = logging.getLogger(__name__)

MAX_PLAYERS = 4
SESSION_ID_RE = re.compile(r"^[A-Za-z0-9_-]+$")


def validate_session_id(session_id: str) -> str:
    """Session ids become file names, so only letters, digits, dash and underscore pass."""
    if not isinstance(session_id, str) or not SESSION_ID_RE.match(session_id):
        raise ValueError(f"Invalid session id: {session_id!r}")
    return session_id


def _field(obj: Any, name: str, default: Any = None) -> Any:
    if isinstance(obj, dict):
        return obj.get(name, default)
    return getattr(obj, name, default)


class QuizStore:
    def __init__(self, sessions_dir: Path, questions_file: Path):
        self.sessions_dir = Path(sessions_dir)
        self.questions_file = Path(questions_file)
        self._session: Optional[Session] = None
        self._questions: dict[str, Question] = {}
        self.load_questions()

    # ── Active session ────────────────────────────────────────────────

    def get_session(self) -> Optional[Session]:
        return self._session

    def require_session(self) -> Session:
        if self._session is None:
            raise LookupError("No active quiz session")
        return self._session

    def set_session(self, session: Session | dict) -> Session:
        if isinstance(session, dict):
            session = Session.model_validate(session)
        self._session = session
        return session

    def create_default_session(self, guests: Iterable[Any] = (), config: Optional[dict] = None) -> Session:
        """New empty session whose players are the first four guests."""
        players = [
            Player(
                id=str(_field(g, "id")),
                display_name=_field(g, "display_name") or _field(g, "displayName") or "Player",
                avatar_url=_field(g, "avatar_url"),
                accent_color=_field(g, "accent_color"),
            )
            for g in list(guests)[:MAX_PLAYERS]
        ]
        session = Session(
            id=new_id(),
            players=players,
            config=QuizConfig.model_validate(config or {}),
        )
        self._session = session
        log.info(f"Created quiz session {session.id} with {len(players)} player(s)")
        return session

    # ── Scores ────────────────────────────────────────────────────────

    def add_score_player(self, player_id: str, delta: int) -> int:
        scores = self.require_session().scores.players
        scores[player_id] = scores.get(player_id, 0) + int(delta)
        return scores[player_id]

    def add_score_viewer(self, user_id: str, delta: int) -> int:
        scores = self.require_session().scores.viewers
        scores[user_id] = scores.get(user_id, 0) + int(delta)
        return scores[user_id]

    def leaderboard(self, top_n: int = 10, viewers: bool = False) -> list[dict]:
        session = self.require_session()
        if viewers:
            entries = [{"id": uid, "name": uid, "score": s} for uid, s in session.scores.viewers.items()]
        else:
            names = {p.id: p.display_name for p in session.players}
            entries = [{"id": pid, "name": names.get(pid, pid), "score": s} for pid, s in session.scores.players.items()]
        entries.sort(key=lambda e: e["score"], reverse=True)
        return entries[:top_n]

    # ── Session files ─────────────────────────────────────────────────

    def _session_path(self, session_id: str) -> Path:
        return self.sessions_dir / f"{validate_session_id(session_id)}.json"

    def save_session(self, session_id: Optional[str] = None) -> Path:
        session = self.require_session()
        self.sessions_dir.mkdir(parents=True, exist_ok=True)
        path = self._session_path(session_id or session.id)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(session.to_wire(), f, indent=2)
        log.info(f"Saved quiz session → {path}")
        return path

    def load_session(self, session_id: str) -> Session:
        path = self._session_path(session_id)
        if not path.exists():
            raise NotFoundError(f"Session {session_id} not found")
        with open(path, encoding="utf-8") as f:
            session = Session.model_validate(json.load(f))
        self._session = session
        log.info(f"Loaded quiz session {session.id} ({session.title})")
        return session

    def list_sessions(self) -> list[dict]:
        if not self.sessions_dir.exists():
            return []
        sessions = []
        for path in self.sessions_dir.glob("*.json"):
            try:
                with open(path, encoding="utf-8") as f:
                    data = json.load(f)
            except (OSError, json.JSONDecodeError) as e:
                log.warning(f"Skipping unreadable session file {path.name}: {e}")
                continue
            mtime = path.stat().st_mtime
            sessions.append({
                "id": data.get("id") or path.stem,
                "title": data.get("title") or "Untitled",
                "rounds": len(data.get("rounds") or []),
                "createdAt": datetime.fromtimestamp(mtime, tz=timezone.utc).isoformat(),
                "path": str(path),
                "_mtime": mtime,
            })
        sessions.sort(key=lambda s: s["_mtime"], reverse=True)
        for s in sessions:
            del s["_mtime"]
        return sessions

    def delete_session(self, session_id: str) -> None:
        path = self._session_path(session_id)
        if not path.exists():
            raise NotFoundError(f"Session {session_id} not found")
        path.unlink()
        log.info(f"Deleted quiz session {session_id}")

    def update_session_metadata(self, session_id: str, title: Optional[str] = None) -> Session:
        path = self._session_path(session_id)
        if not path.exists():
            raise NotFoundError(f"Session {session_id} not found")
        with open(path, encoding="utf-8") as f:
            session = Session.model_validate(json.load(f))
        if title is not None:
            session.title = title
        with open(path, "w", encoding="utf-8") as f:
            json.dump(session.to_wire(), f, indent=2)
        if self._session is not None and self._session.id == session_id:
            self._session = session
        return session

    # ── Question bank ─────────────────────────────────────────────────

    def load_questions(self) -> int:
        self._questions.clear()
        if not self.questions_file.exists():
            return 0
        try:
            with open(self.questions_file, encoding="utf-8") as f:
                data = json.load(f)
            for raw in data.get("questions", []):
                q = Question.model_validate(raw)
                self._questions[q.id] = q
        except (OSError, json.JSONDecodeError, AttributeError, ValidationError) as e:
            log.warning(f"Question bank at {self.questions_file} is unreadable, starting empty: {e}")
            self._questions.clear()
        return len(self._questions)

    def save_questions(self) -> None:
        self.questions_file.parent.mkdir(parents=True, exist_ok=True)
        data = {"questions": [q.model_dump(mode="json", by_alias=True, exclude_none=True) for q in self._questions.values()]}
        with open(self.questions_file, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)

    def list_questions(self) -> list[Question]:
        return list(self._questions.values())

    def get_question(self, question_id: str) -> Optional[Question]:
        return self._questions.get(question_id)

    def create_question(self, data: dict) -> Question:
        q = Question.model_validate({**data, "id": new_id()})
        self._questions[q.id] = q
        self.save_questions()
        return q

    def update_question(self, question_id: str, patch: dict) -> Question:
        existing = self._questions.get(question_id)
        if existing is None:
            raise NotFoundError(f"Question {question_id} not found")
        merged = {**existing.model_dump(by_alias=True), **patch, "id": question_id}
        q = Question.model_validate(merged)
        self._questions[question_id] = q
        self.save_questions()
        return q

    def delete_question(self, question_id: str) -> None:
        if self._questions.pop(question_id, None) is None:
            raise NotFoundError(f"Question {question_id} not found")
        self.save_questions()

    def import_questions(self, items: list[dict]) -> list[Question]:
        """Validate everything first so a bad row imports nothing."""
        for pos, item in enumerate(items):
            if not isinstance(item, dict):
                raise ValueError(f"Question {pos} must be an object, got {type(item).__name__}")
        questions = [Question.model_validate({**item, "id": item.get("id") or new_id()}) for item in items]
        for q in questions:
            self._questions[q.id] = q
        self.save_questions()
        log.info(f"Imported {len(questions)} question(s)")
        return questions
