"""
quiz/manager.py — Quiz flow: phases, navigation, buzzer and viewer chat.

Phase cycle for one question:

  idle → show_question → accept_answers → lock → reveal → score_update

Every transition is published on the `quiz` channel so the overlay, the host
panel and any other subscriber stay in sync. Timer, zoom and mystery
controllers publish through the same channel.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Callable, Iterable, Optional

from pydantic import ValidationError

from obs_live_suite.hub import ChannelManager
from obs_live_suite.services import CHAT, RateLimiter
from .buzzer import BuzzerService
from .models import (
    DEFAULT_QUESTION_SECONDS,
    OPTION_LETTERS,
    Player,
    Question,
    QuizConfig,
    QuizError,
    Round,
    Session,
    ZoomConfig,
)
from .mystery import MysteryImageController
from .scoring import ScoringService
from .store import QuizStore, validate_session_id
from .timer import QuizTimer
from .viewer_input import ViewerInputService
from .zoom import ZoomController

log = logging.getLogger(__name__)

DEFAULT_MYSTERY_SQUARES = 100
OPEN_ANSWER_MAX_LENGTH = 200

_VOTE_RE = re.compile(r"^!([a-d])$", re.IGNORECASE)
_NUMBER_RE = re.compile(r"^!n\s+(-?\d+)$", re.IGNORECASE)
_OPEN_RE = re.compile(r"^!rep\s+(.+)$", re.IGNORECASE)


def _editor_player(raw: Any) -> Player:
    """Editor payloads use name/avatar; the wire model uses displayName/avatarUrl."""
    if not isinstance(raw, dict):
        raise ValueError(f"Player entry must be an object, got {type(raw).__name__}")
    return Player.model_validate({
        "id": raw.get("id"),
        "displayName": raw.get("name") or raw.get("displayName") or "",
        "avatarUrl": raw.get("avatar") or raw.get("avatarUrl"),
        "accentColor": raw.get("accentColor"),
        "buzzerId": raw.get("buzzerId"),
    })


def _empty_votes() -> dict:
    zeros = {letter: 0 for letter in OPTION_LETTERS}
    return {"counts": dict(zeros), "percentages": dict(zeros)}


class QuizManager:
    """
    Usage:
        manager = QuizManager(channels, QuizStore(sessions_dir, questions_file))
        await manager.show_current_question()
        await manager.reveal()
    """

    def __init__(
        self,
        channels: ChannelManager,
        store: QuizStore,
        guests_provider: Optional[Callable[[], Iterable[Any]]] = None,
        rate_limiter: Optional[RateLimiter] = None,
        timer_tick: float = 0.5,
    ):
        self._channels = channels
        self.store = store
        self._guests_provider = guests_provider
        self._rate_limiter = rate_limiter or RateLimiter()
        self.phase = "idle"

        self.timer = QuizTimer(self._publish, tick_interval=timer_tick)
        self.zoom = ZoomController(self._publish)
        self.mystery = MysteryImageController(self._publish)
        self.buzzer = BuzzerService()
        self.scoring = ScoringService()
        self.viewers = ViewerInputService()

        if store.get_session() is None:
            self.new_session()

    async def _publish(self, event_type: str, payload: Optional[dict] = None) -> dict:
        return await self._channels.publish_quiz(event_type, payload)

    # ── Session helpers ───────────────────────────────────────────────

    def _guests(self) -> list:
        return list(self._guests_provider()) if self._guests_provider else []

    def new_session(self) -> Session:
        session = self.store.create_default_session(self._guests())
        self._apply_session_config(session)
        return session

    def _apply_session_config(self, session: Session) -> None:
        self.scoring.k = session.config.closest_k
        self.viewers.first_or_last_wins = session.config.first_or_last_wins

    def load_session(self, session_id: str) -> Session:
        session = self.store.load_session(session_id)
        self._apply_session_config(session)
        self.phase = "idle"
        return session

    def create_session(
        self,
        title: Optional[str] = None,
        players: Optional[list[dict]] = None,
        rounds: Optional[list[dict]] = None,
        session_id: Optional[str] = None,
    ) -> Session:
        """Build a session from the editor payload. Players start at 0 points."""
        session = self.store.create_default_session(self._guests())
        if session_id:
            session.id = validate_session_id(session_id)
        session.title = title or "Quiz Session"
        session.rounds = [Round.model_validate(r) for r in rounds or []]
        if players is not None:
            session.players = [_editor_player(p) for p in players]
            session.scores.players = {p.id: 0 for p in session.players}
        self.store.set_session(session)
        self._apply_session_config(session)
        self.phase = "idle"
        log.info(f"Quiz session '{session.title}' created: {len(session.rounds)} round(s), {len(session.players)} player(s)")
        return session

    def _session(self) -> Session:
        session = self.store.get_session()
        if session is None:
            session = self.new_session()
        return session

    def _current(self) -> tuple[Session, Question]:
        session = self._session()
        if session.current_round is None:
            raise QuizError("No current round", "current_question")
        question = session.current_question
        if question is None:
            raise QuizError("No current question", "current_question")
        return session, question

    def _time_for(self, session: Session, q: Question) -> int:
        if "time_s" in q.model_fields_set:
            return q.time_s
        return getattr(session.config.time_defaults, q.type, None) or DEFAULT_QUESTION_SECONDS

    async def _phase_update(self, question_id: Optional[str] = None) -> None:
        try:
            await self._publish("phase.update", {"phase": self.phase, "question_id": question_id})
        except Exception as e:
            log.error(f"Failed to publish phase update ({self.phase}): {e}")

    async def _reset_votes(self) -> None:
        self.viewers.reset()
        try:
            await self._publish("vote.update", _empty_votes())
        except Exception as e:
            log.error(f"Failed to reset viewer votes: {e}")

    async def _leaderboard(self, session: Session) -> None:
        try:
            top = self.store.leaderboard(session.config.top_n, viewers=True)
            await self._publish("leaderboard.push", {"topN": top})
        except Exception as e:
            log.error(f"Failed to publish leaderboard: {e}")

    # ── Phases ────────────────────────────────────────────────────────

    async def show_current_question(self) -> None:
        session, q = self._current()

        self.mystery.reset()
        self.zoom.reset()
        self.zoom.configure(q.zoom or ZoomConfig())
        if q.buzz:
            self.buzzer = BuzzerService(q.buzz.lock_ms, q.buzz.steal, q.buzz.steal_window_ms)
        else:
            self.buzzer.reset()
        session.player_answers = {}
        await self._reset_votes()

        try:
            self.phase = "show_question"
            await self._publish("question.show", {
                "question_id": q.id,
                "question": q.model_dump(mode="json", by_alias=True, exclude_none=True),
                "zoom_steps": self.zoom.steps,
                "zoom_maxZoom": self.zoom.max_zoom,
            })
            if q.mode == "image_zoombuzz":
                await self.zoom.start()
            elif q.mode == "mystery_image":
                await self.mystery.start(DEFAULT_MYSTERY_SQUARES)

            self.phase = "accept_answers"
            await self._phase_update(q.id)
            await self.timer.start(self._time_for(session, q), self.phase)
        except Exception as e:
            self.phase = "idle"
            log.error(f"Failed to show question {q.id}: {e}")
            raise QuizError(f"Failed to show question {q.id}", "show_current_question") from e
        log.info(f"Showing question {q.id} ({q.type}{'/' + q.mode if q.mode else ''})")

    async def lock_answers(self) -> None:
        previous = self.phase
        _, q = self._current()
        try:
            self.phase = "lock"
            await self._publish("question.lock", {"question_id": q.id})
            await self._phase_update(q.id)
            await self.timer.pause()
        except Exception as e:
            self.phase = previous
            log.error(f"Failed to lock answers: {e}")
            raise QuizError("Failed to lock answers", "lock_answers") from e
        log.info(f"Locked answers for question {q.id}")

    async def reveal(self) -> None:
        previous = self.phase
        session, q = self._current()
        correct = q.correct.model_dump() if hasattr(q.correct, "model_dump") else q.correct
        try:
            await self.timer.stop()
            if q.mode == "mystery_image":
                await self.mystery.stop()
            if q.mode == "image_zoombuzz" or (q.type == "closest" and q.media):
                await self.zoom.stop()
                await self._publish("zoom.complete", {"total": self.zoom.steps, "maxZoom": self.zoom.max_zoom})

            self.phase = "reveal"
            await self._publish("question.reveal", {"question_id": q.id, "correct": correct})
            await self._phase_update(q.id)

            await self._apply_scoring(session, q)
            await self._publish("question.revealed", {"question_id": q.id, "correct": correct, "scores_applied": True})

            self.phase = "score_update"
            await self._phase_update(q.id)
            await self._leaderboard(session)
            await self._publish("question.finished", {"question_id": q.id})

            rnd = session.current_round
            nxt = session.current_question_index + 1
            if rnd is not None and nxt < len(rnd.questions):
                await self._publish("question.next_ready", {"next_id": rnd.questions[nxt].id})
        except Exception as e:
            self.phase = previous
            log.error(f"Failed to reveal question {q.id}: {e}")
            raise QuizError(f"Failed to reveal answer for question {q.id}", "reveal") from e
        log.info(f"Revealed question {q.id} (correct={correct})")

    def _is_correct(self, q: Question, answer: str) -> bool:
        if q.type in ("qcm", "image"):
            return isinstance(q.correct, int) and answer == chr(65 + q.correct)
        if q.type == "closest" and isinstance(q.correct, (int, float)):
            try:
                return int(float(answer)) == q.correct
            except ValueError:
                return False
        # open answers are scored by hand
        return False

    async def _apply_scoring(self, session: Session, q: Question) -> None:
        for player in session.players:
            answer = session.player_answers.get(player.id)
            if not answer:
                continue
            delta = self.scoring.score_qcm(self._is_correct(q, answer), q.points or 1)
            total = self.store.add_score_player(player.id, delta)
            await self._publish("score.update", {"user_id": player.id, "delta": delta, "total": total})

    async def reset_question(self) -> None:
        session, q = self._current()
        session.player_answers = {}
        await self._reset_votes()
        await self.timer.stop()
        self.phase = "idle"
        await self._publish("question.reset", {"question_id": q.id})
        log.info(f"Reset question {q.id}")

    async def toggle_score_panel(self) -> bool:
        session = self._session()
        session.score_panel_visible = not session.score_panel_visible
        await self._publish("scorepanel.toggle", {"visible": session.score_panel_visible})
        return session.score_panel_visible

    async def submit_player_answer(
        self,
        player_id: str,
        option: Optional[str] = None,
        text: Optional[str] = None,
        value: Optional[float] = None,
    ) -> None:
        session, q = self._current()
        answer = option or text or ("" if value is None else str(value))
        session.player_answers[player_id] = answer
        await self._publish("answer.assign", {
            "question_id": q.id,
            "player_id": player_id,
            "option": option,
            "text": text,
            "value": value,
        })
        log.debug(f"Player {player_id} answered {answer!r} on {q.id}")

    async def apply_winners(self, player_ids: list[str], points: Optional[int] = None, remove: bool = False) -> None:
        """Manual scoring for closest/open questions. Unknown players are still credited."""
        session, q = self._current()
        base = points if points is not None else (q.points or 1)
        delta = -base if remove else base
        for player_id in player_ids:
            total = self.store.add_score_player(player_id, delta)
            await self._publish("score.update", {"user_id": player_id, "delta": delta, "total": total})
        await self._leaderboard(session)
        log.info(f"Applied winners {player_ids} ({delta:+})")

    async def update_score(self, target: str, user_id: str, delta: int) -> int:
        if target == "player":
            total = self.store.add_score_player(user_id, delta)
        else:
            total = self.store.add_score_viewer(user_id, delta)
        await self._publish("score.update", {"user_id": user_id, "delta": delta, "total": total})
        return total

    # ── Navigation ────────────────────────────────────────────────────

    async def start_round(self, round_index: int) -> None:
        session = self._session()
        if not 0 <= round_index < len(session.rounds):
            raise QuizError(f"Round {round_index} does not exist", "start_round")
        session.current_round_index = round_index
        session.current_question_index = 0
        rnd = session.rounds[round_index]
        await self._publish("quiz.start_round", {"round_id": rnd.id})
        log.info(f"Started round {round_index} ({rnd.title})")

    async def end_round(self) -> None:
        await self.timer.stop()
        self.phase = "interstitial"
        await self._publish("quiz.end_round", {})
        log.info("Ended current round")

    async def next_question(self) -> bool:
        session = self._session()
        rnd = session.current_round
        if rnd is None or session.current_question_index + 1 >= len(rnd.questions):
            log.warning("next_question: already at the last question")
            return False
        await self._go_to(session, rnd, session.current_question_index + 1)
        return True

    async def prev_question(self) -> bool:
        session = self._session()
        rnd = session.current_round
        if rnd is None or session.current_question_index <= 0:
            log.warning("prev_question: already at the first question")
            return False
        await self._go_to(session, rnd, session.current_question_index - 1)
        return True

    async def select_question(self, index: int) -> bool:
        session = self._session()
        rnd = session.current_round
        if rnd is None or not 0 <= index < len(rnd.questions):
            log.warning(f"select_question: no question at index {index}")
            return False
        await self._go_to(session, rnd, index)
        return True

    async def _go_to(self, session: Session, rnd: Round, index: int) -> None:
        session.current_question_index = index
        self.phase = "idle"
        await self.timer.stop()
        session.player_answers = {}
        self.viewers.reset()
        q = rnd.questions[index]
        await self._publish("question.change", {"question_id": q.id, "clear_assignments": True})
        log.info(f"Moved to question {index + 1}/{len(rnd.questions)}")

    # ── Buzzer ────────────────────────────────────────────────────────

    async def buzzer_hit(self, player_id: str) -> dict:
        result = self.buzzer.hit(player_id)
        await self._publish("buzzer.hit", {"player_id": player_id, **result})
        return result

    def buzzer_lock(self) -> None:
        self.buzzer.lock()

    def buzzer_release(self) -> None:
        self.buzzer.release()

    # ── Timer ─────────────────────────────────────────────────────────

    async def timer_add(self, delta: int) -> None:
        await self.timer.add_time(delta)

    async def timer_resume(self) -> None:
        await self.timer.resume(self.phase)

    async def timer_stop(self) -> None:
        await self.timer.stop()

    # ── Config & state ────────────────────────────────────────────────

    def update_config(self, partial: dict) -> QuizConfig:
        """Merge a partial config. Nested time_defaults and viewers merge key by key."""
        session = self._session()
        current = session.config.model_dump(by_alias=True)
        merged = {**current, **partial}
        for nested in ("time_defaults", "viewers"):
            if isinstance(partial.get(nested), dict):
                merged[nested] = {**current[nested], **partial[nested]}
        try:
            session.config = QuizConfig.model_validate(merged)
        except ValidationError as e:
            raise ValueError(f"Invalid quiz config: {e}") from e
        self._apply_session_config(session)
        return session.config

    def get_state(self) -> dict:
        session = self.store.get_session()
        return {
            "phase": self.phase,
            "session": session.to_wire() if session else None,
            "timer": self.timer.state(),
        }

    # ── Chat bot ──────────────────────────────────────────────────────

    async def handle_chat_message(self, user_id: str, display_name: str, message: str) -> dict:
        if not self._rate_limiter.check(f"chat:{user_id}", CHAT):
            return {"ignored": True, "reason": "rate_limited"}

        msg = message.strip()

        if m := _VOTE_RE.match(msg):
            ok = self.viewers.try_record(user_id, m.group(1).upper())
            if ok:
                await self._publish("vote.update", {
                    "counts": self.viewers.qcm_counts(),
                    "percentages": self.viewers.qcm_percentages(),
                })
            return {"ok": ok}

        if m := _NUMBER_RE.match(msg):
            value = int(m.group(1))
            ok = self.viewers.try_record(user_id, value)
            if ok:
                await self._publish("closest.update", {"value": value, "user_id": user_id, "display_name": display_name})
            return {"ok": ok}

        if m := _OPEN_RE.match(msg):
            text = m.group(1)[:OPEN_ANSWER_MAX_LENGTH]
            ok = self.viewers.try_record(user_id, text)
            if ok:
                await self._publish("answer.submit", {"player_id": user_id, "text": text})
            return {"ok": ok}

        return {"ignored": True}

    async def shutdown(self) -> None:
        await self.timer.stop()
        self.zoom.reset()
        self.mystery.reset()
