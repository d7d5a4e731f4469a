"""
api/quiz.py — Quiz host routes and the chat-bot entry point.

All quiz routes live under /api/quiz and answer {"success": true, ...}.
Viewer chat commands arrive on /api/quiz-bot/chat from whatever bridges the
stream chat (Streamer.bot, a Twitch bot...).
"""

from __future__ import annotations

import logging
from typing import Any, Literal, Optional

from fastapi import APIRouter, Body, HTTPException
from pydantic import BaseModel, Field

from obs_live_suite.quiz import import_csv
from obs_live_suite.quiz.manager import DEFAULT_MYSTERY_SQUARES
from .deps import auth, require_quiz

log = logging.getLogger(__name__)

router = APIRouter(prefix="/api/quiz", tags=["Quiz"], dependencies=[auth])
bot_router = APIRouter(prefix="/api/quiz-bot", tags=["Quiz"], dependencies=[auth])


class RoundStartBody(BaseModel):
    roundIndex: int = Field(0, ge=0)


class WinnersBody(BaseModel):
    playerIds: list[str] = Field(default_factory=list)
    points: Optional[int] = None
    remove: bool = False


class SelectBody(BaseModel):
    questionIndex: int = Field(ge=0)


class StepBody(BaseModel):
    delta: int = 1


class MysteryStartBody(BaseModel):
    totalSquares: int = Field(DEFAULT_MYSTERY_SQUARES, gt=0)


class MysteryStepBody(BaseModel):
    count: int = Field(1, gt=0)


class PlayerBody(BaseModel):
    playerId: str = Field(min_length=1)


class PlayerAnswerBody(BaseModel):
    playerId: str = Field(min_length=1)
    option: Optional[str] = None
    text: Optional[str] = None
    value: Optional[float] = None


class ScoreBody(BaseModel):
    target: Literal["player", "viewer"] = "player"
    id: str = Field(min_length=1)
    delta: int = 0


class TimerAddBody(BaseModel):
    delta: int = 0


class SessionIdBody(BaseModel):
    id: Optional[str] = None


class SessionMetaBody(BaseModel):
    title: Optional[str] = None


class SessionCreateBody(BaseModel):
    id: Optional[str] = None
    name: Optional[str] = None
    players: Optional[list[dict[str, Any]]] = None
    rounds: list[dict[str, Any]] = Field(default_factory=list)


class CsvBody(BaseModel):
    csv: str = Field(min_length=1)


class ChatBody(BaseModel):
    userId: Optional[str] = None
    displayName: Optional[str] = None
    message: Optional[str] = None


OK = {"success": True}


# ── Rounds & questions ────────────────────────────────────────────────

@router.post("/round/start")
async def round_start(body: Optional[RoundStartBody] = None):
    body = body or RoundStartBody()
    await require_quiz().start_round(body.roundIndex)
    return OK


@router.post("/round/end")
async def round_end():
    await require_quiz().end_round()
    return OK


@router.post("/question/show")
async def question_show():
    await require_quiz().show_current_question()
    return OK


@router.post("/question/lock")
async def question_lock():
    await require_quiz().lock_answers()
    return OK


@router.post("/question/reveal")
async def question_reveal():
    await require_quiz().reveal()
    return OK


@router.post("/question/winners")
async def question_winners(body: WinnersBody):
    await require_quiz().apply_winners(body.playerIds, points=body.points, remove=body.remove)
    return OK


@router.post("/question/next")
async def question_next():
    moved = await require_quiz().next_question()
    return {**OK, "moved": moved}


@router.post("/question/prev")
async def question_prev():
    moved = await require_quiz().prev_question()
    return {**OK, "moved": moved}


@router.post("/question/reset")
async def question_reset():
    await require_quiz().reset_question()
    return OK


@router.post("/question/select")
async def question_select(body: SelectBody):
    moved = await require_quiz().select_question(body.questionIndex)
    return {**OK, "moved": moved}


@router.post("/scorepanel/toggle")
async def scorepanel_toggle():
    visible = await require_quiz().toggle_score_panel()
    return {**OK, "visible": visible}


# ── Zoom & mystery image ──────────────────────────────────────────────

@router.post("/media/zoom/{action}")
async def zoom_control(action: str, body: Optional[StepBody] = None):
    body = body or StepBody()
    zoom = require_quiz().zoom
    match action:
        case "start":
            await zoom.start()
        case "stop":
            await zoom.stop()
        case "resume":
            await zoom.resume()
        case "step":
            await zoom.step(body.delta)
        case _:
            raise HTTPException(status_code=400, detail=f"Invalid zoom action: {action}")
    return {**OK, **zoom.state()}


@router.get("/media/mystery/state")
async def mystery_state():
    return require_quiz().mystery.state()


@router.post("/media/mystery/start")
async def mystery_start(body: Optional[MysteryStartBody] = None):
    body = body or MysteryStartBody()
    mystery = require_quiz().mystery
    await mystery.start(body.totalSquares)
    return {**OK, **mystery.state()}


@router.post("/media/mystery/stop")
async def mystery_stop():
    mystery = require_quiz().mystery
    await mystery.stop()
    return {**OK, **mystery.state()}


@router.post("/media/mystery/resume")
async def mystery_resume():
    mystery = require_quiz().mystery
    await mystery.resume()
    return {**OK, **mystery.state()}


@router.post("/media/mystery/step")
async def mystery_step(body: Optional[MysteryStepBody] = None):
    body = body or MysteryStepBody()
    mystery = require_quiz().mystery
    await mystery.step(body.count)
    return {**OK, **mystery.state()}


# ── Buzzer ────────────────────────────────────────────────────────────

@router.post("/buzzer/hit")
async def buzzer_hit(body: PlayerBody):
    result = await require_quiz().buzzer_hit(body.playerId)
    return {**OK, **result}


@router.post("/buzzer/lock")
async def buzzer_lock():
    require_quiz().buzzer_lock()
    return OK


@router.post("/buzzer/release")
async def buzzer_release():
    require_quiz().buzzer_release()
    return OK


# ── Config, state, scores, timer ──────────────────────────────────────

@router.get("/config")
async def get_config():
    session = require_quiz().store.require_session()
    return session.config.model_dump(by_alias=True)


@router.post("/config")
async def update_config(body: dict = Body(...)):
    config = require_quiz().update_config(body)
    return {**OK, "config": config.model_dump(by_alias=True)}


@router.get("/state")
async def get_state():
    return require_quiz().get_state()


@router.post("/player/answer")
async def player_answer(body: PlayerAnswerBody):
    await require_quiz().submit_player_answer(body.playerId, option=body.option, text=body.text, value=body.value)
    return OK


@router.post("/score/update")
async def score_update(body: ScoreBody):
    total = await require_quiz().update_score(body.target, body.id, body.delta)
    return {**OK, "total": total}


@router.post("/timer/{action}")
async def timer_control(action: str, body: Optional[TimerAddBody] = None):
    body = body or TimerAddBody()
    quiz = require_quiz()
    match action:
        case "add":
            await quiz.timer_add(body.delta)
        case "resume":
            await quiz.timer_resume()
        case "stop":
            await quiz.timer_stop()
        case _:
            raise HTTPException(status_code=400, detail=f"Invalid timer action: {action}")
    return {**OK, "timer": quiz.timer.state()}


# ── Sessions ──────────────────────────────────────────────────────────

@router.post("/session/save")
async def session_save(body: Optional[SessionIdBody] = None):
    body = body or SessionIdBody()
    path = require_quiz().store.save_session(body.id)
    return {**OK, "path": str(path)}


@router.post("/session/load")
async def session_load(body: SessionIdBody):
    if not body.id:
        raise HTTPException(status_code=400, detail="id is required")
    session = require_quiz().load_session(body.id)
    return {**OK, "session": session.to_wire()}


@router.post("/session/reset")
async def session_reset():
    session = require_quiz().new_session()
    return {**OK, "session": session.to_wire()}


@router.post("/session/create")
async def session_create(body: SessionCreateBody):
    session = require_quiz().create_session(
        title=body.name, players=body.players, rounds=body.rounds, session_id=body.id,
    )
    return {**OK, "session": session.to_wire()}


@router.get("/sessions")
async def list_sessions():
    return {"sessions": require_quiz().store.list_sessions()}


@router.put("/session/{session_id}")
async def session_update(session_id: str, body: SessionMetaBody):
    session = require_quiz().store.update_session_metadata(session_id, title=body.title)
    return {**OK, "session": session.to_wire()}


@router.delete("/session/{session_id}")
async def session_delete(session_id: str):
    require_quiz().store.delete_session(session_id)
    return OK


# ── Question bank ─────────────────────────────────────────────────────

def _question(q) -> dict:
    return q.model_dump(mode="json", by_alias=True, exclude_none=True)


@router.get("/questions")
async def list_questions():
    return {"questions": [_question(q) for q in require_quiz().store.list_questions()]}


@router.post("/questions")
async def create_question(body: dict = Body(...)):
    question = require_quiz().store.create_question(body)
    return {**OK, "question": _question(question)}


@router.put("/questions/{question_id}")
async def update_question(question_id: str, body: dict = Body(...)):
    question = require_quiz().store.update_question(question_id, body)
    return {**OK, "question": _question(question)}


@router.delete("/questions/{question_id}")
async def delete_question(question_id: str):
    require_quiz().store.delete_question(question_id)
    return OK


@router.post("/questions/bulk")
async def bulk_questions(body: dict = Body(...)):
    items = body.get("questions")
    if not isinstance(items, list) or not items:
        raise HTTPException(status_code=400, detail="'questions' must be a non-empty array")
    imported = require_quiz().store.import_questions(items)
    return {**OK, "imported": len(imported), "questions": [_question(q) for q in imported]}


@router.post("/questions/import-csv")
async def import_questions_csv(body: CsvBody):
    questions, errors = import_csv(body.csv)
    imported = require_quiz().store.import_questions(questions) if questions else []
    return {**OK, "imported": len(imported), "errors": errors}


# ── Chat bot ──────────────────────────────────────────────────────────

@bot_router.post("/chat")
async def chat(body: ChatBody):
    if not body.userId or not body.message:
        raise HTTPException(status_code=400, detail="userId and message required")
    return await require_quiz().handle_chat_message(body.userId, body.displayName or body.userId, body.message)
