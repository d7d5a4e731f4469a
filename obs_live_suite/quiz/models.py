"""
quiz/models.py — Quiz questions, rounds, players and sessions.

Session and player fields travel camelCase (currentRoundIndex, displayName);
question and config fields keep their snake_case names (time_s, closest_k)
apart from `topN`.
"""

from __future__ import annotations

import uuid
from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

QuestionType = Literal["qcm", "image", "closest", "open"]
QuizMode = Literal[
    "qcm",
    "image",
    "closest",
    "open",
    "image_simple",
    "image_qcm",
    "image_zoombuzz",
    "mystery_image",
]
QuizPhase = Literal["idle", "show_question", "accept_answers", "lock", "reveal", "score_update", "interstitial"]

PHASES: tuple[str, ...] = ("idle", "show_question", "accept_answers", "lock", "reveal", "score_update", "interstitial")
OPTION_LETTERS = ("A", "B", "C", "D")
DEFAULT_QUESTION_SECONDS = 20


def new_id() -> str:
    return str(uuid.uuid4())


class QuizError(Exception):
    """A quiz operation failed. `operation` names the manager call."""

    def __init__(self, message: str, operation: str = ""):
        super().__init__(message)
        self.operation = operation


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ── Question ──────────────────────────────────────────────────────────

class ZoomConfig(CamelModel):
    duration: float = Field(45, gt=0)
    max_zoom: float = Field(35, gt=0)
    fps: int = Field(30, gt=0)


class BuzzConfig(CamelModel):
    lock_ms: int = Field(300, gt=0)
    steal: bool = False
    steal_window_ms: int = Field(4000, gt=0)


class ClosestRange(BaseModel):
    min: float
    max: float


class Question(BaseModel):
    id: str = Field(default_factory=new_id)
    type: QuestionType = "qcm"
    mode: Optional[QuizMode] = None
    text: str = Field(min_length=1)
    media: Optional[str] = None
    options: Optional[list[str]] = Field(None, max_length=4)
    correct: Optional[Union[int, float, str, ClosestRange]] = None
    points: int = 1
    tie_break: bool = False
    time_s: int = Field(DEFAULT_QUESTION_SECONDS, gt=0)
    notes: Optional[str] = None
    explanation: Optional[str] = None
    guest_target: Optional[Literal["single", "all", "none"]] = None
    zoom: Optional[ZoomConfig] = None
    buzz: Optional[BuzzConfig] = None


# ── Config ────────────────────────────────────────────────────────────

class TimeDefaults(BaseModel):
    qcm: int = Field(20, gt=0)
    image: int = Field(20, gt=0)
    closest: int = Field(20, gt=0)
    open: int = Field(30, gt=0)


class ViewerOptions(BaseModel):
    allow_answers_in_zoombuzz: bool = False


class QuizConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    closest_k: float = 1
    time_defaults: TimeDefaults = Field(default_factory=TimeDefaults)
    viewers_weight: float = 1
    players_weight: float = 1
    allow_multiple_attempts: bool = False
    first_or_last_wins: Literal["first", "last"] = "last"
    top_n: int = Field(10, gt=0, alias="topN")
    viewers: ViewerOptions = Field(default_factory=ViewerOptions)


# ── Session ───────────────────────────────────────────────────────────

class Round(BaseModel):
    id: str = Field(default_factory=new_id)
    title: str
    questions: list[Question] = Field(default_factory=list)


class Player(CamelModel):
    id: str
    display_name: str
    avatar_url: Optional[str] = None
    accent_color: Optional[str] = None
    buzzer_id: Optional[str] = None


class ScoreBoard(BaseModel):
    players: dict[str, int] = Field(default_factory=dict)
    viewers: dict[str, int] = Field(default_factory=dict)


class Session(CamelModel):
    id: str = Field(default_factory=new_id)
    title: str = "Quiz Session"
    rounds: list[Round] = Field(default_factory=list)
    current_round_index: int = Field(0, ge=0)
    current_question_index: int = Field(0, ge=0)
    players: list[Player] = Field(default_factory=list)
    config: QuizConfig = Field(default_factory=QuizConfig)
    scores: ScoreBoard = Field(default_factory=ScoreBoard)
    player_answers: dict[str, str] = Field(default_factory=dict)
    score_panel_visible: bool = True

    @property
    def current_round(self) -> Optional[Round]:
        if 0 <= self.current_round_index < len(self.rounds):
            return self.rounds[self.current_round_index]
        return None

    @property
    def current_question(self) -> Optional[Question]:
        rnd = self.current_round
        if rnd is None or not 0 <= self.current_question_index < len(rnd.questions):
            return None
        return rnd.questions[self.current_question_index]

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)
