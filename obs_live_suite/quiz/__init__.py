"""quiz — Quiz engine: sessions, question bank, timers, buzzer and viewer chat."""
from .buzzer import BuzzerService
from .csv_import import csv_to_questions, import_csv, parse_csv, validate_question
from .manager import QuizManager
from .models import Player, Question, QuizConfig, QuizError, Round, Session
from .mystery import MysteryImageController
from .scoring import ScoringService
from .store import QuizStore
from .timer import QuizTimer
from .viewer_input import ViewerInputService
from .zoom import ZoomController

__all__ = [
    "BuzzerService",
    "csv_to_questions",
    "import_csv",
    "parse_csv",
    "validate_question",
    "QuizManager",
    "Player",
    "Question",
    "QuizConfig",
    "QuizError",
    "Round",
    "Session",
    "MysteryImageController",
    "ScoringService",
    "QuizStore",
    "QuizTimer",
    "ViewerInputService",
    "ZoomController",
]
