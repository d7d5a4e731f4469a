"""
quiz/scoring.py — Point calculation per question type.
"""

from __future__ import annotations

from .models import ClosestRange, Question


class ScoringService:
    def __init__(self, closest_k: float = 1):
        self.k = closest_k

    def score_qcm(self, correct: bool, points: int) -> int:
        return points if correct else 0

    def score_open(self, assigned: float, max_points: int) -> float:
        return max(0, min(max_points, assigned))

    def score_closest(self, target: float, value: float, max_points: float) -> float:
        """Full points for an exact hit, minus k per unit of distance, floored at 0."""
        return max(0, max_points - self.k * abs(target - value))

    def is_qcm_correct(self, question: Question, option_index: int) -> bool:
        return isinstance(question.correct, int) and question.correct == option_index

    def is_closest_in_range(self, question: Question, value: float) -> bool:
        if not isinstance(question.correct, ClosestRange):
            return True
        return question.correct.min <= value <= question.correct.max
