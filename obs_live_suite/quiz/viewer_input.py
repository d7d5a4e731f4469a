"""
quiz/viewer_input.py — Chat viewer answers with per-user and global limits.

Limits:
  per_user_cooldown_ms   minimum gap between two answers from one user
  per_user_max_attempts  answers a user may send per question
  global_rps             answers accepted across all users per 1 s window
"""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from typing import Any, Literal, Optional

from .models import OPTION_LETTERS

log = logging.getLogger(__name__)


@dataclass
class _Attempt:
    last_at: Optional[float] = None
    attempts: int = 0
    value: Any = None


class ViewerInputService:
    def __init__(
        self,
        per_user_cooldown_ms: int = 1500,
        per_user_max_attempts: int = 5,
        global_rps: int = 50,
        first_or_last_wins: Literal["first", "last"] = "last",
    ):
        self.per_user_cooldown_ms = per_user_cooldown_ms
        self.per_user_max_attempts = per_user_max_attempts
        self.global_rps = global_rps
        self.first_or_last_wins = first_or_last_wins
        self._users: dict[str, _Attempt] = {}
        self._window_start: Optional[float] = None
        self._window_count = 0

    def _within_rps(self, now: float) -> bool:
        if self._window_start is None or now - self._window_start >= 1000:
            self._window_start = now
            self._window_count = 0
        if self._window_count >= self.global_rps:
            return False
        self._window_count += 1
        return True

    def try_record(self, user_id: str, value: Any, now_ms: Optional[float] = None) -> bool:
        now = time.monotonic() * 1000 if now_ms is None else now_ms
        if not self._within_rps(now):
            log.debug("Viewer input dropped: global rate reached")
            return False

        state = self._users.setdefault(user_id, _Attempt())
        if state.last_at is not None and now - state.last_at < self.per_user_cooldown_ms:
            return False
        if state.attempts >= self.per_user_max_attempts:
            return False

        state.last_at = now
        state.attempts += 1
        if self.first_or_last_wins == "first" and state.value is not None:
            return True
        state.value = value
        return True

    def get_value(self, user_id: str) -> Any:
        state = self._users.get(user_id)
        return state.value if state else None

    def qcm_counts(self) -> dict[str, int]:
        counts = {letter: 0 for letter in OPTION_LETTERS}
        for state in self._users.values():
            if isinstance(state.value, str):
                letter = state.value.upper()
                if letter in counts:
                    counts[letter] += 1
        return counts

    def qcm_percentages(self) -> dict[str, int]:
        counts = self.qcm_counts()
        total = sum(counts.values()) or 1
        return {letter: round(c * 100 / total) for letter, c in counts.items()}

    def closest_values(self) -> list[float]:
        return [
            s.value for s in self._users.values()
            if isinstance(s.value, (int, float)) and not isinstance(s.value, bool) and math.isfinite(s.value)
        ]

    def reset(self) -> None:
        self._users.clear()
        self._window_start = None
        self._window_count = 0
