"""
quiz/buzzer.py — First-to-buzz arbitration for studio players.
"""

from __future__ import annotations

import logging
import time
from typing import Optional

log = logging.getLogger(__name__)


def _now_ms() -> float:
    return time.monotonic() * 1000


class BuzzerService:
    """
    hit() rules, in order:
      1. force-locked → rejected
      2. no winner yet → accepted, becomes winner
      3. within lock_ms of the previous hit → rejected (debounce)
      4. steal enabled and within steal_window_ms of the first hit → new winner
      5. otherwise rejected, winner unchanged
    """

    def __init__(self, lock_ms: int = 300, steal: bool = False, steal_window_ms: int = 4000):
        self.lock_ms = lock_ms
        self.steal = steal
        self.steal_window_ms = steal_window_ms
        self._winner: Optional[str] = None
        self._first_at: Optional[float] = None
        self._last_at: Optional[float] = None
        self._locked = False

    @property
    def locked(self) -> bool:
        return self._locked

    def hit(self, player_id: str, now_ms: Optional[float] = None) -> dict:
        now = _now_ms() if now_ms is None else now_ms

        if self._locked:
            return {"accepted": False, "winner": self._winner}

        if self._winner is None:
            self._winner = player_id
            self._first_at = now
            self._last_at = now
            log.info(f"Buzzer: {player_id} buzzed first")
            return {"accepted": True, "winner": player_id}

        if self._last_at is not None and now - self._last_at < self.lock_ms:
            return {"accepted": False, "winner": self._winner}
        self._last_at = now

        if self.steal and self._first_at is not None and now - self._first_at <= self.steal_window_ms:
            log.info(f"Buzzer: {player_id} stole from {self._winner}")
            self._winner = player_id
            return {"accepted": True, "winner": player_id}

        return {"accepted": False, "winner": self._winner}

    def lock(self) -> None:
        self._locked = True

    def release(self) -> None:
        self._locked = False

    def reset(self) -> None:
        self._winner = None
        self._first_at = None
        self._last_at = None
        self._locked = False

    def get_winner(self) -> Optional[str]:
        return self._winner
