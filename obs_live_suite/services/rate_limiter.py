"""
services/rate_limiter.py — Per-key token bucket.

A bucket starts full; every allowed request takes one token. Tokens refill in
whole units proportional to elapsed time (limit tokens per window), capped at
the limit. Buckets idle for longer than an hour are dropped by cleanup().
"""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from typing import Optional

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimit:
    limit: int
    window_s: float


GENERAL = RateLimit(30, 60)
WIKIPEDIA = RateLimit(10, 60)
OLLAMA = RateLimit(5, 60)
CHAT = RateLimit(20, 10)


@dataclass
class _Bucket:
    tokens: float
    last_refill: float
    last_seen: float


class RateLimiter:
    """Token buckets keyed by caller. Every `cleanup_every` checks, idle buckets are dropped."""

    def __init__(self, cleanup_every: int = 1000, max_idle: float = 3600.0):
        self._buckets: dict[str, _Bucket] = {}
        self._cleanup_every = cleanup_every
        self._max_idle = max_idle
        self._checks = 0

    def check_limit(self, key: str, limit: int, window_s: float, now: Optional[float] = None) -> bool:
        """Consume a token for `key`. Returns False when the bucket is empty."""
        now = time.monotonic() if now is None else now
        self._checks += 1
        if self._cleanup_every and self._checks % self._cleanup_every == 0:
            self.cleanup(self._max_idle, now)

        bucket = self._buckets.get(key)
        if bucket is None:
            self._buckets[key] = _Bucket(tokens=limit - 1, last_refill=now, last_seen=now)
            return True
        bucket.last_seen = now

        elapsed = now - bucket.last_refill
        refill = math.floor(elapsed / window_s * limit)
        if refill > 0:
            bucket.tokens = min(limit, bucket.tokens + refill)
            bucket.last_refill = now

        if bucket.tokens > 0:
            bucket.tokens -= 1
            return True
        log.debug(f"Rate limit hit for {key}")
        return False

    def check(self, key: str, preset: RateLimit, now: Optional[float] = None) -> bool:
        return self.check_limit(key, preset.limit, preset.window_s, now)

    def get_remaining(self, key: str, limit: int) -> int:
        bucket = self._buckets.get(key)
        return limit if bucket is None else int(bucket.tokens)

    def reset(self, key: Optional[str] = None) -> None:
        if key is None:
            self._buckets.clear()
        else:
            self._buckets.pop(key, None)

    def cleanup(self, max_idle: float = 3600.0, now: Optional[float] = None) -> int:
        """Drop buckets untouched for max_idle seconds. Returns how many were removed."""
        now = time.monotonic() if now is None else now
        stale = [k for k, b in self._buckets.items() if now - b.last_seen > max_idle]
        if stale:
            log.debug(f"Dropping {len(stale)} idle rate limit bucket(s)")
        for key in stale:
            del self._buckets[key]
        return len(stale)

    @property
    def tracked_keys(self) -> int:
        return len(self._buckets)
