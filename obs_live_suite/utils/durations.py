"""
utils/durations.py — Timecode and duration helpers for media items.

  parse_duration("1:30:45")      → 5445
  parse_duration("5:30")         → 330
  format_duration(330)           → "0:05:30"
  parse_iso8601_duration("PT5M") → 300   (YouTube API durations)
"""

from __future__ import annotations

import math
import re
from typing import Optional

TIMECODE_RE = re.compile(r"^(?:\d{1,2}:)?[0-5]?\d:[0-5]\d$")
_ISO_PART_RE = {unit: re.compile(rf"(\d+){unit}") for unit in ("H", "M", "S")}


def is_timecode(value: str) -> bool:
    return bool(TIMECODE_RE.match(value))


def parse_duration(value: Optional[str]) -> Optional[int]:
    """HH:MM:SS or MM:SS → seconds. Returns None on anything malformed."""
    if not value or not isinstance(value, str):
        return None
    parts = value.strip().split(":")
    if len(parts) not in (2, 3) or not all(p.strip().isdigit() for p in parts):
        return None
    numbers = [int(p) for p in parts]
    if len(numbers) == 2:
        numbers.insert(0, 0)
    hours, minutes, seconds = numbers
    if minutes > 59 or seconds > 59:
        return None
    return hours * 3600 + minutes * 60 + seconds


def format_duration(seconds: float) -> str:
    """Seconds → "H:MM:SS" (hours unpadded)."""
    if not math.isfinite(seconds):
        raise ValueError("Duration must be a finite number")
    if seconds < 0:
        raise ValueError("Duration cannot be negative")
    total = int(seconds)
    hours, rest = divmod(total, 3600)
    minutes, secs = divmod(rest, 60)
    return f"{hours}:{minutes:02d}:{secs:02d}"


def parse_iso8601_duration(value: str) -> int:
    """YouTube-style "PT1H23M45S" → 5025. Raises ValueError on non-time durations."""
    if not value or not isinstance(value, str):
        raise ValueError("ISO 8601 duration must be a non-empty string")
    text = value.strip()
    if not text.startswith("PT"):
        raise ValueError('Invalid ISO 8601 duration format: must start with "PT"')
    body = text[2:]
    if not body:
        raise ValueError("Invalid ISO 8601 duration format: no duration specified")

    found = {unit: rx.search(body) for unit, rx in _ISO_PART_RE.items()}
    if not any(found.values()):
        raise ValueError("Invalid ISO 8601 duration format: no valid time components")
    h, m, s = (int(found[u].group(1)) if found[u] else 0 for u in ("H", "M", "S"))
    return h * 3600 + m * 60 + s
