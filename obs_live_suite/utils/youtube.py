"""
utils/youtube.py — YouTube id extraction and embed URL construction.
"""

from __future__ import annotations

import re
from typing import Literal, Optional
from urllib.parse import urlencode

_ID_PATTERNS = [
    re.compile(r"(?:youtube\.com/watch\?(?:.*&)?v=)([\w-]{11})"),
    re.compile(r"(?:youtu\.be/)([\w-]{11})"),
    re.compile(r"(?:youtube\.com/(?:embed|shorts|live)/)([\w-]{11})"),
]


def extract_youtube_id(url: str) -> Optional[str]:
    for pattern in _ID_PATTERNS:
        match = pattern.search(url)
        if match:
            return match.group(1)
    return None


def is_youtube_url(url: str) -> bool:
    return extract_youtube_id(url) is not None


def build_youtube_embed_url(
    video_id: str,
    start: Optional[int] = None,
    end: Optional[int] = None,
    end_behavior: Literal["stop", "loop"] = "stop",
    autoplay: bool = True,
    mute: bool = True,
    controls: bool = False,
) -> str:
    """
    Build an embed URL with timing + playback flags.

    Looping a single video requires `playlist=<video_id>` alongside `loop=1`.
    """
    params = {
        "autoplay": int(autoplay),
        "mute": int(mute),
        "controls": int(controls),
    }
    if start is not None:
        params["start"] = start
    if end is not None:
        params["end"] = end
    if end_behavior == "loop":
        params["loop"] = 1
        params["playlist"] = video_id
    return f"https://www.youtube.com/embed/{video_id}?{urlencode(params)}"
