"""utils — Small pure helpers shared by media and quiz modules."""
from .durations import TIMECODE_RE, format_duration, is_timecode, parse_duration, parse_iso8601_duration
from .youtube import build_youtube_embed_url, extract_youtube_id, is_youtube_url

__all__ = [
    "TIMECODE_RE",
    "format_duration",
    "is_timecode",
    "parse_duration",
    "parse_iso8601_duration",
    "build_youtube_embed_url",
    "extract_youtube_id",
    "is_youtube_url",
]
