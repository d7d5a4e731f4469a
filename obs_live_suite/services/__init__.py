"""services — Shared cross-cutting services."""
from .rate_limiter import CHAT, GENERAL, OLLAMA, WIKIPEDIA, RateLimit, RateLimiter

__all__ = ["CHAT", "GENERAL", "OLLAMA", "WIKIPEDIA", "RateLimit", "RateLimiter"]
