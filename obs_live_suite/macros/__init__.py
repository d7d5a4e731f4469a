"""macros — Macro engine and stored preset dispatch."""
from .engine import MacroBusyError, MacroEngine, MacroError, PresetRunner, estimate_duration

__all__ = ["MacroBusyError", "MacroEngine", "MacroError", "PresetRunner", "estimate_duration"]
