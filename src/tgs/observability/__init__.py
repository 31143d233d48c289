"""Observability — structured logging, link metrics, and event hooks."""

from tgs.observability.hooks import EventHook, HookManager
from tgs.observability.logging import configure_logging, session_context
from tgs.observability.metrics import LinkMetrics

__all__ = [
    "configure_logging",
    "session_context",
    "LinkMetrics",
    "EventHook",
    "HookManager",
]
