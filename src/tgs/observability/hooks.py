"""Event hooks — a lightweight publish/subscribe mechanism for link events.

Hooks let external code (displays, recorders, alerting) react to decoded
traffic without touching the decoder core.

Example::

    hooks = HookManager()

    @hooks.on("telemetry.record")
    def on_record(record):
        telemetry_log.add(record)

    session = GroundStationSession(config, transport, hooks=hooks)
"""

from __future__ import annotations

import contextlib
from collections.abc import Callable

import structlog

log = structlog.get_logger(__name__)

EventHandler = Callable[..., None]


class EventHook:
    """A named event that can have multiple handlers attached."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._handlers: list[EventHandler] = []

    def register(self, handler: EventHandler) -> None:
        self._handlers.append(handler)

    def unregister(self, handler: EventHandler) -> None:
        with contextlib.suppress(ValueError):
            self._handlers.remove(handler)

    def fire(self, *args: object, **kwargs: object) -> None:
        """Invoke every handler in registration order.

        A handler that raises is logged and skipped; the decoder never sees
        a display or recorder failure.
        """
        for handler in list(self._handlers):
            try:
                handler(*args, **kwargs)
            except Exception as exc:
                log.warning("hook.handler_error", hook=self.name, error=str(exc))

    def __len__(self) -> int:
        return len(self._handlers)


class HookManager:
    """Registry of named EventHooks.

    Built-in link events
    --------------------
    ``frame.text``          — a text line was routed (line, severity)
    ``telemetry.record``    — a telemetry record was decoded (record)
    ``image.chunk``         — an image chunk was handled (metadata, disposition)
    ``image.completed``     — an image was reassembled (artifact)
    ``radio.config``        — a RADIO_CONFIG block was parsed (config)
    ``buffer.overflow``     — the framer discarded its buffer (byte count)
    ``reception.stalled``   — the timeout scan found a quiet reception (report)

    Any other name may be registered and fired as well.
    """

    BUILTIN_EVENTS = (
        "frame.text",
        "telemetry.record",
        "image.chunk",
        "image.completed",
        "radio.config",
        "buffer.overflow",
        "reception.stalled",
    )

    def __init__(self) -> None:
        self._hooks: dict[str, EventHook] = {name: EventHook(name) for name in self.BUILTIN_EVENTS}

    def _hook(self, event: str) -> EventHook:
        hook = self._hooks.get(event)
        if hook is None:
            hook = self._hooks[event] = EventHook(event)
        return hook

    def on(self, event: str) -> Callable[[EventHandler], EventHandler]:
        """Decorator to register a handler for a named event."""

        def _decorator(handler: EventHandler) -> EventHandler:
            self._hook(event).register(handler)
            return handler

        return _decorator

    def register(self, event: str, handler: EventHandler) -> None:
        self._hook(event).register(handler)

    def unregister(self, event: str, handler: EventHandler) -> None:
        hook = self._hooks.get(event)
        if hook is not None:
            hook.unregister(handler)

    def fire(self, event: str, *args: object, **kwargs: object) -> None:
        hook = self._hooks.get(event)
        if hook is not None:
            hook.fire(*args, **kwargs)

    def get_hook(self, event: str) -> EventHook | None:
        return self._hooks.get(event)

    def registered_events(self) -> list[str]:
        return [name for name, hook in self._hooks.items() if len(hook) > 0]
