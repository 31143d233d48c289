"""structlog setup for the ground station.

Operator-facing messages go through an ``OutputSink``; everything here is
the structured event stream underneath it (``framer.overflow``,
``image.completed``, ``retransmit.requested``, ...).  Two renderings:

  - ``console``  coloured key=value lines next to the operator terminal
  - ``json``     one JSON object per line when the station runs unattended

Events emitted while a session's read loop runs carry ``session=<name>``
through ``session_context``.
"""

from __future__ import annotations

import logging
import sys
from contextlib import AbstractContextManager
from typing import Literal, TextIO

import structlog


def configure_logging(
    level: str = "INFO",
    fmt: Literal["console", "json"] = "console",
    include_caller: bool = False,
    stream: TextIO | None = None,
) -> None:
    """Configure structlog and the stdlib root logger.

    Parameters
    ----------
    level:
        Standard level name, e.g. ``"DEBUG"`` or ``"WARNING"``.
    fmt:
        ``"console"`` or ``"json"``.
    include_caller:
        If True, add ``module`` and ``lineno`` to every event.
    stream:
        Destination for rendered events; stderr by default so the operator
        prompt on stdout stays readable.
    """
    numeric_level = logging.getLevelName(level.upper())

    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]
    if include_caller:
        processors.append(
            structlog.processors.CallsiteParameterAdder(
                parameters=[
                    structlog.processors.CallsiteParameter.MODULE,
                    structlog.processors.CallsiteParameter.LINENO,
                ]
            )
        )
    processors.append(structlog.processors.StackInfoRenderer())
    processors.append(structlog.processors.format_exc_info)

    if fmt == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=(stream or sys.stderr).isatty()))

    # sys.stderr is resolved per logger, not at configure time.
    def _logger_factory(*_: object) -> structlog.PrintLogger:
        return structlog.PrintLogger(stream or sys.stderr)

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=_logger_factory,
        cache_logger_on_first_use=False,
    )
    logging.basicConfig(format="%(message)s", stream=stream or sys.stderr, level=numeric_level)


def session_context(name: str) -> AbstractContextManager[object]:
    """Bind ``session=<name>`` to every event logged inside the block."""
    return structlog.contextvars.bound_contextvars(session=name)
