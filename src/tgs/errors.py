"""Exception hierarchy for the link decoder.

All of these are contained inside the session: they are raised where the
problem is detected and reported through the output sink by the caller.
"""

from __future__ import annotations


class TgsError(Exception):
    """Base class for all ground-station decoding errors."""


class DecodeError(TgsError, ValueError):
    """A telemetry frame is shorter than the layout its tag requires."""

    def __init__(self, tag: str, message: str) -> None:
        super().__init__(message)
        self.tag = tag


class ReconstructionError(TgsError, ValueError):
    """A completed image reception could not be turned back into bytes."""


class TransportError(TgsError, RuntimeError):
    """The transport is not connected or a write failed."""


class CommandTooLongError(TgsError, ValueError):
    """A command cannot be made to fit the uplink command size limit."""
