"""Collaborator interfaces the link decoder talks to.

The decoder core never touches a serial port, a terminal or a renderer
directly.  It is handed, once at construction:

  - a Transport        — writes outbound commands, delivers inbound bytes
  - an OutputSink      — receives operator messages and completed images
  - an OrientationSink — receives roll/pitch/yaw from attitude telemetry

Absent collaborators are replaced by null objects, so callers never probe
for a capability before using it.  Persistence of decoded telemetry goes
through a ``Recorder``.
"""

from __future__ import annotations

import abc
from enum import StrEnum
from typing import Generic, TypeVar

import structlog
from pydantic import BaseModel

from tgs.models.dataset import TelemetryLog
from tgs.models.reception import ImageArtifact

ConfigT = TypeVar("ConfigT", bound=BaseModel)

log = structlog.get_logger(__name__)


class Severity(StrEnum):
    INFO = "info"
    COMMAND = "command"
    RESPONSE = "response"
    WARNING = "warning"
    ERROR = "error"


# --------------------------------------------------------------------------- #
#  Transport                                                                   #
# --------------------------------------------------------------------------- #


class Transport(abc.ABC):
    """Byte pipe to the ground-station radio."""

    @property
    @abc.abstractmethod
    def is_open(self) -> bool:
        """True while reads and writes are possible."""

    @abc.abstractmethod
    async def write(self, data: bytes) -> None:
        """Send bytes; raise ``TransportError`` when not connected."""

    @abc.abstractmethod
    async def read(self) -> bytes:
        """Return the next inbound bytes, ``b""`` when the link is idle."""

    @abc.abstractmethod
    def close(self) -> None:
        """Close the link; a pending ``read`` must return promptly."""


# --------------------------------------------------------------------------- #
#  Output sink                                                                 #
# --------------------------------------------------------------------------- #


class OutputSink(abc.ABC):
    """Receives operator-facing messages and completed image artifacts."""

    @abc.abstractmethod
    def log(self, message: str, severity: Severity = Severity.INFO) -> None:
        """Record one operator message."""

    def artifact(self, artifact: ImageArtifact) -> None:
        """Persist or offer a completed image.  Default: ignore."""


class NullOutputSink(OutputSink):
    def log(self, message: str, severity: Severity = Severity.INFO) -> None:
        pass


class LogOutputSink(OutputSink):
    """Forwards operator messages to structlog at a matching level."""

    _LEVELS = {
        Severity.INFO: "info",
        Severity.COMMAND: "info",
        Severity.RESPONSE: "info",
        Severity.WARNING: "warning",
        Severity.ERROR: "error",
    }

    def __init__(self, logger_name: str = "tgs.output") -> None:
        self._log = structlog.get_logger(logger_name)

    def log(self, message: str, severity: Severity = Severity.INFO) -> None:
        getattr(self._log, self._LEVELS[severity])(message, severity=str(severity))

    def artifact(self, artifact: ImageArtifact) -> None:
        self._log.info(
            "image.artifact",
            identifier=artifact.identifier,
            compressed_bytes=len(artifact.compressed),
            decompressed=artifact.decompressed_ok,
        )


# --------------------------------------------------------------------------- #
#  Orientation sink                                                            #
# --------------------------------------------------------------------------- #


class OrientationSink(abc.ABC):
    """Notified with the attitude angles from each ADCS frame."""

    @abc.abstractmethod
    def update_orientation(self, roll: float, pitch: float, yaw: float) -> None:
        """Angles in degrees.  No return value is expected."""


class NullOrientationSink(OrientationSink):
    def update_orientation(self, roll: float, pitch: float, yaw: float) -> None:
        pass


# --------------------------------------------------------------------------- #
#  Recorder                                                                    #
# --------------------------------------------------------------------------- #


class Recorder(abc.ABC, Generic[ConfigT]):
    """Persists a TelemetryLog to a sink (CSV files, Parquet files, ...).

    Subclasses declare a ``config_class`` and implement ``load``.
    """

    config_class: type[BaseModel]

    def __init__(self, config: ConfigT) -> None:
        self.config = config
        self._name = self.__class__.__name__

    @property
    def name(self) -> str:
        return self._name

    def setup(self) -> None:
        """Called once before the first ``load`` (create directories, etc.)."""

    def teardown(self) -> None:
        """Called once after the last ``load``, even on error."""

    @abc.abstractmethod
    def load(self, telemetry: TelemetryLog) -> None:
        """Write the log to the configured sink."""

    def record(self, telemetry: TelemetryLog) -> None:
        """``setup`` → ``load`` → ``teardown`` in one call."""
        try:
            self.setup()
            self.load(telemetry)
            log.info("recorder.complete", recorder=self.name, records=len(telemetry))
        finally:
            self.teardown()
