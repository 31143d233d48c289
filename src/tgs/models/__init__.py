"""Typed data models for frames, telemetry records, receptions and radio config."""

from tgs.models.dataset import TelemetryLog
from tgs.models.frame import Frame, FrameKind, ImageChunkFrame, TelemetryFrame, TextFrame
from tgs.models.radio import RadioConfig, RadioLink
from tgs.models.reception import (
    ChunkDisposition,
    ChunkMetadata,
    ImageArtifact,
    ImageReception,
    ReceptionStatus,
    StalledReception,
)
from tgs.models.telemetry import (
    AttitudeRecord,
    EnvironmentRecord,
    HostnameRecord,
    ObcListingRecord,
    ObcMetricRecord,
    ObcProcessRecord,
    PollRecord,
    PowerStatusRecord,
    RetransmitEchoRecord,
    SolarArrayRecord,
    SolarPanel,
    TelemetryRecord,
    VectorRecord,
)

__all__ = [
    "Frame",
    "FrameKind",
    "TextFrame",
    "TelemetryFrame",
    "ImageChunkFrame",
    "TelemetryRecord",
    "VectorRecord",
    "EnvironmentRecord",
    "PollRecord",
    "ObcMetricRecord",
    "ObcListingRecord",
    "ObcProcessRecord",
    "AttitudeRecord",
    "PowerStatusRecord",
    "HostnameRecord",
    "SolarPanel",
    "SolarArrayRecord",
    "RetransmitEchoRecord",
    "ChunkDisposition",
    "ChunkMetadata",
    "ImageReception",
    "ReceptionStatus",
    "StalledReception",
    "ImageArtifact",
    "RadioLink",
    "RadioConfig",
    "TelemetryLog",
]
