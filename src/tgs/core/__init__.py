"""Core abstractions: collaborator interfaces and the telemetry layout registry.

The session lives in ``tgs.core.session`` and is imported from there.
"""

from tgs.core.base import (
    NullOrientationSink,
    NullOutputSink,
    OrientationSink,
    OutputSink,
    Recorder,
    Severity,
    Transport,
)
from tgs.core.registry import Layout, TelemetryRegistry, registry

__all__ = [
    "Transport",
    "OutputSink",
    "NullOutputSink",
    "OrientationSink",
    "NullOrientationSink",
    "Recorder",
    "Severity",
    "Layout",
    "TelemetryRegistry",
    "registry",
]
