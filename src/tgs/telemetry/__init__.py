"""Binary telemetry decoding.  Importing this package registers every layout."""

from tgs.telemetry.decoder import TelemetryDecoder

__all__ = ["TelemetryDecoder"]
