"""Telemetry decoder — turns binary telemetry frames into typed records.

Every frame is a 4-byte ASCII tag followed by little-endian IEEE-754 singles,
32-bit integers or NUL-padded text at fixed offsets.  Each layout registers
itself against its tags in the ``TelemetryRegistry`` with the minimum frame
size it needs; a shorter frame is a ``DecodeError``.

Two layouts carry state across frames:

  - ``POLL`` payloads accumulate until sixteen floats (64 bytes) are
    available, then one ``PollRecord`` is emitted and the accumulator reset.
  - ``OBCP`` fragments accumulate until a fragment containing ``END`` (or an
    empty fragment) closes the process list.
"""

from __future__ import annotations

import struct
import time
from collections.abc import Callable

import structlog

from tgs.core.registry import TelemetryRegistry, registry
from tgs.errors import DecodeError
from tgs.models.frame import TelemetryFrame
from tgs.models.telemetry import (
    SOLAR_PANELS,
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
from tgs.protocol import POLL_HEADER_SIZE, POLL_RECORD_BYTES, TAG_SIZE

log = structlog.get_logger(__name__)

_FLOAT3 = struct.Struct("<3f")
_FLOAT1 = struct.Struct("<f")
_FLOAT7 = struct.Struct("<7f")
_FLOAT16 = struct.Struct("<16f")
_EPS = struct.Struct("<5if")
_SOLAR = struct.Struct("<8f")
_UINT32 = struct.Struct("<I")

OBC_TEXT_SIZE = 230
HOSTNAME_SIZE = 11


def _text(raw: bytes) -> str:
    return raw.decode("utf-8", errors="replace").replace("\x00", "").strip()


class TelemetryDecoder:
    """Decode ``TelemetryFrame`` objects into ``TelemetryRecord`` objects.

    One decoder belongs to one link session; it owns the POLL and OBCP
    accumulators for that session.
    """

    def __init__(
        self,
        layouts: TelemetryRegistry = registry,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._layouts = layouts
        self._clock = clock
        self._poll = bytearray()
        self._processes: list[str] = []

    @property
    def poll_pending(self) -> int:
        return len(self._poll)

    def reset(self) -> None:
        self._poll.clear()
        self._processes.clear()

    def decode(self, frame: TelemetryFrame) -> TelemetryRecord | None:
        """Decode one frame.

        Returns ``None`` when the frame was absorbed into an accumulator
        without completing a record.  Raises ``DecodeError`` when the frame
        is shorter than its layout.
        """
        layout = self._layouts.get(frame.tag)
        data = frame.data
        if len(data) < layout.min_size:
            raise DecodeError(frame.tag, f"Invalid {frame.tag} packet size: {len(data)} bytes")
        return layout.decode(self, frame.tag, data)

    # ------------------------------------------------------------------ #
    #  Stateful layouts                                                    #
    # ------------------------------------------------------------------ #

    def _accumulate_poll(self, data: bytes) -> PollRecord | None:
        (payload_len,) = _UINT32.unpack_from(data, TAG_SIZE)
        if len(data) < POLL_HEADER_SIZE + payload_len:
            raise DecodeError(
                "POLL",
                f"Incomplete POLL packet: expected {POLL_HEADER_SIZE + payload_len}, "
                f"got {len(data)} bytes",
            )
        self._poll.extend(data[POLL_HEADER_SIZE : POLL_HEADER_SIZE + payload_len])
        if len(self._poll) < POLL_RECORD_BYTES:
            log.debug("decoder.poll_accumulating", pending=len(self._poll))
            return None
        values = _FLOAT16.unpack_from(self._poll, 0)
        self._poll.clear()
        return PollRecord(values=values, received_at=self._clock())

    def _accumulate_processes(self, text: str) -> ObcProcessRecord:
        self._processes.append(text)
        if "END" not in text and text:
            return ObcProcessRecord(text=text, received_at=self._clock())
        joined = "".join(self._processes)
        self._processes.clear()
        processes = tuple(
            p.strip() for p in joined.split(",") if p.strip() and "END" not in p
        )
        return ObcProcessRecord(text=text, processes=processes, received_at=self._clock())


# --------------------------------------------------------------------------- #
#  Layouts                                                                     #
# --------------------------------------------------------------------------- #


@registry.layout("GYRO", "ACCL", "MAGN", "GRAV", "EULR", size=16)
def _vector(decoder: TelemetryDecoder, tag: str, data: bytes) -> VectorRecord:
    x, y, z = _FLOAT3.unpack_from(data, TAG_SIZE)
    return VectorRecord(tag=tag, x=x, y=y, z=z, received_at=decoder._clock())


@registry.layout("BMED", size=16)
def _environment(decoder: TelemetryDecoder, tag: str, data: bytes) -> EnvironmentRecord:
    temp, pressure, altitude = _FLOAT3.unpack_from(data, TAG_SIZE)
    return EnvironmentRecord(
        temperature_c=temp,
        pressure_hpa=pressure,
        altitude_m=altitude,
        received_at=decoder._clock(),
    )


@registry.layout("POLL", size=POLL_HEADER_SIZE, variable=True)
def _poll(decoder: TelemetryDecoder, tag: str, data: bytes) -> PollRecord | None:
    return decoder._accumulate_poll(data)


@registry.layout("OBCR", "OBCD", "OBCC", size=8)
def _obc_metric(decoder: TelemetryDecoder, tag: str, data: bytes) -> ObcMetricRecord:
    (value,) = _FLOAT1.unpack_from(data, TAG_SIZE)
    return ObcMetricRecord(tag=tag, value=value, received_at=decoder._clock())


@registry.layout("OBCL", size=TAG_SIZE + OBC_TEXT_SIZE)
def _obc_listing(decoder: TelemetryDecoder, tag: str, data: bytes) -> ObcListingRecord:
    text = _text(data[TAG_SIZE : TAG_SIZE + OBC_TEXT_SIZE])
    return ObcListingRecord(text=text, received_at=decoder._clock())


@registry.layout("OBCP", size=TAG_SIZE + OBC_TEXT_SIZE)
def _obc_processes(decoder: TelemetryDecoder, tag: str, data: bytes) -> ObcProcessRecord:
    return decoder._accumulate_processes(_text(data[TAG_SIZE : TAG_SIZE + OBC_TEXT_SIZE]))


@registry.layout("ADCS", size=32)
def _attitude(decoder: TelemetryDecoder, tag: str, data: bytes) -> AttitudeRecord:
    return AttitudeRecord(values=_FLOAT7.unpack_from(data, TAG_SIZE), received_at=decoder._clock())


@registry.layout("EPSS", size=28)
def _power(decoder: TelemetryDecoder, tag: str, data: bytes) -> PowerStatusRecord:
    error_code, ch1, ch2, ch3, ch4, voltage = _EPS.unpack_from(data, TAG_SIZE)
    return PowerStatusRecord(
        error_code=error_code,
        channels=(bool(ch1), bool(ch2), bool(ch3), bool(ch4)),
        battery_voltage=voltage,
        received_at=decoder._clock(),
    )


@registry.layout("HOST", size=TAG_SIZE + HOSTNAME_SIZE)
def _hostname(decoder: TelemetryDecoder, tag: str, data: bytes) -> HostnameRecord:
    return HostnameRecord(
        hostname=_text(data[TAG_SIZE : TAG_SIZE + HOSTNAME_SIZE]),
        received_at=decoder._clock(),
    )


@registry.layout("SOLR", size=36)
def _solar(decoder: TelemetryDecoder, tag: str, data: bytes) -> SolarArrayRecord:
    values = _SOLAR.unpack_from(data, TAG_SIZE)
    panels = tuple(
        SolarPanel(name=name, voltage=values[2 * i], current_ma=values[2 * i + 1])
        for i, name in enumerate(SOLAR_PANELS)
    )
    return SolarArrayRecord(panels=panels, received_at=decoder._clock())


@registry.layout("RETX", size=TAG_SIZE, variable=True)
def _retransmit_echo(decoder: TelemetryDecoder, tag: str, data: bytes) -> RetransmitEchoRecord:
    return RetransmitEchoRecord(text=_text(data[TAG_SIZE:]), received_at=decoder._clock())
