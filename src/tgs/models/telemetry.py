"""Typed telemetry records decoded from binary frames.

Every record keeps its 4-character ``tag`` and the ground receipt time.
``summary()`` renders the lines shown to the operator and ``as_row()``
flattens the record for tabular persistence.
"""

from __future__ import annotations

import time
from typing import Annotated, Literal

from pydantic import BaseModel, Field

VECTOR_UNITS: dict[str, str] = {
    "GYRO": "°/s",
    "ACCL": "m/s²",
    "MAGN": "µT",
    "GRAV": "m/s²",
    "EULR": "°",
}

OBC_METRIC_NAMES: dict[str, str] = {
    "OBCR": "RAM Usage",
    "OBCD": "Disk Usage",
    "OBCC": "CPU Usage",
}

SOLAR_PANELS = ("X-", "X+", "Y-", "Y+")


class TelemetryRecord(BaseModel):
    """Base class for all decoded telemetry records."""

    model_config = {"frozen": True}

    tag: str
    received_at: float = Field(default_factory=time.time, description="Ground receipt time (UNIX epoch)")

    def summary(self) -> list[str]:
        return [self.tag]

    def as_row(self) -> dict[str, object]:
        return self.model_dump()


class VectorRecord(TelemetryRecord):
    """3-axis sensor sample (gyroscope, accelerometer, magnetometer, gravity, Euler)."""

    tag: Literal["GYRO", "ACCL", "MAGN", "GRAV", "EULR"]
    x: float
    y: float
    z: float

    @property
    def unit(self) -> str:
        return VECTOR_UNITS[self.tag]

    def summary(self) -> list[str]:
        u = self.unit
        return [f"{self.tag} - X: {self.x:.3f}{u}, Y: {self.y:.3f}{u}, Z: {self.z:.3f}{u}"]


class EnvironmentRecord(TelemetryRecord):
    """BME280 environment sample."""

    tag: Literal["BMED"] = "BMED"
    temperature_c: float
    pressure_hpa: float
    altitude_m: float

    def summary(self) -> list[str]:
        return [
            f"BME280 - Temp: {self.temperature_c:.2f}°C, "
            f"Pressure: {self.pressure_hpa:.2f} hPa, Altitude: {self.altitude_m:.2f} m"
        ]


class PollRecord(TelemetryRecord):
    """Sixteen environmental sensor readings accumulated over POLL frames."""

    tag: Literal["POLL"] = "POLL"
    values: Annotated[tuple[float, ...], Field(min_length=16, max_length=16)]

    def summary(self) -> list[str]:
        lines = ["Environmental Poll Data:"]
        lines.extend(f"  Sensor {i + 1}: {v:.3f}" for i, v in enumerate(self.values))
        return lines

    def as_row(self) -> dict[str, object]:
        row: dict[str, object] = {"tag": self.tag, "received_at": self.received_at}
        row.update({f"sensor_{i + 1}": v for i, v in enumerate(self.values)})
        return row


class ObcMetricRecord(TelemetryRecord):
    """Onboard computer RAM, disk or CPU usage in percent."""

    tag: Literal["OBCR", "OBCD", "OBCC"]
    value: float

    @property
    def name(self) -> str:
        return OBC_METRIC_NAMES[self.tag]

    def summary(self) -> list[str]:
        return [f"Onboard Computer {self.name}: {self.value:.2f}%"]


class ObcListingRecord(TelemetryRecord):
    """Directory listing returned by ``OBC_LIST_FILES``."""

    tag: Literal["OBCL"] = "OBCL"
    text: str

    @property
    def directory_exists(self) -> bool:
        return bool(self.text) and not self.text.startswith("DNE")

    @property
    def entries(self) -> list[str]:
        if not self.directory_exists:
            return []
        return [line.strip() for line in self.text.split("\n") if line.strip()]

    def summary(self) -> list[str]:
        if not self.directory_exists:
            return ["No files found or directory does not exist"]
        return ["Onboard Computer File Listing:", *(f"  {e}" for e in self.entries)]


class ObcProcessRecord(TelemetryRecord):
    """One fragment of the OBC process list.

    ``processes`` is set on the fragment that terminates the list and holds
    every process name gathered since the previous terminator.
    """

    tag: Literal["OBCP"] = "OBCP"
    text: str
    processes: tuple[str, ...] | None = None

    @property
    def complete(self) -> bool:
        return self.processes is not None

    def summary(self) -> list[str]:
        if self.processes is None:
            return []
        return ["OBC Process List:", *(f"  {i + 1}: {p}" for i, p in enumerate(self.processes))]

    def as_row(self) -> dict[str, object]:
        return {
            "tag": self.tag,
            "received_at": self.received_at,
            "text": self.text,
            "processes": ",".join(self.processes) if self.processes is not None else None,
        }


class AttitudeRecord(TelemetryRecord):
    """ADCS orientation vector; the first three values are roll, pitch and yaw in degrees."""

    tag: Literal["ADCS"] = "ADCS"
    values: Annotated[tuple[float, ...], Field(min_length=7, max_length=7)]

    @property
    def roll(self) -> float:
        return self.values[0]

    @property
    def pitch(self) -> float:
        return self.values[1]

    @property
    def yaw(self) -> float:
        return self.values[2]

    def summary(self) -> list[str]:
        lines = ["Satellite Orientation (ADCS):"]
        lines.extend(f"  Value {i + 1}: {v:.6f}" for i, v in enumerate(self.values))
        return lines

    def as_row(self) -> dict[str, object]:
        row: dict[str, object] = {"tag": self.tag, "received_at": self.received_at}
        row.update({f"value_{i + 1}": v for i, v in enumerate(self.values)})
        return row


class PowerStatusRecord(TelemetryRecord):
    """Electrical power system status."""

    tag: Literal["EPSS"] = "EPSS"
    error_code: int
    channels: Annotated[tuple[bool, ...], Field(min_length=4, max_length=4)]
    battery_voltage: float

    def summary(self) -> list[str]:
        lines = ["Electrical Power System Status:", f"  EPS Error Code: {self.error_code}"]
        lines.extend(
            f"  Channel {i + 1} State: {'ON' if on else 'OFF'}" for i, on in enumerate(self.channels)
        )
        lines.append(f"  Battery Voltage: {self.battery_voltage:.2f}V")
        return lines

    def as_row(self) -> dict[str, object]:
        row: dict[str, object] = {
            "tag": self.tag,
            "received_at": self.received_at,
            "error_code": self.error_code,
            "battery_voltage": self.battery_voltage,
        }
        row.update({f"channel_{i + 1}": on for i, on in enumerate(self.channels)})
        return row


class HostnameRecord(TelemetryRecord):
    tag: Literal["HOST"] = "HOST"
    hostname: str

    def summary(self) -> list[str]:
        return [f"Satellite Hostname: {self.hostname}"]


class SolarPanel(BaseModel):
    model_config = {"frozen": True}

    name: str
    voltage: float
    current_ma: float

    @property
    def power_w(self) -> float:
        return self.voltage * self.current_ma / 1000.0


class SolarArrayRecord(TelemetryRecord):
    """Voltage and current for each of the four body-mounted panels."""

    tag: Literal["SOLR"] = "SOLR"
    panels: Annotated[tuple[SolarPanel, ...], Field(min_length=4, max_length=4)]

    @property
    def total_power_w(self) -> float:
        return sum(p.power_w for p in self.panels)

    def summary(self) -> list[str]:
        lines = ["Solar Panel Telemetry:"]
        lines.extend(
            f"  Panel {p.name}: {p.voltage:.2f}V, {p.current_ma:.2f}mA ({p.power_w:.3f}W)"
            for p in self.panels
        )
        lines.append(f"  Total Power: {self.total_power_w:.3f}W")
        return lines

    def as_row(self) -> dict[str, object]:
        row: dict[str, object] = {"tag": self.tag, "received_at": self.received_at}
        for p in self.panels:
            row[f"{p.name}_voltage"] = p.voltage
            row[f"{p.name}_current_ma"] = p.current_ma
        row["total_power_w"] = self.total_power_w
        return row


class RetransmitEchoRecord(TelemetryRecord):
    tag: Literal["RETX"] = "RETX"
    text: str

    def summary(self) -> list[str]:
        if not self.text:
            return ["Empty retransmit packet received"]
        return [f"Retransmitted Data: {self.text}"]

