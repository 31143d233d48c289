"""Serial transport — the ground-station radio on a USB/UART port (pyserial).

pyserial is blocking; reads and writes run in worker threads so the
session's event loop keeps servicing the timeout watcher and operator
commands between deliveries.
"""

from __future__ import annotations

import asyncio
import threading

import serial
import structlog
from pydantic import BaseModel, Field

from tgs.core.base import Transport
from tgs.errors import TransportError

log = structlog.get_logger(__name__)


class SerialConfig(BaseModel):
    port: str = Field(default="/dev/ttyACM0", description="Serial device path, e.g. /dev/ttyACM0 or COM3")
    baudrate: int = Field(default=115200, gt=0)
    read_timeout_s: float = Field(default=0.05, gt=0.0, description="An empty read marks the link idle")
    write_timeout_s: float = Field(default=1.0, gt=0.0)
    read_size: int = Field(default=1024, gt=0)


class SerialTransport(Transport):
    """8N1 serial link opened on ``open()`` and released on ``close()``."""

    def __init__(self, config: SerialConfig) -> None:
        self.config = config
        self._serial: serial.Serial | None = None
        self._write_lock = threading.Lock()

    @property
    def is_open(self) -> bool:
        return self._serial is not None and self._serial.is_open

    def open(self) -> None:
        cfg = self.config
        try:
            ser = serial.Serial(
                port=cfg.port,
                baudrate=cfg.baudrate,
                timeout=cfg.read_timeout_s,
                write_timeout=cfg.write_timeout_s,
                bytesize=serial.EIGHTBITS,
                parity=serial.PARITY_NONE,
                stopbits=serial.STOPBITS_ONE,
            )
        except serial.SerialException as exc:
            raise TransportError(f"Cannot open {cfg.port}: {exc}") from exc
        ser.reset_input_buffer()
        self._serial = ser
        log.info("transport.opened", port=cfg.port, baudrate=cfg.baudrate)

    async def read(self) -> bytes:
        ser = self._serial
        if ser is None or not ser.is_open:
            return b""
        try:
            return await asyncio.to_thread(ser.read, self.config.read_size)
        except serial.SerialException as exc:
            if self._serial is None:
                # Closed from another task while the read was pending.
                return b""
            raise TransportError(str(exc)) from exc

    async def write(self, data: bytes) -> None:
        if not self.is_open:
            raise TransportError("Not connected to satellite")
        await asyncio.to_thread(self._write, data)

    def _write(self, data: bytes) -> None:
        with self._write_lock:
            ser = self._serial
            if ser is None:
                raise TransportError("Not connected to satellite")
            try:
                ser.write(data)
                ser.flush()
            except serial.SerialException as exc:
                raise TransportError(str(exc)) from exc

    def close(self) -> None:
        ser, self._serial = self._serial, None
        if ser is not None:
            ser.close()
            log.info("transport.closed", port=self.config.port)

    def __enter__(self) -> SerialTransport:
        self.open()
        return self

    def __exit__(self, *_: object) -> None:
        self.close()
