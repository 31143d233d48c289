"""Transports: a serial port to the ground-station radio, or captured bytes in memory."""

from tgs.transport.memory import MemoryTransport
from tgs.transport.serial import SerialConfig, SerialTransport

__all__ = ["MemoryTransport", "SerialConfig", "SerialTransport"]
