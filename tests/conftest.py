"""Shared pytest fixtures for the TGS test suite."""

from __future__ import annotations

import asyncio
import base64
import gzip
import struct

import pytest

from tgs.core.base import OutputSink, Severity
from tgs.models.reception import ImageArtifact


# --------------------------------------------------------------------------- #
#  Helpers — build raw link bytes                                              #
# --------------------------------------------------------------------------- #


def make_frame(tag: str, fmt: str, *values: float | int) -> bytes:
    """Tag followed by little-endian ``struct`` values, e.g. ``("GYRO", "3f", 1, 2, 3)``."""
    return tag.encode("ascii") + struct.pack("<" + fmt, *values)


def make_text_frame(tag: str, text: str, size: int) -> bytes:
    """Tag followed by NUL-padded text occupying ``size`` bytes."""
    return tag.encode("ascii") + text.encode("utf-8").ljust(size, b"\x00")


def make_poll(payload: bytes) -> bytes:
    return b"POLL" + struct.pack("<I", len(payload)) + payload


def make_chunk(payload: str, total: int, index: int, header: str = "SEND") -> bytes:
    """An image chunk line without its newline."""
    return f"{header}{payload}{total:04d}{index:04d}".encode("ascii")


def image_payloads(data: bytes, parts: int) -> list[str]:
    """Gzip + base64 ``data`` and split the text into ``parts`` pieces."""
    encoded = base64.b64encode(gzip.compress(data, mtime=0)).decode("ascii")
    size = -(-len(encoded) // parts)
    return [encoded[i * size : (i + 1) * size] for i in range(parts)]


# --------------------------------------------------------------------------- #
#  Test doubles                                                                #
# --------------------------------------------------------------------------- #


class RecordingOutput(OutputSink):
    """Output sink that keeps every message and artifact."""

    def __init__(self) -> None:
        self.messages: list[tuple[str, Severity]] = []
        self.artifacts: list[ImageArtifact] = []

    def log(self, message: str, severity: Severity = Severity.INFO) -> None:
        self.messages.append((message, severity))

    def artifact(self, artifact: ImageArtifact) -> None:
        self.artifacts.append(artifact)

    def texts(self, severity: Severity | None = None) -> list[str]:
        return [m for m, s in self.messages if severity is None or s == severity]

    def contains(self, fragment: str, severity: Severity | None = None) -> bool:
        return any(fragment in m for m in self.texts(severity))


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Awaitable stand-in for ``asyncio.sleep`` that returns immediately."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await asyncio.sleep(0)


# --------------------------------------------------------------------------- #
#  Fixtures                                                                    #
# --------------------------------------------------------------------------- #


@pytest.fixture
def output() -> RecordingOutput:
    return RecordingOutput()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def jpeg_bytes() -> bytes:
    """Bytes standing in for a small JPEG file."""
    return b"\xff\xd8\xff\xe0" + bytes(range(256)) * 4 + b"\xff\xd9"
