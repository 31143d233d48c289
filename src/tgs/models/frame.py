"""Logical frames extracted from the raw link byte stream.

A frame is one self-delimited unit: a text line, a binary telemetry frame,
or a base64 image chunk.  Frames are produced by the ``StreamFramer`` and
consumed exactly once by the session.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Literal, Union

from pydantic import BaseModel, Field, field_validator


class FrameKind(StrEnum):
    TEXT = "text"
    TELEMETRY = "telemetry"
    IMAGE_CHUNK = "image_chunk"


def _coerce_bytes(v: object) -> bytes:
    if isinstance(v, (bytearray, memoryview)):
        return bytes(v)
    if isinstance(v, bytes):
        return v
    raise ValueError(f"Expected bytes-like, got {type(v)}")


class TextFrame(BaseModel):
    """A trimmed, non-empty text line (debug output, command echoes, replies)."""

    model_config = {"frozen": True}

    kind: Literal[FrameKind.TEXT] = FrameKind.TEXT
    line: str


class TelemetryFrame(BaseModel):
    """A binary telemetry frame: 4-byte tag followed by its payload."""

    model_config = {"frozen": True}

    kind: Literal[FrameKind.TELEMETRY] = FrameKind.TELEMETRY
    tag: str = Field(min_length=4, max_length=4)
    data: bytes = Field(repr=False, description="Whole frame, tag included")

    @field_validator("data", mode="before")
    @classmethod
    def _coerce_data(cls, v: object) -> bytes:
        return _coerce_bytes(v)

    @property
    def payload(self) -> bytes:
        return self.data[4:]


class ImageChunkFrame(BaseModel):
    """A ``SEND``/``RETX`` image chunk, or a short reply sharing those headers."""

    model_config = {"frozen": True}

    kind: Literal[FrameKind.IMAGE_CHUNK] = FrameKind.IMAGE_CHUNK
    header: str = Field(min_length=4, max_length=4)
    data: bytes = Field(repr=False, description="Whole chunk, header included")

    @field_validator("data", mode="before")
    @classmethod
    def _coerce_data(cls, v: object) -> bytes:
        return _coerce_bytes(v)

    @property
    def text(self) -> str:
        return self.data.decode("utf-8", errors="replace")


Frame = Union[TextFrame, TelemetryFrame, ImageChunkFrame]
