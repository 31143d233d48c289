"""In-progress image receptions and the artifacts they produce."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum

from pydantic import BaseModel, Field, field_validator, model_validator


class ChunkDisposition(StrEnum):
    """What the reassembler did with one ``SEND``/``RETX`` frame."""

    RESPONSE = "response"
    STORED = "stored"
    DUPLICATE = "duplicate"
    COMPLETED = "completed"
    FAILED = "failed"


class ChunkMetadata(BaseModel):
    """Parsed chunk: base64 payload plus its trailing ``TTTTCCCC`` metadata."""

    model_config = {"frozen": True}

    header: str
    total: int = Field(gt=0)
    index: int = Field(ge=0)
    payload: str = Field(min_length=1, repr=False)

    @model_validator(mode="after")
    def _index_within_total(self) -> ChunkMetadata:
        if self.index >= self.total:
            raise ValueError(f"Chunk index {self.index} outside total {self.total}")
        return self


@dataclass
class ImageReception:
    """Mutable state of one image transfer, keyed by its total chunk count."""

    image_id: str
    total: int
    filename: str
    started_at: float
    last_activity: float
    chunks: dict[int, str] = field(default_factory=dict, repr=False)
    retransmit_attempts: int = 0

    @property
    def received(self) -> set[int]:
        return set(self.chunks)

    @property
    def received_count(self) -> int:
        return len(self.chunks)

    @property
    def complete(self) -> bool:
        return len(self.chunks) == self.total

    @property
    def progress(self) -> float:
        """Fraction of chunks received, in percent."""
        return self.received_count / self.total * 100.0

    def missing(self) -> list[int]:
        return [i for i in range(self.total) if i not in self.chunks]

    def store(self, index: int, payload: str, now: float) -> bool:
        """Store a chunk; return False (and change nothing) for a duplicate."""
        if index in self.chunks:
            return False
        self.chunks[index] = payload
        self.last_activity = now
        return True


class ReceptionStatus(BaseModel):
    """Read-only snapshot of an open reception for status displays."""

    model_config = {"frozen": True}

    image_id: str
    total: int
    received: int
    missing: list[int]
    elapsed_s: float
    filename: str
    retransmit_attempts: int

    @property
    def progress(self) -> float:
        return self.received / self.total * 100.0


class StalledReception(BaseModel):
    """Report produced by the timeout scan for a reception that went quiet."""

    model_config = {"frozen": True}

    image_id: str
    total: int
    missing: list[int]
    progress: float
    manual_command: str


class ImageArtifact(BaseModel):
    """A completed image, ready for persistence or download."""

    model_config = {"frozen": True}

    identifier: str
    filename: str
    compressed: bytes = Field(repr=False)
    decompressed: bytes | None = Field(default=None, repr=False)
    duration_s: float = 0.0

    @field_validator("compressed", "decompressed", mode="before")
    @classmethod
    def _coerce_bytes(cls, v: object) -> bytes | None:
        if v is None:
            return None
        if isinstance(v, (bytearray, memoryview)):
            return bytes(v)
        if isinstance(v, bytes):
            return v
        raise ValueError(f"Expected bytes-like, got {type(v)}")

    @property
    def decompressed_ok(self) -> bool:
        return self.decompressed is not None
