"""Image reassembler — rebuilds gzip-compressed images from base64 chunks.

Chunk wire format (after the ``SEND``/``RETX`` header)::

    <base64 payload><TTTT total chunks><CCCC chunk index>

Trailing bytes outside the base64 alphabet are ignored.  A chunk whose
metadata is missing or out of range is not an image chunk at all: the
satellite reuses the same headers for short command replies, which are
shown to the operator as responses.

Receptions are keyed by total chunk count, so two simultaneous images
with the same count share one reception.
"""

from __future__ import annotations

import base64
import binascii
import gzip
import re
import time
import zlib
from collections.abc import Callable

import structlog
from pydantic import BaseModel, Field

from tgs.core.base import NullOutputSink, OutputSink, Severity
from tgs.errors import ReconstructionError
from tgs.models.frame import ImageChunkFrame
from tgs.models.reception import (
    ChunkDisposition,
    ChunkMetadata,
    ImageArtifact,
    ImageReception,
    ReceptionStatus,
)
from tgs.observability.hooks import HookManager
from tgs.protocol import BASE64_ALPHABET, CHUNK_METADATA_DIGITS, TAG_SIZE

log = structlog.get_logger(__name__)

GZIP_MAGIC = b"\x1f\x8b"

_BASE64_CHARS = frozenset(chr(c) for c in BASE64_ALPHABET)
_BASE64_RE = re.compile(r"^[A-Za-z0-9+/]*={0,2}$")
_MIN_CHUNK_END = TAG_SIZE + CHUNK_METADATA_DIGITS + 1


class ReassemblerConfig(BaseModel):
    default_filename: str = Field(
        default="image_{total}.jpg.gz",
        description="Filename used for retransmit requests when no SEND_IMAGE was issued",
    )
    chunked_suffix: str = ".chunked"
    progress_every: int = Field(default=50, gt=0, description="Log progress every N chunk indices")


class ImageReassembler:
    """Collects image chunks into receptions and completes them.

    Parameters
    ----------
    config:
        Filename defaults and progress cadence.
    output:
        Operator messages and completed ``ImageArtifact`` objects.
    clock:
        Returns epoch seconds; injectable for tests.
    hooks:
        Receives ``image.chunk`` and ``image.completed`` events.
    """

    def __init__(
        self,
        config: ReassemblerConfig | None = None,
        output: OutputSink | None = None,
        clock: Callable[[], float] = time.time,
        hooks: HookManager | None = None,
    ) -> None:
        self.config = config or ReassemblerConfig()
        self._output = output or NullOutputSink()
        self._clock = clock
        self._hooks = hooks
        self.receptions: dict[int, ImageReception] = {}
        self.expected_filename: str | None = None

    # ------------------------------------------------------------------ #
    #  Chunk intake                                                        #
    # ------------------------------------------------------------------ #

    def accept(self, frame: ImageChunkFrame) -> ChunkDisposition:
        """Handle one ``SEND``/``RETX`` frame and report what was done with it."""
        meta = self.parse_chunk(frame)
        if meta is None:
            disposition = self._response(frame)
        else:
            disposition = self._store(meta)
        if self._hooks is not None:
            self._hooks.fire("image.chunk", meta, disposition)
        return disposition

    @staticmethod
    def parse_chunk(frame: ImageChunkFrame) -> ChunkMetadata | None:
        """Split a chunk into payload and metadata; None if it is not a chunk."""
        text = frame.text
        end = _valid_end(text)
        if end < _MIN_CHUNK_END:
            return None
        digits = text[end - CHUNK_METADATA_DIGITS : end]
        if not (digits.isascii() and digits.isdigit()):
            return None
        total = int(digits[:4])
        index = int(digits[4:])
        if total <= 0 or index >= total:
            return None
        return ChunkMetadata(
            header=frame.header,
            total=total,
            index=index,
            payload=text[TAG_SIZE : end - CHUNK_METADATA_DIGITS],
        )

    def expect_image(self, path: str) -> None:
        """Name the next new reception after the image just requested."""
        self.expected_filename = path + self.config.chunked_suffix
        self._output.log(f"Expecting image: {path}", Severity.INFO)

    def _response(self, frame: ImageChunkFrame) -> ChunkDisposition:
        text = frame.text
        response = text[TAG_SIZE : _valid_end(text)].strip()
        if response:
            self._output.log(response, Severity.RESPONSE)
        return ChunkDisposition.RESPONSE

    def _store(self, meta: ChunkMetadata) -> ChunkDisposition:
        now = self._clock()
        reception = self.receptions.get(meta.total)
        if reception is None:
            reception = self._open(meta, now)

        if not reception.store(meta.index, meta.payload, now):
            return ChunkDisposition.DUPLICATE

        every = self.config.progress_every
        if meta.index % every == 0 or meta.index == meta.total - 1:
            self._output.log(
                f"Image {reception.image_id}: {reception.progress:.1f}% "
                f"({reception.received_count}/{reception.total})",
                Severity.RESPONSE,
            )

        if reception.complete:
            return self._complete(reception)
        return ChunkDisposition.STORED

    def _open(self, meta: ChunkMetadata, now: float) -> ImageReception:
        if meta.index == 0:
            image_id = f"img_{meta.total}"
        else:
            image_id = f"img_{meta.total}_{int(now * 1000)}"
        filename = self.expected_filename or self.config.default_filename.format(total=meta.total)
        reception = ImageReception(
            image_id=image_id,
            total=meta.total,
            filename=filename,
            started_at=now,
            last_activity=now,
        )
        self.receptions[meta.total] = reception
        self._output.log(
            f"Starting image reception: {image_id} ({meta.total} chunks expected)", Severity.INFO
        )
        log.info("image.started", image_id=image_id, total=meta.total, filename=filename)
        return reception

    # ------------------------------------------------------------------ #
    #  Completion                                                          #
    # ------------------------------------------------------------------ #

    def reconstruct(self, reception: ImageReception) -> bytes:
        """Concatenate the chunks in order and base64-decode them.

        Padding is stripped from every chunk except the last.  Raises
        ``ReconstructionError`` for a missing chunk or invalid base64.
        """
        parts: list[str] = []
        last = reception.total - 1
        for i in range(reception.total):
            chunk = reception.chunks.get(i)
            if chunk is None:
                raise ReconstructionError(
                    f"Missing chunk {i} during reconstruction of {reception.image_id}"
                )
            parts.append(chunk if i == last else chunk.rstrip("="))
        encoded = "".join(parts)

        if not _BASE64_RE.match(encoded):
            raise ReconstructionError(f"Invalid base64 characters detected in {reception.image_id}")
        encoded += "=" * (-len(encoded) % 4)
        try:
            return base64.b64decode(encoded, validate=True)
        except binascii.Error as exc:
            raise ReconstructionError(f"Failed to decode image {reception.image_id}: {exc}") from exc

    def _complete(self, reception: ImageReception) -> ChunkDisposition:
        image_id = reception.image_id
        try:
            compressed = self.reconstruct(reception)
        except ReconstructionError as exc:
            self._output.log(str(exc), Severity.ERROR)
            log.error("image.failed", image_id=image_id, error=str(exc))
            # Refilled by a retransmission or the next transfer.
            reception.chunks.clear()
            return ChunkDisposition.FAILED

        if compressed[:2] != GZIP_MAGIC:
            self._output.log(
                "Warning: File doesn't start with gzip magic number (0x1f 0x8b)", Severity.WARNING
            )

        duration = self._clock() - reception.started_at
        decompressed: bytes | None
        try:
            decompressed = gzip.decompress(compressed)
        except (OSError, EOFError, zlib.error) as exc:
            decompressed = None
            self._output.log(f"Failed to decompress gzip: {exc}", Severity.WARNING)
            self._output.log(
                f"Image {image_id} completed! ({duration:.1f}s, {len(compressed) / 1024:.1f} KB)",
                Severity.RESPONSE,
            )
        else:
            self._output.log(
                f"Image {image_id} completed! ({duration:.1f}s, "
                f"{len(decompressed) / 1024:.1f} KB decompressed, "
                f"{len(compressed) / 1024:.1f} KB compressed)",
                Severity.RESPONSE,
            )

        artifact = ImageArtifact(
            identifier=image_id,
            filename=reception.filename,
            compressed=compressed,
            decompressed=decompressed,
            duration_s=duration,
        )
        self._output.artifact(artifact)
        log.info(
            "image.completed",
            image_id=image_id,
            compressed_bytes=len(compressed),
            decompressed=decompressed is not None,
            duration_s=round(duration, 3),
        )
        if self._hooks is not None:
            self._hooks.fire("image.completed", artifact)

        del self.receptions[reception.total]
        self._output.log(f"Image reception cleanup completed for {image_id}", Severity.INFO)
        return ChunkDisposition.COMPLETED if decompressed is not None else ChunkDisposition.FAILED

    # ------------------------------------------------------------------ #
    #  Inspection and management                                           #
    # ------------------------------------------------------------------ #

    def missing(self, total: int) -> list[int]:
        reception = self.receptions.get(total)
        if reception is None:
            return []
        return reception.missing()

    def status(self) -> list[ReceptionStatus]:
        now = self._clock()
        return [
            ReceptionStatus(
                image_id=r.image_id,
                total=r.total,
                received=r.received_count,
                missing=r.missing(),
                elapsed_s=now - r.started_at,
                filename=r.filename,
                retransmit_attempts=r.retransmit_attempts,
            )
            for r in self.receptions.values()
        ]

    def report_status(self) -> None:
        """Write a status block for every open reception to the output sink."""
        statuses = self.status()
        if not statuses:
            self._output.log("No active image receptions", Severity.INFO)
            return
        self._output.log("Active Image Receptions:", Severity.INFO)
        for s in statuses:
            self._output.log(
                f"  {s.image_id}: {s.progress:.1f}% complete, {len(s.missing)} missing, "
                f"{s.elapsed_s:.1f}s elapsed",
                Severity.INFO,
            )
            if s.missing:
                self._output.log(f"    Missing: {format_missing(s.missing, 20)}", Severity.INFO)

    def discard(self, total: int) -> bool:
        return self.receptions.pop(total, None) is not None

    def clear(self) -> int:
        count = len(self.receptions)
        self.receptions.clear()
        self._output.log(f"Cleared {count} image reception buffers", Severity.INFO)
        return count


def format_missing(missing: list[int], limit: int) -> str:
    """``"1, 2, 3"``, truncated to ``limit`` entries with a ``(+N more)`` suffix."""
    shown = ", ".join(str(i) for i in missing[:limit])
    if len(missing) > limit:
        return f"{shown}... (+{len(missing) - limit} more)"
    return shown


def _valid_end(text: str) -> int:
    """Length of ``text`` once trailing non-base64 characters are dropped."""
    end = len(text)
    while end > TAG_SIZE and text[end - 1] not in _BASE64_CHARS:
        end -= 1
    return end
