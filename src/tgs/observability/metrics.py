"""Link metrics — in-process counters for one ground-station session.

For long-running deployments, bridge these to Prometheus / OpenTelemetry
via the ``HookManager`` in ``hooks.py``.
"""

from __future__ import annotations

import time
from collections import Counter
from dataclasses import dataclass
from threading import Lock

from tgs.models.frame import FrameKind
from tgs.models.reception import ChunkDisposition


@dataclass
class ImageMetric:
    """Accumulated image-transfer counters."""

    chunks: int = 0
    duplicates: int = 0
    responses: int = 0
    completed: int = 0
    failed: int = 0
    retransmit_commands: int = 0

    @property
    def duplicate_ratio(self) -> float:
        if self.chunks == 0:
            return 0.0
        return self.duplicates / self.chunks


class LinkMetrics:
    """Thread-safe accumulator for a single session's link statistics."""

    def __init__(self, session_name: str) -> None:
        self.session_name = session_name
        self._lock = Lock()
        self._bytes_in = 0
        self._bytes_out = 0
        self._frames: Counter[str] = Counter()
        self._tags: Counter[str] = Counter()
        self._decode_errors: Counter[str] = Counter()
        self._overflow_discards = 0
        self._discarded_bytes = 0
        self._images = ImageMetric()
        self._start_time = time.perf_counter()

    # ------------------------------------------------------------------ #
    #  Recording                                                           #
    # ------------------------------------------------------------------ #

    def record_bytes_in(self, count: int) -> None:
        with self._lock:
            self._bytes_in += count

    def record_bytes_out(self, count: int) -> None:
        with self._lock:
            self._bytes_out += count

    def record_frame(self, kind: FrameKind, tag: str | None = None) -> None:
        with self._lock:
            self._frames[kind.value] += 1
            if tag is not None:
                self._tags[tag] += 1

    def record_decode_error(self, tag: str) -> None:
        with self._lock:
            self._decode_errors[tag] += 1

    def record_overflow(self, discarded: int) -> None:
        with self._lock:
            self._overflow_discards += 1
            self._discarded_bytes += discarded

    def record_chunk(self, disposition: ChunkDisposition) -> None:
        with self._lock:
            m = self._images
            if disposition == ChunkDisposition.RESPONSE:
                m.responses += 1
                return
            m.chunks += 1
            if disposition == ChunkDisposition.DUPLICATE:
                m.duplicates += 1
            elif disposition == ChunkDisposition.COMPLETED:
                m.completed += 1
            elif disposition == ChunkDisposition.FAILED:
                m.failed += 1

    def record_retransmit(self, commands: int) -> None:
        with self._lock:
            self._images.retransmit_commands += commands

    # ------------------------------------------------------------------ #
    #  Querying                                                            #
    # ------------------------------------------------------------------ #

    @property
    def bytes_in(self) -> int:
        return self._bytes_in

    @property
    def bytes_out(self) -> int:
        return self._bytes_out

    @property
    def overflow_discards(self) -> int:
        return self._overflow_discards

    @property
    def images(self) -> ImageMetric:
        return self._images

    @property
    def elapsed_s(self) -> float:
        return time.perf_counter() - self._start_time

    def frames(self, kind: FrameKind) -> int:
        return self._frames[kind.value]

    def tag_count(self, tag: str) -> int:
        return self._tags[tag]

    def decode_errors(self, tag: str | None = None) -> int:
        if tag is None:
            return sum(self._decode_errors.values())
        return self._decode_errors[tag]

    def snapshot(self) -> dict[str, object]:
        """Return a serialisable metrics snapshot."""
        with self._lock:
            m = self._images
            return {
                "session": self.session_name,
                "elapsed_s": round(self.elapsed_s, 4),
                "bytes_in": self._bytes_in,
                "bytes_out": self._bytes_out,
                "frames": dict(self._frames),
                "tags": dict(self._tags),
                "decode_errors": dict(self._decode_errors),
                "overflow_discards": self._overflow_discards,
                "discarded_bytes": self._discarded_bytes,
                "images": {
                    "chunks": m.chunks,
                    "duplicates": m.duplicates,
                    "responses": m.responses,
                    "completed": m.completed,
                    "failed": m.failed,
                    "retransmit_commands": m.retransmit_commands,
                    "duplicate_ratio": round(m.duplicate_ratio, 4),
                },
            }
