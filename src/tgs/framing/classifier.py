"""Stream framer — splits the raw link byte stream into logical frames.

The link carries three kinds of traffic with no common envelope:

  - image chunks   ``SEND``/``RETX`` + base64 + 8 metadata digits, ended by
                   the first byte outside the base64 alphabet or by the next
                   known tag
  - telemetry      a known 4-byte tag followed by a fixed-size payload, a
                   length-prefixed payload (``POLL``) or a capped echo
                   (``RETX``)
  - text           anything else, one line per CR/LF

Each iteration tries those three in that order on the front of the buffer.
Bytes are only consumed once a whole frame is present, so frames split
across transport deliveries come out the same as a single delivery.  A
buffer that grows past the overflow threshold with no line ending and no
recognised frame is discarded.
"""

from __future__ import annotations

import struct
from enum import Enum
from typing import Annotated

import structlog
from pydantic import BaseModel, Field

from tgs.models.frame import Frame, ImageChunkFrame, TelemetryFrame, TextFrame
from tgs.observability.hooks import HookManager
from tgs.protocol import (
    BASE64_ALPHABET,
    FIXED_FRAME_SIZES,
    IMAGE_HEADERS,
    IMAGE_RETX,
    KNOWN_TAGS,
    LINE_ENDINGS,
    LOOKAHEAD_WINDOW,
    OVERFLOW_THRESHOLD,
    POLL_HEADER_SIZE,
    POLL_TAG,
    RETX_ECHO_MAX,
    TAG_SIZE,
    TELEMETRY_TAGS,
)

log = structlog.get_logger(__name__)


class FramerConfig(BaseModel):
    lookahead_window: Annotated[int, Field(gt=TAG_SIZE)] = Field(
        default=LOOKAHEAD_WINDOW,
        description="Bytes scanned for the end of an image chunk",
    )
    overflow_threshold: Annotated[int, Field(gt=TAG_SIZE)] = Field(
        default=OVERFLOW_THRESHOLD,
        description="Unframed bytes tolerated before the whole buffer is discarded",
    )
    retx_echo_max: Annotated[int, Field(gt=TAG_SIZE)] = RETX_ECHO_MAX
    eager_chunk_fallback: bool = Field(
        default=False,
        description=(
            "If True, an unterminated image chunk shorter than the lookahead window "
            "is emitted as soon as it is seen.  If False it is held until a terminator "
            "arrives or flush() is called on an idle link.  In a live session the "
            "idle flush follows an empty serial read (read_timeout_s, 50 ms by "
            "default), which is what releases short replies."
        ),
    )


class _Step(Enum):
    WAIT = "wait"
    CONSUMED = "consumed"


class StreamFramer:
    """Stateful, restartable demultiplexer for the downlink byte stream."""

    def __init__(self, config: FramerConfig | None = None, hooks: HookManager | None = None) -> None:
        self.config = config or FramerConfig()
        self._hooks = hooks
        self._buffer = bytearray()
        self._skipping_trailer = False
        self._trailer_skipped = 0
        self.overflow_discards = 0
        self.discarded_bytes = 0

    # ------------------------------------------------------------------ #
    #  Public interface                                                    #
    # ------------------------------------------------------------------ #

    @property
    def buffered(self) -> int:
        return len(self._buffer)

    def feed(self, data: bytes) -> list[Frame]:
        """Append newly received bytes and return every frame now complete."""
        if data:
            self._buffer.extend(data)
        return self._drain(idle=False)

    def flush(self) -> list[Frame]:
        """Called when the link goes quiet.

        An image run still waiting for its terminator is taken as ending at
        the end of the buffer; this is how short replies such as
        ``SENDroot`` with no trailing newline get through.
        """
        self._skipping_trailer = False
        return self._drain(idle=True)

    def reset(self) -> None:
        self._buffer.clear()
        self._skipping_trailer = False
        self._trailer_skipped = 0

    # ------------------------------------------------------------------ #
    #  Internal helpers                                                    #
    # ------------------------------------------------------------------ #

    def _drain(self, idle: bool) -> list[Frame]:
        frames: list[Frame] = []
        while self._buffer:
            if self._skipping_trailer:
                if not self._skip_trailer():
                    break
                continue
            result = self._next_frame(idle)
            if result is _Step.WAIT:
                break
            if result is not _Step.CONSUMED:
                frames.append(result)
        return frames

    def _next_frame(self, idle: bool) -> Frame | _Step:
        buf = self._buffer
        head = bytes(buf[:TAG_SIZE])

        if len(buf) > TAG_SIZE and head in IMAGE_HEADERS:
            result = self._image_chunk(head, idle)
            if result is not None:
                return result

        if len(buf) >= TAG_SIZE and head in TELEMETRY_TAGS:
            result = self._telemetry(head, idle)
            if result is not None:
                return result

        return self._text_line()

    def _image_chunk(self, head: bytes, idle: bool) -> Frame | _Step | None:
        """Return a chunk, WAIT, or None to fall through to the next rule."""
        buf = self._buffer
        n = len(buf)
        window = self.config.lookahead_window
        end = self._scan_chunk_end(min(n, window))

        # Newlines are outside the base64 alphabet, so the scan has already
        # stopped at any line ending inside the window.
        if end is None and n < window and (idle or self.config.eager_chunk_fallback):
            end = n

        if end is not None and end > TAG_SIZE:
            frame = ImageChunkFrame(header=head.decode("ascii"), data=bytes(buf[:end]))
            # A chunk cut at the end of the buffer has no trailer to skip.
            self._skipping_trailer = end < n
            self._trailer_skipped = 0
            del buf[:end]
            return frame
        if n < window and not idle:
            return _Step.WAIT
        return None

    def _scan_chunk_end(self, limit: int) -> int | None:
        buf = self._buffer
        n = len(buf)
        for i in range(TAG_SIZE, limit):
            if buf[i] not in BASE64_ALPHABET:
                return i
            if i + TAG_SIZE <= n and bytes(buf[i : i + TAG_SIZE]) in KNOWN_TAGS:
                return i
        return None

    def _skip_trailer(self) -> bool:
        """Drop the bytes trailing an image chunk up to the next line ending.

        Stops without consuming at a known tag.  Returns False when the
        buffer ran out before either was found.
        """
        buf = self._buffer
        n = len(buf)
        for i in range(n):
            if buf[i] in LINE_ENDINGS:
                j = i + 1
                while j < n and buf[j] in LINE_ENDINGS:
                    j += 1
                self._end_trailer(j)
                return True
            if i + TAG_SIZE <= n and bytes(buf[i : i + TAG_SIZE]) in KNOWN_TAGS:
                self._end_trailer(i)
                return True

        # The last few bytes may be the start of a tag; keep them.
        keep = min(n, TAG_SIZE - 1)
        self._trailer_skipped += n - keep
        del buf[: n - keep]
        if self._trailer_skipped > self.config.overflow_threshold:
            self._skipping_trailer = False
            return True
        return False

    def _end_trailer(self, upto: int) -> None:
        del self._buffer[:upto]
        self._skipping_trailer = False
        self._trailer_skipped = 0

    def _telemetry(self, head: bytes, idle: bool) -> Frame | _Step | None:
        buf = self._buffer
        n = len(buf)

        if head in FIXED_FRAME_SIZES:
            size = FIXED_FRAME_SIZES[head]
        elif head == POLL_TAG:
            if n < POLL_HEADER_SIZE:
                return _Step.WAIT
            (payload_len,) = struct.unpack_from("<I", buf, TAG_SIZE)
            size = POLL_HEADER_SIZE + payload_len
            if size > self.config.overflow_threshold:
                log.debug("framer.poll_length_rejected", payload_len=payload_len)
                return None
        elif head == IMAGE_RETX:
            # A bare tag may still turn out to be the start of an image chunk.
            if n <= TAG_SIZE and not idle:
                return _Step.WAIT
            size = min(n, self.config.retx_echo_max)
        else:
            return None

        if n < size:
            return _Step.WAIT

        frame = TelemetryFrame(tag=head.decode("ascii"), data=bytes(buf[:size]))
        del buf[:size]
        return frame

    def _text_line(self) -> Frame | _Step:
        buf = self._buffer
        n = len(buf)
        end = _find_line_end(buf)

        if end < 0:
            if n > self.config.overflow_threshold:
                self._overflow()
            return _Step.WAIT

        line = bytes(buf[:end]).decode("utf-8", errors="replace").strip()
        j = end + 1
        while j < n and buf[j] in LINE_ENDINGS:
            j += 1
        del buf[:j]
        if not line:
            return _Step.CONSUMED
        return TextFrame(line=line)

    def _overflow(self) -> None:
        discarded = len(self._buffer)
        self._buffer.clear()
        self.overflow_discards += 1
        self.discarded_bytes += discarded
        log.warning("framer.overflow", discarded_bytes=discarded)
        if self._hooks is not None:
            self._hooks.fire("buffer.overflow", discarded)


def _find_line_end(buf: bytearray) -> int:
    """Index of the first CR or LF in ``buf``, or -1."""
    lf = buf.find(b"\n")
    cr = buf.find(b"\r")
    if lf < 0:
        return cr
    if cr < 0:
        return lf
    return min(lf, cr)
