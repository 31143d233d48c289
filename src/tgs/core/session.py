"""Ground-station session — owns all per-link decoding state.

One session wires the framer, telemetry decoder, image reassembler,
retransmission coordinator and text router to a single transport and a
single set of output collaborators.  All state is mutated from one asyncio
task at a time: the read loop, the timeout watcher and command senders run
on the same event loop and never yield in the middle of a frame.
"""

from __future__ import annotations

import asyncio
import contextlib
import time
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Literal

import structlog
from pydantic import BaseModel, Field

from tgs.core.base import (
    NullOrientationSink,
    NullOutputSink,
    OrientationSink,
    OutputSink,
    Severity,
    Transport,
)
from tgs.errors import DecodeError, TransportError
from tgs.framing.classifier import FramerConfig, StreamFramer
from tgs.framing.text import TextLineRouter
from tgs.imaging.reassembler import ImageReassembler, ReassemblerConfig
from tgs.imaging.retransmit import RetransmissionCoordinator, RetransmitConfig
from tgs.loaders.images import ImageFileSinkConfig
from tgs.models.frame import Frame, FrameKind, ImageChunkFrame, TelemetryFrame, TextFrame
from tgs.models.radio import GET_RADIO_CONFIG, RadioLink
from tgs.models.telemetry import AttitudeRecord
from tgs.observability.hooks import HookManager
from tgs.observability.logging import session_context
from tgs.observability.metrics import LinkMetrics
from tgs.telemetry.decoder import TelemetryDecoder
from tgs.transport.serial import SerialConfig

log = structlog.get_logger(__name__)


class SessionConfig(BaseModel):
    """Configuration for one ground-station link session."""

    name: str = "ground-station"
    framer: FramerConfig = Field(default_factory=FramerConfig)
    reassembler: ReassemblerConfig = Field(default_factory=ReassemblerConfig)
    retransmit: RetransmitConfig = Field(default_factory=RetransmitConfig)
    serial: SerialConfig = Field(default_factory=SerialConfig)
    images: ImageFileSinkConfig | None = None

    @classmethod
    def from_file(cls, path: str | Path) -> SessionConfig:
        """Load a JSON configuration file."""
        return cls.model_validate_json(Path(path).read_text(encoding="utf-8"))


class GroundStationSession:
    """Decode one downlink and drive its uplink commands.

    Usage::

        session = GroundStationSession(
            config=SessionConfig(name="pass-0412"),
            transport=SerialTransport(SerialConfig(port="/dev/ttyACM0")),
            output=ImageFileSink(ImageFileSinkConfig(output_dir="images")),
        )
        await session.run()

    Every collaborator is optional; a missing one is replaced by a null
    object.  Without a transport the session can still decode bytes passed
    to ``feed`` (offline replay) but cannot send commands.
    """

    def __init__(
        self,
        config: SessionConfig | None = None,
        transport: Transport | None = None,
        output: OutputSink | None = None,
        orientation: OrientationSink | None = None,
        hooks: HookManager | None = None,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.config = config or SessionConfig()
        self.transport = transport
        self.output = output or NullOutputSink()
        self.orientation = orientation or NullOrientationSink()
        self.hooks = hooks or HookManager()
        self.metrics = LinkMetrics(session_name=self.config.name)

        self.framer = StreamFramer(self.config.framer, hooks=self.hooks)
        self.decoder = TelemetryDecoder(clock=clock)
        self.reassembler = ImageReassembler(
            self.config.reassembler, output=self.output, clock=clock, hooks=self.hooks
        )
        self.retransmit = RetransmissionCoordinator(
            self.reassembler,
            transport=transport,
            output=self.output,
            config=self.config.retransmit,
            clock=clock,
            sleep=sleep,
            hooks=self.hooks,
        )
        self.router = TextLineRouter(self.output, hooks=self.hooks)
        self.hooks.register("buffer.overflow", self.metrics.record_overflow)

    # ------------------------------------------------------------------ #
    #  Inbound                                                             #
    # ------------------------------------------------------------------ #

    def feed(self, data: bytes) -> list[Frame]:
        """Classify newly received bytes and route every complete frame."""
        self.metrics.record_bytes_in(len(data))
        frames = self.framer.feed(data)
        for frame in frames:
            self.route(frame)
        return frames

    def flush(self) -> list[Frame]:
        """Route anything the framer was holding for an idle link."""
        frames = self.framer.flush()
        for frame in frames:
            self.route(frame)
        return frames

    def route(self, frame: Frame) -> None:
        """Route one extracted frame; errors are reported, never raised."""
        try:
            if isinstance(frame, TextFrame):
                self.metrics.record_frame(FrameKind.TEXT)
                self.router.route(frame.line)
            elif isinstance(frame, TelemetryFrame):
                self.metrics.record_frame(FrameKind.TELEMETRY, frame.tag)
                self._telemetry(frame)
            elif isinstance(frame, ImageChunkFrame):
                self.metrics.record_frame(FrameKind.IMAGE_CHUNK, frame.header)
                self.metrics.record_chunk(self.reassembler.accept(frame))
        except Exception as exc:
            self.output.log(f"Error processing {frame.kind} frame: {exc}", Severity.ERROR)
            log.exception("session.dispatch_error", kind=str(frame.kind), error=str(exc))

    def _telemetry(self, frame: TelemetryFrame) -> None:
        try:
            record = self.decoder.decode(frame)
        except DecodeError as exc:
            self.metrics.record_decode_error(exc.tag)
            self.output.log(str(exc), Severity.WARNING)
            log.warning("decoder.error", tag=exc.tag, error=str(exc))
            return
        if record is None:
            return

        for line in record.summary():
            self.output.log(line, Severity.RESPONSE)
        if isinstance(record, AttitudeRecord):
            self.orientation.update_orientation(record.roll, record.pitch, record.yaw)
        self.hooks.fire("telemetry.record", record)

    # ------------------------------------------------------------------ #
    #  Outbound                                                            #
    # ------------------------------------------------------------------ #

    async def send_command(self, command: str) -> bool:
        """Send one command line; return False if it could not be written."""
        command = command.strip()
        if not command:
            return False
        if self.transport is None or not self.transport.is_open:
            self.output.log("Not connected to satellite", Severity.ERROR)
            return False

        self.output.log(f"Sending command: {command}", Severity.COMMAND)
        parts = command.split()
        if parts[0].upper() == "SEND_IMAGE" and len(parts) >= 2:
            self.reassembler.expect_image(parts[1])

        payload = (command + "\n").encode()
        try:
            await self.transport.write(payload)
        except TransportError as exc:
            self.output.log(f"Send error: {exc}", Severity.ERROR)
            log.warning("session.send_failed", command=command, error=str(exc))
            return False
        self.metrics.record_bytes_out(len(payload))
        return True

    async def request_retransmission(self, total: int | None = None) -> list[str]:
        """Request missing chunks for one reception, or for every open one."""
        totals = [total] if total is not None else list(self.reassembler.receptions)
        if not totals:
            self.output.log("No active image receptions", Severity.INFO)
            return []
        sent: list[str] = []
        for t in totals:
            sent.extend(await self.retransmit.request(t))
        self.metrics.record_retransmit(len(sent))
        self.metrics.record_bytes_out(sum(len(c) + 1 for c in sent))
        return sent

    async def configure_radio(self, direction: Literal["uplink", "downlink"], link: RadioLink) -> bool:
        return await self.send_command(link.to_command(direction))

    async def query_radio_config(self) -> bool:
        return await self.send_command(GET_RADIO_CONFIG)

    # ------------------------------------------------------------------ #
    #  Read loop                                                           #
    # ------------------------------------------------------------------ #

    async def run(self) -> None:
        """Read and decode until the transport closes or the task is cancelled.

        An empty read means the link is idle and flushes the framer.  The
        timeout watcher runs alongside and is stopped with the loop.
        """
        if self.transport is None:
            raise TransportError("Session has no transport")

        with session_context(self.config.name):
            log.info("session.start")
            watcher = asyncio.create_task(self.retransmit.watch())
            try:
                while self.transport.is_open:
                    try:
                        data = await self.transport.read()
                    except TransportError as exc:
                        self.output.log(f"Read error: {exc}", Severity.ERROR)
                        log.error("session.read_failed", error=str(exc))
                        break
                    if data:
                        self.feed(data)
                    else:
                        self.flush()
            finally:
                watcher.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await watcher
                log.info("session.stop", **self._counters())

    # ------------------------------------------------------------------ #
    #  Reporting                                                           #
    # ------------------------------------------------------------------ #

    def status(self) -> None:
        """Write the open image receptions to the output sink."""
        self.reassembler.report_status()

    def clear_images(self) -> int:
        return self.reassembler.clear()

    def _counters(self) -> dict[str, int]:
        m = self.metrics
        return {
            "bytes_in": m.bytes_in,
            "bytes_out": m.bytes_out,
            "text": m.frames(FrameKind.TEXT),
            "telemetry": m.frames(FrameKind.TELEMETRY),
            "image_chunks": m.frames(FrameKind.IMAGE_CHUNK),
            "images": m.images.completed,
        }

    def summary(self) -> str:
        m = self.metrics
        lines = [
            f"Session '{self.config.name}'",
            f"  elapsed      : {m.elapsed_s:.3f}s",
            f"  bytes in/out : {m.bytes_in}/{m.bytes_out}",
            f"  text lines   : {m.frames(FrameKind.TEXT)}",
            f"  telemetry    : {m.frames(FrameKind.TELEMETRY)}",
            f"  image chunks : {m.frames(FrameKind.IMAGE_CHUNK)}",
            f"  images       : {m.images.completed} completed, {m.images.failed} failed",
            f"  open         : {len(self.reassembler.receptions)}",
        ]
        if m.decode_errors():
            lines.append(f"  decode errors: {m.decode_errors()}")
        if m.overflow_discards:
            lines.append(f"  overflows    : {m.overflow_discards}")
        return "\n".join(lines)

    def __repr__(self) -> str:
        transport = type(self.transport).__name__ if self.transport else "none"
        return f"GroundStationSession(name={self.config.name!r}, transport={transport!r})"
