"""Retransmission coordinator — asks the satellite to resend missing chunks.

Requests are ``RETRANSMIT <filename> <idx> <idx> ...`` lines bounded by the
uplink command size limit, sent in batches with a pause between batches.
A periodic scan reports receptions that have gone quiet; it never retries
on its own.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable

import structlog
from pydantic import BaseModel, Field

from tgs.core.base import NullOutputSink, OutputSink, Severity, Transport
from tgs.errors import CommandTooLongError, TransportError
from tgs.imaging.reassembler import ImageReassembler, format_missing
from tgs.models.reception import ImageReception, StalledReception
from tgs.observability.hooks import HookManager

log = structlog.get_logger(__name__)

RETRANSMIT_COMMAND = "RETRANSMIT"


class RetransmitConfig(BaseModel):
    max_command_bytes: int = Field(default=60, gt=0, description="Uplink limit, newline included")
    bytes_per_index: int = Field(default=5, gt=0, description="Budget per index: 4 digits and a space")
    max_attempts: int = Field(default=3, ge=1)
    inter_batch_delay_s: float = Field(default=2.0, ge=0.0)
    timeout_s: float = Field(default=30.0, gt=0.0, description="Quiet time before a reception is reported")
    check_interval_s: float = Field(default=10.0, gt=0.0)
    missing_listed: int = Field(default=50, gt=0)
    manual_example_indices: int = Field(default=4, gt=0)


class RetransmissionCoordinator:
    """Builds and sends retransmit requests for one reassembler's receptions."""

    def __init__(
        self,
        reassembler: ImageReassembler,
        transport: Transport | None = None,
        output: OutputSink | None = None,
        config: RetransmitConfig | None = None,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        hooks: HookManager | None = None,
    ) -> None:
        self.config = config or RetransmitConfig()
        self._reassembler = reassembler
        self._transport = transport
        self._output = output or NullOutputSink()
        self._clock = clock
        self._sleep = sleep
        self._hooks = hooks

    # ------------------------------------------------------------------ #
    #  Command construction                                                #
    # ------------------------------------------------------------------ #

    def batches(self, filename: str, missing: list[int]) -> list[list[int]]:
        """Split ``missing`` into index groups that each fit one command.

        Raises ``CommandTooLongError`` if even a single index does not fit.
        """
        cfg = self.config
        base = f"{RETRANSMIT_COMMAND} {filename} "
        limit = cfg.max_command_bytes - 1
        available = cfg.max_command_bytes - len(base.encode()) - 1
        per_command = max(1, available // cfg.bytes_per_index)

        groups: list[list[int]] = []
        i = 0
        while i < len(missing):
            count = min(per_command, len(missing) - i)
            while len(_command(filename, missing[i : i + count]).encode()) > limit:
                if count == 1:
                    raise CommandTooLongError(
                        f"ERROR: Cannot fit retransmit command in {cfg.max_command_bytes}B limit"
                    )
                count = max(1, count // 2)
            groups.append(missing[i : i + count])
            i += count
        return groups

    def build_commands(self, filename: str, missing: list[int]) -> list[str]:
        return [_command(filename, group) for group in self.batches(filename, missing)]

    # ------------------------------------------------------------------ #
    #  Requests                                                            #
    # ------------------------------------------------------------------ #

    async def request(self, total: int, missing: list[int] | None = None) -> list[str]:
        """Request the missing chunks of the reception with ``total`` chunks.

        ``missing`` defaults to every index not yet received.  Returns the
        commands actually written.  Problems are reported to the output sink.
        """
        reception = self._reassembler.receptions.get(total)
        image_id = reception.image_id if reception is not None else f"img_{total}"

        if self._transport is None or not self._transport.is_open:
            self._output.log("Not connected to satellite", Severity.ERROR)
            return []

        if missing is None:
            missing = self._detect_missing(reception, image_id)
        if not missing:
            self._output.log(f"No missing packets for {image_id}", Severity.INFO)
            return []

        if reception is not None:
            reception.retransmit_attempts += 1
            if reception.retransmit_attempts > self.config.max_attempts:
                self._output.log(
                    f"Maximum retransmit attempts reached for {image_id}", Severity.WARNING
                )
                log.warning("retransmit.abandoned", image_id=image_id)
                return []
            filename = reception.filename
        else:
            filename = self._fallback_filename(total)

        try:
            groups = self.batches(filename, missing)
        except CommandTooLongError as exc:
            self._output.log(str(exc), Severity.ERROR)
            return []

        self._output.log(
            f"Requesting {len(missing)} packets in batches of {len(groups[0])} "
            f"({self.config.max_command_bytes}B limit)",
            Severity.INFO,
        )
        sent: list[str] = []
        for n, group in enumerate(groups, start=1):
            command = _command(filename, group)
            label = f" (batch {n}/{len(groups)})" if len(groups) > 1 else ""
            self._output.log(
                f"Retransmit{label}: {len(group)} packets [{len(command)}B]", Severity.COMMAND
            )
            try:
                await self._transport.write((command + "\n").encode())
            except TransportError as exc:
                self._output.log(f"Retransmission request error: {exc}", Severity.ERROR)
                break
            sent.append(command)
            if n < len(groups):
                await self._sleep(self.config.inter_batch_delay_s)

        attempt = reception.retransmit_attempts if reception is not None else 1
        self._output.log(f"Retransmission request complete (attempt {attempt})", Severity.INFO)
        log.info("retransmit.requested", image_id=image_id, commands=len(sent), indices=len(missing))
        return sent

    def _detect_missing(self, reception: ImageReception | None, image_id: str) -> list[int]:
        if reception is None:
            self._output.log(f"No image reception found for {image_id}", Severity.WARNING)
            return []
        missing = reception.missing()
        if missing:
            self._output.log(
                f"Missing {len(missing)} packets for {image_id}: {format_missing(missing, 10)}",
                Severity.WARNING,
            )
        return missing

    def _fallback_filename(self, total: int) -> str:
        cfg = self._reassembler.config
        return cfg.default_filename.format(total=total) + cfg.chunked_suffix

    # ------------------------------------------------------------------ #
    #  Timeout scan                                                        #
    # ------------------------------------------------------------------ #

    def check_timeouts(self, now: float | None = None) -> list[StalledReception]:
        """Report every reception quiet for longer than ``timeout_s``.

        Each reported reception has its last-activity time refreshed so the
        same stall is reported once per timeout period.
        """
        now = self._clock() if now is None else now
        cfg = self.config
        stalled: list[StalledReception] = []
        for reception in list(self._reassembler.receptions.values()):
            if now - reception.last_activity <= cfg.timeout_s:
                continue
            missing = reception.missing()
            if not missing:
                continue

            image_id = reception.image_id
            self._output.log(
                f"Image {image_id} timeout: {reception.progress:.1f}% complete, "
                f"{len(missing)} packets missing",
                Severity.WARNING,
            )
            self._output.log(
                f"  Missing packets: {format_missing(missing, cfg.missing_listed)}", Severity.INFO
            )
            manual = _command(reception.filename, missing[: cfg.manual_example_indices])
            self._output.log(f"  Use manual retransmit: {manual}", Severity.INFO)
            reception.last_activity = now

            report = StalledReception(
                image_id=image_id,
                total=reception.total,
                missing=missing,
                progress=reception.progress,
                manual_command=manual,
            )
            stalled.append(report)
            log.warning("reception.stalled", image_id=image_id, missing=len(missing))
            if self._hooks is not None:
                self._hooks.fire("reception.stalled", report)
        return stalled

    async def watch(self, interval: float | None = None) -> None:
        """Run ``check_timeouts`` forever; cancel the task to stop it."""
        interval = self.config.check_interval_s if interval is None else interval
        while True:
            await self._sleep(interval)
            try:
                self.check_timeouts()
            except Exception:
                log.exception("retransmit.watch_error")


def _command(filename: str, indices: list[int]) -> str:
    return f"{RETRANSMIT_COMMAND} {filename} {' '.join(str(i) for i in indices)}"
