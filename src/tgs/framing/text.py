"""Text line routing — classifies ground-station text output for the operator."""

from __future__ import annotations

import structlog

from tgs.core.base import NullOutputSink, OutputSink, Severity
from tgs.models.radio import RadioConfig
from tgs.observability.hooks import HookManager

log = structlog.get_logger(__name__)

CONFIG_START = "RADIO_CONFIG:"
CONFIG_END = "END_CONFIG"

RESPONSE_MARKERS = (
    "Uplink:",
    "Downlink:",
    "Received command:",
    "Ground Station Ready",
    "radio configured",
    "Error:",
    "Image",
    "packet",
)


class TextLineRouter:
    """Route text lines to the output sink and collect ``RADIO_CONFIG`` blocks.

    A block starts with a line that is exactly ``RADIO_CONFIG:`` and ends at
    ``END_CONFIG``.  Lines inside the block are echoed as responses and, once
    the block closes, parsed into a ``RadioConfig`` published on the
    ``radio.config`` hook.
    """

    def __init__(self, output: OutputSink | None = None, hooks: HookManager | None = None) -> None:
        self._output = output or NullOutputSink()
        self._hooks = hooks
        self._config_lines: list[str] | None = None
        self.radio_config: RadioConfig | None = None

    @property
    def collecting_config(self) -> bool:
        return self._config_lines is not None

    def route(self, line: str) -> Severity | None:
        """Route one line; return the severity it was logged with, or None."""
        if line == CONFIG_START:
            self._config_lines = []
            return self._emit(line, Severity.RESPONSE)

        if self._config_lines is not None:
            if line == CONFIG_END:
                self._finish_config()
                return None
            self._config_lines.append(line)
            return self._emit(line, Severity.RESPONSE)

        if any(marker in line for marker in RESPONSE_MARKERS):
            return self._emit(line, Severity.RESPONSE)
        return self._emit(line, Severity.INFO)

    def reset(self) -> None:
        self._config_lines = None

    def _emit(self, line: str, severity: Severity) -> Severity:
        self._output.log(line, severity)
        if self._hooks is not None:
            self._hooks.fire("frame.text", line, severity)
        return severity

    def _finish_config(self) -> None:
        lines, self._config_lines = self._config_lines or [], None
        config = RadioConfig.from_lines(lines)
        self.radio_config = config
        for direction, link in (("uplink", config.uplink), ("downlink", config.downlink)):
            if link is not None:
                self._output.log(
                    f"Radio {direction}: {link.radio} @ {link.frequency_mhz:g} MHz, node {link.node}",
                    Severity.INFO,
                )
        log.info(
            "radio.config",
            uplink=config.uplink.to_command("uplink") if config.uplink else None,
            downlink=config.downlink.to_command("downlink") if config.downlink else None,
        )
        if self._hooks is not None:
            self._hooks.fire("radio.config", config)
