"""Tests for TextLineRouter severity routing and RADIO_CONFIG blocks."""

from __future__ import annotations

import pytest

from tests.conftest import RecordingOutput
from tgs.core.base import Severity
from tgs.framing.text import TextLineRouter
from tgs.models.radio import RadioConfig
from tgs.observability.hooks import HookManager

_BLOCK = [
    "RADIO_CONFIG:",
    "Uplink: RFM95 @ 915.0 MHz, Node 1",
    "Downlink: RFM69 @ 433.5 MHz, Channel 255",
    "END_CONFIG",
]


@pytest.fixture
def router(output: RecordingOutput) -> TextLineRouter:
    return TextLineRouter(output)


class TestSeverity:
    @pytest.mark.parametrize(
        "line",
        [
            "Received command: PING",
            "Ground Station Ready",
            "Error: unknown command",
            "Image capture started",
            "Lost packet 12",
            "Uplink: RFM95 @ 915.0 MHz, Node 1",
        ],
    )
    def test_response_markers(self, router: TextLineRouter, line: str) -> None:
        assert router.route(line) == Severity.RESPONSE

    def test_other_lines_are_info(self, router: TextLineRouter, output: RecordingOutput) -> None:
        assert router.route("loop tick 42") == Severity.INFO
        assert output.messages == [("loop tick 42", Severity.INFO)]

    def test_text_hook(self, output: RecordingOutput) -> None:
        hooks = HookManager()
        seen: list[tuple[str, Severity]] = []
        hooks.register("frame.text", lambda line, severity: seen.append((line, severity)))
        TextLineRouter(output, hooks=hooks).route("hello")
        assert seen == [("hello", Severity.INFO)]


class TestRadioConfigBlock:
    def test_block_is_parsed(self, router: TextLineRouter, output: RecordingOutput) -> None:
        results = [router.route(line) for line in _BLOCK]
        assert results == [Severity.RESPONSE, Severity.RESPONSE, Severity.RESPONSE, None]
        assert not router.collecting_config

        config = router.radio_config
        assert config is not None
        assert config.uplink is not None and config.downlink is not None
        assert config.uplink.radio == "rfm95"
        assert config.uplink.frequency_mhz == 915.0
        assert config.uplink.node == 1
        assert config.downlink.radio == "rfm69"
        assert config.downlink.frequency_mhz == 433.5
        assert config.downlink.node == 255
        assert "END_CONFIG" not in output.texts()
        assert output.contains("Radio uplink: rfm95 @ 915 MHz, node 1", Severity.INFO)

    def test_lines_inside_block_are_responses(self, router: TextLineRouter) -> None:
        router.route("RADIO_CONFIG:")
        assert router.collecting_config
        assert router.route("free-form detail") == Severity.RESPONSE

    def test_config_hook(self, output: RecordingOutput) -> None:
        hooks = HookManager()
        configs: list[RadioConfig] = []
        hooks.register("radio.config", configs.append)
        router = TextLineRouter(output, hooks=hooks)
        for line in _BLOCK:
            router.route(line)
        assert len(configs) == 1
        assert configs[0].downlink is not None

    def test_end_without_block_is_plain_text(self, router: TextLineRouter) -> None:
        assert router.route("END_CONFIG") == Severity.INFO
        assert router.radio_config is None

    def test_reset_abandons_block(self, router: TextLineRouter) -> None:
        router.route("RADIO_CONFIG:")
        router.reset()
        assert not router.collecting_config
