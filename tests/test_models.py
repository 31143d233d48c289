"""Tests for frames, telemetry records, receptions, radio links and TelemetryLog."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from tgs.models.dataset import TelemetryLog
from tgs.models.frame import ImageChunkFrame, TelemetryFrame
from tgs.models.radio import IsmBand, RadioConfig, RadioLink, band_for
from tgs.models.reception import ChunkMetadata, ImageArtifact, ImageReception
from tgs.models.telemetry import (
    PowerStatusRecord,
    SolarArrayRecord,
    SolarPanel,
    VectorRecord,
)


# --------------------------------------------------------------------------- #
#  Frames                                                                      #
# --------------------------------------------------------------------------- #


class TestFrames:
    def test_telemetry_payload(self) -> None:
        frame = TelemetryFrame(tag="OBCR", data=bytearray(b"OBCR\x00\x00\x28\x42"))
        assert isinstance(frame.data, bytes)
        assert frame.payload == b"\x00\x00\x28\x42"

    def test_tag_length_enforced(self) -> None:
        with pytest.raises(ValidationError):
            TelemetryFrame(tag="GY", data=b"GY")

    def test_chunk_text(self) -> None:
        assert ImageChunkFrame(header="SEND", data=b"SENDroot").text == "SENDroot"

    def test_frames_are_frozen(self) -> None:
        frame = TelemetryFrame(tag="RETX", data=b"RETX")
        with pytest.raises(ValidationError):
            frame.tag = "GYRO"  # type: ignore[misc]


# --------------------------------------------------------------------------- #
#  Telemetry records                                                           #
# --------------------------------------------------------------------------- #


class TestRecords:
    def test_vector_unit(self) -> None:
        record = VectorRecord(tag="MAGN", x=1.0, y=2.0, z=3.0)
        assert record.unit == "µT"
        assert record.summary() == ["MAGN - X: 1.000µT, Y: 2.000µT, Z: 3.000µT"]

    def test_power_summary(self) -> None:
        record = PowerStatusRecord(
            error_code=0, channels=(True, True, False, False), battery_voltage=7.42
        )
        assert record.summary() == [
            "Electrical Power System Status:",
            "  EPS Error Code: 0",
            "  Channel 1 State: ON",
            "  Channel 2 State: ON",
            "  Channel 3 State: OFF",
            "  Channel 4 State: OFF",
            "  Battery Voltage: 7.42V",
        ]

    def test_solar_row(self) -> None:
        panels = tuple(
            SolarPanel(name=n, voltage=5.0, current_ma=100.0) for n in ("X-", "X+", "Y-", "Y+")
        )
        row = SolarArrayRecord(panels=panels, received_at=10.0).as_row()
        assert row["X-_voltage"] == 5.0
        assert row["Y+_current_ma"] == 100.0
        assert row["total_power_w"] == pytest.approx(2.0)

    def test_wrong_channel_count(self) -> None:
        with pytest.raises(ValidationError):
            PowerStatusRecord(error_code=0, channels=(True,), battery_voltage=7.0)


# --------------------------------------------------------------------------- #
#  Receptions                                                                  #
# --------------------------------------------------------------------------- #


class TestReception:
    def _reception(self) -> ImageReception:
        return ImageReception(
            image_id="img_4", total=4, filename="a.jpg.gz", started_at=0.0, last_activity=0.0
        )

    def test_store_and_progress(self) -> None:
        r = self._reception()
        assert r.store(1, "QUJD", now=5.0) is True
        assert r.store(1, "RA==", now=6.0) is False
        assert r.chunks[1] == "QUJD"
        assert r.last_activity == 5.0
        assert r.progress == 25.0
        assert r.missing() == [0, 2, 3]
        assert not r.complete

    def test_complete(self) -> None:
        r = self._reception()
        for i in range(4):
            r.store(i, "QUJD", now=1.0)
        assert r.complete
        assert r.missing() == []

    def test_chunk_index_within_total(self) -> None:
        with pytest.raises(ValidationError):
            ChunkMetadata(header="SEND", total=3, index=3, payload="QUJD")

    def test_artifact_coerces_bytes(self) -> None:
        artifact = ImageArtifact(identifier="img_1", filename="a", compressed=bytearray(b"\x1f\x8b"))
        assert artifact.compressed == b"\x1f\x8b"
        assert not artifact.decompressed_ok


# --------------------------------------------------------------------------- #
#  Radio                                                                       #
# --------------------------------------------------------------------------- #


class TestRadio:
    @pytest.mark.parametrize(
        "freq, band", [(433.5, IsmBand.BAND_433), (868.1, IsmBand.BAND_868), (915.0, IsmBand.BAND_915)]
    )
    def test_band_for(self, freq: float, band: IsmBand) -> None:
        assert band_for(freq) == band

    def test_out_of_band_rejected(self) -> None:
        with pytest.raises(ValidationError, match="outside the 915 MHz"):
            RadioLink(radio="rfm95", frequency_mhz=950.0)

    def test_broadcast_node_omitted_from_command(self) -> None:
        link = RadioLink(radio="RFM69", frequency_mhz=433.5)
        assert link.to_command("downlink") == "set_downlink_radio rfm69 433.5"

    def test_node_included_in_command(self) -> None:
        link = RadioLink(radio="rfm95", frequency_mhz=868.0, node=7)
        assert link.to_command("uplink") == "set_uplink_radio rfm95 868 7"

    def test_config_from_lines_ignores_noise(self) -> None:
        config = RadioConfig.from_lines(["garbage", "Uplink: RFM95 @ 915.0 MHz, Node 3"])
        assert config.downlink is None
        assert config.uplink is not None
        assert config.uplink.node == 3


# --------------------------------------------------------------------------- #
#  TelemetryLog                                                                #
# --------------------------------------------------------------------------- #


class TestTelemetryLog:
    def _log(self) -> TelemetryLog:
        log = TelemetryLog()
        log.add(VectorRecord(tag="GYRO", x=1.0, y=0.0, z=0.0, received_at=20.0))
        log.add(VectorRecord(tag="GYRO", x=2.0, y=0.0, z=0.0, received_at=10.0))
        log.add(VectorRecord(tag="ACCL", x=0.0, y=0.0, z=9.8, received_at=15.0))
        return log

    def test_len_and_tags(self) -> None:
        log = self._log()
        assert len(log) == 3
        assert log.tags() == ["ACCL", "GYRO"]
        assert len(log.get("GYRO")) == 2
        assert log.get("POLL") == []

    def test_iter_records(self) -> None:
        assert [r.tag for r in self._log().iter_records()] == ["ACCL", "GYRO", "GYRO"]

    def test_to_dataframe_sorted_by_time(self) -> None:
        df = self._log().to_dataframe("GYRO")
        assert list(df["x"]) == [2.0, 1.0]
        assert set(df.columns) == {"tag", "received_at", "x", "y", "z"}

    def test_to_dataframe_unknown_tag(self) -> None:
        with pytest.raises(KeyError):
            self._log().to_dataframe("POLL")

    def test_repr(self) -> None:
        assert repr(self._log()) == "TelemetryLog(records=3, tags=['ACCL', 'GYRO'])"
