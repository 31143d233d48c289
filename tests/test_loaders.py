"""Tests for the CSV and Parquet recorders and the image file sink."""

from __future__ import annotations

import gzip
from pathlib import Path

import pandas as pd
import pytest

from tgs.loaders import RECORDERS
from tgs.loaders.csv import CsvRecorder, CsvRecorderConfig
from tgs.loaders.images import ImageFileSink, ImageFileSinkConfig
from tgs.loaders.parquet import ParquetRecorder, ParquetRecorderConfig
from tgs.models.dataset import TelemetryLog
from tgs.models.reception import ImageArtifact
from tgs.models.telemetry import PowerStatusRecord, VectorRecord


# --------------------------------------------------------------------------- #
#  Shared fixture                                                              #
# --------------------------------------------------------------------------- #


def _make_log(n: int = 5) -> TelemetryLog:
    log = TelemetryLog()
    for i in range(n):
        log.add(VectorRecord(tag="GYRO", x=float(i), y=0.5, z=-0.5, received_at=float(100 + i)))
    log.add(
        PowerStatusRecord(
            error_code=0, channels=(True, False, True, False), battery_voltage=7.4, received_at=50.0
        )
    )
    return log


# --------------------------------------------------------------------------- #
#  Parquet recorder                                                            #
# --------------------------------------------------------------------------- #


class TestParquetRecorder:
    def test_writes_per_tag(self, tmp_path: Path) -> None:
        recorder = ParquetRecorder(ParquetRecorderConfig(output_dir=tmp_path))
        recorder.record(_make_log())
        assert (tmp_path / "GYRO.parquet").exists()
        assert (tmp_path / "EPSS.parquet").exists()

    def test_roundtrip_values(self, tmp_path: Path) -> None:
        ParquetRecorder(ParquetRecorderConfig(output_dir=tmp_path)).record(_make_log(3))
        df = pd.read_parquet(tmp_path / "GYRO.parquet")
        assert len(df) == 3
        assert list(df["x"]) == pytest.approx([0.0, 1.0, 2.0])

    def test_append_mode(self, tmp_path: Path) -> None:
        recorder = ParquetRecorder(ParquetRecorderConfig(output_dir=tmp_path, overwrite=False))
        recorder.record(_make_log(2))
        recorder.record(_make_log(2))
        df = pd.read_parquet(tmp_path / "GYRO.parquet")
        assert len(df) == 4

    def test_power_columns(self, tmp_path: Path) -> None:
        ParquetRecorder(ParquetRecorderConfig(output_dir=tmp_path)).record(_make_log(1))
        df = pd.read_parquet(tmp_path / "EPSS.parquet")
        assert list(df["channel_2"]) == [False]
        assert df["battery_voltage"].iloc[0] == pytest.approx(7.4)


# --------------------------------------------------------------------------- #
#  CSV recorder                                                                #
# --------------------------------------------------------------------------- #


class TestCsvRecorder:
    def test_writes_csv(self, tmp_path: Path) -> None:
        CsvRecorder(CsvRecorderConfig(output_dir=tmp_path)).record(_make_log())
        df = pd.read_csv(tmp_path / "GYRO.csv")
        assert len(df) == 5
        assert set(df.columns) == {"tag", "received_at", "x", "y", "z"}

    def test_append_keeps_single_header(self, tmp_path: Path) -> None:
        recorder = CsvRecorder(CsvRecorderConfig(output_dir=tmp_path, overwrite=False))
        recorder.record(_make_log(2))
        recorder.record(_make_log(2))
        df = pd.read_csv(tmp_path / "GYRO.csv")
        assert len(df) == 4

    def test_creates_output_dir(self, tmp_path: Path) -> None:
        out = tmp_path / "nested" / "telemetry"
        CsvRecorder(CsvRecorderConfig(output_dir=out)).record(_make_log(1))
        assert (out / "GYRO.csv").exists()


def test_recorder_table() -> None:
    assert set(RECORDERS) == {"csv", "parquet"}
    recorder_cls, config_cls = RECORDERS["parquet"]
    assert recorder_cls is ParquetRecorder
    assert config_cls is ParquetRecorderConfig


# --------------------------------------------------------------------------- #
#  Image file sink                                                             #
# --------------------------------------------------------------------------- #


class TestImageFileSink:
    def test_writes_compressed_and_decompressed(self, tmp_path: Path, jpeg_bytes: bytes) -> None:
        sink = ImageFileSink(ImageFileSinkConfig(output_dir=tmp_path), clock=lambda: 1700000000.5)
        artifact = ImageArtifact(
            identifier="img_5",
            filename="image_5.jpg.gz",
            compressed=gzip.compress(jpeg_bytes),
            decompressed=jpeg_bytes,
        )
        sink.artifact(artifact)

        assert [p.name for p in sink.saved] == [
            "received_img_5_1700000000500.jpg.gz",
            "received_img_5_1700000000500.jpg",
        ]
        assert (tmp_path / "received_img_5_1700000000500.jpg").read_bytes() == jpeg_bytes

    def test_failed_decompression_writes_raw_only(self, tmp_path: Path) -> None:
        sink = ImageFileSink(ImageFileSinkConfig(output_dir=tmp_path), clock=lambda: 1.0)
        sink.artifact(ImageArtifact(identifier="img_2", filename="x", compressed=b"\x00" * 75))
        assert [p.name for p in sink.saved] == ["received_img_2_1000.jpg.gz"]

    def test_compressed_copy_can_be_disabled(self, tmp_path: Path, jpeg_bytes: bytes) -> None:
        config = ImageFileSinkConfig(output_dir=tmp_path, write_compressed=False)
        sink = ImageFileSink(config, clock=lambda: 1.0)
        sink.artifact(
            ImageArtifact(identifier="img_1", filename="x", compressed=b"gz", decompressed=jpeg_bytes)
        )
        assert [p.suffix for p in sink.saved] == [".jpg"]

    def test_messages_go_to_structlog(self, tmp_path: Path) -> None:
        sink = ImageFileSink(ImageFileSinkConfig(output_dir=tmp_path))
        sink.log("Image img_1 completed!")  # should not raise
