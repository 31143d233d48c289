"""Persistence for decoded telemetry and received images."""

from tgs.loaders.csv import CsvRecorder, CsvRecorderConfig
from tgs.loaders.images import ImageFileSink, ImageFileSinkConfig
from tgs.loaders.parquet import ParquetRecorder, ParquetRecorderConfig

RECORDERS = {
    "csv": (CsvRecorder, CsvRecorderConfig),
    "parquet": (ParquetRecorder, ParquetRecorderConfig),
}

__all__ = [
    "CsvRecorder",
    "CsvRecorderConfig",
    "ParquetRecorder",
    "ParquetRecorderConfig",
    "ImageFileSink",
    "ImageFileSinkConfig",
    "RECORDERS",
]
