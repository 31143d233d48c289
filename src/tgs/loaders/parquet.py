"""Parquet recorder — persists decoded telemetry to Apache Parquet files.

One file is written per tag, named ``<output_dir>/<TAG>.parquet``, through
``pyarrow`` with Snappy compression by default.
"""

from __future__ import annotations

from pathlib import Path

import pandas as pd
import pyarrow as pa
import pyarrow.parquet as pq
from pydantic import BaseModel, Field

from tgs.core.base import Recorder
from tgs.models.dataset import TelemetryLog


class ParquetRecorderConfig(BaseModel):
    output_dir: Path = Field(description="Directory where Parquet files will be written")
    compression: str = "snappy"
    overwrite: bool = Field(
        default=True,
        description="If False, rows are appended to an existing file for the same tag",
    )


class ParquetRecorder(Recorder[ParquetRecorderConfig]):
    """Write each tag of a TelemetryLog to its own Parquet file."""

    config_class = ParquetRecorderConfig

    def setup(self) -> None:
        self.config.output_dir.mkdir(parents=True, exist_ok=True)

    def load(self, telemetry: TelemetryLog) -> None:
        for tag in telemetry.tags():
            df = telemetry.to_dataframe(tag)
            if df.empty:
                continue
            self._write_df(df, self.config.output_dir / f"{tag}.parquet")

    def _write_df(self, df: pd.DataFrame, path: Path) -> None:
        table = pa.Table.from_pandas(df, preserve_index=False)
        if path.exists() and not self.config.overwrite:
            existing = pq.read_table(path)
            table = pa.concat_tables([existing, table])
        pq.write_table(table, path, compression=self.config.compression)
