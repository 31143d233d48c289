"""CSV recorder — writes decoded telemetry to one CSV file per tag."""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field

from tgs.core.base import Recorder
from tgs.models.dataset import TelemetryLog


class CsvRecorderConfig(BaseModel):
    output_dir: Path = Field(description="Directory where CSV files will be written")
    delimiter: str = ","
    float_format: str = "%.6f"
    overwrite: bool = True


class CsvRecorder(Recorder[CsvRecorderConfig]):
    """Write each tag of a TelemetryLog to ``<output_dir>/<TAG>.csv``."""

    config_class = CsvRecorderConfig

    def setup(self) -> None:
        self.config.output_dir.mkdir(parents=True, exist_ok=True)

    def load(self, telemetry: TelemetryLog) -> None:
        for tag in telemetry.tags():
            df = telemetry.to_dataframe(tag)
            if df.empty:
                continue
            out_path = self.config.output_dir / f"{tag}.csv"
            mode = "w" if self.config.overwrite or not out_path.exists() else "a"
            df.to_csv(
                out_path,
                mode=mode,
                header=mode == "w",
                index=False,
                sep=self.config.delimiter,
                float_format=self.config.float_format,
            )
