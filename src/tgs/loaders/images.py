"""Image file sink — saves completed images next to the operator log."""

from __future__ import annotations

import time
from collections.abc import Callable
from pathlib import Path

from pydantic import BaseModel, Field

from tgs.core.base import LogOutputSink
from tgs.models.reception import ImageArtifact


class ImageFileSinkConfig(BaseModel):
    output_dir: Path = Field(description="Directory where received images are written")
    write_compressed: bool = True
    write_decompressed: bool = True


class ImageFileSink(LogOutputSink):
    """Operator output through structlog, images to disk.

    Each artifact becomes ``received_<id>_<epoch ms>.jpg.gz`` and, when
    decompression succeeded, ``received_<id>_<epoch ms>.jpg``.
    """

    def __init__(
        self,
        config: ImageFileSinkConfig,
        logger_name: str = "tgs.output",
        clock: Callable[[], float] = time.time,
    ) -> None:
        super().__init__(logger_name)
        self.config = config
        self._clock = clock
        self.saved: list[Path] = []

    def artifact(self, artifact: ImageArtifact) -> None:
        super().artifact(artifact)
        out_dir = self.config.output_dir
        out_dir.mkdir(parents=True, exist_ok=True)
        stem = f"received_{artifact.identifier}_{int(self._clock() * 1000)}"

        if self.config.write_compressed:
            self._write(out_dir / f"{stem}.jpg.gz", artifact.compressed)
        if self.config.write_decompressed and artifact.decompressed is not None:
            self._write(out_dir / f"{stem}.jpg", artifact.decompressed)

    def _write(self, path: Path, data: bytes) -> None:
        path.write_bytes(data)
        self.saved.append(path)
        self._log.info("image.saved", path=str(path), bytes=len(data))
