"""Example 01 — Replay a captured downlink pass offline.

Scenario
--------
A pass over the ground station produced one raw serial capture in which
text replies, binary telemetry and an image transfer are interleaved.
We want to:
  1. Decode every frame through a GroundStationSession (MemoryTransport)
  2. Save the reassembled image as .jpg.gz and .jpg
  3. Store the decoded telemetry as Parquet files, one per tag

Run this script from the project root::

    python -m examples.01_replay_capture

It writes synthetic data to a temporary directory and processes it.
"""

from __future__ import annotations

import asyncio
import base64
import gzip
import math
import struct
import tempfile
from pathlib import Path

from tgs.core.session import GroundStationSession, SessionConfig
from tgs.loaders.images import ImageFileSink, ImageFileSinkConfig
from tgs.loaders.parquet import ParquetRecorder, ParquetRecorderConfig
from tgs.models.dataset import TelemetryLog
from tgs.observability.logging import configure_logging
from tgs.transport.memory import MemoryTransport


# --------------------------------------------------------------------------- #
#  1. Generate a synthetic capture                                             #
# --------------------------------------------------------------------------- #


def image_chunks(image: bytes, payload_chars: int = 120) -> list[bytes]:
    """Gzip + base64 an image and cut it into SEND chunks with TTTTCCCC metadata."""
    encoded = base64.b64encode(gzip.compress(image)).decode()
    parts = [encoded[i : i + payload_chars] for i in range(0, len(encoded), payload_chars)]
    total = len(parts)
    return [f"SEND{p}{total:04d}{i:04d}\n".encode() for i, p in enumerate(parts)]


def generate_capture(n_samples: int = 20) -> bytes:
    out = bytearray(b"Ground Station Ready\r\n")
    out += b"RADIO_CONFIG:\nUplink: RFM95 @ 915.0 MHz, Node 1\nDownlink: RFM69 @ 915.0 MHz, Node 0\nEND_CONFIG\n"
    for i in range(n_samples):
        t = i / 5.0
        out += b"GYRO" + struct.pack("<3f", math.sin(t), math.cos(t), 0.1 * t)
        out += b"BMED" + struct.pack("<3f", 21.5 + 0.1 * i, 1013.2, 120.0)
        out += b"ADCS" + struct.pack("<7f", 10.0 * math.sin(t), 5.0, 90.0 + i, 0.0, 0.0, 0.0, 1.0)
    out += b"HOST" + b"tempest-sat".ljust(11, b"\x00")

    fake_jpeg = b"\xff\xd8\xff\xe0" + bytes(range(256)) * 8 + b"\xff\xd9"
    for chunk in image_chunks(fake_jpeg):
        out += chunk
    out += b"Received packet: 42 bytes\n"
    return bytes(out)


# --------------------------------------------------------------------------- #
#  2. Replay through a session                                                 #
# --------------------------------------------------------------------------- #


def main() -> None:
    configure_logging(level="INFO", fmt="console")

    with tempfile.TemporaryDirectory(prefix="tgs_example_") as tmpdir:
        tmp = Path(tmpdir)
        capture = tmp / "pass.bin"
        capture.write_bytes(generate_capture())
        print(f"[gen] Wrote {capture.stat().st_size} bytes to {capture}")

        images = ImageFileSink(ImageFileSinkConfig(output_dir=tmp / "images"))
        session = GroundStationSession(
            config=SessionConfig(name="example-pass"),
            transport=MemoryTransport.from_bytes(capture.read_bytes(), chunk_size=37),
            output=images,
        )
        telemetry = TelemetryLog(metadata={"source": capture.name})
        session.hooks.register("telemetry.record", telemetry.add)

        asyncio.run(session.run())
        print(session.summary())

        ParquetRecorder(ParquetRecorderConfig(output_dir=tmp / "parquet_out")).record(telemetry)

        print("\nOutput files:")
        for f in images.saved:
            print(f"  {f.name}: {f.stat().st_size} bytes")
        for f in sorted((tmp / "parquet_out").glob("*.parquet")):
            import pyarrow.parquet as pq
            tbl = pq.read_table(f)
            print(f"  {f.name}: {tbl.num_rows} rows, cols={tbl.schema.names}")


if __name__ == "__main__":
    main()
