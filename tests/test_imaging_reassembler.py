"""Tests for image chunk parsing, reception bookkeeping and reconstruction."""

from __future__ import annotations

import pytest

from tests.conftest import FakeClock, RecordingOutput, image_payloads, make_chunk
from tgs.core.base import Severity
from tgs.errors import ReconstructionError
from tgs.imaging.reassembler import ImageReassembler, format_missing
from tgs.models.frame import ImageChunkFrame
from tgs.models.reception import ChunkDisposition, ImageReception
from tgs.observability.hooks import HookManager


def _chunk(payload: str, total: int, index: int, header: str = "SEND") -> ImageChunkFrame:
    return ImageChunkFrame(header=header, data=make_chunk(payload, total, index, header))


@pytest.fixture
def reassembler(output: RecordingOutput, clock: FakeClock) -> ImageReassembler:
    return ImageReassembler(output=output, clock=clock)


# --------------------------------------------------------------------------- #
#  Chunk parsing                                                               #
# --------------------------------------------------------------------------- #


class TestParseChunk:
    def test_valid_chunk(self) -> None:
        meta = ImageReassembler.parse_chunk(_chunk("QUJD", 5, 2))
        assert meta is not None
        assert (meta.header, meta.total, meta.index, meta.payload) == ("SEND", 5, 2, "QUJD")

    def test_trailing_non_base64_ignored(self) -> None:
        frame = ImageChunkFrame(header="RETX", data=b"RETXQUJD00050002\r")
        meta = ImageReassembler.parse_chunk(frame)
        assert meta is not None
        assert meta.index == 2

    @pytest.mark.parametrize(
        "data",
        [
            b"SENDroot",
            b"SEND00050005",
            b"SENDQUJD00000000",
            b"SENDQUJD00050005",
            b"SENDQUJD0005000x",
        ],
    )
    def test_not_a_chunk(self, data: bytes) -> None:
        assert ImageReassembler.parse_chunk(ImageChunkFrame(header="SEND", data=data)) is None

    def test_short_reply_is_a_response(
        self, reassembler: ImageReassembler, output: RecordingOutput
    ) -> None:
        frame = ImageChunkFrame(header="SEND", data=b"SENDroot")
        assert reassembler.accept(frame) == ChunkDisposition.RESPONSE
        assert output.messages == [("root", Severity.RESPONSE)]
        assert reassembler.receptions == {}


# --------------------------------------------------------------------------- #
#  Completion                                                                  #
# --------------------------------------------------------------------------- #


class TestCompletion:
    def test_in_order(
        self, reassembler: ImageReassembler, output: RecordingOutput, jpeg_bytes: bytes
    ) -> None:
        payloads = image_payloads(jpeg_bytes, 5)
        results = [reassembler.accept(_chunk(p, 5, i)) for i, p in enumerate(payloads)]

        assert results == [ChunkDisposition.STORED] * 4 + [ChunkDisposition.COMPLETED]
        assert len(output.artifacts) == 1
        artifact = output.artifacts[0]
        assert artifact.identifier == "img_5"
        assert artifact.filename == "image_5.jpg.gz"
        assert artifact.decompressed == jpeg_bytes
        assert artifact.compressed[:2] == b"\x1f\x8b"
        assert reassembler.receptions == {}
        assert output.contains("Starting image reception: img_5 (5 chunks expected)")
        assert output.contains("Image img_5: 20.0% (1/5)", Severity.RESPONSE)
        assert output.contains("Image img_5 completed!", Severity.RESPONSE)
        assert output.contains("Image reception cleanup completed for img_5")

    def test_out_of_order(
        self, reassembler: ImageReassembler, output: RecordingOutput, jpeg_bytes: bytes
    ) -> None:
        payloads = image_payloads(jpeg_bytes, 5)
        for i in (3, 1, 4, 0, 2):
            reassembler.accept(_chunk(payloads[i], 5, i))

        assert len(output.artifacts) == 1
        assert output.artifacts[0].identifier == "img_5_1700000000000"
        assert output.artifacts[0].decompressed == jpeg_bytes

    def test_duplicate_is_silent(
        self, reassembler: ImageReassembler, output: RecordingOutput
    ) -> None:
        reassembler.accept(_chunk("QUJD", 3, 1))
        before = list(output.messages)
        assert reassembler.accept(_chunk("QUJD", 3, 1)) == ChunkDisposition.DUPLICATE
        assert output.messages == before
        assert reassembler.receptions[3].received_count == 1

    def test_not_gzip_publishes_raw_bytes_and_closes(
        self, reassembler: ImageReassembler, output: RecordingOutput
    ) -> None:
        for index in (3, 0, 1, 2):
            assert reassembler.accept(_chunk("A" * 50, 5, index)) == ChunkDisposition.STORED
        assert reassembler.accept(_chunk("A" * 50, 5, 4)) == ChunkDisposition.FAILED

        assert len(output.artifacts) == 1
        artifact = output.artifacts[0]
        assert artifact.compressed == b"\x00" * 187
        assert artifact.decompressed is None
        assert output.contains("doesn't start with gzip magic number", Severity.WARNING)
        assert output.contains("Failed to decompress gzip", Severity.WARNING)
        assert 5 not in reassembler.receptions

    def test_next_image_after_undecompressable_one(
        self, reassembler: ImageReassembler, output: RecordingOutput, jpeg_bytes: bytes
    ) -> None:
        for index in range(5):
            reassembler.accept(_chunk("QUJD", 5, index))

        dispositions = [
            reassembler.accept(_chunk(payload, 5, index))
            for index, payload in enumerate(image_payloads(jpeg_bytes, 5))
        ]

        assert dispositions == [ChunkDisposition.STORED] * 4 + [ChunkDisposition.COMPLETED]
        assert len(output.artifacts) == 2
        assert output.artifacts[1].decompressed == jpeg_bytes
        assert reassembler.receptions == {}

    def test_invalid_base64_fails(
        self, reassembler: ImageReassembler, output: RecordingOutput
    ) -> None:
        assert reassembler.accept(_chunk("QQ=A", 1, 0)) == ChunkDisposition.FAILED
        assert output.artifacts == []
        assert output.contains("Invalid base64 characters detected in img_1", Severity.ERROR)
        assert reassembler.missing(1) == [0]

    def test_invalid_base64_reception_can_be_refilled(
        self, reassembler: ImageReassembler, output: RecordingOutput, jpeg_bytes: bytes
    ) -> None:
        reassembler.accept(_chunk("QQ=A", 2, 0))
        assert reassembler.accept(_chunk("QUJD", 2, 1)) == ChunkDisposition.FAILED
        assert reassembler.missing(2) == [0, 1]

        first, second = image_payloads(jpeg_bytes, 2)
        assert reassembler.accept(_chunk(second, 2, 1, header="RETX")) == ChunkDisposition.STORED
        assert reassembler.accept(_chunk(first, 2, 0, header="RETX")) == ChunkDisposition.COMPLETED
        assert output.artifacts[0].decompressed == jpeg_bytes
        assert reassembler.receptions == {}

    def test_completion_hooks(self, output: RecordingOutput, jpeg_bytes: bytes) -> None:
        hooks = HookManager()
        chunks: list[ChunkDisposition] = []
        completed = []
        hooks.register("image.chunk", lambda meta, disposition: chunks.append(disposition))
        hooks.register("image.completed", completed.append)
        reassembler = ImageReassembler(output=output, hooks=hooks)

        for i, p in enumerate(image_payloads(jpeg_bytes, 2)):
            reassembler.accept(_chunk(p, 2, i))
        reassembler.accept(ImageChunkFrame(header="SEND", data=b"SENDok"))

        assert chunks == [
            ChunkDisposition.STORED,
            ChunkDisposition.COMPLETED,
            ChunkDisposition.RESPONSE,
        ]
        assert [a.identifier for a in completed] == ["img_2"]


# --------------------------------------------------------------------------- #
#  Reconstruction                                                              #
# --------------------------------------------------------------------------- #


def _reception(total: int, chunks: dict[int, str]) -> ImageReception:
    return ImageReception(
        image_id=f"img_{total}",
        total=total,
        filename="x.jpg.gz.chunked",
        started_at=0.0,
        last_activity=0.0,
        chunks=chunks,
    )


class TestReconstruct:
    def test_padding_stripped_from_all_but_last(self, reassembler: ImageReassembler) -> None:
        reception = _reception(2, {0: "QUJD==", 1: "RA=="})
        assert reassembler.reconstruct(reception) == b"ABCD"

    def test_missing_padding_restored(self, reassembler: ImageReassembler) -> None:
        assert reassembler.reconstruct(_reception(1, {0: "QUJDRA"})) == b"ABCD"

    def test_missing_chunk(self, reassembler: ImageReassembler) -> None:
        with pytest.raises(ReconstructionError, match="Missing chunk 1 during reconstruction of img_2"):
            reassembler.reconstruct(_reception(2, {0: "QUJD"}))


# --------------------------------------------------------------------------- #
#  Filenames and bookkeeping                                                   #
# --------------------------------------------------------------------------- #


class TestBookkeeping:
    def test_expected_filename(
        self, reassembler: ImageReassembler, output: RecordingOutput
    ) -> None:
        reassembler.expect_image("/data/cam.jpg.gz")
        reassembler.accept(_chunk("QUJD", 3, 0))
        assert output.contains("Expecting image: /data/cam.jpg.gz")
        assert reassembler.receptions[3].filename == "/data/cam.jpg.gz.chunked"

    def test_default_filename(self, reassembler: ImageReassembler) -> None:
        reassembler.accept(_chunk("QUJD", 3, 0))
        assert reassembler.receptions[3].filename == "image_3.jpg.gz"

    def test_missing(self, reassembler: ImageReassembler) -> None:
        reassembler.accept(_chunk("QUJD", 4, 2))
        assert reassembler.missing(4) == [0, 1, 3]
        assert reassembler.missing(9) == []

    def test_status(
        self, reassembler: ImageReassembler, output: RecordingOutput, clock: FakeClock
    ) -> None:
        reassembler.accept(_chunk("QUJD", 4, 0))
        clock.advance(12.0)

        [status] = reassembler.status()
        assert status.image_id == "img_4"
        assert status.received == 1
        assert status.missing == [1, 2, 3]
        assert status.elapsed_s == pytest.approx(12.0)
        assert status.progress == pytest.approx(25.0)

        reassembler.report_status()
        assert output.contains("  img_4: 25.0% complete, 3 missing, 12.0s elapsed")
        assert output.contains("    Missing: 1, 2, 3")

    def test_report_status_empty(
        self, reassembler: ImageReassembler, output: RecordingOutput
    ) -> None:
        reassembler.report_status()
        assert output.texts() == ["No active image receptions"]

    def test_discard_and_clear(
        self, reassembler: ImageReassembler, output: RecordingOutput
    ) -> None:
        reassembler.accept(_chunk("QUJD", 3, 0))
        reassembler.accept(_chunk("QUJD", 4, 0))
        assert reassembler.discard(3) is True
        assert reassembler.discard(3) is False
        assert reassembler.clear() == 1
        assert reassembler.receptions == {}
        assert output.contains("Cleared 1 image reception buffers")


class TestFormatMissing:
    def test_short_list(self) -> None:
        assert format_missing([1, 5, 9], 10) == "1, 5, 9"

    def test_truncated(self) -> None:
        assert format_missing(list(range(12)), 10) == "0, 1, 2, 3, 4, 5, 6, 7, 8, 9... (+2 more)"
