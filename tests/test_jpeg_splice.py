"""
Tests for splicing EXIF blocks into JPEG streams.
"""

from io import BytesIO

import numpy as np
import pytest
from PIL import Image

from tvcapture.capture.errors import ExifSpliceError
from tvcapture.exif.encoder import ImageIFD, dump_exif
from tvcapture.exif.jpeg import (
    MAX_SEGMENT_PAYLOAD,
    SOS,
    extract_exif,
    insert_exif,
    split_segments,
)

from conftest import decode_jpeg


@pytest.fixture
def jpeg(noise_pixels):
    buf = BytesIO()
    Image.fromarray(noise_pixels).save(buf, "JPEG", quality=95)
    return buf.getvalue()


def _exif(software: str) -> bytes:
    return dump_exif({"0th": {ImageIFD.Software: software}})


def _scan_data(data: bytes) -> bytes:
    return split_segments(data)[-1]


def _exif_segment_count(data: bytes) -> int:
    return sum(
        1
        for segment in split_segments(data)[:-1]
        if segment[:2] == b"\xff\xe1" and segment[4:10] == b"Exif\x00\x00"
    )


class TestSplitSegments:
    def test_first_and_last(self, jpeg):
        segments = split_segments(jpeg)
        assert segments[0] == b"\xff\xd8"
        assert segments[-1].startswith(SOS)
        assert b"".join(segments) == jpeg

    def test_not_jpeg(self):
        with pytest.raises(ExifSpliceError):
            split_segments(b"\x89PNG\r\n\x1a\n")

    def test_truncated_segment(self, jpeg):
        with pytest.raises(ExifSpliceError):
            split_segments(jpeg[:10])

    def test_missing_sos(self):
        # SOI + a complete APP0 segment, then end of stream
        data = b"\xff\xd8\xff\xe0\x00\x04\x00\x00"
        with pytest.raises(ExifSpliceError):
            split_segments(data)


class TestInsertExif:
    def test_inserted_after_soi(self, jpeg):
        spliced = insert_exif(jpeg, _exif("tvcapture"))
        assert spliced[:4] == b"\xff\xd8\xff\xe1"
        assert extract_exif(spliced) == _exif("tvcapture")

    def test_segment_length_field(self, jpeg):
        payload = _exif("tvcapture")
        spliced = insert_exif(jpeg, payload)
        length = int.from_bytes(spliced[4:6], "big")
        assert length == len(payload) + 2

    def test_scan_data_untouched(self, jpeg):
        spliced = insert_exif(jpeg, _exif("tvcapture"))
        assert _scan_data(spliced) == _scan_data(jpeg)

    def test_pixels_identical(self, jpeg):
        spliced = insert_exif(jpeg, _exif("tvcapture"))
        np.testing.assert_array_equal(decode_jpeg(spliced), decode_jpeg(jpeg))

    def test_replaces_existing_block(self, jpeg):
        first = insert_exif(jpeg, _exif("first"))
        second = insert_exif(first, _exif("second"))
        assert _exif_segment_count(second) == 1
        assert extract_exif(second) == _exif("second")

    def test_drops_additional_blocks(self, jpeg):
        app1 = b"\xff\xe1" + (len(_exif("extra")) + 2).to_bytes(2, "big") + _exif("extra")
        doubled = jpeg[:2] + app1 + app1 + jpeg[2:]
        assert _exif_segment_count(doubled) == 2

        spliced = insert_exif(doubled, _exif("only"))
        assert _exif_segment_count(spliced) == 1
        assert extract_exif(spliced) == _exif("only")

    def test_rejects_non_exif_payload(self, jpeg):
        with pytest.raises(ExifSpliceError):
            insert_exif(jpeg, b"MM\x00\x2a")

    def test_rejects_oversize_payload(self, jpeg):
        payload = b"Exif\x00\x00" + b"\x00" * MAX_SEGMENT_PAYLOAD
        with pytest.raises(ExifSpliceError):
            insert_exif(jpeg, payload)

    def test_rejects_non_jpeg(self):
        with pytest.raises(ExifSpliceError):
            insert_exif(b"not a jpeg", _exif("tvcapture"))


class TestExtractExif:
    def test_none_without_block(self, jpeg):
        assert extract_exif(jpeg) is None
