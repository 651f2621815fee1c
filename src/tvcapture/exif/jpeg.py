"""
JPEG segment splicing for EXIF blocks.

Works on the marker segments in front of the scan data only; everything from
the SOS marker onwards (the entropy-coded image) is copied through untouched,
so the decoded pixels of a spliced JPEG are identical to the original.
"""

import logging
import struct

from ..capture.errors import ExifSpliceError

logger = logging.getLogger(__name__)

SOI = b"\xff\xd8"
SOS = b"\xff\xda"
APP1 = b"\xff\xe1"
EXIF_HEADER = b"Exif\x00\x00"

# Segment length field counts itself (2 bytes) and is 16 bits wide
MAX_SEGMENT_PAYLOAD = 0xFFFF - 2


def split_segments(data: bytes) -> list[bytes]:
    """
    Split a JPEG stream into marker segments.

    The first element is the SOI marker, the last one holds the SOS segment
    and all data that follows it.

    Raises:
        ExifSpliceError: If the stream is not a JPEG or a segment is truncated
    """
    if data[:2] != SOI:
        raise ExifSpliceError("not a JPEG stream (missing SOI marker)")

    segments = [SOI]
    head = 2
    while True:
        if data[head:head + 2] == SOS:
            segments.append(data[head:])
            break

        if data[head:head + 1] != b"\xff" or head + 4 > len(data):
            raise ExifSpliceError(f"malformed JPEG: no marker segment at offset {head}")

        length = struct.unpack(">H", data[head + 2:head + 4])[0]
        end = head + 2 + length
        if length < 2 or end > len(data):
            raise ExifSpliceError(
                f"malformed JPEG: segment {data[head:head + 2].hex()} at offset {head} "
                f"claims {length} bytes"
            )

        segments.append(data[head:end])
        head = end
        if head >= len(data):
            raise ExifSpliceError("malformed JPEG: stream ended before the SOS marker")

    return segments


def _is_exif_segment(segment: bytes) -> bool:
    return segment[:2] == APP1 and segment[4:10] == EXIF_HEADER


def insert_exif(jpeg: bytes, exif: bytes) -> bytes:
    """
    Splice an EXIF block into a JPEG stream.

    The first APP1 Exif segment is replaced and any further ones dropped; a
    stream without one gets the new segment right after SOI.

    Args:
        jpeg: Encoded JPEG bytes
        exif: EXIF payload starting with b"Exif\\x00\\x00"

    Returns:
        New JPEG bytes carrying the EXIF block

    Raises:
        ExifSpliceError: If the payload is not EXIF, is too large for one
            APP1 segment, or the JPEG can't be parsed
    """
    if not exif.startswith(EXIF_HEADER):
        raise ExifSpliceError("payload is not an EXIF block")
    if len(exif) > MAX_SEGMENT_PAYLOAD:
        raise ExifSpliceError(
            f"EXIF block is {len(exif)} bytes, an APP1 segment holds at most "
            f"{MAX_SEGMENT_PAYLOAD}"
        )

    app1 = APP1 + struct.pack(">H", len(exif) + 2) + exif

    merged = []
    replaced = False
    for segment in split_segments(jpeg):
        if _is_exif_segment(segment):
            if not replaced:
                merged.append(app1)
                replaced = True
            continue
        merged.append(segment)

    if not replaced:
        merged.insert(1, app1)

    logger.debug(
        f"Spliced {len(app1)} byte APP1 segment "
        f"({'replaced existing' if replaced else 'inserted after SOI'})"
    )
    return b"".join(merged)


def extract_exif(jpeg: bytes) -> bytes | None:
    """Return the payload of the first APP1 Exif segment, or None."""
    for segment in split_segments(jpeg)[:-1]:
        if _is_exif_segment(segment):
            return segment[4:]
    return None
