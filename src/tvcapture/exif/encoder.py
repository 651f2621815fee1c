"""
EXIF Metadata Encoder

Builds the EXIF block embedded in every capture and serializes it with
piexif, whose layout is what existing capture consumers read:

- Big-endian ("MM") TIFF header, 0th IFD at offset 8
- 0th IFD entries sorted by tag, then the Exif IFD pointer entry, then a zero
  next-IFD offset, then the 0th IFD's out-of-line values
- Exif IFD entries sorted by tag, then its values

The full CaptureMetadata record travels as UTF-16LE JSON in the Windows
XPComment tag, which Explorer shows as the image comment.
"""

import logging
import struct
from datetime import datetime
from typing import Any

import piexif
from piexif import ExifIFD, ImageIFD
from pydantic import ValidationError

from ..capture.errors import ExifSpliceError
from ..capture.job import CaptureMetadata
from .jpeg import EXIF_HEADER, extract_exif

logger = logging.getLogger(__name__)

__all__ = [
    "ExifIFD",
    "ImageIFD",
    "build_capture_exif",
    "dump_capture_exif",
    "dump_exif",
    "format_exif_datetime",
    "load_exif",
    "read_capture_metadata",
]


def format_exif_datetime(value: datetime) -> str:
    """Format a timestamp as EXIF "YYYY:MM:DD HH:mm:ss" in its own wall-clock time."""
    return value.strftime("%Y:%m:%d %H:%M:%S")


def build_capture_exif(metadata: CaptureMetadata, software: str) -> dict[str, dict[int, Any]]:
    """
    Build the EXIF groups for one capture.

    Args:
        metadata: Capture facts, composited flags already set for this output
        software: Value of the Software tag ("<product> version <version>")

    Returns:
        {"0th": {...}, "Exif": {...}} keyed by tag number
    """
    # All-colon separators are what EXIF readers expect
    timestamp = format_exif_datetime(metadata.captured_at)

    return {
        "0th": {
            ImageIFD.XResolution: (72, 1),
            ImageIFD.YResolution: (72, 1),
            ImageIFD.ResolutionUnit: 2,
            ImageIFD.YCbCrPositioning: 1,
            ImageIFD.DateTime: timestamp,
            ImageIFD.Software: software,
            ImageIFD.XPComment: metadata.to_json().encode("utf-16-le"),
        },
        "Exif": {
            ExifIFD.ExifVersion: b"0230",
            ExifIFD.ComponentsConfiguration: b"\x01\x02\x03\x00",
            ExifIFD.FlashpixVersion: b"0100",
            ExifIFD.ColorSpace: 1,
            ExifIFD.DateTimeOriginal: timestamp,
            ExifIFD.DateTimeDigitized: timestamp,
        },
    }


def dump_exif(groups: dict[str, dict[int, Any]]) -> bytes:
    """
    Serialize EXIF groups into an APP1 payload (starting with "Exif\\0\\0").

    Raises:
        ExifSpliceError: If a tag is unknown or a value can't be packed
    """
    try:
        return piexif.dump(groups)
    except KeyError as e:
        raise ExifSpliceError(f"unknown EXIF tag {e.args[0]}") from e
    except (struct.error, TypeError, ValueError) as e:
        raise ExifSpliceError(f"failed to pack EXIF value: {e}") from e


def dump_capture_exif(metadata: CaptureMetadata, software: str) -> bytes:
    """Build and serialize the EXIF block for one capture."""
    return dump_exif(build_capture_exif(metadata, software))


def load_exif(payload: bytes) -> dict[str, Any]:
    """
    Parse an APP1 EXIF payload into piexif's {"0th": {...}, "Exif": {...}, ...}.

    ASCII values come back as bytes, BYTE values as tuples of ints.

    Raises:
        ExifSpliceError: If the payload is not a well-formed EXIF block
    """
    # piexif treats anything it doesn't recognize as a file path
    if not payload.startswith(EXIF_HEADER):
        raise ExifSpliceError("payload is not an EXIF block")

    try:
        return piexif.load(payload)
    except (struct.error, IndexError, KeyError, ValueError) as e:
        raise ExifSpliceError(f"malformed EXIF block: {e}") from e


def read_capture_metadata(jpeg: bytes) -> CaptureMetadata:
    """
    Recover the CaptureMetadata record embedded in a capture JPEG.

    Raises:
        ExifSpliceError: If the image has no EXIF block or no capture record
    """
    payload = extract_exif(jpeg)
    if payload is None:
        raise ExifSpliceError("image carries no EXIF block")

    comment = load_exif(payload)["0th"].get(ImageIFD.XPComment)
    if comment is None:
        raise ExifSpliceError("EXIF block has no XPComment capture record")

    try:
        return CaptureMetadata.model_validate_json(bytes(comment).decode("utf-16-le"))
    except (UnicodeDecodeError, ValidationError) as e:
        raise ExifSpliceError(f"XPComment is not a capture record: {e}") from e
