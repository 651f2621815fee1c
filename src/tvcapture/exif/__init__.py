"""EXIF module: capture metadata encoding and JPEG splicing."""

from .encoder import (
    build_capture_exif,
    dump_capture_exif,
    dump_exif,
    format_exif_datetime,
    load_exif,
    read_capture_metadata,
)
from .jpeg import extract_exif, insert_exif, split_segments

__all__ = [
    "build_capture_exif",
    "dump_capture_exif",
    "dump_exif",
    "format_exif_datetime",
    "load_exif",
    "read_capture_metadata",
    "extract_exif",
    "insert_exif",
    "split_segments",
]
