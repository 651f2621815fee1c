"""
Capture module for tvcapture.

Provides:
- CaptureJob / Frame: One capture request and its single-owner frame buffer
- CommentLayerSpec / CommentItem: Comments to render over the capture
- CaptureMetadata: Provenance record embedded in every output
- Exceptions for precondition, render and encode failures
"""

from .errors import (
    CaptureError,
    EncodeError,
    ExifSpliceError,
    FrameConsumedError,
    JobAlreadyProcessedError,
    PreconditionError,
    RenderError,
)
from .job import (
    CaptureJob,
    CaptureMetadata,
    CaptureMode,
    CommentItem,
    CommentLayerSpec,
    CompositeResult,
    Frame,
)

__all__ = [
    "CaptureJob",
    "CaptureMetadata",
    "CaptureMode",
    "CommentItem",
    "CommentLayerSpec",
    "CompositeResult",
    "Frame",
    "CaptureError",
    "EncodeError",
    "ExifSpliceError",
    "FrameConsumedError",
    "JobAlreadyProcessedError",
    "PreconditionError",
    "RenderError",
]
