"""
Exceptions raised by the capture pipeline.
"""


class CaptureError(Exception):
    """Base class for all capture compositing failures."""


class PreconditionError(CaptureError):
    """A compositing path was invoked with inputs that contradict its contract."""


class FrameConsumedError(PreconditionError):
    """The frame buffer was already moved into an output surface."""


class JobAlreadyProcessedError(PreconditionError):
    """A CaptureJob was handed to composite() more than once."""


class RenderError(CaptureError):
    """The comment layer could not be rasterized."""


class EncodeError(CaptureError):
    """The composited surface could not be exported as a JPEG with metadata."""


class ExifSpliceError(EncodeError):
    """The EXIF block could not be built or spliced into the JPEG stream."""
