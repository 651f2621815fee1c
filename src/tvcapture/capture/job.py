"""
Capture job data structures.

A CaptureJob is built once per capture request by the player side and handed
to the compositor, which returns a CompositeResult holding the encoded JPEGs.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

import numpy as np
from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_serializer,
    field_validator,
)

from .errors import FrameConsumedError, JobAlreadyProcessedError, PreconditionError


class CaptureMode(str, Enum):
    """Which captures to produce when a subtitle layer is available."""

    VIDEO_ONLY = "VideoOnly"  # Never composite subtitles
    COMPOSITING_CAPTION = "CompositingCaption"  # Subtitled capture replaces the plain one
    BOTH = "Both"  # Plain and subtitled captures side by side


class Frame:
    """
    Raw captured video frame with single-owner semantics.

    The pixel buffer can be read with view() as long as the frame is owned,
    or moved out exactly once with take(). After take() every access raises
    FrameConsumedError, so a frame handed to the direct-transfer path can't be
    drawn again by another path.
    """

    def __init__(self, pixels: np.ndarray):
        if pixels.ndim != 3 or pixels.shape[2] not in (3, 4):
            raise PreconditionError(
                f"frame must be an HxWx3 or HxWx4 array, got shape {pixels.shape}"
            )
        if pixels.dtype != np.uint8:
            raise PreconditionError(f"frame must be uint8, got {pixels.dtype}")

        self._pixels: np.ndarray | None = pixels
        self._height, self._width = pixels.shape[:2]

    @property
    def width(self) -> int:
        return self._width

    @property
    def height(self) -> int:
        return self._height

    @property
    def size(self) -> tuple[int, int]:
        """(width, height) in pixels, PIL order."""
        return (self._width, self._height)

    @property
    def consumed(self) -> bool:
        return self._pixels is None

    def view(self) -> np.ndarray:
        """Read-only view of the pixels; the frame keeps ownership."""
        if self._pixels is None:
            raise FrameConsumedError("frame was already transferred to an output surface")
        view = self._pixels.view()
        view.flags.writeable = False
        return view

    def take(self) -> np.ndarray:
        """Move the pixel buffer out of the frame, consuming it."""
        if self._pixels is None:
            raise FrameConsumedError("frame was already transferred to an output surface")
        pixels, self._pixels = self._pixels, None
        return pixels

    def __repr__(self) -> str:
        state = "consumed" if self.consumed else "owned"
        return f"Frame({self._width}x{self._height}, {state})"


class CommentItem(BaseModel):
    """One comment as laid out by the player, in reference coordinates."""

    top: float
    left: float
    color: str
    font_size: float
    text: str

    @field_validator("font_size")
    @classmethod
    def validate_font_size(cls, v):
        if v <= 0:
            raise ValueError(f"font_size must be > 0, got {v}")
        return v


class CommentLayerSpec(BaseModel):
    """Comments to render on top of the capture, with their authoring space."""

    reference_width: float = Field(
        validation_alias=AliasChoices("reference_width", "container_width"),
    )
    reference_height: float = Field(
        validation_alias=AliasChoices("reference_height", "container_height"),
    )
    opacity: float = 1.0
    comments: list[CommentItem] = Field(default_factory=list)

    @field_validator("reference_width", "reference_height")
    @classmethod
    def validate_reference_size(cls, v):
        if v <= 0:
            raise ValueError(f"reference size must be > 0, got {v}")
        return v

    @field_validator("opacity")
    @classmethod
    def validate_opacity(cls, v):
        if not 0.0 <= v <= 1.0:
            raise ValueError(f"opacity must be 0.0-1.0, got {v}")
        return v


class CaptureMetadata(BaseModel):
    """
    Capture provenance embedded in every output as a JSON blob.

    Field order is the serialization order of the blob. The two composited
    flags are written by the compositor per output, never read from callers.
    """

    model_config = ConfigDict(populate_by_name=True)

    captured_at: datetime
    captured_playback_position: float  # Seconds from program start
    network_id: int
    service_id: int
    event_id: int
    title: str
    description: str
    start_time: datetime
    end_time: datetime
    duration: float  # Seconds
    caption_text: str | None = None  # Subtitle on screen at capture time
    caption_composited: bool = Field(default=False, alias="is_caption_composited")
    comment_composited: bool = Field(default=False, alias="is_comment_composited")

    @field_serializer("captured_playback_position", "duration")
    def serialize_seconds(self, v: float) -> int | float:
        # Whole seconds are written as 930, not 930.0
        return int(v) if v.is_integer() else v

    def to_json(self) -> str:
        """Compact JSON using the wire field names."""
        return self.model_dump_json(by_alias=True)


@dataclass(frozen=True)
class CaptureJob:
    """One capture request. Processed exactly once, then discarded."""

    mode: CaptureMode
    frame: Frame
    metadata: CaptureMetadata
    subtitle_layer: np.ndarray | None = None
    overlay_layer: np.ndarray | None = None
    comment_layer_spec: CommentLayerSpec | None = None
    _processed: bool = field(default=False, init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "mode", CaptureMode(self.mode))
        for name in ("subtitle_layer", "overlay_layer"):
            layer = getattr(self, name)
            if layer is None:
                continue
            if layer.ndim != 3 or layer.shape[2] != 4 or layer.dtype != np.uint8:
                raise PreconditionError(
                    f"{name} must be an HxWx4 uint8 RGBA array, "
                    f"got shape {layer.shape} ({layer.dtype})"
                )
            if layer.shape[:2] != (self.frame.height, self.frame.width):
                raise PreconditionError(
                    f"{name} is {layer.shape[1]}x{layer.shape[0]}, "
                    f"frame is {self.frame.width}x{self.frame.height}"
                )

    @property
    def processed(self) -> bool:
        return self._processed

    def mark_processed(self) -> None:
        """Claim the job for processing; a job can only be claimed once."""
        if self._processed:
            raise JobAlreadyProcessedError("capture job was already composited")
        object.__setattr__(self, "_processed", True)


@dataclass
class CompositeResult:
    """Encoded captures; an output not required by the job is None."""

    normal: bytes | None = None  # Without subtitles
    captioned: bytes | None = None  # With subtitles

    @property
    def has_normal(self) -> bool:
        return self.normal is not None

    @property
    def has_captioned(self) -> bool:
        return self.captioned is not None
