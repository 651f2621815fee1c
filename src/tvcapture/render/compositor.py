"""
Layer Compositor

Draws a captured frame and its optional layers onto one opaque surface and
exports it as a JPEG carrying the capture EXIF block.

Draw order is fixed: frame -> superimpose -> subtitle (captioned only) ->
comments. When nothing needs to be drawn over the frame, the direct-transfer
path moves the frame buffer into the output surface without any blending.
"""

import logging
import time
from io import BytesIO

import numpy as np
from PIL import Image

from ..capture.errors import EncodeError, PreconditionError
from ..capture.job import CaptureMetadata, CommentLayerSpec, Frame
from ..exif.encoder import dump_capture_exif
from ..exif.jpeg import insert_exif
from .comment_renderer import apply_opacity, render_comments

logger = logging.getLogger(__name__)


def _opaque_surface(pixels: np.ndarray) -> Image.Image:
    """Wrap frame pixels as an RGB surface; a frame alpha channel is dropped."""
    surface = Image.fromarray(pixels)
    if surface.mode != "RGB":
        surface = surface.convert("RGB")
    return surface


def _draw_layer(surface: Image.Image, layer: np.ndarray) -> None:
    """Draw an RGBA layer over the surface at full size and opacity."""
    image = Image.fromarray(layer)
    if image.mode != "RGBA":
        image = image.convert("RGBA")
    if image.size != surface.size:
        image = image.resize(surface.size, Image.Resampling.BILINEAR)
    surface.alpha_composite(image)


class LayerCompositor:
    """
    Composites one capture output and encodes it.

    Usage:
        compositor = LayerCompositor(software="KonomiTV version 1.0.0")
        jpeg, metadata = compositor.composite_normal(frame, metadata, overlay_layer=overlay)
    """

    def __init__(
        self,
        software: str,
        jpeg_quality: int = 99,
        font_paths: list[str] | None = None,
    ):
        """
        Initialize the compositor.

        Args:
            software: Value of the EXIF Software tag
            jpeg_quality: JPEG quality (1-100)
            font_paths: Comment fonts to try in order (defaults to configured fonts)
        """
        self.software = software
        self.jpeg_quality = jpeg_quality
        self.font_paths = font_paths

    def composite_direct(
        self,
        frame: Frame,
        metadata: CaptureMetadata,
        overlay_layer: np.ndarray | None = None,
        comment_layer_spec: CommentLayerSpec | None = None,
    ) -> tuple[bytes, CaptureMetadata]:
        """
        Export the frame as-is by moving its buffer into the output surface.

        The frame is consumed: it can't be viewed or taken again afterwards.
        Only valid when nothing has to be drawn over the frame.

        Returns:
            (JPEG bytes, metadata written into them)

        Raises:
            PreconditionError: If an overlay or comment layer is given
            EncodeError: If the JPEG or its EXIF block can't be produced
        """
        if overlay_layer is not None:
            raise PreconditionError("direct transfer can't draw a superimpose layer")
        if comment_layer_spec is not None:
            raise PreconditionError("direct transfer can't draw comments")

        start_time = time.monotonic()
        metadata = metadata.model_copy(
            update={"caption_composited": False, "comment_composited": False}
        )

        surface = _opaque_surface(frame.take())

        data = self.export_jpeg(surface, metadata)
        logger.info(f"Normal (Direct): {time.monotonic() - start_time:.3f} sec")
        return data, metadata

    def composite_normal(
        self,
        frame: Frame,
        metadata: CaptureMetadata,
        overlay_layer: np.ndarray | None = None,
        comment_layer_spec: CommentLayerSpec | None = None,
    ) -> tuple[bytes, CaptureMetadata]:
        """
        Composite the capture without subtitles.

        Returns:
            (JPEG bytes, metadata written into them)
        """
        start_time = time.monotonic()
        metadata = metadata.model_copy(
            update={
                "caption_composited": False,
                "comment_composited": comment_layer_spec is not None,
            }
        )

        surface = self._composite_layers(frame, overlay_layer, None, comment_layer_spec)

        data = self.export_jpeg(surface, metadata)
        logger.info(f"Normal: {time.monotonic() - start_time:.3f} sec")
        return data, metadata

    def composite_captioned(
        self,
        frame: Frame,
        metadata: CaptureMetadata,
        subtitle_layer: np.ndarray,
        overlay_layer: np.ndarray | None = None,
        comment_layer_spec: CommentLayerSpec | None = None,
    ) -> tuple[bytes, CaptureMetadata]:
        """
        Composite the capture with the subtitle layer drawn in.

        Returns:
            (JPEG bytes, metadata written into them)

        Raises:
            PreconditionError: If no subtitle layer is given
        """
        if subtitle_layer is None:
            raise PreconditionError("captioned capture requires a subtitle layer")

        start_time = time.monotonic()
        metadata = metadata.model_copy(
            update={
                "caption_composited": True,
                "comment_composited": comment_layer_spec is not None,
            }
        )

        surface = self._composite_layers(frame, overlay_layer, subtitle_layer, comment_layer_spec)

        data = self.export_jpeg(surface, metadata)
        logger.info(f"With Caption: {time.monotonic() - start_time:.3f} sec")
        return data, metadata

    def _composite_layers(
        self,
        frame: Frame,
        overlay_layer: np.ndarray | None,
        subtitle_layer: np.ndarray | None,
        comment_layer_spec: CommentLayerSpec | None,
    ) -> Image.Image:
        """Draw frame -> superimpose -> subtitle -> comments; returns an RGB surface."""
        surface = _opaque_surface(frame.view()).convert("RGBA")

        if overlay_layer is not None:
            _draw_layer(surface, overlay_layer)

        if subtitle_layer is not None:
            _draw_layer(surface, subtitle_layer)

        if comment_layer_spec is not None:
            comments = render_comments(
                comment_layer_spec, surface.width, surface.height, self.font_paths
            )
            surface.alpha_composite(apply_opacity(comments, comment_layer_spec.opacity))

        return surface.convert("RGB")

    def export_jpeg(self, surface: Image.Image, metadata: CaptureMetadata) -> bytes:
        """
        Encode the surface as JPEG and splice in the capture EXIF block.

        Raises:
            EncodeError: If encoding fails
            ExifSpliceError: If the EXIF block can't be built or spliced
        """
        start_time = time.monotonic()
        buf = BytesIO()
        try:
            surface.save(buf, "JPEG", quality=self.jpeg_quality)
        except (OSError, ValueError) as e:
            raise EncodeError(f"failed to encode {surface.size} capture as JPEG: {e}") from e

        data = insert_exif(buf.getvalue(), dump_capture_exif(metadata, self.software))
        logger.debug(
            f"Export to JPEG: {len(data)} bytes in {time.monotonic() - start_time:.3f} sec"
        )
        return data


def create_default_compositor() -> LayerCompositor:
    """Create compositor from config."""
    from tvcapture.config import compositor_config, font_config

    return LayerCompositor(
        software=compositor_config.software,
        jpeg_quality=compositor_config.jpeg_quality,
        font_paths=font_config.paths,
    )
