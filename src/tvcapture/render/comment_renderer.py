"""
Comment Overlay Renderer

Rasterizes the comments shown on the player onto a transparent layer the
size of the capture. Positions and font sizes were laid out in the player's
comment container, so they are rescaled to the capture resolution:

- x and y scale with the width and height ratios respectively
- Font size and shadow metrics scale with the width ratio only

Each comment gets the same drop shadow the player draws (black at 90%,
offset 1.2px, blur 4px at reference scale).
"""

import functools
import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass

from PIL import Image, ImageColor, ImageDraw, ImageFilter, ImageFont

from ..capture.errors import RenderError
from ..capture.job import CommentLayerSpec

logger = logging.getLogger(__name__)

SHADOW_COLOR = (0, 0, 0)
SHADOW_ALPHA = 0.9
SHADOW_OFFSET = 1.2  # px at reference scale, both axes
SHADOW_BLUR = 4.0  # px at reference scale

# Text top sits on the y coordinate instead of the baseline
TEXT_ANCHOR = "la"


@dataclass
class PlacedComment:
    """A comment in capture pixel coordinates."""

    text: str
    color: str
    x: float
    y: float
    font_size: float
    shadow_offset: float
    shadow_blur: float


def layout_comments(
    spec: CommentLayerSpec,
    target_width: int,
    target_height: int,
) -> list[PlacedComment]:
    """
    Scale comment positions and metrics from the reference space to the target.

    Args:
        spec: Comment layer as laid out by the player
        target_width: Capture width in pixels
        target_height: Capture height in pixels

    Returns:
        Placed comments, in input order
    """
    width_ratio = target_width / spec.reference_width
    height_ratio = target_height / spec.reference_height

    return [
        PlacedComment(
            text=comment.text,
            color=comment.color,
            x=comment.left * width_ratio,
            y=comment.top * height_ratio,
            font_size=comment.font_size * width_ratio,
            shadow_offset=SHADOW_OFFSET * width_ratio,
            shadow_blur=SHADOW_BLUR * width_ratio,
        )
        for comment in spec.comments
    ]


@functools.lru_cache(maxsize=64)
def _get_font(size: float, font_paths: tuple[str, ...]) -> ImageFont.FreeTypeFont:
    """Get a bold font at the given size, with caching and fallback."""
    for path in font_paths:
        try:
            return ImageFont.truetype(path, size)
        except OSError:
            continue

    logger.debug("No configured comment font found, using PIL default font")
    return ImageFont.load_default(size=size)


def _parse_color(color: str) -> tuple[int, int, int, int]:
    try:
        return ImageColor.getcolor(color, "RGBA")
    except ValueError as e:
        raise RenderError(f"invalid comment color {color!r}") from e


def _composite_at(layer: Image.Image, patch: Image.Image, x: int, y: int) -> None:
    """Alpha-composite patch onto layer with its top-left at (x, y), clipping at the edges."""
    source_x, source_y = max(0, -x), max(0, -y)
    if source_x >= patch.width or source_y >= patch.height:
        return
    if x >= layer.width or y >= layer.height:
        return
    layer.alpha_composite(patch, dest=(max(0, x), max(0, y)), source=(source_x, source_y))


def _draw_comment(layer: Image.Image, comment: PlacedComment, font_paths: tuple[str, ...]) -> None:
    """Draw one comment (shadow, then fill) onto the comment layer."""
    if not comment.text:
        return

    red, green, blue, alpha = _parse_color(comment.color)
    font = _get_font(comment.font_size, font_paths)

    # Work on a patch around the text instead of the whole capture
    left, top, right, bottom = ImageDraw.Draw(layer).textbbox(
        (0, 0), comment.text, font=font, anchor=TEXT_ANCHOR
    )
    margin = math.ceil(abs(comment.shadow_offset) + comment.shadow_blur * 1.5) + 2
    origin_x = math.floor(comment.x + left) - margin
    origin_y = math.floor(comment.y + top) - margin
    size = (
        math.ceil(right - left) + 2 * margin + 1,
        math.ceil(bottom - top) + 2 * margin + 1,
    )
    text_x = comment.x - origin_x
    text_y = comment.y - origin_y

    shadow_mask = Image.new("L", size, 0)
    ImageDraw.Draw(shadow_mask).text(
        (text_x + comment.shadow_offset, text_y + comment.shadow_offset),
        comment.text,
        fill=255,
        font=font,
        anchor=TEXT_ANCHOR,
    )
    if comment.shadow_blur > 0:
        # Canvas shadowBlur is twice the Gaussian standard deviation
        shadow_mask = shadow_mask.filter(ImageFilter.GaussianBlur(comment.shadow_blur / 2))
    shadow_scale = SHADOW_ALPHA * alpha / 255
    shadow = Image.new("RGBA", size, SHADOW_COLOR + (0,))
    shadow.putalpha(shadow_mask.point(lambda v: round(v * shadow_scale)))

    fill_mask = Image.new("L", size, 0)
    ImageDraw.Draw(fill_mask).text(
        (text_x, text_y), comment.text, fill=255, font=font, anchor=TEXT_ANCHOR
    )
    if alpha < 255:
        fill_mask = fill_mask.point(lambda v: round(v * alpha / 255))
    fill = Image.new("RGBA", size, (red, green, blue, 0))
    fill.putalpha(fill_mask)

    _composite_at(layer, Image.alpha_composite(shadow, fill), origin_x, origin_y)


def render_comments(
    spec: CommentLayerSpec,
    target_width: int,
    target_height: int,
    font_paths: Sequence[str] | None = None,
) -> Image.Image:
    """
    Render all comments onto a transparent RGBA layer of the target size.

    The layer's global opacity is not applied here; see apply_opacity().

    Args:
        spec: Comment layer as laid out by the player
        target_width: Capture width in pixels
        target_height: Capture height in pixels
        font_paths: Font files to try in order (defaults to configured fonts)

    Returns:
        RGBA image of size (target_width, target_height)

    Raises:
        RenderError: If the layer can't be created or a comment color is invalid
    """
    if font_paths is None:
        from tvcapture.config import font_config

        font_paths = font_config.paths

    try:
        layer = Image.new("RGBA", (target_width, target_height), (0, 0, 0, 0))
    except (ValueError, MemoryError) as e:
        raise RenderError(
            f"cannot create {target_width}x{target_height} comment layer: {e}"
        ) from e

    placed = layout_comments(spec, target_width, target_height)
    for comment in placed:
        _draw_comment(layer, comment, tuple(font_paths))
        logger.debug(
            f"Comment '{comment.text}' at ({comment.x:.1f}, {comment.y:.1f}) "
            f"size {comment.font_size:.1f}px"
        )

    return layer


def apply_opacity(layer: Image.Image, opacity: float) -> Image.Image:
    """Scale the whole layer's alpha by a global opacity (applied once, not per comment)."""
    if opacity >= 1.0:
        return layer
    faded = layer.copy()
    faded.putalpha(layer.getchannel("A").point(lambda v: round(v * opacity)))
    return faded
