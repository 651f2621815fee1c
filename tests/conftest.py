"""
Pytest configuration and shared fixtures for tvcapture tests.
"""

import sys
from datetime import datetime, timedelta, timezone
from io import BytesIO
from pathlib import Path

import numpy as np
import pytest
from PIL import Image

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from tvcapture.capture.job import CaptureMetadata, CommentItem, CommentLayerSpec, Frame
from tvcapture.render.compositor import LayerCompositor

JST = timezone(timedelta(hours=9))

FRAME_WIDTH = 64
FRAME_HEIGHT = 48


def decode_jpeg(data: bytes) -> np.ndarray:
    """Decode JPEG bytes to an RGB array."""
    with Image.open(BytesIO(data)) as img:
        return np.array(img.convert("RGB"))


def solid_layer(color: tuple[int, int, int, int], box: tuple[int, int, int, int]) -> np.ndarray:
    """Transparent RGBA layer with one filled rectangle (x1, y1, x2, y2)."""
    layer = np.zeros((FRAME_HEIGHT, FRAME_WIDTH, 4), dtype=np.uint8)
    x1, y1, x2, y2 = box
    layer[y1:y2, x1:x2] = color
    return layer


@pytest.fixture
def noise_pixels():
    """A deterministic 64x48 RGB noise frame buffer."""
    rng = np.random.default_rng(0)
    return rng.integers(0, 256, (FRAME_HEIGHT, FRAME_WIDTH, 3), dtype=np.uint8)


@pytest.fixture
def noise_frame(noise_pixels):
    """A frame owning a copy of the noise buffer."""
    return Frame(noise_pixels.copy())


@pytest.fixture
def gray_frame():
    """A uniform mid-gray frame."""
    return Frame(np.full((FRAME_HEIGHT, FRAME_WIDTH, 3), 128, dtype=np.uint8))


@pytest.fixture
def red_overlay():
    """Superimpose layer: opaque red square in the middle."""
    return solid_layer((255, 0, 0, 255), (16, 16, 48, 48))


@pytest.fixture
def blue_subtitle():
    """Subtitle layer: opaque blue square overlapping the red overlay."""
    return solid_layer((0, 0, 255, 255), (16, 16, 48, 48))


@pytest.fixture
def empty_layer():
    """A fully transparent layer."""
    return np.zeros((FRAME_HEIGHT, FRAME_WIDTH, 4), dtype=np.uint8)


@pytest.fixture
def metadata():
    """Capture metadata as sent by the player."""
    return CaptureMetadata(
        captured_at=datetime(2024, 5, 3, 21, 15, 30, tzinfo=JST),
        captured_playback_position=930.5,
        network_id=32736,
        service_id=1024,
        event_id=12345,
        title="ニュース7",
        description="きょうのニュースと天気",
        start_time=datetime(2024, 5, 3, 21, 0, 0, tzinfo=JST),
        end_time=datetime(2024, 5, 3, 21, 30, 0, tzinfo=JST),
        duration=1800.0,
        caption_text="こんばんは",
    )


@pytest.fixture
def comment_spec():
    """One white comment, authored in a half-size player."""
    return CommentLayerSpec(
        reference_width=FRAME_WIDTH / 2,
        reference_height=FRAME_HEIGHT / 2,
        opacity=1.0,
        comments=[CommentItem(top=4, left=4, color="#FFFFFF", font_size=10, text="www")],
    )


@pytest.fixture
def compositor():
    """A layer compositor using PIL's default font."""
    return LayerCompositor(
        software="KonomiTV version 1.0.0",
        jpeg_quality=99,
        font_paths=["/nonexistent/font.ttf"],
    )
