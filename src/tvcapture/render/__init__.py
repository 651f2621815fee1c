"""
Render module for tvcapture.

Provides:
- LayerCompositor: Frame + layer compositing and JPEG export
- render_comments / layout_comments: Comment overlay rasterization
"""

from .comment_renderer import PlacedComment, apply_opacity, layout_comments, render_comments
from .compositor import LayerCompositor, create_default_compositor

__all__ = [
    "LayerCompositor",
    "create_default_compositor",
    "PlacedComment",
    "apply_opacity",
    "layout_comments",
    "render_comments",
]
