"""
tvcapture - Capture Compositing & EXIF Embedding Pipeline

Turns a raw captured TV frame plus optional subtitle, superimpose and
comment layers into JPEG captures carrying program provenance in EXIF.
"""

__version__ = "1.0.0"
__author__ = "tvcapture Team"
