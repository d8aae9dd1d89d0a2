"""
Image processing module for listing photos.
Handles logo and contact-text watermarking.
"""

from .placement import Anchor, WatermarkMode, compute_layout
from .processor import (
    WatermarkProcessor, WatermarkOptions, PlacementSpec, ImageLoadError, decode_data_uri
)

__all__ = [
    'Anchor',
    'WatermarkMode',
    'compute_layout',
    'WatermarkProcessor',
    'WatermarkOptions',
    'PlacementSpec',
    'ImageLoadError',
    'decode_data_uri',
]
