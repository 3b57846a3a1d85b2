"""
Low-Light Enhancement Module.

Responsibilities:
- Planar tensor <-> BGRA conversion
- Seam-free tiled enhancement of full-resolution images
- Enhancement model adapters
"""

from .channel_packing import pack, unpack
from .tile_compositor import TileCompositor
from .enhancers import CurveEnhancer, TorchEnhancer, get_enhancer
