"""
SeeSharp - Real-time Low-Light Enhancement Core

Enhances live camera frames and full-resolution photos with a fixed-size
(256x256) enhancement model, and temporally smooths the depth stream of an
active depth sensor.

Top Priorities (strict order):
1. Seam-free output (every pixel written by exactly one tile)
2. Deterministic, bit-exact pixel conversion
3. Explicit coordinate conventions (image space vs native space)
4. Temporal stability of depth without losing responsiveness
5. Best-effort degradation under model failure
"""

__version__ = "0.1.0"
__author__ = "SeeSharp Team"
