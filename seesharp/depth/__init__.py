"""
Depth Module.

Responsibilities:
- Confidence-gated temporal smoothing of sensor depth
"""

from .depth_filter import DepthTemporalFilter, FilterState
