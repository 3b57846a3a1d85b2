"""
Object Detection Module.

Responsibilities:
- Optional detection on the enhanced preview frame
"""

from .detector import YoloDetector
