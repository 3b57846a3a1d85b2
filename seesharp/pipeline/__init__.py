"""
Pipeline orchestration.
"""

from .orchestrator import EnhancementPipeline, FpsMeter
