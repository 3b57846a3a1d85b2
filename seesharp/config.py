"""
Configuration module for the enhancement core.

Defaults live in the Config dataclass. A YAML file (the packaged
settings.yaml unless another path is given) overrides them.

To change defaults for a deployment:
1. Copy settings.yaml next to your launcher
2. Pass its path to load_config()
"""
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional, Union

import yaml
from loguru import logger

from seesharp.core.errors import GeometryInvalid


DEFAULT_SETTINGS_PATH = Path(__file__).parent / "settings.yaml"


@dataclass
class Config:
    """Main configuration for the enhancement pipeline.

    Attributes:
        tile_size: Fixed model input edge length
        max_workers: Tiles enhanced concurrently for photos (1 = serial)
        low_confidence_alpha: Depth history weight for low-confidence pixels
        high_confidence_alpha: Depth reading weight for confident pixels
        low_confidence_ceiling: Highest confidence code treated as low
        use_lidar: Depth sensing active
        use_object_segmentation: Run the detector on preview frames
        frame_budget_ms: Latency budget per preview frame
        fps_window_seconds: Sliding window for FPS measurement
        enhancer: Enhancer name ("torch" or "curve")
        model_path: TorchScript enhancement model
        detector_model_path: YOLO weights for segmentation
        device: Inference device (None = auto)
        log_level: Console log level
        log_file: Optional rotating log file
    """
    # Tiling
    tile_size: int = 256
    max_workers: int = 1

    # Depth filter
    low_confidence_alpha: float = 0.5
    high_confidence_alpha: float = 0.5
    low_confidence_ceiling: int = 1

    # Feature flags
    use_lidar: bool = False
    use_object_segmentation: bool = False

    # Real-time budget
    frame_budget_ms: float = 33.0
    fps_window_seconds: float = 1.5

    # Models
    enhancer: str = "curve"
    model_path: Optional[str] = None
    detector_model_path: str = "yolov8n.pt"
    device: Optional[str] = None

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None

    def __post_init__(self):
        """Validate settings."""
        if self.tile_size <= 0:
            raise GeometryInvalid(f"tile_size must be positive, got {self.tile_size}")
        if self.max_workers < 1:
            self.max_workers = 1


def load_config(path: Optional[Union[str, Path]] = None) -> Config:
    """Load configuration from a YAML file or defaults.

    Args:
        path: YAML file, or None for the packaged settings.yaml

    Returns:
        Config object with all settings
    """
    settings_path = Path(path) if path is not None else DEFAULT_SETTINGS_PATH
    if not settings_path.exists():
        logger.warning(f"Settings file {settings_path} not found, using defaults")
        return Config()

    with open(settings_path) as f:
        raw = yaml.safe_load(f) or {}

    known = {f.name for f in fields(Config)}
    unknown = sorted(set(raw) - known)
    if unknown:
        logger.warning(f"Ignoring unknown settings: {', '.join(unknown)}")

    config = Config(**{k: v for k, v in raw.items() if k in known})
    logger.debug(f"Loaded settings from {settings_path}")
    return config
