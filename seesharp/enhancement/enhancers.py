"""
Enhancement collaborators.

Any callable PixelBuffer(256x256) -> PlanarTensor(3x256x256) can drive the
compositor. Two are provided:

- TorchEnhancer: wraps a Zero-DCE style torch model (module or TorchScript file)
- CurveEnhancer: model-free light-enhancement curve, used when no model is configured

Requirements:
    - torch (TorchEnhancer only, imported lazily)
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Optional
import numpy as np
from loguru import logger

from seesharp.capture.pixel_buffer import PixelBuffer
from seesharp.core.contracts import EnhanceFn, PlanarTensor
from seesharp.core.errors import GeometryInvalid
from seesharp.enhancement.channel_packing import pack


class CurveEnhancer:
    """
    Light-enhancement curve applied without a network.

    Each iteration applies I' = I + r * (I^2 - I) with a constant r;
    negative r brightens dark pixels while keeping 0 and 1 fixed.
    """

    def __init__(self, curve: float = -0.3, iterations: int = 8):
        """
        Args:
            curve: Curve parameter r, in [-1, 1]
            iterations: Number of curve applications
        """
        if not -1.0 <= curve <= 1.0:
            raise ValueError(f"Curve parameter must be in [-1, 1], got {curve}")
        if iterations < 1:
            raise ValueError(f"Iterations must be >= 1, got {iterations}")
        self.curve = np.float32(curve)
        self.iterations = iterations

    def __call__(self, buffer: PixelBuffer) -> PlanarTensor:
        image = pack(buffer).planes().copy()
        for _ in range(self.iterations):
            image = image + self.curve * (np.square(image) - image)
        return PlanarTensor(data=image.reshape(-1), width=buffer.width, height=buffer.height)


class TorchEnhancer:
    """
    Torch enhancement model adapter.

    Input is the buffer's RGB channels as a (1, 3, H, W) float tensor in [0, 1];
    output is expected as (1, 3, H, W). Models returning a tuple (Zero-DCE
    returns intermediate images and curve maps) are indexed with output_index.
    """

    def __init__(
        self,
        model: Optional[Any] = None,
        model_path: Optional[str] = None,
        device: Optional[str] = None,
        output_index: int = 0,
    ):
        """
        Args:
            model: A torch.nn.Module (takes precedence over model_path)
            model_path: Path to a TorchScript file
            device: "cuda", "mps" or "cpu"; auto-detected if None
            output_index: Element to use when the model returns a tuple
        """
        if model is None and model_path is None:
            raise ValueError("TorchEnhancer needs a model or a model_path")

        import torch

        self.device = device or self._detect_device(torch)
        self.output_index = output_index

        if model is None:
            logger.info(f"Loading TorchScript enhancer from {model_path}")
            model = torch.jit.load(model_path, map_location=self.device)

        self.model = model.to(self.device)
        self.model.eval()
        logger.info(f"Torch enhancer ready on {self.device}")

    @staticmethod
    def _detect_device(torch) -> str:
        """CUDA > MPS > CPU."""
        if torch.cuda.is_available():
            return "cuda"
        if hasattr(torch.backends, "mps") and torch.backends.mps.is_available():
            return "mps"
        return "cpu"

    def __call__(self, buffer: PixelBuffer) -> PlanarTensor:
        import torch

        planes = pack(buffer).planes()
        batch = torch.from_numpy(np.ascontiguousarray(planes)).unsqueeze(0).to(self.device)

        with torch.inference_mode():
            output = self.model(batch)

        if isinstance(output, (tuple, list)):
            output = output[self.output_index]

        return PlanarTensor.from_array(output.detach().float().cpu().numpy())

    def warmup(self, size: int = 256, runs: int = 3) -> None:
        """Run a few dummy passes to initialize the device context."""
        dummy = PixelBuffer.allocate(size, size, fill=(0, 0, 0, 255))
        for _ in range(runs):
            self(dummy)
        logger.info(f"Torch enhancer warmup complete ({size}x{size})")


# Registry of available enhancers
ENHANCERS: Dict[str, Callable[[Any], EnhanceFn]] = {
    "curve": lambda config: CurveEnhancer(),
    "torch": lambda config: TorchEnhancer(
        model_path=getattr(config, "model_path", None),
        device=getattr(config, "device", None),
    ),
}


def get_enhancer(name: str, config=None) -> EnhanceFn:
    """Get an enhancer instance by name.

    Args:
        name: Enhancer type name (e.g., "torch", "curve")
        config: Configuration object

    Returns:
        Initialized enhancer

    Raises:
        ValueError: If enhancer name is not registered
    """
    if name not in ENHANCERS:
        available = ", ".join(ENHANCERS.keys())
        raise ValueError(f"Unknown enhancer '{name}'. Available: {available}")

    return ENHANCERS[name](config)


def to_model_tensor(output: Any, size: int) -> PlanarTensor:
    """
    Coerce an enhancer's output into a size x size PlanarTensor.

    Accepts a PlanarTensor or a (3, H, W) / (1, 3, H, W) array.

    Raises:
        GeometryInvalid: If the output has the wrong layout or size
    """
    tensor = output if isinstance(output, PlanarTensor) else PlanarTensor.from_array(output)
    if (tensor.width, tensor.height) != (size, size):
        raise GeometryInvalid(
            f"Enhancer produced {tensor.width}x{tensor.height}, expected {size}x{size}"
        )
    return tensor
