"""Execution provider selection for ONNX Runtime inference.

Provider Selection Priority:
1. FORCE_CPU=true (force CPU mode)
2. Auto-detect: CUDA > CoreML > CPU

InsightFace runs its detection and landmark models through ONNX Runtime,
so this is the only device abstraction the pipeline needs.
"""

import os
from functools import lru_cache

from nounify.core.logging import get_logger

logger = get_logger(__name__)

GPU_PROVIDERS = frozenset({"CUDAExecutionProvider", "CoreMLExecutionProvider"})


@lru_cache(maxsize=1)
def get_onnx_providers() -> list[str]:
    """Get ONNX Runtime execution providers in priority order.

    Returns:
        List of ONNX Runtime providers in priority order:
        - CUDAExecutionProvider (NVIDIA GPUs)
        - CoreMLExecutionProvider (Apple Silicon)
        - CPUExecutionProvider (fallback)

    Note:
        Returns ["CPUExecutionProvider"] if onnxruntime is not installed
        or FORCE_CPU is set.
    """
    if os.getenv("FORCE_CPU", "").lower() in ("true", "1", "yes"):
        return ["CPUExecutionProvider"]

    try:
        import onnxruntime as ort

        available = ort.get_available_providers()
    except ImportError:
        logger.warning("onnxruntime not importable, falling back to CPU provider")
        return ["CPUExecutionProvider"]

    # Priority order: CUDA > CoreML > CPU
    priority = [
        "CUDAExecutionProvider",
        "CoreMLExecutionProvider",
        "CPUExecutionProvider",
    ]

    providers = [p for p in priority if p in available]
    return providers or ["CPUExecutionProvider"]


def has_gpu_provider() -> bool:
    """Check if a GPU-accelerated ONNX provider is available."""
    return any(p in GPU_PROVIDERS for p in get_onnx_providers())


def clear_provider_cache() -> None:
    """Clear the cached provider selection. Useful for testing."""
    get_onnx_providers.cache_clear()
