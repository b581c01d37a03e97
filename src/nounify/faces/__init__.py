"""Face landmark detection and eye geometry.

This module provides landmark detection using InsightFace with a
load-once model registry, and the pure geometry that turns eye contours
into overlay placement.
"""

from nounify.faces.detector import (
    InsightFaceLandmarkDetector,
    ModelRegistry,
    get_model_registry,
)
from nounify.faces.geometry import (
    DetectionResult,
    LandmarkSet,
    OverlayTransform,
    Point,
    compute_overlay_transform,
    eye_center,
)
from nounify.faces.pipeline import DetectionPipeline, DetectionState

__all__ = [
    "DetectionPipeline",
    "DetectionResult",
    "DetectionState",
    "InsightFaceLandmarkDetector",
    "LandmarkSet",
    "ModelRegistry",
    "OverlayTransform",
    "Point",
    "compute_overlay_transform",
    "eye_center",
    "get_model_registry",
]
