"""Face and landmark detection using InsightFace.

The detection models are loaded at most once per process through the
ModelRegistry singleton. Loading happens off the event loop; once ready
the models are never reloaded or invalidated.
"""

import asyncio
import logging
import os
import threading
from functools import lru_cache
from typing import Any, Protocol

import cv2
import numpy as np

from nounify.core.config import get_settings
from nounify.core.device import get_onnx_providers, has_gpu_provider
from nounify.core.errors import ModelLoadFailure
from nounify.faces.geometry import DetectionResult, LandmarkSet

logger = logging.getLogger(__name__)

# Sub-resources of the InsightFace model pack: coarse detector + landmark predictor
DETECTOR_MODULE = "detection"
LANDMARK_MODULE = "landmark_2d_106"
REQUIRED_MODULES = (DETECTOR_MODULE, LANDMARK_MODULE)

# Eye contour indices in the 106-point layout
LEFT_EYE_INDICES = tuple(range(33, 43))
RIGHT_EYE_INDICES = tuple(range(87, 97))


class LandmarkDetector(Protocol):
    """Anything that can turn an RGB image into per-face landmark sets."""

    def detect(
        self, image: "np.ndarray[Any, Any]", min_confidence: float
    ) -> DetectionResult: ...


def _load_face_analysis() -> Any:
    """Load and prepare the InsightFace model pack (blocking)."""
    try:
        from insightface.app import FaceAnalysis
    except ImportError as e:
        raise ModelLoadFailure(
            "InsightFace not installed. Install with: pip install insightface onnxruntime"
        ) from e

    settings = get_settings()
    providers = get_onnx_providers()
    try:
        app = FaceAnalysis(
            name=settings.face_model_name,
            root=os.path.expanduser(settings.face_model_root),
            allowed_modules=list(REQUIRED_MODULES),
            providers=providers,
        )
    except Exception as e:
        raise ModelLoadFailure(f"Could not load model pack {settings.face_model_name}") from e

    # Loading is all-or-nothing per artifact
    for module in REQUIRED_MODULES:
        if module not in app.models:
            raise ModelLoadFailure("Model pack is missing a required model", artifact=module)

    ctx_id = 0 if has_gpu_provider() else -1
    size = settings.face_det_size
    app.prepare(ctx_id=ctx_id, det_thresh=settings.face_det_floor_threshold, det_size=(size, size))

    provider_name = providers[0] if providers else "CPU"
    logger.info(f"Loaded InsightFace models ({settings.face_model_name}) with {provider_name}")
    return app


class ModelRegistry:
    """Process-wide, write-once cache of the detection models.

    Lifecycle: `ensure_ready()` loads the models on first use; concurrent
    callers wait on the same load. After a successful load `is_ready()` is
    permanently true. A failed load is remembered and re-raised on every
    later call rather than retried.
    """

    def __init__(self, loader: Any = _load_face_analysis) -> None:
        self._loader = loader
        self._models: Any | None = None
        self._failure: ModelLoadFailure | None = None
        self._load_count = 0
        self._async_lock: asyncio.Lock | None = None
        self._thread_lock = threading.Lock()

    def is_ready(self) -> bool:
        """Whether the models are loaded and usable."""
        return self._models is not None

    @property
    def load_count(self) -> int:
        """Number of load attempts made (0 or 1 in normal operation)."""
        return self._load_count

    @property
    def failure(self) -> ModelLoadFailure | None:
        return self._failure

    @property
    def models(self) -> Any:
        """Loaded models.

        Raises:
            ModelLoadFailure: If the models are not loaded
        """
        if self._models is None:
            raise self._failure or ModelLoadFailure("Models have not been loaded")
        return self._models

    def _load_blocking(self) -> Any:
        with self._thread_lock:
            if self._models is not None:
                return self._models
            if self._failure is not None:
                raise self._failure

            self._load_count += 1
            try:
                self._models = self._loader()
            except ModelLoadFailure as e:
                self._failure = e
                logger.error(f"Model load failed: {e}")
                raise
            except Exception as e:
                self._failure = ModelLoadFailure(f"Model load failed: {e}")
                logger.error(str(self._failure))
                raise self._failure from e
            return self._models

    async def ensure_ready(self) -> Any:
        """Load the models once; later calls return immediately."""
        if self._models is not None:
            return self._models
        if self._failure is not None:
            raise self._failure

        if self._async_lock is None:
            self._async_lock = asyncio.Lock()
        async with self._async_lock:
            if self._models is not None:
                return self._models
            return await asyncio.to_thread(self._load_blocking)

    def reset(self) -> None:
        """Forget loaded models and any recorded failure. Useful for testing."""
        with self._thread_lock:
            self._models = None
            self._failure = None
            self._load_count = 0
            self._async_lock = None


@lru_cache(maxsize=1)
def get_model_registry() -> ModelRegistry:
    """Get the process-wide model registry."""
    return ModelRegistry()


def _eye_points(landmarks: "np.ndarray[Any, Any] | None", indices: tuple[int, ...]) -> list[Any]:
    if landmarks is None or len(landmarks) <= max(indices):
        return []
    return [landmarks[i] for i in indices]


class InsightFaceLandmarkDetector:
    """LandmarkDetector backed by the InsightFace detection + 106-point landmark models."""

    def __init__(self, registry: ModelRegistry | None = None, min_face_size: int = 0):
        self.registry = registry or get_model_registry()
        self.min_face_size = min_face_size

    def detect(self, image: "np.ndarray[Any, Any]", min_confidence: float) -> DetectionResult:
        """Detect faces and eye contours in an RGB image.

        Args:
            image: RGB image as numpy array (H, W, 3)
            min_confidence: Minimum detection confidence threshold

        Returns:
            Landmark sets in detector order
        """
        app = self.registry.models

        # InsightFace expects BGR input
        bgr = cv2.cvtColor(image, cv2.COLOR_RGB2BGR)
        faces = app.get(bgr)

        results = []
        for face in faces:
            if face.det_score < min_confidence:
                continue

            x1, y1, x2, y2 = face.bbox.astype(int)
            w, h = x2 - x1, y2 - y1
            if w < self.min_face_size or h < self.min_face_size:
                continue

            lmk = getattr(face, "landmark_2d_106", None)
            results.append(
                LandmarkSet.from_coordinates(
                    left_eye=_eye_points(lmk, LEFT_EYE_INDICES),
                    right_eye=_eye_points(lmk, RIGHT_EYE_INDICES),
                    confidence=float(face.det_score),
                    bbox=(int(x1), int(y1), int(w), int(h)),
                )
            )

        logger.debug(f"Detected {len(results)} faces in image")
        return tuple(results)
