"""Detection pipeline: model readiness, then per-image landmark detection.

Each detection is keyed by (image content key, minimum confidence). A key
has at most one job at a time: callers asking for a key that is already in
flight share its result instead of starting a second detection.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from nounify.core.config import get_settings
from nounify.core.errors import DetectionFailure, ModelLoadFailure
from nounify.faces.detector import (
    InsightFaceLandmarkDetector,
    LandmarkDetector,
    ModelRegistry,
    get_model_registry,
)
from nounify.faces.geometry import DetectionResult
from nounify.render.image import SourceImage

logger = logging.getLogger(__name__)

DetectionKey = tuple[str, float]


class DetectionState(str, Enum):
    """Lifecycle of one detection job."""

    IDLE = "idle"
    MODEL_LOADING = "model_loading"
    DETECTING = "detecting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class DetectionJob:
    """One detection for one (image, threshold) key."""

    key: DetectionKey
    state: DetectionState = DetectionState.IDLE
    result: DetectionResult | None = None
    error: BaseException | None = None
    task: "asyncio.Task[DetectionResult] | None" = field(default=None, repr=False)

    @property
    def in_flight(self) -> bool:
        return self.state in (DetectionState.MODEL_LOADING, DetectionState.DETECTING)


def validate_min_confidence(min_confidence: float | None) -> float:
    """Resolve a threshold, defaulting from settings.

    Raises:
        ValueError: If the threshold is outside [0, 1]
    """
    if min_confidence is None:
        return get_settings().default_min_confidence
    value = float(min_confidence)
    if not 0.0 <= value <= 1.0:
        raise ValueError(f"min_confidence must be within [0, 1], got {min_confidence}")
    return value


def retrieve_exception(task: "asyncio.Task[Any]") -> None:
    """Done callback marking a background task's exception as retrieved.

    Failures are recorded on the job or stage that owns the task, so nobody
    has to await it for the error to be seen.
    """
    if not task.cancelled():
        task.exception()


class DetectionPipeline:
    """Coordinates model loading and deduplicated per-key detection."""

    def __init__(
        self,
        detector: LandmarkDetector | None = None,
        registry: ModelRegistry | None = None,
    ):
        """Initialize detection pipeline.

        Args:
            detector: Landmark detector; defaults to the InsightFace detector
            registry: Model registry; defaults to the process-wide registry
        """
        self.registry = registry or get_model_registry()
        self.detector = detector or InsightFaceLandmarkDetector(self.registry)
        self._jobs: dict[DetectionKey, DetectionJob] = {}
        self.detect_calls = 0

    def is_model_ready(self) -> bool:
        return self.registry.is_ready()

    async def ensure_model(self) -> Any:
        """Wait for model readiness (loads on first call only)."""
        return await self.registry.ensure_ready()

    def job_for(self, image: SourceImage, min_confidence: float | None = None) -> DetectionJob | None:
        key = (image.key, validate_min_confidence(min_confidence))
        return self._jobs.get(key)

    def state(self, image: SourceImage, min_confidence: float | None = None) -> DetectionState:
        job = self.job_for(image, min_confidence)
        return job.state if job is not None else DetectionState.IDLE

    def submit(self, image: SourceImage, min_confidence: float | None = None) -> DetectionJob:
        """Get the job for this key, starting one if none is live.

        In-flight and succeeded jobs are reused. A failed job is replaced by
        a fresh one, since resubmitting is how a user retries.
        """
        threshold = validate_min_confidence(min_confidence)
        key = (image.key, threshold)

        job = self._jobs.get(key)
        if job is not None and job.state != DetectionState.FAILED:
            return job

        job = DetectionJob(key=key)
        job.task = asyncio.create_task(self._run(job, image, threshold))
        job.task.add_done_callback(retrieve_exception)
        self._jobs[key] = job
        return job

    async def detect(
        self, image: SourceImage, min_confidence: float | None = None
    ) -> DetectionResult:
        """Detect faces for (image, threshold), sharing any in-flight job.

        Raises:
            ModelLoadFailure: If the models could not be loaded
            DetectionFailure: If the detector raised for this image
        """
        job = self.submit(image, min_confidence)
        assert job.task is not None
        # Shield so one caller cancelling does not cancel a job others await
        return await asyncio.shield(job.task)

    async def _run(self, job: DetectionJob, image: SourceImage, threshold: float) -> DetectionResult:
        job.state = DetectionState.MODEL_LOADING
        try:
            await self.ensure_model()
        except ModelLoadFailure as e:
            job.state = DetectionState.FAILED
            job.error = e
            raise

        job.state = DetectionState.DETECTING
        self.detect_calls += 1
        try:
            faces = await asyncio.to_thread(self.detector.detect, image.pixels, threshold)
        except Exception as e:
            failure = DetectionFailure(image.key, str(e) or type(e).__name__)
            job.state = DetectionState.FAILED
            job.error = failure
            logger.error(str(failure))
            raise failure from e

        result = tuple(faces)
        job.result = result
        job.state = DetectionState.SUCCEEDED
        logger.info(
            f"Detected {len(result)} faces in image {image.key[:12]} "
            f"(min_confidence={threshold})"
        )
        return result

    def prune(self, keep_image_key: str) -> None:
        """Drop jobs for every image other than `keep_image_key`.

        Dropped in-flight jobs keep running, but nothing can reach their
        results through the pipeline any more.
        """
        for key in [k for k in self._jobs if k[0] != keep_image_key]:
            del self._jobs[key]

    def clear(self) -> None:
        self._jobs.clear()
