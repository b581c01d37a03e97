"""Exception hierarchy for the detection-to-composite pipeline.

All pipeline exceptions inherit from NounifyError.

Exception Tree:
    NounifyError (base)
    +-- ModelLoadFailure    (detector models could not be loaded, not retried)
    +-- DetectionFailure    (detector raised for one image, resubmit to retry)
    +-- InvalidLandmarks    (degenerate landmarks for one face, face skipped)
    +-- StaleResult         (result belongs to a superseded input, discarded)
    +-- ExportBlocked       (export requested before the render is ready)
    +-- InvalidImage        (source bytes cannot be decoded)
    +-- OverlayAssetError   (overlay asset cannot be decoded)
"""

from __future__ import annotations


class NounifyError(Exception):
    """Base exception for all pipeline operations."""

    pass


class ModelLoadFailure(NounifyError):
    """Raised when the face detection models cannot be loaded.

    Fatal to the detection capability of the process: the registry
    remembers the failure and re-raises it instead of retrying.

    Attributes:
        artifact: Name of the model artifact that failed, if known.
    """

    def __init__(self, message: str, artifact: str | None = None) -> None:
        self.artifact = artifact
        if artifact:
            message = f"{message} (artifact: {artifact})"
        super().__init__(message)


class DetectionFailure(NounifyError):
    """Raised when face detection fails for a single image.

    Attributes:
        image_key: Content key of the image that failed.
    """

    def __init__(self, image_key: str, reason: str) -> None:
        self.image_key = image_key
        self.reason = reason
        super().__init__(f"Detection failed for image {image_key[:12]}: {reason}")


class InvalidLandmarks(NounifyError):
    """Raised when a landmark set cannot produce eye geometry.

    Attributes:
        feature: The facial feature group that was degenerate.
    """

    def __init__(self, feature: str, reason: str = "no contour points") -> None:
        self.feature = feature
        super().__init__(f"Invalid landmarks for {feature}: {reason}")


class StaleResult(NounifyError):
    """Raised internally when an async result belongs to a superseded epoch.

    Never surfaced to callers.
    """

    def __init__(self, epoch: int, current_epoch: int) -> None:
        self.epoch = epoch
        self.current_epoch = current_epoch
        super().__init__(f"Result for epoch {epoch} is stale (current epoch {current_epoch})")


class ExportBlocked(NounifyError):
    """Raised when export is requested while the render is not ready."""

    pass


class InvalidImage(NounifyError):
    """Raised when a source image cannot be decoded."""

    pass


class OverlayAssetError(NounifyError):
    """Raised when the overlay asset cannot be loaded."""

    pass
