"""Eye geometry derived from facial landmarks.

Pure functions that turn a detected face's eye contours into the transform
used to place the eyewear overlay: eye centers, rotation of the eye line,
and overlay size.
"""

import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from nounify.core.errors import InvalidLandmarks

# Empirical ratio between overlay width and horizontal eye distance
DEFAULT_SCALE_FACTOR = 2.7

# Native size of the red noggles asset (width, height)
DEFAULT_ASSET_SIZE = (150, 80)


@dataclass(frozen=True)
class Point:
    """2D coordinate in source-image pixel space (y grows downward)."""

    x: float
    y: float


@dataclass(frozen=True)
class LandmarkSet:
    """Landmarks for one detected face.

    Only the eye contours are required for compositing. Confidence and
    bounding box are carried through from the detector when available.
    """

    left_eye: tuple[Point, ...]
    right_eye: tuple[Point, ...]
    confidence: float | None = None
    bbox: tuple[int, int, int, int] | None = None  # (x, y, w, h)

    @classmethod
    def from_coordinates(
        cls,
        left_eye: Iterable[Sequence[float]],
        right_eye: Iterable[Sequence[float]],
        confidence: float | None = None,
        bbox: tuple[int, int, int, int] | None = None,
    ) -> "LandmarkSet":
        """Build a landmark set from raw (x, y) pairs."""
        return cls(
            left_eye=tuple(Point(float(x), float(y)) for x, y in left_eye),
            right_eye=tuple(Point(float(x), float(y)) for x, y in right_eye),
            confidence=confidence,
            bbox=bbox,
        )


# One LandmarkSet per face, in detector order
DetectionResult = tuple[LandmarkSet, ...]


@dataclass(frozen=True)
class OverlayTransform:
    """Placement of the overlay for one face.

    The overlay is centered on `anchor` before rotation and rotated by
    `angle_radians` about that same point.
    """

    anchor: Point
    width: float
    height: float
    angle_radians: float
    left_eye: Point = field(compare=False)
    right_eye: Point = field(compare=False)


def eye_center(points: Sequence[Point], feature: str = "eye") -> Point:
    """Arithmetic mean of an eye contour.

    Args:
        points: Contour points of one eye
        feature: Feature name used in the error message

    Returns:
        Point whose x and y are the independent means of the contour

    Raises:
        InvalidLandmarks: If the contour is empty or has non-finite coordinates
    """
    if len(points) == 0:
        raise InvalidLandmarks(feature)

    x = sum(p.x for p in points) / len(points)
    y = sum(p.y for p in points) / len(points)
    if not (math.isfinite(x) and math.isfinite(y)):
        raise InvalidLandmarks(feature, "non-finite coordinates")
    return Point(x, y)


def compute_overlay_transform(
    landmarks: LandmarkSet,
    scale_factor: float = DEFAULT_SCALE_FACTOR,
    asset_size: tuple[int, int] = DEFAULT_ASSET_SIZE,
) -> OverlayTransform:
    """Compute where and how the overlay is drawn for one face.

    The overlay is anchored on the left eye center rather than the midpoint
    between the eyes; together with the scale factor this positions the
    noggles asset so its left lens sits over the left eye.

    Raises:
        InvalidLandmarks: If either eye contour is degenerate
    """
    left = eye_center(landmarks.left_eye, "left_eye")
    right = eye_center(landmarks.right_eye, "right_eye")

    dx = right.x - left.x
    dy = right.y - left.y
    angle = math.atan2(dy, dx)

    asset_width, asset_height = asset_size
    width = abs(right.x - left.x) * scale_factor
    height = width * asset_height / asset_width

    return OverlayTransform(
        anchor=left,
        width=width,
        height=height,
        angle_radians=angle,
        left_eye=left,
        right_eye=right,
    )
