"""Tests for eye geometry."""

import itertools
import math

import pytest

from nounify.core.errors import InvalidLandmarks
from nounify.faces.geometry import (
    LandmarkSet,
    Point,
    compute_overlay_transform,
    eye_center,
)
from tests.helpers.fakes import eye_square, face


class TestEyeCenter:
    """Tests for eye_center()."""

    def test_mean_of_contour(self):
        points = [Point(0, 0), Point(4, 0), Point(4, 2), Point(0, 2)]
        assert eye_center(points) == Point(2.0, 1.0)

    def test_mean_not_bounding_box_center(self):
        """Clustered points pull the center toward them."""
        points = [Point(0, 0), Point(0, 0), Point(0, 0), Point(8, 4)]
        center = eye_center(points)

        assert center == Point(2.0, 1.0)
        assert center != Point(4.0, 2.0)

    def test_single_point(self):
        assert eye_center([Point(3.5, -1.0)]) == Point(3.5, -1.0)

    def test_permutation_invariant(self):
        points = [Point(1, 7), Point(3, 2), Point(10, 5), Point(6, 1)]
        expected = eye_center(points)

        for perm in itertools.permutations(points):
            center = eye_center(list(perm))
            assert center.x == pytest.approx(expected.x)
            assert center.y == pytest.approx(expected.y)

    def test_empty_contour_raises(self):
        with pytest.raises(InvalidLandmarks) as exc_info:
            eye_center([], "left_eye")

        assert exc_info.value.feature == "left_eye"

    def test_non_finite_raises(self):
        with pytest.raises(InvalidLandmarks):
            eye_center([Point(float("nan"), 1.0), Point(2.0, 2.0)])


class TestComputeOverlayTransform:
    """Tests for compute_overlay_transform()."""

    def test_horizontal_eyes(self):
        transform = compute_overlay_transform(face(eye_square(100, 200), eye_square(200, 200)))

        assert transform.angle_radians == 0.0
        assert transform.width == pytest.approx(270.0)
        assert transform.height == pytest.approx(144.0)

    def test_vertical_eyes(self):
        transform = compute_overlay_transform(face(eye_square(100, 100), eye_square(100, 200)))

        assert transform.angle_radians == pytest.approx(math.atan2(100, 0))
        assert transform.angle_radians == pytest.approx(math.pi / 2)
        assert transform.width == pytest.approx(0.0)

    def test_anchor_is_left_eye_center(self):
        transform = compute_overlay_transform(face(eye_square(120, 80), eye_square(180, 95)))

        assert transform.anchor == Point(120.0, 80.0)
        assert transform.anchor == transform.left_eye
        assert transform.right_eye == Point(180.0, 95.0)

    def test_tilted_eyes_angle(self):
        transform = compute_overlay_transform(face(eye_square(0, 0), eye_square(50, 50)))

        assert transform.angle_radians == pytest.approx(math.pi / 4)
        assert transform.width == pytest.approx(50 * 2.7)

    def test_eyes_swapped_gives_opposite_direction(self):
        """Right eye left of left eye rotates the eye line by pi."""
        transform = compute_overlay_transform(face(eye_square(200, 100), eye_square(100, 100)))

        assert abs(transform.angle_radians) == pytest.approx(math.pi)
        assert transform.width == pytest.approx(270.0)

    @pytest.mark.parametrize("distance", [10, 37.5, 400])
    def test_aspect_ratio_preserved(self, distance):
        transform = compute_overlay_transform(face(eye_square(0, 0), eye_square(distance, 3)))

        assert transform.width / transform.height == pytest.approx(150 / 80)

    def test_custom_scale_and_asset(self):
        transform = compute_overlay_transform(
            face(eye_square(0, 0), eye_square(100, 0)),
            scale_factor=2.0,
            asset_size=(200, 50),
        )

        assert transform.width == pytest.approx(200.0)
        assert transform.height == pytest.approx(50.0)

    def test_empty_right_eye_raises(self):
        landmarks = LandmarkSet.from_coordinates(left_eye=eye_square(10, 10), right_eye=[])

        with pytest.raises(InvalidLandmarks) as exc_info:
            compute_overlay_transform(landmarks)

        assert exc_info.value.feature == "right_eye"

    def test_transform_is_immutable(self):
        transform = compute_overlay_transform(face(eye_square(0, 0), eye_square(10, 0)))

        with pytest.raises(AttributeError):
            transform.width = 1.0  # type: ignore[misc]
