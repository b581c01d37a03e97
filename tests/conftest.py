"""Pytest configuration and fixtures."""

from collections.abc import Callable
from typing import Any

import numpy as np
import pytest

from nounify.faces.detector import ModelRegistry
from nounify.faces.pipeline import DetectionPipeline
from nounify.render.image import SourceImage, decode_image
from nounify.render.overlay import OverlayAsset
from nounify.services.render_service import RenderStage
from tests.helpers.fakes import FakeDetector, make_png_bytes


@pytest.fixture(autouse=True)
def clear_settings_cache(monkeypatch):
    """Clear settings cache around each test so env overrides never leak."""
    from nounify.core.config import get_settings

    for var in ("OVERLAY_PATH", "DEFAULT_MIN_CONFIDENCE", "OUTPUT_FILENAME", "OVERLAY_SCALE_FACTOR"):
        monkeypatch.delenv(var, raising=False)

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def png_bytes() -> bytes:
    return make_png_bytes()


@pytest.fixture
def source_image(png_bytes) -> SourceImage:
    return decode_image(png_bytes)


@pytest.fixture
def make_source() -> Callable[..., SourceImage]:
    """Factory for decoded test images of a given size."""

    def _make(width: int = 64, height: int = 48, **kwargs: Any) -> SourceImage:
        return decode_image(make_png_bytes(width, height, **kwargs))

    return _make


@pytest.fixture
def loader_calls() -> list[int]:
    return []


@pytest.fixture
def registry(loader_calls) -> ModelRegistry:
    """Registry whose loader returns a placeholder instead of InsightFace."""

    def _loader() -> object:
        loader_calls.append(1)
        return object()

    return ModelRegistry(loader=_loader)


@pytest.fixture
def fake_detector() -> FakeDetector:
    return FakeDetector()


@pytest.fixture
def pipeline(fake_detector, registry) -> DetectionPipeline:
    return DetectionPipeline(detector=fake_detector, registry=registry)


@pytest.fixture
def overlay_pixels() -> "np.ndarray[Any, Any]":
    """Solid opaque red 150x80 overlay."""
    pixels = np.zeros((80, 150, 4), dtype=np.uint8)
    pixels[..., 0] = 255
    pixels[..., 3] = 255
    return pixels


@pytest.fixture
def overlay() -> OverlayAsset:
    return OverlayAsset()


@pytest.fixture
def stage(pipeline, overlay) -> RenderStage:
    return RenderStage(pipeline=pipeline, overlay=overlay)
