"""Fixtures for face detection tests."""

from unittest.mock import MagicMock

import pytest

from nounify.faces.detector import ModelRegistry


@pytest.fixture
def mock_face_analysis():
    """Mock FaceAnalysis app returning no faces by default."""
    app = MagicMock()
    app.get.return_value = []
    return app


@pytest.fixture
def loaded_registry(mock_face_analysis) -> ModelRegistry:
    """Registry that 'loads' the mock FaceAnalysis app."""
    return ModelRegistry(loader=lambda: mock_face_analysis)
