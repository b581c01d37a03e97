"""Services package."""

from nounify.services.render_service import (
    FaceOutcome,
    RenderOutcome,
    RenderStage,
    RenderState,
    render_to_png,
)

__all__ = [
    "FaceOutcome",
    "RenderOutcome",
    "RenderStage",
    "RenderState",
    "render_to_png",
]
