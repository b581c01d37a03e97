"""Overlay compositing onto a raster surface."""

from typing import Any

import numpy as np

from nounify.core.logging import get_logger
from nounify.faces.geometry import OverlayTransform
from nounify.render.overlay import OverlayAsset
from nounify.render.surface import RasterSurface

logger = get_logger(__name__)


def draw_rotated_image(
    surface: RasterSurface, image: "np.ndarray[Any, Any]", transform: OverlayTransform
) -> None:
    """Draw `image` centered on the transform anchor, rotated about it.

    Order: translate to the anchor, rotate the frame, draw offset by half the
    size so the image is centered on the rotated origin, then restore the
    frame so the next draw starts from the untouched transform.
    """
    width, height = transform.width, transform.height
    with surface.saved_state():
        surface.translate(transform.anchor.x, transform.anchor.y)
        surface.rotate(transform.angle_radians)
        surface.draw_image(image, -(width / 2), -(height / 2), width, height)


async def draw_overlay(
    surface: RasterSurface, asset: OverlayAsset, transform: OverlayTransform
) -> None:
    """Composite the overlay asset for one face.

    Waits for the asset to finish decoding before touching the surface.
    """
    pixels = await asset.wait_loaded()
    logger.debug(
        f"Drawing overlay at ({transform.anchor.x:.1f}, {transform.anchor.y:.1f}) "
        f"size {transform.width:.1f}x{transform.height:.1f} angle {transform.angle_radians:.3f}"
    )
    draw_rotated_image(surface, pixels, transform)
