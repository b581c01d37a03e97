"""Eyewear overlay asset.

The asset is decoded once, off the event loop. Draws await `wait_loaded()`
so nothing is ever composited from a half-loaded (zero-sized) source.
"""

import asyncio
from pathlib import Path
from typing import Any

import numpy as np
from PIL import Image, ImageDraw, UnidentifiedImageError

from nounify.core.config import get_settings
from nounify.core.errors import OverlayAssetError
from nounify.core.logging import get_logger

logger = get_logger(__name__)

FRAME_RED = (215, 60, 62, 255)
LENS_WHITE = (255, 255, 255, 255)
LENS_BLACK = (0, 0, 0, 255)


def render_noggles(size: tuple[int, int] = (150, 80)) -> Image.Image:
    """Draw the built-in red noggles asset.

    Laid out on a 150x80 grid and scaled to `size`. The left lens is centered
    horizontally on the canvas, which is where the left eye lands.
    """
    base = Image.new("RGBA", (150, 80), (0, 0, 0, 0))
    draw = ImageDraw.Draw(base)

    for outer, inner in (
        ((55, 18, 97, 62), (61, 24, 91, 56)),
        ((108, 18, 149, 62), (114, 24, 143, 56)),
    ):
        draw.rectangle(outer, fill=FRAME_RED)
        x0, y0, x1, y1 = inner
        mid = (x0 + x1) // 2
        draw.rectangle((x0, y0, mid, y1), fill=LENS_WHITE)
        draw.rectangle((mid, y0, x1, y1), fill=LENS_BLACK)

    # bridge
    draw.rectangle((97, 30, 108, 36), fill=FRAME_RED)
    # temple arm
    draw.rectangle((8, 30, 55, 36), fill=FRAME_RED)
    draw.rectangle((8, 30, 14, 46), fill=FRAME_RED)

    if size != base.size:
        base = base.resize(size, Image.Resampling.LANCZOS)
    return base


def _decode_asset(path: str | None, size: tuple[int, int]) -> "np.ndarray[Any, Any]":
    if not path:
        return np.array(render_noggles(size))

    asset_path = Path(path)
    if not asset_path.exists():
        raise OverlayAssetError(f"Overlay asset not found: {path}")
    try:
        with Image.open(asset_path) as img:
            rgba = img.convert("RGBA")
    except (UnidentifiedImageError, OSError) as e:
        raise OverlayAssetError(f"Could not decode overlay asset {path}: {e}") from e

    if rgba.size != size:
        logger.warning(
            f"Overlay asset {path} is {rgba.size[0]}x{rgba.size[1]}, "
            f"expected {size[0]}x{size[1]}; geometry uses the configured size"
        )
    return np.array(rgba)


class OverlayAsset:
    """Lazily decoded RGBA overlay image with fixed native dimensions."""

    def __init__(self, path: str | None = None, size: tuple[int, int] = (150, 80)):
        """Initialize overlay asset.

        Args:
            path: Image file path; None or empty renders the built-in noggles
            size: Native (width, height) used for aspect-ratio geometry
        """
        self.path = path or None
        self.size = size
        self._pixels: "np.ndarray[Any, Any] | None" = None
        self._task: asyncio.Task[Any] | None = None

    @classmethod
    def from_settings(cls) -> "OverlayAsset":
        settings = get_settings()
        return cls(path=settings.overlay_path, size=settings.overlay_size)

    @property
    def is_loaded(self) -> bool:
        return self._pixels is not None

    @property
    def pixels(self) -> "np.ndarray[Any, Any]":
        """Decoded RGBA pixels.

        Raises:
            OverlayAssetError: If the asset has not finished decoding
        """
        if self._pixels is None:
            raise OverlayAssetError("Overlay asset has not finished loading")
        return self._pixels

    async def _load(self) -> "np.ndarray[Any, Any]":
        pixels = await asyncio.to_thread(_decode_asset, self.path, self.size)
        if pixels.shape[0] == 0 or pixels.shape[1] == 0:
            raise OverlayAssetError("Overlay asset decoded to an empty image")
        self._pixels = pixels
        logger.debug(f"Overlay asset ready ({pixels.shape[1]}x{pixels.shape[0]})")
        return pixels

    def start_loading(self) -> "asyncio.Task[Any]":
        """Begin decoding in the background; idempotent until a load fails."""
        task = self._task
        if task is None or (task.done() and (task.cancelled() or task.exception() is not None)):
            self._task = asyncio.create_task(self._load())
        return self._task

    async def wait_loaded(self) -> "np.ndarray[Any, Any]":
        """Wait until the asset is decoded and return its pixels."""
        if self._pixels is not None:
            return self._pixels
        # Shield so a cancelled draw does not abort a load other draws share
        return await asyncio.shield(self.start_loading())
