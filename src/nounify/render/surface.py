"""RGBA raster surface with a canvas-style transform stack.

Drawing follows the 2D canvas model: a current affine transform that
`translate` and `rotate` post-multiply, a `save`/`restore` state stack, and
`draw_image` that maps a source image into a destination rectangle in the
current coordinate frame. Pixels are stored as a straight-alpha
`uint8` array of shape (height, width, 4).
"""

import io
import math
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import cv2
import numpy as np
from PIL import Image

IDENTITY = np.eye(3, dtype=np.float64)


def _translation(x: float, y: float) -> "np.ndarray[Any, Any]":
    return np.array([[1.0, 0.0, x], [0.0, 1.0, y], [0.0, 0.0, 1.0]])


def _rotation(angle: float) -> "np.ndarray[Any, Any]":
    c, s = math.cos(angle), math.sin(angle)
    return np.array([[c, -s, 0.0], [s, c, 0.0], [0.0, 0.0, 1.0]])


def _scale(sx: float, sy: float) -> "np.ndarray[Any, Any]":
    return np.array([[sx, 0.0, 0.0], [0.0, sy, 0.0], [0.0, 0.0, 1.0]])


def _as_rgba(pixels: "np.ndarray[Any, Any]") -> "np.ndarray[Any, Any]":
    if pixels.ndim != 3 or pixels.shape[2] not in (3, 4):
        raise ValueError(f"Expected an RGB or RGBA image, got shape {pixels.shape}")
    if pixels.shape[2] == 4:
        return pixels.astype(np.uint8, copy=False)
    alpha = np.full(pixels.shape[:2] + (1,), 255, dtype=np.uint8)
    return np.concatenate([pixels.astype(np.uint8, copy=False), alpha], axis=2)


def _source_over(dst: "np.ndarray[Any, Any]", src_premul: "np.ndarray[Any, Any]") -> None:
    """Composite premultiplied float RGBA `src_premul` over uint8 `dst` in place."""
    a_s = src_premul[..., 3:4] / 255.0
    a_d = dst[..., 3:4].astype(np.float32) / 255.0
    rgb_d = dst[..., :3].astype(np.float32) * a_d

    a_o = a_s + a_d * (1.0 - a_s)
    rgb_o = src_premul[..., :3] + rgb_d * (1.0 - a_s)
    rgb_o = np.divide(rgb_o, a_o, out=np.zeros_like(rgb_o), where=a_o > 0)

    dst[..., :3] = np.clip(np.rint(rgb_o), 0, 255).astype(np.uint8)
    dst[..., 3:4] = np.clip(np.rint(a_o * 255.0), 0, 255).astype(np.uint8)


def encode_png(image: Image.Image) -> bytes:
    buf = io.BytesIO()
    image.save(buf, format="PNG")
    return buf.getvalue()


class RasterSurface:
    """Mutable RGBA pixel buffer with canvas drawing semantics."""

    def __init__(self, width: int, height: int):
        self._pixels = np.zeros((0, 0, 4), dtype=np.uint8)
        self._matrix = IDENTITY.copy()
        self._stack: list["np.ndarray[Any, Any]"] = []
        self.resize(width, height)

    @property
    def width(self) -> int:
        return int(self._pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self._pixels.shape[0])

    @property
    def size(self) -> tuple[int, int]:
        return (self.width, self.height)

    @property
    def pixels(self) -> "np.ndarray[Any, Any]":
        """Read-only view of the pixel buffer."""
        view = self._pixels.view()
        view.flags.writeable = False
        return view

    @property
    def matrix(self) -> "np.ndarray[Any, Any]":
        """Copy of the current transform."""
        return self._matrix.copy()

    @property
    def depth(self) -> int:
        """Number of saved states on the stack."""
        return len(self._stack)

    def resize(self, width: int, height: int) -> None:
        """Reallocate the buffer; clears pixels and drawing state."""
        if width <= 0 or height <= 0:
            raise ValueError(f"Surface size must be positive, got {width}x{height}")
        self._pixels = np.zeros((int(height), int(width), 4), dtype=np.uint8)
        self._matrix = IDENTITY.copy()
        self._stack.clear()

    # Drawing state

    def save(self) -> None:
        self._stack.append(self._matrix.copy())

    def restore(self) -> None:
        # Unbalanced restore is a no-op, as on a canvas
        if self._stack:
            self._matrix = self._stack.pop()

    @contextmanager
    def saved_state(self) -> Iterator["RasterSurface"]:
        """Save on entry and restore on exit, even if drawing raises."""
        self.save()
        try:
            yield self
        finally:
            self.restore()

    def translate(self, x: float, y: float) -> None:
        self._matrix = self._matrix @ _translation(x, y)

    def rotate(self, angle: float) -> None:
        """Rotate the coordinate frame clockwise (y-down) by `angle` radians."""
        self._matrix = self._matrix @ _rotation(angle)

    # Drawing

    def draw_image(
        self,
        image: "np.ndarray[Any, Any]",
        dx: float,
        dy: float,
        dw: float | None = None,
        dh: float | None = None,
    ) -> None:
        """Draw an RGB/RGBA image into the rectangle (dx, dy, dw, dh) of the current frame.

        Args:
            image: Source pixels, shape (h, w, 3) or (h, w, 4)
            dx: Destination x in the current frame
            dy: Destination y in the current frame
            dw: Destination width (defaults to the source width)
            dh: Destination height (defaults to the source height)
        """
        src = _as_rgba(image)
        sh, sw = src.shape[:2]
        if sw == 0 or sh == 0:
            raise ValueError("Cannot draw an empty image")
        dw = float(sw) if dw is None else float(dw)
        dh = float(sh) if dh is None else float(dh)
        if dw == 0 or dh == 0:
            return

        full = self._matrix @ _translation(dx, dy) @ _scale(dw / sw, dh / sh)

        if self._is_integer_copy(full):
            self._blit(src, int(round(full[0, 2])), int(round(full[1, 2])))
            return

        # Bounding box of the transformed source rectangle, clipped to the surface
        corners = full @ np.array([[0, sw, sw, 0], [0, 0, sh, sh], [1, 1, 1, 1]], dtype=np.float64)
        x0 = max(0, int(math.floor(corners[0].min())))
        y0 = max(0, int(math.floor(corners[1].min())))
        x1 = min(self.width, int(math.ceil(corners[0].max())) + 1)
        y1 = min(self.height, int(math.ceil(corners[1].max())) + 1)
        if x0 >= x1 or y0 >= y1:
            return

        premul = src.astype(np.float32)
        premul[..., :3] *= premul[..., 3:4] / 255.0

        local = _translation(-x0, -y0) @ full
        warped = cv2.warpAffine(
            premul,
            local[:2].astype(np.float64),
            (x1 - x0, y1 - y0),
            flags=cv2.INTER_LINEAR,
            borderMode=cv2.BORDER_CONSTANT,
            borderValue=(0, 0, 0, 0),
        )
        _source_over(self._pixels[y0:y1, x0:x1], warped)

    def _is_integer_copy(self, full: "np.ndarray[Any, Any]") -> bool:
        linear_identity = np.array_equal(full[:2, :2], IDENTITY[:2, :2])
        tx, ty = full[0, 2], full[1, 2]
        return bool(linear_identity and float(tx).is_integer() and float(ty).is_integer())

    def _blit(self, src: "np.ndarray[Any, Any]", x: int, y: int) -> None:
        sh, sw = src.shape[:2]
        x0, y0 = max(0, x), max(0, y)
        x1, y1 = min(self.width, x + sw), min(self.height, y + sh)
        if x0 >= x1 or y0 >= y1:
            return
        region = src[y0 - y : y1 - y, x0 - x : x1 - x]
        if np.all(region[..., 3] == 255):
            self._pixels[y0:y1, x0:x1] = region
            return
        premul = region.astype(np.float32)
        premul[..., :3] *= premul[..., 3:4] / 255.0
        _source_over(self._pixels[y0:y1, x0:x1], premul)

    # Export

    def to_image(self) -> Image.Image:
        return Image.fromarray(self._pixels.copy())

    def to_png(self) -> bytes:
        """Encode the surface as PNG."""
        return encode_png(self.to_image())

    def provisional_preview(self, opacity: float = 0.5) -> Image.Image:
        """Copy of the surface under a translucent black veil."""
        veiled = self._pixels.astype(np.float32)
        veiled[..., :3] *= 1.0 - opacity
        veiled[..., 3] = np.maximum(veiled[..., 3], opacity * 255.0)
        return Image.fromarray(np.rint(veiled).astype(np.uint8))
