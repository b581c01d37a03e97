"""Source image decoding."""

import asyncio
import hashlib
import io
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import numpy as np
from PIL import Image, ImageOps, UnidentifiedImageError

from nounify.core.errors import InvalidImage
from nounify.core.logging import get_logger

logger = get_logger(__name__)

# MPO is Pillow's name for a JPEG carrying an MPF segment (common on phone cameras)
SUPPORTED_FORMATS = {"JPEG", "MPO", "PNG"}


@dataclass(frozen=True)
class SourceImage:
    """A decoded source photograph.

    `pixels` is RGB at the image's natural size, with EXIF orientation
    already applied. `key` identifies the image content and is used to key
    detection requests.
    """

    key: str
    pixels: "np.ndarray[Any, Any]" = field(repr=False, compare=False)

    @property
    def width(self) -> int:
        """Natural width in pixels."""
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        """Natural height in pixels."""
        return int(self.pixels.shape[0])

    @property
    def size(self) -> tuple[int, int]:
        return (self.width, self.height)


def decode_image(data: bytes) -> SourceImage:
    """Decode JPEG/PNG bytes into a SourceImage.

    Raises:
        InvalidImage: If the bytes are not a decodable JPEG or PNG
    """
    try:
        with Image.open(io.BytesIO(data)) as img:
            if img.format not in SUPPORTED_FORMATS:
                raise InvalidImage(f"Unsupported image format: {img.format}")
            # Apply EXIF orientation so landmarks match what the user sees
            img = ImageOps.exif_transpose(img) or img
            pixels = np.array(img.convert("RGB"))
    except (UnidentifiedImageError, OSError) as e:
        raise InvalidImage(f"Could not decode image: {e}") from e

    key = hashlib.sha256(data).hexdigest()
    logger.debug(f"Decoded image {key[:12]} ({pixels.shape[1]}x{pixels.shape[0]})")
    return SourceImage(key=key, pixels=pixels)


def read_image(source: bytes | str | Path) -> SourceImage:
    """Decode a source image from bytes or a file path."""
    if isinstance(source, (str, Path)):
        path = Path(source)
        if not path.exists():
            raise InvalidImage(f"Image not found: {source}")
        source = path.read_bytes()
    return decode_image(source)


async def load_image(source: bytes | str | Path) -> SourceImage:
    """Decode a source image without blocking the event loop."""
    return await asyncio.to_thread(read_image, source)
