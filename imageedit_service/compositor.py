"""
Alpha compositing for chroma-keyed edit results.

Decodes the model's output into an RGBA pixel grid, zeroes alpha on every
pixel the matcher classifies as background, and re-encodes as PNG. Edges are
hard-cut: no blur, feathering or neighbourhood operations, since the edit
prompt already asks for a sharp key-color boundary.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from io import BytesIO
import logging
from typing import List, Tuple

import numpy as np
from PIL import Image

from .chroma_key import ChromaKeyConfig, background_mask
from .exceptions import DecodeError
from .history import Snapshot

logger = logging.getLogger(__name__)

PNG_MIME_TYPE = "image/png"


@dataclass(frozen=True)
class ImageBuffer:
    """
    A width x height grid of RGBA pixels, row-major.

    `pixels` has shape (height, width, 4) and dtype uint8. The array is
    frozen (non-writeable) on construction; pipeline stages copy before
    writing.
    """

    width: int
    height: int
    pixels: np.ndarray

    def __post_init__(self) -> None:
        if self.pixels.dtype != np.uint8:
            raise ValueError(f"pixels must be uint8, got {self.pixels.dtype}")
        if self.pixels.shape != (self.height, self.width, 4):
            raise ValueError(
                f"pixel grid {self.pixels.shape} does not match {self.width}x{self.height} RGBA"
            )
        self.pixels.setflags(write=False)

    @classmethod
    def from_array(cls, pixels: np.ndarray) -> "ImageBuffer":
        """Wrap a private copy of `pixels`; the caller's array stays writeable."""
        pixels = np.array(pixels, copy=True)
        height, width = pixels.shape[:2]
        return cls(width=width, height=height, pixels=pixels)

    @classmethod
    def from_pil(cls, image: Image.Image) -> "ImageBuffer":
        pixels = np.array(image.convert("RGBA"), dtype=np.uint8)
        return cls(width=pixels.shape[1], height=pixels.shape[0], pixels=pixels)

    @classmethod
    def from_bytes(cls, data: bytes) -> "ImageBuffer":
        """Decode any Pillow-readable raster into RGBA."""
        try:
            with Image.open(BytesIO(data)) as image:
                return cls.from_pil(image)
        except Exception as exc:  # noqa: BLE001
            raise DecodeError("Could not decode image data") from exc

    def to_pil(self) -> Image.Image:
        return Image.fromarray(self.pixels)

    def to_png_bytes(self) -> bytes:
        buf = BytesIO()
        self.to_pil().save(buf, format="PNG")
        return buf.getvalue()


def _row_bands(height: int, workers: int) -> List[Tuple[int, int]]:
    """Split [0, height) into at most `workers` contiguous row ranges."""
    count = max(1, min(workers, height))
    step = -(-height // count)
    return [(start, min(start + step, height)) for start in range(0, height, step)]


def _key_rows(
    source: np.ndarray, target: np.ndarray, start: int, stop: int, key: ChromaKeyConfig
) -> int:
    """Zero alpha in target[start:stop] where source[start:stop] matches the key."""
    mask = background_mask(source[start:stop], key)
    band = target[start:stop]
    band[mask, 3] = 0
    return int(np.count_nonzero(mask))


def apply_chroma_key(image: ImageBuffer, key: ChromaKeyConfig, workers: int = 1) -> ImageBuffer:
    """
    Return a copy of `image` with alpha set to 0 on background pixels.

    RGB channels, and every channel of non-matching pixels, are copied
    unchanged. With `workers > 1` the grid is split into row bands keyed on a
    thread pool; every pixel is classified independently, so the result is
    identical to the single-threaded pass.
    """
    out = image.pixels.copy()
    if workers <= 1 or image.height < 2:
        keyed = _key_rows(image.pixels, out, 0, image.height, key)
    else:
        bands = _row_bands(image.height, workers)
        with ThreadPoolExecutor(max_workers=len(bands)) as pool:
            counts = pool.map(lambda band: _key_rows(image.pixels, out, band[0], band[1], key), bands)
            keyed = sum(counts)

    total = image.width * image.height
    logger.debug(
        "chroma key: %d/%d pixels keyed (%.2f%%)",
        keyed,
        total,
        (keyed / total * 100.0) if total else 0.0,
    )
    return ImageBuffer(width=image.width, height=image.height, pixels=out)


def chroma_key_snapshot(snapshot: Snapshot, key: ChromaKeyConfig, workers: int = 1) -> Snapshot:
    """
    Decode, key and re-encode a snapshot.

    The output is always PNG so the new transparency survives, whatever
    format the input arrived in.

    Raises:
        DecodeError: when the snapshot bytes are not a decodable image.
    """
    buffer = ImageBuffer.from_bytes(snapshot.data)
    keyed = apply_chroma_key(buffer, key, workers=workers)
    return Snapshot(data=keyed.to_png_bytes(), mime_type=PNG_MIME_TYPE)
