"""
Background/subject classification against a flattened key color.

The background-removal prompt asks the model to paint everything behind the
subject a single magenta. The result is never pixel-perfect, so matching is a
tolerance test in HSL space: a circular hue window around the reference hue
plus saturation and lightness bounds that keep grey, near-black and
near-white edge pixels on the subject side.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np

from . import config
from .colorspace import parse_hex_color, rgb_array_to_hsl, rgb_to_hsl

MAGENTA_HEX = "#FF00FF"


@dataclass(frozen=True)
class ChromaKeyConfig:
    reference_hue: float  # degrees
    hue_tolerance: float  # degrees either side of the reference
    min_saturation: float
    min_lightness: float
    max_lightness: float

    @classmethod
    def magenta(cls) -> "ChromaKeyConfig":
        """Defaults tuned for the #FF00FF background the edit prompt requests."""
        return cls(
            reference_hue=300.0,
            hue_tolerance=25.0,
            min_saturation=0.25,
            min_lightness=0.15,
            max_lightness=0.95,
        )

    @classmethod
    def from_hex(
        cls,
        color: str,
        hue_tolerance: float = 25.0,
        min_saturation: float = 0.25,
        min_lightness: float = 0.15,
        max_lightness: float = 0.95,
    ) -> "ChromaKeyConfig":
        r, g, b = parse_hex_color(color)
        return cls(
            reference_hue=rgb_to_hsl(r, g, b).hue,
            hue_tolerance=hue_tolerance,
            min_saturation=min_saturation,
            min_lightness=min_lightness,
            max_lightness=max_lightness,
        )

    @classmethod
    def from_settings(cls, settings: Optional[config.Settings] = None) -> "ChromaKeyConfig":
        settings = settings or config.get_settings()
        return cls.from_hex(
            settings.chroma_key_color,
            hue_tolerance=settings.chroma_key_hue_tolerance,
            min_saturation=settings.chroma_key_min_saturation,
            min_lightness=settings.chroma_key_min_lightness,
            max_lightness=settings.chroma_key_max_lightness,
        )


def hue_distance(a: float, b: float) -> float:
    """Shortest distance between two hues on the 360 degree color wheel."""
    diff = abs(a - b)
    return min(diff, 360.0 - diff)


def is_background(pixel: Sequence[int], key: ChromaKeyConfig) -> bool:
    """Return True when the pixel's RGB falls inside the key window. Alpha is ignored."""
    hue, saturation, lightness = rgb_to_hsl(pixel[0], pixel[1], pixel[2])
    return (
        hue_distance(hue, key.reference_hue) <= key.hue_tolerance
        and saturation >= key.min_saturation
        and key.min_lightness <= lightness <= key.max_lightness
    )


def background_mask(pixels: np.ndarray, key: ChromaKeyConfig) -> np.ndarray:
    """Boolean mask of `is_background` over an (H, W, >=3) pixel array."""
    hue, saturation, lightness = rgb_array_to_hsl(pixels)
    diff = np.abs(hue - key.reference_hue)
    distance = np.minimum(diff, 360.0 - diff)
    return (
        (distance <= key.hue_tolerance)
        & (saturation >= key.min_saturation)
        & (lightness >= key.min_lightness)
        & (lightness <= key.max_lightness)
    )
