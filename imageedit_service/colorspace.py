"""
RGB -> HSL conversion for chroma keying.

HSL separates hue from saturation and lightness, which lets the matcher
accept the slightly-off shades a generative model paints for a flat key
color while still rejecting greyish or near-black edge pixels.
"""

from __future__ import annotations

from typing import NamedTuple, Tuple

import numpy as np


class ColorHSL(NamedTuple):
    hue: float  # degrees, [0, 360)
    saturation: float  # [0, 1]
    lightness: float  # [0, 1]


def parse_hex_color(value: str) -> Tuple[int, int, int]:
    """Parse "#RRGGBB" (leading # optional) into an RGB triple."""
    raw = value.strip()
    if raw.startswith("#"):
        raw = raw[1:]
    if len(raw) != 6:
        raise ValueError(f"Expected a #RRGGBB color, got {value!r}")
    try:
        return int(raw[0:2], 16), int(raw[2:4], 16), int(raw[4:6], 16)
    except ValueError as exc:
        raise ValueError(f"Expected a #RRGGBB color, got {value!r}") from exc


def rgb_to_hsl(r: int, g: int, b: int) -> ColorHSL:
    """
    Convert 8-bit RGB channels to HSL.

    Standard textbook transform: (255, 0, 0) -> (0.0, 1.0, 0.5). Achromatic
    inputs report hue 0.
    """
    rf = r / 255.0
    gf = g / 255.0
    bf = b / 255.0

    high = max(rf, gf, bf)
    low = min(rf, gf, bf)
    lightness = (high + low) / 2.0
    if high == low:
        return ColorHSL(0.0, 0.0, lightness)

    d = high - low
    saturation = d / (2.0 - high - low) if lightness > 0.5 else d / (high + low)
    if high == rf:
        hue = (gf - bf) / d + (6.0 if gf < bf else 0.0)
    elif high == gf:
        hue = (bf - rf) / d + 2.0
    else:
        hue = (rf - gf) / d + 4.0
    return ColorHSL(hue / 6.0 * 360.0, saturation, lightness)


def rgb_array_to_hsl(pixels: np.ndarray) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Vectorised `rgb_to_hsl` over an (..., >=3) uint8 array.

    Returns (hue, saturation, lightness) float64 planes shaped like the pixel
    grid. Uses the same operation order as the scalar version so both agree
    on every pixel; any alpha channel is ignored.
    """
    rgb = np.asarray(pixels)[..., :3].astype(np.float64) / 255.0
    r = rgb[..., 0]
    g = rgb[..., 1]
    b = rgb[..., 2]

    high = rgb.max(axis=-1)
    low = rgb.min(axis=-1)
    lightness = (high + low) / 2.0

    d = high - low
    chromatic = high != low
    safe_d = np.where(chromatic, d, 1.0)
    denom = np.where(lightness > 0.5, 2.0 - high - low, high + low)
    saturation = np.where(chromatic, d / np.where(chromatic, denom, 1.0), 0.0)

    hue_r = (g - b) / safe_d + np.where(g < b, 6.0, 0.0)
    hue_g = (b - r) / safe_d + 2.0
    hue_b = (r - g) / safe_d + 4.0
    # Red wins ties, then green, matching the scalar branch order.
    hue = np.where(high == r, hue_r, np.where(high == g, hue_g, hue_b))
    hue = np.where(chromatic, hue / 6.0 * 360.0, 0.0)
    return hue, saturation, lightness
