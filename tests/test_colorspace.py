"""
Unit tests for the colorspace module.

Checks the RGB -> HSL conversion against textbook reference values and the
vectorised variant against the scalar one.
"""

import itertools

import numpy as np
import pytest

from imageedit_service.colorspace import parse_hex_color, rgb_array_to_hsl, rgb_to_hsl


class TestRgbToHsl:
    """Tests for rgb_to_hsl."""

    @pytest.mark.parametrize(
        "rgb, expected",
        [
            ((255, 0, 0), (0.0, 1.0, 0.5)),
            ((0, 255, 0), (120.0, 1.0, 0.5)),
            ((0, 0, 255), (240.0, 1.0, 0.5)),
            ((255, 255, 0), (60.0, 1.0, 0.5)),
            ((0, 255, 255), (180.0, 1.0, 0.5)),
            ((255, 0, 255), (300.0, 1.0, 0.5)),
        ],
    )
    def test_primary_and_secondary_colors(self, rgb, expected):
        hue, saturation, lightness = rgb_to_hsl(*rgb)
        assert hue == pytest.approx(expected[0])
        assert saturation == pytest.approx(expected[1])
        assert lightness == pytest.approx(expected[2])

    def test_white_is_achromatic(self):
        result = rgb_to_hsl(255, 255, 255)
        assert result.saturation == 0.0
        assert result.lightness == 1.0

    def test_black_is_achromatic(self):
        result = rgb_to_hsl(0, 0, 0)
        assert result.saturation == 0.0
        assert result.lightness == 0.0

    def test_gray_is_achromatic(self):
        result = rgb_to_hsl(128, 128, 128)
        assert result.hue == 0.0
        assert result.saturation == 0.0
        assert result.lightness == pytest.approx(128 / 255)

    def test_light_color_uses_upper_saturation_formula(self):
        # max=1.0, min=0.5 -> l=0.75, s=0.5/(2-1.5)=1.0
        result = rgb_to_hsl(255, 128, 128)
        assert result.lightness == pytest.approx((255 + 128) / 510)
        assert result.saturation == pytest.approx(1.0)

    def test_hue_just_below_wrap_point(self):
        # red max with blue above green lands in the 300-360 sector
        hue = rgb_to_hsl(255, 0, 21).hue
        assert 354.0 < hue < 360.0

    def test_hue_stays_below_360(self):
        for r, g, b in itertools.product(range(0, 256, 17), repeat=3):
            assert 0.0 <= rgb_to_hsl(r, g, b).hue < 360.0


class TestRgbArrayToHsl:
    """Tests for the vectorised conversion."""

    def test_matches_scalar_conversion(self):
        values = range(0, 256, 15)
        grid = np.array(list(itertools.product(values, repeat=3)), dtype=np.uint8).reshape(-1, 1, 3)
        hue, saturation, lightness = rgb_array_to_hsl(grid)

        for index, (r, g, b) in enumerate(grid[:, 0]):
            expected = rgb_to_hsl(int(r), int(g), int(b))
            assert hue[index, 0] == pytest.approx(expected.hue)
            assert saturation[index, 0] == pytest.approx(expected.saturation)
            assert lightness[index, 0] == pytest.approx(expected.lightness)

    def test_ignores_alpha_channel(self):
        pixels = np.array([[[255, 0, 255, 0], [255, 0, 255, 255]]], dtype=np.uint8)
        hue, saturation, lightness = rgb_array_to_hsl(pixels)
        assert hue[0, 0] == hue[0, 1]
        assert saturation[0, 0] == saturation[0, 1]
        assert lightness[0, 0] == lightness[0, 1]

    def test_preserves_grid_shape(self):
        pixels = np.zeros((3, 5, 4), dtype=np.uint8)
        for plane in rgb_array_to_hsl(pixels):
            assert plane.shape == (3, 5)


class TestParseHexColor:
    """Tests for parse_hex_color."""

    def test_with_and_without_hash(self):
        assert parse_hex_color("#FF00FF") == (255, 0, 255)
        assert parse_hex_color("00ff7f") == (0, 255, 127)

    @pytest.mark.parametrize("value", ["#FFF", "#GG00FF", "", "#FF00FF00"])
    def test_rejects_malformed(self, value):
        with pytest.raises(ValueError):
            parse_hex_color(value)
