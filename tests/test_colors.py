"""
Tests for color utilities.

Covers HEX normalization, shade generation and WCAG contrast math.
"""

import pytest

from app.services.colors import (
    BLACK,
    SHADE_KEYS,
    WHITE,
    adjust_lightness,
    adjust_saturation,
    check_wcag,
    color_name,
    contrast_ratio,
    generate_shades,
    hex_to_hsl,
    improve_contrast,
    normalize_hex,
)


class TestNormalizeHex:
    """Tests for normalize_hex."""

    def test_uppercases_and_adds_hash(self):
        assert normalize_hex("1d4ed8") == "#1D4ED8"

    def test_expands_short_form(self):
        assert normalize_hex("#abc") == "#AABBCC"

    def test_strips_whitespace(self):
        assert normalize_hex("  #ffffff ") == "#FFFFFF"

    @pytest.mark.parametrize("value", ["blue", "#12345", "#GGGGGG", "", "#1234567"])
    def test_rejects_invalid(self, value):
        with pytest.raises(ValueError, match="Invalid HEX color"):
            normalize_hex(value)

    def test_rejects_non_string(self):
        with pytest.raises(ValueError):
            normalize_hex(123)  # type: ignore[arg-type]


class TestContrast:
    """Tests for contrast ratio and WCAG checks."""

    def test_black_on_white_is_maximum(self):
        result = check_wcag(BLACK, WHITE)
        assert result.ratio == 21.0
        assert result.aa is True
        assert result.aaa is True

    def test_same_color_is_minimum(self):
        assert contrast_ratio("#1D4ED8", "#1D4ED8") == pytest.approx(1.0)

    def test_ratio_is_symmetric(self):
        assert contrast_ratio("#F59E0B", WHITE) == contrast_ratio(WHITE, "#F59E0B")

    def test_amber_fails_aa_on_white(self):
        result = check_wcag("#F59E0B", WHITE)
        assert result.aa is False
        assert result.ratio < 4.5

    def test_dark_blue_passes_aa_on_white(self):
        assert check_wcag("#1D4ED8", WHITE).aa is True

    def test_ratio_rounded_to_two_places(self):
        ratio = check_wcag("#777777", WHITE).ratio
        assert ratio == round(ratio, 2)


class TestShades:
    """Tests for generate_shades."""

    def test_all_keys_present(self):
        shades = generate_shades("#1D4ED8")
        assert tuple(shades) == SHADE_KEYS

    def test_500_is_main(self):
        assert generate_shades("#1d4ed8")["500"] == "#1D4ED8"

    def test_lightness_decreases_with_key(self):
        shades = generate_shades("#0F766E")
        lightness = [hex_to_hsl(shades[key])[2] for key in ("50", "200", "400", "700", "950")]
        assert lightness == sorted(lightness, reverse=True)


class TestAdjustments:
    """Tests for lightness, saturation and contrast adjustments."""

    def test_adjust_lightness_darkens(self):
        before = hex_to_hsl("#1D4ED8")[2]
        after = hex_to_hsl(adjust_lightness("#1D4ED8", -10))[2]
        assert after == pytest.approx(before - 10, abs=1.0)

    def test_adjust_lightness_clamps(self):
        assert adjust_lightness("#EEEEEE", 50) == WHITE

    def test_adjust_saturation_desaturates(self):
        before = hex_to_hsl("#DC2626")[1]
        after = hex_to_hsl(adjust_saturation("#DC2626", -30))[1]
        assert after < before

    def test_improve_contrast_on_white_darkens(self):
        fixed = improve_contrast("#F59E0B", WHITE)
        assert contrast_ratio(fixed, WHITE) >= 4.5
        assert hex_to_hsl(fixed)[2] < hex_to_hsl("#F59E0B")[2]

    def test_improve_contrast_keeps_hue(self):
        fixed = improve_contrast("#F59E0B", WHITE)
        assert hex_to_hsl(fixed)[0] == pytest.approx(hex_to_hsl("#F59E0B")[0], abs=3.0)

    def test_improve_contrast_on_black_lightens(self):
        fixed = improve_contrast("#1E3A8A", BLACK)
        assert contrast_ratio(fixed, BLACK) >= 4.5
        assert hex_to_hsl(fixed)[2] > hex_to_hsl("#1E3A8A")[2]

    def test_improve_contrast_passing_color_unchanged(self):
        assert improve_contrast("#1d4ed8", WHITE) == "#1D4ED8"

    def test_improve_contrast_to_aaa(self):
        fixed = improve_contrast("#1D4ED8", WHITE, target_ratio=7.0)
        assert contrast_ratio(fixed, WHITE) >= 7.0


class TestColorName:
    """Tests for color_name."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("#FF0000", "Red"),
            ("#00A000", "Green"),
            ("#0000FF", "Blue"),
            ("#808080", "Gray"),
            ("#FF00AA", "Magenta"),
        ],
    )
    def test_hue_families(self, value, expected):
        assert color_name(value) == expected
