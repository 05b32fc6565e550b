"""
Tests for artifact models.

Lenient parsing of model output, derived shades and recomputed accessibility.
"""

import pytest
from pydantic import ValidationError

from app.models.artifact import ColorPalette, DesignSystemArtifact, Typography
from app.services.colors import SHADE_KEYS

from conftest import artifact_data, make_artifact


class TestColorPalette:
    """Tests for ColorPalette."""

    def test_missing_shades_are_derived(self):
        palette = ColorPalette.model_validate({"name": "Ocean", "main": "#1d4ed8"})
        assert palette.main == "#1D4ED8"
        assert tuple(palette.shades) == SHADE_KEYS
        assert palette.shades["500"] == "#1D4ED8"

    def test_hex_objects_accepted(self):
        palette = ColorPalette.model_validate(
            {"name": "Ocean", "main": "#1D4ED8", "shades": {"50": {"hex": "#eff6ff"}}}
        )
        assert palette.shades["50"] == "#EFF6FF"
        assert len(palette.shades) == len(SHADE_KEYS)

    def test_non_dict_shades_ignored(self):
        palette = ColorPalette.model_validate(
            {"name": "Ocean", "main": "#1D4ED8", "shades": ["#FFFFFF"]}
        )
        assert len(palette.shades) == len(SHADE_KEYS)

    def test_invalid_main_rejected(self):
        with pytest.raises(ValidationError):
            ColorPalette.model_validate({"name": "Ocean", "main": "ocean blue"})

    def test_frozen(self):
        palette = ColorPalette.model_validate({"name": "Ocean", "main": "#1D4ED8"})
        with pytest.raises(ValidationError):
            palette.main = "#000000"  # type: ignore[misc]


class TestTypography:
    """Tests for Typography."""

    def test_fonts_fall_back_to_first_pair(self):
        typography = Typography.model_validate(
            {"font_pairs": [{"name": "Pair", "heading": {"family": "Playfair"}, "body": "Lato"}]}
        )
        assert typography.heading_font == "Playfair"
        assert typography.body_font == "Lato"
        assert typography.font_pairs[0].heading == "Playfair"

    def test_default_mono_font(self):
        typography = Typography.model_validate({"heading_font": "Inter", "body_font": "Inter"})
        assert typography.mono_font == "JetBrains Mono"

    def test_missing_fonts_rejected(self):
        with pytest.raises(ValidationError):
            Typography.model_validate({"type_scale": {"base": "1rem"}})


class TestDesignSystemArtifact:
    """Tests for DesignSystemArtifact."""

    def test_accessibility_report_computed(self, sample_artifact: DesignSystemArtifact):
        report = sample_artifact.accessibility
        assert report["primary_on_white"].aa is True
        assert report["accent_on_white"].aa is False
        assert "neutral_text_on_light" in report

    def test_supplied_accessibility_ignored(self):
        artifact = make_artifact(
            accessibility={
                "accent_on_white": {
                    "foreground": "#F59E0B",
                    "background": "#FFFFFF",
                    "ratio": 21.0,
                    "aa": True,
                    "aaa": True,
                }
            }
        )
        assert artifact.accessibility["accent_on_white"].aa is False

    def test_neutral_pair_skipped_without_neutral(self):
        data = artifact_data()
        del data["colors"]["neutral"]
        artifact = DesignSystemArtifact.model_validate(data)
        assert "neutral_text_on_light" not in artifact.accessibility

    def test_json_round_trip_preserves_identity(self, sample_artifact: DesignSystemArtifact):
        restored = DesignSystemArtifact.model_validate(sample_artifact.model_dump(mode="json"))
        assert restored == sample_artifact

    def test_component_names(self, sample_artifact: DesignSystemArtifact):
        assert sample_artifact.component_names() == ["Button", "Card"]

    def test_ids_are_unique(self):
        assert make_artifact().id != make_artifact().id
