"""
Tests for the design token exporters.
"""

import json

import pytest

from app.models.api import ExportFormat
from app.models.artifact import DesignSystemArtifact
from app.services import exporters

from conftest import artifact_data


class TestPricing:
    """Tests for export costs."""

    @pytest.mark.parametrize(
        "fmt,expected",
        [
            (ExportFormat.CSS, 0),
            (ExportFormat.TAILWIND, 0),
            (ExportFormat.FIGMA, exporters.ADVANCED_EXPORT_COST),
        ],
    )
    def test_costs(self, fmt, expected):
        assert exporters.export_cost(fmt) == expected


class TestCss:
    """Tests for CSS custom property export."""

    def test_palettes_and_typography(self, sample_artifact: DesignSystemArtifact):
        css = exporters.export_css(sample_artifact)

        assert css.splitlines()[1] == ":root {"
        assert "  --color-primary: #1D4ED8;" in css
        assert f"  --color-primary-900: {sample_artifact.colors.primary.shades['900']};" in css
        assert "  --color-success: #16A34A;" in css
        assert '  --font-heading: "Inter", sans-serif;' in css
        assert '  --font-mono: "JetBrains Mono", monospace;' in css
        assert "  --font-size-sm: 0.875rem;" in css
        assert "  --line-height-tight: 1.25;" in css
        assert "  --font-weight-bold: 700;" in css
        assert css.rstrip().endswith("}")

    def test_model_text_cannot_break_out(self):
        data = artifact_data()
        data["typography"]["heading_font"] = 'Inter"; } body { display: none'
        data["typography"]["type_scale"] = {"Huge Title": "3rem; color: red"}
        css = exporters.export_css(DesignSystemArtifact.model_validate(data))

        assert '--font-heading: "Inter  body  display none", sans-serif;' in css
        assert "  --font-size-huge-title: 3rem color red;" in css
        assert css.count("{") == 1
        assert css.count("}") == 1


class TestTailwind:
    """Tests for Tailwind theme export."""

    def test_module_wraps_json_theme(self, sample_artifact: DesignSystemArtifact):
        module = exporters.export_tailwind(sample_artifact)
        prefix = "module.exports = "
        body = module[module.index(prefix) + len(prefix):]

        config = json.loads(body)
        extend = config["theme"]["extend"]
        assert extend["colors"]["primary"]["DEFAULT"] == "#1D4ED8"
        assert extend["colors"]["accent"]["500"] == "#F59E0B"
        assert extend["fontFamily"]["body"] == ["Source Sans 3", "sans-serif"]
        assert extend["fontSize"]["base"] == "1rem"
        assert extend["fontWeight"]["bold"] == "700"

    def test_additional_palette_names_normalized(self):
        data = artifact_data()
        data["colors"]["additional"] = {"Dark Mode": {"name": "Night", "main": "#111827"}}
        theme = exporters.tailwind_theme(DesignSystemArtifact.model_validate(data))
        assert theme["colors"]["dark-mode"]["DEFAULT"] == "#111827"


class TestFigma:
    """Tests for Figma Tokens export."""

    def test_token_structure(self, sample_artifact: DesignSystemArtifact):
        tokens = json.loads(exporters.export_figma(sample_artifact))

        assert tokens["$metadata"]["artifactId"] == sample_artifact.id
        assert tokens["colors"]["primary"]["$type"] == "color"
        assert tokens["colors"]["primary"]["main"] == {"$value": "#1D4ED8"}
        assert tokens["colors"]["neutral"]["50"]["$value"].startswith("#")
        assert tokens["typography"]["fontFamilies"]["heading"] == {"$value": "Inter"}
        assert tokens["typography"]["fontWeight"]["bold"] == {"$value": 700}


class TestRender:
    """Tests for format dispatch."""

    @pytest.mark.parametrize(
        "fmt,media_type,filename",
        [
            (ExportFormat.CSS, "text/css", "design-tokens.css"),
            (ExportFormat.TAILWIND, "text/javascript", "tailwind.config.js"),
            (ExportFormat.FIGMA, "application/json", "figma-tokens.json"),
        ],
    )
    def test_media_types(self, sample_artifact: DesignSystemArtifact, fmt, media_type, filename):
        rendered = exporters.render(sample_artifact, fmt)
        assert rendered.media_type == media_type
        assert rendered.filename == filename
        assert rendered.content
