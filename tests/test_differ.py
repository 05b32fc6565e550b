"""
Tests for the version differ.
"""

from app.models.api import ChangeSeverity, ChangeType
from app.models.artifact import DesignSystemArtifact
from app.services import differ
from app.services.colors import WHITE, improve_contrast

from conftest import make_artifact, with_color


class TestCompare:
    """Tests for differ.compare."""

    def test_identical(self, sample_artifact: DesignSystemArtifact):
        comparison = differ.compare(sample_artifact, sample_artifact)
        assert comparison.colors_changed is False
        assert comparison.typography_changed is False
        assert comparison.accessibility_improved is False
        assert comparison.components_added == ()
        assert comparison.components_removed == ()
        assert comparison.changed_fields == frozenset()
        assert comparison.summary == "No significant changes"

    def test_ids_are_not_compared(self):
        assert differ.compare(make_artifact(), make_artifact()).summary == "No significant changes"

    def test_color_change(self, sample_artifact: DesignSystemArtifact):
        changed = with_color(sample_artifact, "primary", "#7C3AED")
        comparison = differ.compare(sample_artifact, changed)
        assert comparison.colors_changed is True
        assert comparison.changed_fields == frozenset({"colors.primary"})
        assert comparison.summary == "Updated: colors"

    def test_typography_change(self, sample_artifact: DesignSystemArtifact):
        data = sample_artifact.model_dump(mode="json")
        data["typography"]["body_font"] = "Lato"
        comparison = differ.compare(sample_artifact, DesignSystemArtifact.model_validate(data))
        assert comparison.typography_changed is True
        assert "typography.body_font" in comparison.changed_fields

    def test_components_added_and_removed(self):
        before = make_artifact(components=[{"name": "Button"}, {"name": "Card"}])
        after = make_artifact(components=[{"name": "Button"}, {"name": "Modal"}])

        comparison = differ.compare(before, after)

        assert comparison.components_added == ("Modal",)
        assert comparison.components_removed == ("Card",)
        assert "components" in comparison.changed_fields
        assert comparison.summary == "Updated: 1 components, 1 components removed"

    def test_accessibility_improved(self, sample_artifact: DesignSystemArtifact):
        fixed = with_color(sample_artifact, "accent", improve_contrast("#F59E0B", WHITE))
        comparison = differ.compare(sample_artifact, fixed)
        assert comparison.accessibility_improved is True
        assert comparison.summary == "Updated: colors, accessibility"


class TestDescribeChanges:
    """Tests for differ.describe_changes."""

    def test_primary_change_is_major(self, sample_artifact: DesignSystemArtifact):
        changed = with_color(sample_artifact, "primary", "#7C3AED")
        changes = differ.describe_changes(sample_artifact, changed)
        assert changes[0].type is ChangeType.COLOR
        assert changes[0].severity is ChangeSeverity.MAJOR
        assert changes[0].description == "Primary color changed from #1D4ED8 to #7C3AED"

    def test_secondary_change_is_minor(self, sample_artifact: DesignSystemArtifact):
        changed = with_color(sample_artifact, "secondary", "#115E59")
        changes = differ.describe_changes(sample_artifact, changed)
        assert [c.severity for c in changes] == [ChangeSeverity.MINOR]

    def test_component_removal_is_major(self):
        before = make_artifact(components=[{"name": "Button"}, {"name": "Card"}])
        after = make_artifact(components=[{"name": "Button"}])
        changes = differ.describe_changes(before, after)
        assert len(changes) == 1
        assert changes[0].description == "Removed component Card"
        assert changes[0].severity is ChangeSeverity.MAJOR

    def test_type_scale_change(self, sample_artifact: DesignSystemArtifact):
        data = sample_artifact.model_dump(mode="json")
        data["typography"]["type_scale"]["base"] = "1.125rem"
        changes = differ.describe_changes(
            sample_artifact, DesignSystemArtifact.model_validate(data)
        )
        assert [c.description for c in changes] == ["Type scale adjusted"]
