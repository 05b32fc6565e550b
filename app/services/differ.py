"""
Version Differ - Structural comparison of two artifacts.

Pure functions; nothing here touches storage or the model.
"""

from app.models.api import ChangeSeverity, ChangeType
from app.models.artifact import DesignSystemArtifact
from app.models.domain import VersionChange, VersionComparison

COMPARED_PALETTES: tuple[str, ...] = ("primary", "secondary", "accent")
COMPARED_FONTS: tuple[str, ...] = ("heading_font", "body_font")


def _changed_palettes(a: DesignSystemArtifact, b: DesignSystemArtifact) -> list[str]:
    return [
        name
        for name in COMPARED_PALETTES
        if getattr(a.colors, name).main != getattr(b.colors, name).main
    ]


def _changed_fonts(a: DesignSystemArtifact, b: DesignSystemArtifact) -> list[str]:
    return [name for name in COMPARED_FONTS if getattr(a.typography, name) != getattr(b.typography, name)]


def _improved_pairs(a: DesignSystemArtifact, b: DesignSystemArtifact) -> list[str]:
    """Text pairs whose AA flag went from failing to passing."""
    return [
        key
        for key, check in b.accessibility.items()
        if check.aa and key in a.accessibility and not a.accessibility[key].aa
    ]


def compare(a: DesignSystemArtifact, b: DesignSystemArtifact) -> VersionComparison:
    """Compare ``a`` (before) with ``b`` (after)."""
    palettes = _changed_palettes(a, b)
    fonts = _changed_fonts(a, b)
    improved = _improved_pairs(a, b)

    names_a = a.component_names()
    names_b = b.component_names()
    added = tuple(name for name in names_b if name not in names_a)
    removed = tuple(name for name in names_a if name not in names_b)

    changed_fields = {f"colors.{name}" for name in palettes}
    changed_fields.update(f"typography.{name}" for name in fonts)
    if added or removed:
        changed_fields.add("components")

    parts = []
    if palettes:
        parts.append("colors")
    if fonts:
        parts.append("typography")
    if added:
        parts.append(f"{len(added)} components")
    if removed:
        parts.append(f"{len(removed)} components removed")
    if improved:
        parts.append("accessibility")

    return VersionComparison(
        colors_changed=bool(palettes),
        typography_changed=bool(fonts),
        accessibility_improved=bool(improved),
        components_added=added,
        components_removed=removed,
        changed_fields=frozenset(changed_fields),
        summary=f"Updated: {', '.join(parts)}" if parts else "No significant changes",
    )


def describe_changes(a: DesignSystemArtifact, b: DesignSystemArtifact) -> tuple[VersionChange, ...]:
    """Typed change list stored alongside a version."""
    changes: list[VersionChange] = []

    for name in _changed_palettes(a, b):
        changes.append(
            VersionChange(
                type=ChangeType.COLOR,
                description=(
                    f"{name.capitalize()} color changed from "
                    f"{getattr(a.colors, name).main} to {getattr(b.colors, name).main}"
                ),
                severity=ChangeSeverity.MAJOR if name == "primary" else ChangeSeverity.MINOR,
            )
        )

    for name in _changed_fonts(a, b):
        label = name.replace("_", " ")
        changes.append(
            VersionChange(
                type=ChangeType.TYPOGRAPHY,
                description=(
                    f"{label.capitalize()} changed from "
                    f"{getattr(a.typography, name)} to {getattr(b.typography, name)}"
                ),
                severity=ChangeSeverity.MAJOR,
            )
        )

    if a.typography.type_scale != b.typography.type_scale:
        changes.append(
            VersionChange(
                type=ChangeType.TYPOGRAPHY,
                description="Type scale adjusted",
                severity=ChangeSeverity.MINOR,
            )
        )

    names_a = a.component_names()
    names_b = b.component_names()
    for name in names_b:
        if name not in names_a:
            changes.append(
                VersionChange(
                    type=ChangeType.COMPONENT,
                    description=f"Added component {name}",
                    severity=ChangeSeverity.MINOR,
                )
            )
    for name in names_a:
        if name not in names_b:
            changes.append(
                VersionChange(
                    type=ChangeType.COMPONENT,
                    description=f"Removed component {name}",
                    severity=ChangeSeverity.MAJOR,
                )
            )

    for key in _improved_pairs(a, b):
        changes.append(
            VersionChange(
                type=ChangeType.ACCESSIBILITY,
                description=f"{key.replace('_', ' ')} now passes WCAG AA",
                severity=ChangeSeverity.MINOR,
            )
        )

    return tuple(changes)
