"""
Constraint Extraction - Free-text refinement instruction to typed constraints.

An ordered list of (pattern, effect) rules is matched against the lower-cased
instruction. Tone rules are first-match-wins in rule order. Contradictions are
resolved deterministically and reported, never silently dropped.
"""

import re
from dataclasses import dataclass, replace
from enum import Enum

from app.models.api import ToneAdjustment
from app.models.domain import ExtractionResult, RefinementConstraints


class RuleKind(str, Enum):
    KEEP = "keep"
    KEEP_COMPONENT = "keep_component"
    TONE = "tone"
    CHANGE = "change"


@dataclass(frozen=True)
class Rule:
    """One extraction rule. ``value`` is a constraint field, tone or change name."""

    pattern: re.Pattern[str]
    kind: RuleKind
    value: str


def _rule(pattern: str, kind: RuleKind, value: str = "") -> Rule:
    return Rule(re.compile(pattern), kind, value)


RULES: tuple[Rule, ...] = (
    # Keep flags
    _rule(r"\bkeep\s+(?:the\s+)?primary\b", RuleKind.KEEP, "keep_primary_color"),
    _rule(r"\bkeep\s+(?:the\s+)?secondary\b", RuleKind.KEEP, "keep_secondary_color"),
    _rule(r"\bkeep\s+(?:the\s+)?(?:typography|fonts?)\b", RuleKind.KEEP, "keep_typography"),
    _rule(r"\bkeep\s+(?:the\s+)?([a-z][a-z-]*)\s+components?\b", RuleKind.KEEP_COMPONENT),
    _rule(r"\baccessib(?:le|ility)\b", RuleKind.KEEP, "improve_accessibility"),
    # Tone, first match wins
    _rule(r"\b(?:playful|fun)\b", RuleKind.TONE, ToneAdjustment.MORE_PLAYFUL.value),
    _rule(r"\b(?:professional|corporate)\b", RuleKind.TONE, ToneAdjustment.MORE_PROFESSIONAL.value),
    _rule(r"\b(?:modern|contemporary)\b", RuleKind.TONE, ToneAdjustment.MORE_MODERN.value),
    _rule(r"\b(?:classic|traditional)\b", RuleKind.TONE, ToneAdjustment.MORE_CLASSIC.value),
    # Specific changes
    _rule(r"\bdarker\b", RuleKind.CHANGE, "make darker"),
    _rule(r"\blighter\b", RuleKind.CHANGE, "make lighter"),
    _rule(r"\bmore\s+contrast\b|\bincrease\s+(?:the\s+)?contrast\b", RuleKind.CHANGE, "increase contrast"),
    _rule(r"\bless\s+contrast\b|\b(?:decrease|reduce)\s+(?:the\s+)?contrast\b", RuleKind.CHANGE, "decrease contrast"),
    _rule(r"\bmore\s+(?:saturated|vibrant)\b", RuleKind.CHANGE, "more saturated"),
    _rule(r"\bless\s+saturated\b|\b(?:muted|desaturated?)\b", RuleKind.CHANGE, "less saturated"),
    _rule(r"\b(?:larger|bigger)\s+(?:text|fonts?|type)\b", RuleKind.CHANGE, "larger text"),
    _rule(r"\bsmaller\s+(?:text|fonts?|type)\b", RuleKind.CHANGE, "smaller text"),
)

# Pairs of changes that undo each other
OPPOSING_CHANGES: tuple[tuple[str, str], ...] = (
    ("make darker", "make lighter"),
    ("increase contrast", "decrease contrast"),
    ("more saturated", "less saturated"),
    ("larger text", "smaller text"),
)

TYPOGRAPHY_CHANGES = frozenset({"larger text", "smaller text"})

# A phrase that replaces the fonts: a change verb, or a style word in front of them
_FONT_CHANGE = re.compile(
    r"\b(?:(?:change|swap|replace)\s+(?:the\s+)?"
    r"|(?:more\s+)?(?:new|different|modern|contemporary|classic|traditional|playful|fun"
    r"|professional|corporate|serif|sans[- ]serif)\s+)"
    r"(?:fonts?|typefaces?|typography)\b"
)


def extract_constraints(instruction: str) -> ExtractionResult:
    """
    Parse refinement constraints out of an instruction.

    Opposing changes keep whichever appears first in the text. Keeping
    typography wins over any font-changing phrase.
    """
    text = instruction.lower()
    constraints = RefinementConstraints()
    conflicts: list[str] = []
    tones: list[str] = []
    changes: dict[str, int] = {}  # change -> position in text
    components: list[str] = []

    for rule in RULES:
        match = rule.pattern.search(text)
        if match is None:
            continue
        if rule.kind is RuleKind.KEEP:
            constraints = replace(constraints, **{rule.value: True})
        elif rule.kind is RuleKind.KEEP_COMPONENT:
            components.extend(m.group(1) for m in rule.pattern.finditer(text))
        elif rule.kind is RuleKind.TONE:
            tones.append(rule.value)
        else:
            changes[rule.value] = match.start()

    if tones:
        constraints = replace(constraints, adjust_tone=ToneAdjustment(tones[0]))
        if len(tones) > 1:
            conflicts.append(
                f"Conflicting tone requests ({', '.join(tones)}); using '{tones[0]}'"
            )

    for first, second in OPPOSING_CHANGES:
        if first in changes and second in changes:
            kept, dropped = (first, second) if changes[first] <= changes[second] else (second, first)
            del changes[dropped]
            conflicts.append(f"'{kept}' conflicts with '{dropped}'; using '{kept}'")

    if constraints.keep_typography:
        font_changes = [change for change in changes if change in TYPOGRAPHY_CHANGES]
        if _FONT_CHANGE.search(text):
            font_changes.append("font change")
        for change in font_changes:
            changes.pop(change, None)
            conflicts.append(f"'keep typography' conflicts with '{change}'; typography is kept")

    ordered_changes = tuple(sorted(changes, key=changes.__getitem__))
    return ExtractionResult(
        constraints=replace(
            constraints,
            keep_components=tuple(dict.fromkeys(components)),
            specific_changes=ordered_changes,
        ),
        conflicts=tuple(conflicts),
    )
