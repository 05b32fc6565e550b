"""
Domain Models - Internal business logic models using dataclasses.

NO DICTIONARIES - All data structures are strongly typed immutable dataclasses.
"""

from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID

from app.models.api import (
    ChangeSeverity,
    ChangeType,
    ExportFormat,
    ToneAdjustment,
    TransactionKind,
)
from app.models.artifact import DesignSystemArtifact


@dataclass(frozen=True)
class Caller:
    """Authenticated caller as asserted by the gateway."""

    user_id: str
    plan: str

    def __post_init__(self) -> None:
        """Validate caller identity."""
        if not self.user_id:
            raise ValueError("user_id cannot be empty")


@dataclass(frozen=True)
class CreditAccount:
    """Immutable credit account snapshot. ``balance`` is None for unlimited plans."""

    user_id: str
    plan: str
    balance: int | None
    total_earned: int
    total_spent: int
    reset_date: datetime | None
    last_updated: datetime

    def __post_init__(self) -> None:
        """Validate balance constraints."""
        if not self.user_id:
            raise ValueError("user_id cannot be empty")
        if self.balance is not None and self.balance < 0:
            raise ValueError(f"Balance cannot be negative: {self.balance}")

    @property
    def is_unlimited(self) -> bool:
        return self.balance is None


@dataclass(frozen=True)
class CreditTransactionData:
    """Immutable ledger entry."""

    id: UUID
    user_id: str
    kind: TransactionKind
    amount: int
    balance_before: int | None
    balance_after: int | None
    reason: str
    created_at: datetime


@dataclass(frozen=True)
class PlanConfig:
    """Subscription plan: starting allotment and replenishment policy."""

    name: str
    credits: int | None  # None = unlimited
    monthly_reset: bool


@dataclass(frozen=True)
class TierConfig:
    """Generation tier: output size, model parameters and credit cost."""

    name: str
    display_name: str
    palettes: int
    shades_per_palette: int
    font_pairings: int
    type_scale_sizes: int
    credit_cost: int
    latency_min_seconds: int
    latency_max_seconds: int
    features: tuple[str, ...]
    max_tokens: int
    temperature: float
    include_components: bool

    def __post_init__(self) -> None:
        """Validate tier constraints."""
        if self.credit_cost <= 0:
            raise ValueError(f"Credit cost must be positive: {self.credit_cost}")
        if self.latency_min_seconds > self.latency_max_seconds:
            raise ValueError("Latency band is inverted")

    @property
    def estimated_time(self) -> str:
        return f"{self.latency_min_seconds}-{self.latency_max_seconds} seconds"


@dataclass(frozen=True)
class RefinementConstraints:
    """What a refinement must preserve and what it should change."""

    keep_primary_color: bool = False
    keep_secondary_color: bool = False
    keep_typography: bool = False
    keep_components: tuple[str, ...] = ()
    improve_accessibility: bool = False
    adjust_tone: ToneAdjustment | None = None
    specific_changes: tuple[str, ...] = ()

    def merge(self, other: "RefinementConstraints") -> "RefinementConstraints":
        """
        Combine two constraint sets.

        Keep flags are OR-ed, lists are concatenated without duplicates, and
        an explicit tone on ``self`` wins over one on ``other``.
        """
        return RefinementConstraints(
            keep_primary_color=self.keep_primary_color or other.keep_primary_color,
            keep_secondary_color=self.keep_secondary_color or other.keep_secondary_color,
            keep_typography=self.keep_typography or other.keep_typography,
            keep_components=tuple(dict.fromkeys(self.keep_components + other.keep_components)),
            improve_accessibility=self.improve_accessibility or other.improve_accessibility,
            adjust_tone=self.adjust_tone or other.adjust_tone,
            specific_changes=tuple(
                dict.fromkeys(self.specific_changes + other.specific_changes)
            ),
        )


@dataclass(frozen=True)
class ExtractionResult:
    """Constraints parsed from free text plus any contradictions found."""

    constraints: RefinementConstraints
    conflicts: tuple[str, ...] = ()


@dataclass(frozen=True)
class VersionChange:
    """One typed change between a version and its parent."""

    type: ChangeType
    description: str
    severity: ChangeSeverity


@dataclass(frozen=True)
class VersionComparison:
    """Structural diff between two artifacts."""

    colors_changed: bool
    typography_changed: bool
    accessibility_improved: bool
    components_added: tuple[str, ...]
    components_removed: tuple[str, ...]
    changed_fields: frozenset[str]
    summary: str


@dataclass(frozen=True)
class RefinementResult:
    """Output of the refinement engine."""

    refined: DesignSystemArtifact
    explanation: str
    degraded: bool = False
    applied_changes: tuple[str, ...] = ()
    skipped_changes: tuple[str, ...] = ()


@dataclass(frozen=True)
class GuardResult:
    """Outcome of validating one free-text input."""

    valid: bool
    sanitized: str
    error: str | None = None


@dataclass(frozen=True)
class VersionRecord:
    """Immutable snapshot of a stored design system version."""

    id: UUID
    user_id: str
    version: int
    parent_version_id: UUID | None
    artifact: DesignSystemArtifact
    intent: str
    changes: tuple[VersionChange, ...]
    created_at: datetime


@dataclass(frozen=True)
class ModelRequest:
    """Prompt and sampling parameters for one generative model call."""

    system_prompt: str
    user_prompt: str
    max_tokens: int
    temperature: float


@dataclass(frozen=True)
class ModelResponse:
    """Raw text returned by the generative model."""

    text: str
    provider: str
    model: str
    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def tokens_used(self) -> int:
        return self.input_tokens + self.output_tokens


@dataclass(frozen=True)
class RateLimitDecision:
    """Yes/no answer from the external rate limiter."""

    allowed: bool
    reset_at: float = 0.0


@dataclass(frozen=True)
class GenerationOutcome:
    """Persisted result of a charged generation."""

    artifact: DesignSystemArtifact
    version: VersionRecord
    credits_remaining: int | None


@dataclass(frozen=True)
class RefinementOutcome:
    """Result of a refinement request. ``version`` is None when degraded."""

    result: RefinementResult
    comparison: VersionComparison
    conflicts: tuple[str, ...] = ()
    version: VersionRecord | None = None
    credits_remaining: int | None = None
    applied_constraints: RefinementConstraints = field(default_factory=RefinementConstraints)


@dataclass(frozen=True)
class ExportedTokens:
    """Rendered design tokens of a stored version."""

    version_id: UUID
    format: ExportFormat
    content: str
    media_type: str
    filename: str
    credits_charged: int = 0
    credits_remaining: int | None = None
