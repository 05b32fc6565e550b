"""
API Models - Pydantic models for request/response validation.

NO DICTIONARIES - All data structures are strongly typed.
"""

from datetime import datetime
from enum import Enum
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from app.models.artifact import DesignSystemArtifact


class ToneAdjustment(str, Enum):
    """Tone shifts a refinement may request."""

    MORE_PLAYFUL = "more playful"
    MORE_PROFESSIONAL = "more professional"
    MORE_MODERN = "more modern"
    MORE_CLASSIC = "more classic"


class TransactionKind(str, Enum):
    """Credit ledger transaction kind."""

    DEDUCT = "deduct"
    ADD = "add"
    RESET = "reset"
    REPLENISH = "replenish"


class ChangeType(str, Enum):
    """Kind of change recorded between two versions."""

    COLOR = "color"
    TYPOGRAPHY = "typography"
    COMPONENT = "component"
    ACCESSIBILITY = "accessibility"


class ChangeSeverity(str, Enum):
    """How significant a recorded change is."""

    MINOR = "minor"
    MAJOR = "major"


class ExportFormat(str, Enum):
    """Design token export formats."""

    CSS = "css"
    TAILWIND = "tailwind"
    FIGMA = "figma"


class GuardKind(str, Enum):
    """Free-text input kinds the input guard knows how to validate."""

    BRAND_DESCRIPTION = "brand_description"
    REFINEMENT_INSTRUCTION = "refinement_instruction"
    DESIGN_SYSTEM_NAME = "design_system_name"


# ============================================================================
# Generation / Refinement Models
# ============================================================================


class GenerateRequest(BaseModel):
    """POST /v1/design-systems/generate request body."""

    brand_description: str = Field(..., min_length=1, max_length=5000)
    tier: str = Field(default="basic", min_length=1, max_length=50)


class RefinementConstraintsModel(BaseModel):
    """Explicit refinement constraints - merged with any extracted from the instruction."""

    keep_primary_color: bool = False
    keep_secondary_color: bool = False
    keep_typography: bool = False
    keep_components: list[str] = Field(default_factory=list, max_length=100)
    improve_accessibility: bool = False
    adjust_tone: ToneAdjustment | None = None
    specific_changes: list[str] = Field(default_factory=list, max_length=20)


class RefineRequest(BaseModel):
    """POST /v1/design-systems/refine request body."""

    previous_artifact: DesignSystemArtifact | None = None
    parent_version_id: UUID | None = None
    constraints: RefinementConstraintsModel | None = None
    instruction: str | None = Field(None, max_length=5000)

    @model_validator(mode="after")
    def validate_sources(self) -> "RefineRequest":
        """Require something to refine and something to do."""
        if self.previous_artifact is None and self.parent_version_id is None:
            raise ValueError("previous_artifact or parent_version_id is required")
        if self.constraints is None and not self.instruction:
            raise ValueError("constraints or instruction is required")
        return self


class CompareRequest(BaseModel):
    """POST /v1/design-systems/compare request body."""

    previous: DesignSystemArtifact
    current: DesignSystemArtifact


class VersionChangeModel(BaseModel):
    """One recorded change between a version and its parent."""

    type: ChangeType
    description: str
    severity: ChangeSeverity


class VersionSummary(BaseModel):
    """A stored version without its artifact."""

    id: UUID
    version: int
    parent_version_id: UUID | None
    intent: str
    changes: list[VersionChangeModel]
    created_at: datetime


class VersionDetailResponse(VersionSummary):
    """GET /v1/design-systems/versions/{id} response."""

    artifact: DesignSystemArtifact


class VersionListResponse(BaseModel):
    """GET /v1/design-systems/versions response."""

    versions: list[VersionSummary]
    total: int


class ComparisonResponse(BaseModel):
    """Structural diff between two artifacts."""

    colors_changed: bool
    typography_changed: bool
    accessibility_improved: bool
    components_added: list[str]
    components_removed: list[str]
    changed_fields: list[str]
    summary: str


class GenerateResponse(BaseModel):
    """POST /v1/design-systems/generate response."""

    artifact: DesignSystemArtifact
    version: VersionSummary
    credits_remaining: int | None = Field(None, description="None for unlimited plans")


class RefineResponse(BaseModel):
    """POST /v1/design-systems/refine response."""

    refined_artifact: DesignSystemArtifact
    comparison: ComparisonResponse
    explanation: str
    degraded: bool
    applied_changes: list[str]
    skipped_changes: list[str]
    conflicts: list[str]
    version: VersionSummary | None = None
    credits_remaining: int | None = None


# ============================================================================
# Credit Models
# ============================================================================


class CreditBalanceResponse(BaseModel):
    """GET /v1/credits response."""

    user_id: str
    plan: str
    balance: int | None = Field(None, description="None when unlimited")
    unlimited: bool
    total_earned: int
    total_spent: int
    reset_date: datetime | None
    last_updated: datetime


class CreditTransactionResponse(BaseModel):
    """One ledger entry."""

    id: UUID
    kind: TransactionKind
    amount: int
    balance_before: int | None
    balance_after: int | None
    reason: str
    created_at: datetime


class CreditHistoryResponse(BaseModel):
    """GET /v1/credits/history response."""

    transactions: list[CreditTransactionResponse]
    total: int


class AddCreditsRequest(BaseModel):
    """POST /v1/admin/credits/{user_id}/add request body."""

    amount: int = Field(..., gt=0, le=1_000_000)
    reason: str = Field(default="admin grant", min_length=1, max_length=200)


class ResetCreditsRequest(BaseModel):
    """POST /v1/admin/credits/{user_id}/reset request body."""

    plan: str = Field(default="free", min_length=1, max_length=50)


# ============================================================================
# Tier Models
# ============================================================================


class TierResponse(BaseModel):
    """Generation tier as exposed to clients."""

    name: str
    display_name: str
    palettes: int
    shades_per_palette: int
    font_pairings: int
    type_scale_sizes: int
    credit_cost: int
    estimated_time: str
    features: list[str]


class PlanResponse(BaseModel):
    """Subscription plan backing the credit ledger."""

    name: str
    credits: int | None
    monthly_reset: bool


class TierListResponse(BaseModel):
    """GET /v1/tiers response."""

    tiers: list[TierResponse]
    plans: list[PlanResponse]


# ============================================================================
# Misc
# ============================================================================


class HealthResponse(BaseModel):
    """GET /health response."""

    status: Literal["healthy", "degraded", "unhealthy"]
    database: Literal["connected", "disconnected"]
    timestamp: datetime
    version: str


class ErrorResponse(BaseModel):
    """Error response body."""

    error: str
    message: str
