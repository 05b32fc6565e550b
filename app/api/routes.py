"""
API Routes - FastAPI endpoints for design system generation and credits.

NO DICTIONARIES - All requests/responses use Pydantic models.

Domain exceptions are not caught here; the application-level handler in
app.main turns every DesignSystemError into the standard error body.
"""

from datetime import UTC, datetime
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse, Response
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies import (
    enforce_rate_limit,
    get_caller,
    get_credit_ledger,
    get_design_system_service,
    get_version_store,
    require_admin,
)
from app.config import settings
from app.db.session import get_db
from app.models.api import (
    AddCreditsRequest,
    CompareRequest,
    ComparisonResponse,
    CreditBalanceResponse,
    CreditHistoryResponse,
    CreditTransactionResponse,
    ExportFormat,
    GenerateRequest,
    GenerateResponse,
    HealthResponse,
    PlanResponse,
    RefineRequest,
    RefineResponse,
    ResetCreditsRequest,
    TierListResponse,
    TierResponse,
    VersionChangeModel,
    VersionDetailResponse,
    VersionListResponse,
    VersionSummary,
)
from app.models.domain import (
    Caller,
    CreditAccount,
    RefinementConstraints,
    VersionComparison,
    VersionRecord,
)
from app.observability.logging import get_logger
from app.services import tiers
from app.services.credits import CreditLedger
from app.services.design_system import DesignSystemService
from app.services.versions import VersionStore

logger = get_logger(__name__)

router = APIRouter()


# ============================================================================
# Response converters
# ============================================================================


def _version_summary(record: VersionRecord) -> VersionSummary:
    return VersionSummary(
        id=record.id,
        version=record.version,
        parent_version_id=record.parent_version_id,
        intent=record.intent,
        changes=[
            VersionChangeModel(
                type=change.type, description=change.description, severity=change.severity
            )
            for change in record.changes
        ],
        created_at=record.created_at,
    )


def _version_detail(record: VersionRecord) -> VersionDetailResponse:
    return VersionDetailResponse(
        **_version_summary(record).model_dump(), artifact=record.artifact
    )


def _comparison_response(comparison: VersionComparison) -> ComparisonResponse:
    return ComparisonResponse(
        colors_changed=comparison.colors_changed,
        typography_changed=comparison.typography_changed,
        accessibility_improved=comparison.accessibility_improved,
        components_added=list(comparison.components_added),
        components_removed=list(comparison.components_removed),
        changed_fields=sorted(comparison.changed_fields),
        summary=comparison.summary,
    )


def _balance_response(account: CreditAccount) -> CreditBalanceResponse:
    return CreditBalanceResponse(
        user_id=account.user_id,
        plan=account.plan,
        balance=account.balance,
        unlimited=account.is_unlimited,
        total_earned=account.total_earned,
        total_spent=account.total_spent,
        reset_date=account.reset_date,
        last_updated=account.last_updated,
    )


# ============================================================================
# Design Systems
# ============================================================================


@router.post(
    "/v1/design-systems/generate",
    response_model=GenerateResponse,
    status_code=status.HTTP_201_CREATED,
)
async def generate_design_system(
    request: GenerateRequest,
    caller: Caller = Depends(enforce_rate_limit),
    service: DesignSystemService = Depends(get_design_system_service),
) -> GenerateResponse:
    """
    Generate a design system from a brand description.

    Charges the tier's credit cost only after the result is stored.
    """
    outcome = await service.generate(caller, request.brand_description, request.tier)
    return GenerateResponse(
        artifact=outcome.artifact,
        version=_version_summary(outcome.version),
        credits_remaining=outcome.credits_remaining,
    )


@router.post("/v1/design-systems/refine", response_model=RefineResponse)
async def refine_design_system(
    request: RefineRequest,
    caller: Caller = Depends(enforce_rate_limit),
    service: DesignSystemService = Depends(get_design_system_service),
) -> RefineResponse:
    """
    Refine a previous design system.

    The previous artifact is given inline or by a stored version id. A
    degraded refinement returns the previous artifact unchanged, uncharged.
    """
    constraints = None
    if request.constraints is not None:
        explicit = request.constraints
        constraints = RefinementConstraints(
            keep_primary_color=explicit.keep_primary_color,
            keep_secondary_color=explicit.keep_secondary_color,
            keep_typography=explicit.keep_typography,
            keep_components=tuple(explicit.keep_components),
            improve_accessibility=explicit.improve_accessibility,
            adjust_tone=explicit.adjust_tone,
            specific_changes=tuple(explicit.specific_changes),
        )

    outcome = await service.refine(
        caller,
        previous_artifact=request.previous_artifact,
        parent_version_id=request.parent_version_id,
        constraints=constraints,
        instruction=request.instruction,
    )
    result = outcome.result
    return RefineResponse(
        refined_artifact=result.refined,
        comparison=_comparison_response(outcome.comparison),
        explanation=result.explanation,
        degraded=result.degraded,
        applied_changes=list(result.applied_changes),
        skipped_changes=list(result.skipped_changes),
        conflicts=list(outcome.conflicts),
        version=_version_summary(outcome.version) if outcome.version else None,
        credits_remaining=outcome.credits_remaining,
    )


@router.post("/v1/design-systems/compare", response_model=ComparisonResponse)
async def compare_design_systems(
    request: CompareRequest,
    caller: Caller = Depends(get_caller),
    service: DesignSystemService = Depends(get_design_system_service),
) -> ComparisonResponse:
    """Structural diff of two artifacts. Free."""
    return _comparison_response(service.compare(request.previous, request.current))


@router.get("/v1/design-systems/versions", response_model=VersionListResponse)
async def list_versions(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    caller: Caller = Depends(get_caller),
    store: VersionStore = Depends(get_version_store),
) -> VersionListResponse:
    """List the caller's stored versions, newest first."""
    records = await store.list_versions(caller.user_id, limit=limit, offset=offset)
    total = await store.count(caller.user_id)
    return VersionListResponse(
        versions=[_version_summary(record) for record in records], total=total
    )


@router.get("/v1/design-systems/versions/{version_id}", response_model=VersionDetailResponse)
async def get_version(
    version_id: UUID,
    caller: Caller = Depends(get_caller),
    store: VersionStore = Depends(get_version_store),
) -> VersionDetailResponse:
    """Fetch one stored version with its artifact."""
    return _version_detail(await store.get(caller.user_id, version_id))


@router.get(
    "/v1/design-systems/versions/{version_id}/chain",
    response_model=list[VersionSummary],
)
async def get_version_chain(
    version_id: UUID,
    caller: Caller = Depends(get_caller),
    store: VersionStore = Depends(get_version_store),
) -> list[VersionSummary]:
    """Walk from a version back to the generation it descends from."""
    records = await store.chain(caller.user_id, version_id)
    return [_version_summary(record) for record in records]


@router.get("/v1/design-systems/versions/{version_id}/export")
async def export_version(
    version_id: UUID,
    fmt: ExportFormat = Query(ExportFormat.CSS, alias="format"),
    caller: Caller = Depends(enforce_rate_limit),
    service: DesignSystemService = Depends(get_design_system_service),
) -> Response:
    """
    Download a stored version as design tokens.

    CSS variables and the Tailwind theme are free; Figma tokens cost
    credits. The charge is reported in X-Credits-Charged and, for metered
    plans, the new balance in X-Credits-Remaining.
    """
    exported = await service.export(caller, version_id, fmt)
    headers = {
        "Content-Disposition": f'attachment; filename="{exported.filename}"',
        "X-Credits-Charged": str(exported.credits_charged),
    }
    if exported.credits_remaining is not None:
        headers["X-Credits-Remaining"] = str(exported.credits_remaining)
    return Response(content=exported.content, media_type=exported.media_type, headers=headers)


# ============================================================================
# Credits and Tiers
# ============================================================================


@router.get("/v1/credits", response_model=CreditBalanceResponse)
async def get_credits(
    caller: Caller = Depends(get_caller),
    ledger: CreditLedger = Depends(get_credit_ledger),
) -> CreditBalanceResponse:
    """
    Current balance for the caller.

    Creates the account with the plan's starting allotment on first use.
    """
    return _balance_response(await ledger.get_balance(caller.user_id, caller.plan))


@router.get("/v1/credits/history", response_model=CreditHistoryResponse)
async def get_credit_history(
    limit: int = Query(50, ge=1, le=500),
    caller: Caller = Depends(get_caller),
    ledger: CreditLedger = Depends(get_credit_ledger),
) -> CreditHistoryResponse:
    transactions = await ledger.history(caller.user_id, limit=limit)
    return CreditHistoryResponse(
        transactions=[
            CreditTransactionResponse(
                id=tx.id,
                kind=tx.kind,
                amount=tx.amount,
                balance_before=tx.balance_before,
                balance_after=tx.balance_after,
                reason=tx.reason,
                created_at=tx.created_at,
            )
            for tx in transactions
        ],
        total=len(transactions),
    )


@router.get("/v1/tiers", response_model=TierListResponse)
async def list_tiers() -> TierListResponse:
    """Generation tiers and subscription plans."""
    return TierListResponse(
        tiers=[
            TierResponse(
                name=tier.name,
                display_name=tier.display_name,
                palettes=tier.palettes,
                shades_per_palette=tier.shades_per_palette,
                font_pairings=tier.font_pairings,
                type_scale_sizes=tier.type_scale_sizes,
                credit_cost=tier.credit_cost,
                estimated_time=tier.estimated_time,
                features=list(tier.features),
            )
            for tier in tiers.all_tiers()
        ],
        plans=[
            PlanResponse(name=plan.name, credits=plan.credits, monthly_reset=plan.monthly_reset)
            for plan in tiers.all_plans()
        ],
    )


# ============================================================================
# Admin
# ============================================================================


@router.post(
    "/v1/admin/credits/{user_id}/add",
    response_model=CreditBalanceResponse,
    dependencies=[Depends(require_admin)],
)
async def admin_add_credits(
    user_id: str,
    request: AddCreditsRequest,
    ledger: CreditLedger = Depends(get_credit_ledger),
) -> CreditBalanceResponse:
    """Grant credits to a user. No-op for unlimited accounts."""
    await ledger.get_balance(user_id)
    await ledger.add(user_id, request.amount, reason=request.reason)
    logger.info("admin_credits_added", user_id=user_id, amount=request.amount)
    return _balance_response(await ledger.get_balance(user_id))


@router.post(
    "/v1/admin/credits/{user_id}/reset",
    response_model=CreditBalanceResponse,
    dependencies=[Depends(require_admin)],
)
async def admin_reset_credits(
    user_id: str,
    request: ResetCreditsRequest,
    ledger: CreditLedger = Depends(get_credit_ledger),
) -> CreditBalanceResponse:
    """Reset a user to a plan's starting allotment."""
    account = await ledger.reset(user_id, request.plan)
    logger.info("admin_credits_reset", user_id=user_id, plan=request.plan)
    return _balance_response(account)


# ============================================================================
# Health
# ============================================================================


@router.get("/health", response_model=HealthResponse)
async def health_check(db: AsyncSession = Depends(get_db)) -> HealthResponse | JSONResponse:
    """
    Health check for load balancer.

    Verifies database connectivity.
    """
    try:
        await db.execute(text("SELECT 1"))

    except SQLAlchemyError as exc:
        logger.error("health_check_failed", error=str(exc))
        unhealthy = HealthResponse(
            status="unhealthy",
            database="disconnected",
            timestamp=datetime.now(UTC),
            version=settings.api_version,
        )
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content=unhealthy.model_dump(mode="json"),
        )

    return HealthResponse(
        status="healthy",
        database="connected",
        timestamp=datetime.now(UTC),
        version=settings.api_version,
    )
