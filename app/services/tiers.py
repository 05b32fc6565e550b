"""
Tier Catalog - Immutable generation tiers and subscription plans.

Generation tiers (basic / professional) decide output size, model parameters
and credit cost. Plans (free / pro / team) decide a ledger account's starting
allotment and whether it replenishes monthly.
"""

from types import MappingProxyType

from app.exceptions import UnknownTierError
from app.models.domain import PlanConfig, TierConfig

# Credit cost of the cheapest action (colors-only generation)
GENERATE_COLORS_COST = 1
FULL_GENERATION_COST = 3

DEFAULT_TIER = "basic"
DEFAULT_PLAN = "free"

_TIERS: MappingProxyType[str, TierConfig] = MappingProxyType(
    {
        "basic": TierConfig(
            name="basic",
            display_name="Basic",
            palettes=8,
            shades_per_palette=11,
            font_pairings=10,
            type_scale_sizes=12,
            credit_cost=GENERATE_COLORS_COST,
            latency_min_seconds=3,
            latency_max_seconds=5,
            features=(
                "88 color shades",
                "10 font pairings",
                "Basic type scale",
                "Perfect for MVPs",
            ),
            max_tokens=2500,
            temperature=1.0,
            include_components=False,
        ),
        "professional": TierConfig(
            name="professional",
            display_name="Professional",
            palettes=12,
            shades_per_palette=11,
            font_pairings=20,
            type_scale_sizes=16,
            credit_cost=FULL_GENERATION_COST,
            latency_min_seconds=8,
            latency_max_seconds=12,
            features=(
                "132 color shades",
                "20 font pairings",
                "Extended type scale",
                "UI state colors",
                "Dark mode variations",
                "Advanced design tokens",
                "Enterprise-grade quality",
                "Production-ready",
            ),
            max_tokens=3500,
            temperature=0.9,
            include_components=True,
        ),
    }
)

_PLANS: MappingProxyType[str, PlanConfig] = MappingProxyType(
    {
        "free": PlanConfig(name="free", credits=5, monthly_reset=False),
        "pro": PlanConfig(name="pro", credits=100, monthly_reset=True),
        "team": PlanConfig(name="team", credits=None, monthly_reset=False),
    }
)


def get(name: str) -> TierConfig:
    """
    Look up a generation tier.

    Raises:
        UnknownTierError: If the tier does not exist
    """
    tier = _TIERS.get(name)
    if tier is None:
        raise UnknownTierError(name)
    return tier


def is_valid(name: str) -> bool:
    return name in _TIERS


def all_tiers() -> tuple[TierConfig, ...]:
    """All tiers, cheapest first."""
    return tuple(sorted(_TIERS.values(), key=lambda tier: tier.credit_cost))


def get_plan(name: str) -> PlanConfig:
    """
    Look up a subscription plan.

    Raises:
        UnknownTierError: If the plan does not exist
    """
    plan = _PLANS.get(name)
    if plan is None:
        raise UnknownTierError(name)
    return plan


def is_valid_plan(name: str) -> bool:
    return name in _PLANS


def all_plans() -> tuple[PlanConfig, ...]:
    return tuple(_PLANS.values())
