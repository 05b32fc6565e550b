"""
FastAPI Dependencies - Caller identity, admin auth, rate limiting, services.

NO DICTIONARIES - All dependencies return typed objects.

Authentication happens upstream: a trusted gateway asserts the caller via
X-User-ID / X-User-Plan headers. This service only checks they are present.
"""

import secrets
from functools import lru_cache
from typing import Protocol

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from app.config import settings
from app.db.session import get_db
from app.exceptions import AuthenticationError, RateLimitExceededError
from app.models.domain import Caller, RateLimitDecision
from app.services import tiers
from app.services.ai_client import AnthropicModel, GenerativeModel
from app.services.credits import CreditLedger
from app.services.design_system import DesignSystemService
from app.services.versions import VersionStore

logger = get_logger(__name__)

# ============================================================================
# Caller identity (gateway headers)
# ============================================================================


async def get_caller(
    x_user_id: str | None = Header(None, alias="X-User-ID", max_length=255),
    x_user_plan: str | None = Header(None, alias="X-User-Plan", max_length=50),
) -> Caller:
    """
    FastAPI dependency resolving the caller from gateway headers.

    Raises:
        AuthenticationError: Missing user id or unknown plan
    """
    if not x_user_id or not x_user_id.strip():
        raise AuthenticationError("Missing X-User-ID header")

    plan = (x_user_plan or tiers.DEFAULT_PLAN).strip().lower()
    if not tiers.is_valid_plan(plan):
        logger.warning("unknown_plan_header", user_id=x_user_id, plan=plan)
        raise AuthenticationError("Invalid X-User-Plan header")

    return Caller(user_id=x_user_id.strip(), plan=plan)


async def require_admin(
    x_admin_key: str | None = Header(None, alias="X-Admin-Key"),
) -> None:
    """
    FastAPI dependency guarding /v1/admin/* endpoints.

    Raises:
        AuthenticationError: Admin key not configured or wrong
    """
    if not settings.admin_api_key:
        raise AuthenticationError("Admin API is disabled")
    if not x_admin_key or not secrets.compare_digest(x_admin_key, settings.admin_api_key):
        logger.warning("admin_auth_failed")
        raise AuthenticationError("Invalid admin key")


# ============================================================================
# Rate limiting (external gate)
# ============================================================================


class RateLimiter(Protocol):
    """External rate limiter: yes/no plus a reset timestamp."""

    async def check(self, key: str) -> RateLimitDecision: ...


class AllowAllRateLimiter:
    """Default limiter when no external one is wired in."""

    async def check(self, key: str) -> RateLimitDecision:
        return RateLimitDecision(allowed=True)


_rate_limiter: RateLimiter = AllowAllRateLimiter()


def get_rate_limiter() -> RateLimiter:
    return _rate_limiter


async def enforce_rate_limit(
    caller: Caller = Depends(get_caller),
    limiter: RateLimiter = Depends(get_rate_limiter),
) -> Caller:
    """
    Apply the rate limiter before any charged operation.

    Raises:
        RateLimitExceededError: Limiter denied the request
    """
    decision = await limiter.check(f"design-system:{caller.user_id}")
    if not decision.allowed:
        logger.info("rate_limited", user_id=caller.user_id, reset_at=decision.reset_at)
        raise RateLimitExceededError(decision.reset_at)
    return caller


# ============================================================================
# Services
# ============================================================================


@lru_cache(maxsize=1)
def get_model() -> GenerativeModel:
    """Process-wide generative model client."""
    return AnthropicModel(api_key=settings.anthropic_api_key, model=settings.ai_model)


def get_design_system_service(
    db: AsyncSession = Depends(get_db),
    model: GenerativeModel = Depends(get_model),
) -> DesignSystemService:
    return DesignSystemService(db, model)


def get_credit_ledger(db: AsyncSession = Depends(get_db)) -> CreditLedger:
    return CreditLedger(db)


def get_version_store(db: AsyncSession = Depends(get_db)) -> VersionStore:
    return VersionStore(db)
