"""
Design System Service - The generation, refinement and export pipelines.

Order of every charged operation:
1. Input guard (before any credit check or model call)
2. Ledger afford check
3. Generate or refine
4. Diff (refinements)
5. Persist version and deduct credits in ONE transaction

A failed deduction rolls the version back, so a user is never charged for
a version that was not stored and never gets a stored version for free.
"""

from dataclasses import asdict
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.exceptions import DesignSystemError, InsufficientCreditsError, PersistenceError
from app.models.api import ExportFormat, GuardKind
from app.models.artifact import DesignSystemArtifact
from app.models.domain import (
    Caller,
    CreditAccount,
    ExportedTokens,
    GenerationOutcome,
    RefinementConstraints,
    RefinementOutcome,
    VersionChange,
    VersionComparison,
    VersionRecord,
)
from app.observability.logging import get_logger
from app.services import differ, exporters, input_guard, tiers
from app.services.ai_client import GenerativeModel
from app.services.constraints import extract_constraints
from app.services.credits import CreditLedger, can_afford
from app.services.generation import GenerationOrchestrator
from app.services.refinement import RefinementEngine
from app.services.versions import VersionStore

logger = get_logger(__name__)


class DesignSystemService:
    """Credit-gated generation and refinement for one request session."""

    def __init__(
        self,
        session: AsyncSession,
        model: GenerativeModel,
        orchestrator: GenerationOrchestrator | None = None,
        engine: RefinementEngine | None = None,
    ) -> None:
        self.session = session
        self.ledger = CreditLedger(session)
        self.versions = VersionStore(session)
        self.orchestrator = orchestrator or GenerationOrchestrator(model)
        self.engine = engine or RefinementEngine(model)

    async def generate(
        self, caller: Caller, brand_description: str, tier: str
    ) -> GenerationOutcome:
        """
        Generate, store and charge for a new design system.

        Raises:
            InputValidationError: Bad description or tier
            InsufficientCreditsError: Balance below the tier's cost
            GenerationTimeoutError, InvalidAIResponseError, GenerationFailedError
            PersistenceError: Store unavailable
        """
        description = input_guard.require_valid(brand_description, GuardKind.BRAND_DESCRIPTION)
        tier_config = tiers.get(tier)

        await self._require_credits(caller, tier_config.credit_cost)

        artifact = await self.orchestrator.generate(description, tier_config.name)

        version, remaining = await self._persist_and_charge(
            caller,
            artifact,
            intent=description,
            parent_version_id=None,
            changes=(),
            cost=tier_config.credit_cost,
            reason=f"generate:{tier_config.name}",
        )
        return GenerationOutcome(artifact=artifact, version=version, credits_remaining=remaining)

    async def refine(
        self,
        caller: Caller,
        previous_artifact: DesignSystemArtifact | None = None,
        parent_version_id: UUID | None = None,
        constraints: RefinementConstraints | None = None,
        instruction: str | None = None,
    ) -> RefinementOutcome:
        """
        Refine a previous artifact, store the result and charge for it.

        A degraded refinement (model step failed) is neither stored nor
        charged.

        Raises:
            InputValidationError: Bad instruction, oversized artifact or unknown tier
            VersionNotFoundError: parent_version_id not found for this user
            InsufficientCreditsError: Balance below the refinement cost
            PersistenceError: Store unavailable
        """
        sanitized_instruction = None
        if instruction is not None:
            sanitized_instruction = input_guard.require_valid(
                instruction, GuardKind.REFINEMENT_INSTRUCTION
            )

        previous, parent_id = await self._resolve_previous(
            caller, previous_artifact, parent_version_id
        )
        cost = tiers.get(previous.metadata.tier).credit_cost

        if constraints is not None:
            input_guard.require_payload_size(
                asdict(constraints), settings.structured_payload_max_bytes, field="constraints"
            )

        merged = constraints or RefinementConstraints()
        conflicts: tuple[str, ...] = ()
        if sanitized_instruction:
            extraction = extract_constraints(sanitized_instruction)
            merged = merged.merge(extraction.constraints)
            conflicts = extraction.conflicts

        account = await self._require_credits(caller, cost)

        result = await self.engine.refine(previous, merged, sanitized_instruction)
        comparison = differ.compare(previous, result.refined)

        if result.degraded:
            return RefinementOutcome(
                result=result,
                comparison=comparison,
                conflicts=conflicts,
                credits_remaining=account.balance,
                applied_constraints=merged,
            )

        version, remaining = await self._persist_and_charge(
            caller,
            result.refined,
            intent=sanitized_instruction or comparison.summary,
            parent_version_id=parent_id,
            changes=differ.describe_changes(previous, result.refined),
            cost=cost,
            reason="refine",
        )
        return RefinementOutcome(
            result=result,
            comparison=comparison,
            conflicts=conflicts,
            version=version,
            credits_remaining=remaining,
            applied_constraints=merged,
        )

    async def export(self, caller: Caller, version_id: UUID, fmt: ExportFormat) -> ExportedTokens:
        """
        Render a stored version as design tokens, charging advanced formats.

        Raises:
            VersionNotFoundError: No such version for this user
            InsufficientCreditsError: Balance below the format's cost
            PersistenceError: Store unavailable
        """
        record = await self.versions.get(caller.user_id, version_id)
        rendered = exporters.render(record.artifact, fmt)
        cost = exporters.export_cost(fmt)

        remaining = None
        if cost:
            await self._require_credits(caller, cost)
            remaining = await self.ledger.deduct(
                caller.user_id, cost, reason=f"export:{fmt.value}:{record.id}"
            )

        logger.info(
            "design_tokens_exported",
            user_id=caller.user_id,
            version_id=str(record.id),
            format=fmt.value,
            cost=cost,
        )
        return ExportedTokens(
            version_id=record.id,
            format=fmt,
            content=rendered.content,
            media_type=rendered.media_type,
            filename=rendered.filename,
            credits_charged=cost,
            credits_remaining=remaining,
        )

    def compare(self, a: DesignSystemArtifact, b: DesignSystemArtifact) -> VersionComparison:
        """Free structural diff of two client-supplied artifacts."""
        for artifact in (a, b):
            input_guard.require_payload_size(
                artifact, settings.design_payload_max_bytes, field="artifact"
            )
        return differ.compare(a, b)

    # ========================================================================
    # Private Helper Methods
    # ========================================================================

    async def _require_credits(self, caller: Caller, cost: int) -> CreditAccount:
        account = await self.ledger.get_balance(caller.user_id, caller.plan)
        if not can_afford(account, cost):
            logger.info(
                "credits_insufficient",
                user_id=caller.user_id,
                balance=account.balance,
                required=cost,
            )
            raise InsufficientCreditsError(account.balance or 0, cost)
        return account

    async def _resolve_previous(
        self,
        caller: Caller,
        previous_artifact: DesignSystemArtifact | None,
        parent_version_id: UUID | None,
    ) -> tuple[DesignSystemArtifact, UUID | None]:
        """Load the artifact to refine and the version it descends from."""
        if parent_version_id is not None:
            record = await self.versions.get(caller.user_id, parent_version_id)
            return record.artifact, record.id

        if previous_artifact is None:
            raise ValueError("previous_artifact or parent_version_id is required")

        input_guard.require_payload_size(
            previous_artifact, settings.design_payload_max_bytes, field="previous_artifact"
        )
        stored = await self.versions.find_by_artifact(caller.user_id, previous_artifact.id)
        return previous_artifact, stored.id if stored is not None else None

    async def _persist_and_charge(
        self,
        caller: Caller,
        artifact: DesignSystemArtifact,
        intent: str,
        parent_version_id: UUID | None,
        changes: tuple[VersionChange, ...],
        cost: int,
        reason: str,
    ) -> tuple[VersionRecord, int | None]:
        """Store the version and deduct its cost atomically."""
        try:
            version = await self.versions.create(
                caller.user_id,
                artifact,
                intent=intent,
                parent_version_id=parent_version_id,
                changes=changes,
                credits_charged=cost,
                commit=False,
            )
            remaining = await self.ledger.deduct(
                caller.user_id, cost, reason=f"{reason}:{version.id}", commit=False
            )
            await self.session.commit()

        except DesignSystemError:
            await self.session.rollback()
            raise

        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error("version_commit_failed", user_id=caller.user_id, error=str(e))
            raise PersistenceError(str(e)) from e

        logger.info(
            "design_system_stored",
            user_id=caller.user_id,
            version_id=str(version.id),
            version=version.version,
            cost=cost,
            credits_remaining=remaining,
        )
        return version, remaining
