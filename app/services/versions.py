"""
Version Store - Append-only graph of design system versions.

Version numbers are per user (max + 1) under a unique constraint. Refining
the same parent twice produces sibling versions; nothing is merged.
"""

from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models import DesignSystemVersion
from app.exceptions import PersistenceError, VersionNotFoundError
from app.models.api import ChangeSeverity, ChangeType
from app.models.artifact import DesignSystemArtifact
from app.models.domain import VersionChange, VersionRecord
from app.observability.logging import get_logger

logger = get_logger(__name__)

MAX_ALLOCATION_ATTEMPTS = 3
MAX_CHAIN_DEPTH = 1000


class VersionStore:
    """Persists and reads design system versions for one session."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create(
        self,
        user_id: str,
        artifact: DesignSystemArtifact,
        intent: str,
        parent_version_id: UUID | None = None,
        changes: tuple[VersionChange, ...] = (),
        credits_charged: int = 0,
        commit: bool = True,
    ) -> VersionRecord:
        """
        Store a new version.

        Must be the first write of its transaction: a version-number
        collision rolls the transaction back and retries.

        Raises:
            VersionNotFoundError: Parent missing or owned by another user
            PersistenceError: Store unavailable or numbering kept colliding
        """
        for attempt in range(MAX_ALLOCATION_ATTEMPTS):
            try:
                if parent_version_id is not None:
                    await self._get_row(user_id, parent_version_id)

                row = DesignSystemVersion(
                    user_id=user_id,
                    version=await self._next_version(user_id),
                    parent_version_id=parent_version_id,
                    artifact_id=artifact.id,
                    artifact=artifact.model_dump(mode="json"),
                    intent=intent,
                    changes=[
                        {
                            "type": change.type.value,
                            "description": change.description,
                            "severity": change.severity.value,
                        }
                        for change in changes
                    ],
                    credits_charged=credits_charged,
                    created_at=datetime.now(UTC),
                )
                self.session.add(row)
                await self.session.flush()

            except IntegrityError as e:
                # Race condition - another request took this version number
                await self.session.rollback()
                logger.warning(
                    "version_number_conflict", user_id=user_id, attempt=attempt, error=str(e)
                )
                continue

            except SQLAlchemyError as e:
                await self.session.rollback()
                logger.error("version_create_failed", user_id=user_id, error=str(e))
                raise PersistenceError(str(e)) from e

            if commit:
                try:
                    await self.session.commit()
                except SQLAlchemyError as e:
                    await self.session.rollback()
                    raise PersistenceError(str(e)) from e

            logger.info(
                "version_created",
                user_id=user_id,
                version_id=str(row.id),
                version=row.version,
                parent_version_id=str(parent_version_id) if parent_version_id else None,
            )
            return self._to_domain(row)

        raise PersistenceError(f"Could not allocate a version number for {user_id}")

    async def get(self, user_id: str, version_id: UUID) -> VersionRecord:
        """
        Raises:
            VersionNotFoundError: Missing or owned by another user
        """
        return self._to_domain(await self._get_row(user_id, version_id))

    async def find_by_artifact(self, user_id: str, artifact_id: str) -> VersionRecord | None:
        """Latest stored version holding the given artifact, if any."""
        stmt = (
            select(DesignSystemVersion)
            .where(
                DesignSystemVersion.user_id == user_id,
                DesignSystemVersion.artifact_id == artifact_id,
            )
            .order_by(DesignSystemVersion.version.desc())
            .limit(1)
        )
        try:
            result = await self.session.execute(stmt)
        except SQLAlchemyError as e:
            raise PersistenceError(str(e)) from e
        row = result.scalar_one_or_none()
        return self._to_domain(row) if row is not None else None

    async def list_versions(
        self, user_id: str, limit: int = 20, offset: int = 0
    ) -> list[VersionRecord]:
        """User's versions, newest first."""
        stmt = (
            select(DesignSystemVersion)
            .where(DesignSystemVersion.user_id == user_id)
            .order_by(DesignSystemVersion.version.desc())
            .limit(limit)
            .offset(offset)
        )
        try:
            result = await self.session.execute(stmt)
        except SQLAlchemyError as e:
            raise PersistenceError(str(e)) from e
        return [self._to_domain(row) for row in result.scalars().all()]

    async def count(self, user_id: str) -> int:
        stmt = select(func.count()).select_from(DesignSystemVersion).where(
            DesignSystemVersion.user_id == user_id
        )
        try:
            result = await self.session.execute(stmt)
        except SQLAlchemyError as e:
            raise PersistenceError(str(e)) from e
        return int(result.scalar_one())

    async def chain(self, user_id: str, version_id: UUID) -> list[VersionRecord]:
        """
        Walk parent references from a version up to its root.

        Returns:
            The version first, its root last
        """
        records: list[VersionRecord] = []
        seen: set[UUID] = set()
        current: UUID | None = version_id
        while current is not None and current not in seen and len(records) < MAX_CHAIN_DEPTH:
            seen.add(current)
            record = await self.get(user_id, current)
            records.append(record)
            current = record.parent_version_id
        return records

    # ========================================================================
    # Private Helper Methods
    # ========================================================================

    async def _next_version(self, user_id: str) -> int:
        stmt = select(func.max(DesignSystemVersion.version)).where(
            DesignSystemVersion.user_id == user_id
        )
        result = await self.session.execute(stmt)
        return (result.scalar_one_or_none() or 0) + 1

    async def _get_row(self, user_id: str, version_id: UUID) -> DesignSystemVersion:
        try:
            row = await self.session.get(DesignSystemVersion, version_id)
        except SQLAlchemyError as e:
            raise PersistenceError(str(e)) from e
        if row is None or row.user_id != user_id:
            raise VersionNotFoundError(str(version_id))
        return row

    def _to_domain(self, row: DesignSystemVersion) -> VersionRecord:
        """Convert ORM version to domain model."""
        created_at = row.created_at
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=UTC)
        return VersionRecord(
            id=row.id,
            user_id=row.user_id,
            version=row.version,
            parent_version_id=row.parent_version_id,
            artifact=DesignSystemArtifact.model_validate(row.artifact),
            intent=row.intent,
            changes=tuple(
                VersionChange(
                    type=ChangeType(change["type"]),
                    description=change["description"],
                    severity=ChangeSeverity(change["severity"]),
                )
                for change in row.changes
            ),
            created_at=created_at,
        )
