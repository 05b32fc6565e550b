"""
Database Models - SQLAlchemy ORM models with strict typing.

NO DICTIONARIES - All columns use Mapped[] type annotations.

Column types are portable: PostgreSQL in production, SQLite for local runs
and tests. JSON columns become JSONB on PostgreSQL.
"""

from datetime import UTC, datetime
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

JSONType = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


def utc_now() -> datetime:
    """Get current UTC timestamp."""
    return datetime.now(UTC)


class CreditAccount(Base):
    """
    ORM model for credit_accounts table.

    One row per user. ``balance`` is NULL for unlimited plans, which makes
    ``balance - cost`` a no-op in the conditional deduction.
    """

    __tablename__ = "credit_accounts"

    user_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    plan: Mapped[str] = mapped_column(String(50), nullable=False, default="free")

    # Balance (NULL = unlimited)
    balance: Mapped[int | None] = mapped_column(Integer, nullable=True)
    total_earned: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_spent: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Monthly replenishment
    reset_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now
    )

    __table_args__ = (
        CheckConstraint("balance IS NULL OR balance >= 0", name="ck_credit_balance_non_negative"),
        CheckConstraint("total_earned >= 0", name="ck_credit_total_earned_non_negative"),
        CheckConstraint("total_spent >= 0", name="ck_credit_total_spent_non_negative"),
        Index("idx_credit_accounts_reset_date", "reset_date"),
    )

    def __repr__(self) -> str:
        return f"<CreditAccount(user_id={self.user_id}, plan={self.plan}, balance={self.balance})>"


class CreditTransaction(Base):
    """
    ORM model for credit_transactions table.

    Append-only audit trail of every ledger mutation.
    """

    __tablename__ = "credit_transactions"

    id: Mapped[UUID] = mapped_column(Uuid(), primary_key=True, default=uuid4)
    user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    kind: Mapped[str] = mapped_column(String(20), nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    balance_before: Mapped[int | None] = mapped_column(Integer, nullable=True)
    balance_after: Mapped[int | None] = mapped_column(Integer, nullable=True)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )

    __table_args__ = (
        CheckConstraint("amount >= 0", name="ck_credit_transaction_amount_non_negative"),
        CheckConstraint(
            "kind IN ('deduct', 'add', 'reset', 'replenish')",
            name="ck_credit_transaction_kind",
        ),
        Index("idx_credit_transactions_user_created", "user_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<CreditTransaction(id={self.id}, kind={self.kind}, amount={self.amount})>"


class DesignSystemVersion(Base):
    """
    ORM model for design_system_versions table.

    Append-only version graph. ``version`` is allocated per user as max + 1
    under the unique constraint; concurrent refinements of one parent become
    siblings.
    """

    __tablename__ = "design_system_versions"

    id: Mapped[UUID] = mapped_column(Uuid(), primary_key=True, default=uuid4)
    user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    parent_version_id: Mapped[UUID | None] = mapped_column(
        Uuid(),
        ForeignKey("design_system_versions.id", ondelete="RESTRICT"),
        nullable=True,
    )
    artifact_id: Mapped[str] = mapped_column(String(64), nullable=False)
    artifact: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False)
    intent: Mapped[str] = mapped_column(Text, nullable=False)
    changes: Mapped[list[dict[str, Any]]] = mapped_column(JSONType, nullable=False, default=list)
    credits_charged: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )

    __table_args__ = (
        UniqueConstraint("user_id", "version", name="uq_design_system_versions_user_version"),
        CheckConstraint("version > 0", name="ck_design_system_version_positive"),
        Index("idx_design_system_versions_parent", "parent_version_id"),
        Index("idx_design_system_versions_user_created", "user_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<DesignSystemVersion(id={self.id}, user_id={self.user_id}, version={self.version})>"
