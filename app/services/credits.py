"""
Credit Ledger - Per-user credit balances with race-free deduction.

The afford-check and the decrement are a single conditional UPDATE:

    UPDATE credit_accounts
       SET balance = balance - :cost, total_spent = total_spent + :cost
     WHERE user_id = :user_id AND (balance IS NULL OR balance >= :cost)
 RETURNING balance

so concurrent deductions serialize in the database and the balance can never
go negative. Unlimited accounts store a NULL balance, which the same
statement leaves NULL.
"""

from datetime import UTC, datetime

from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models import CreditAccount as CreditAccountRow
from app.db.models import CreditTransaction
from app.exceptions import AccountNotFoundError, InsufficientCreditsError, PersistenceError
from app.models.api import TransactionKind
from app.models.domain import CreditAccount, CreditTransactionData, PlanConfig
from app.observability.logging import get_logger
from app.observability.metrics import metrics
from app.services import tiers

logger = get_logger(__name__)


def _utc_now() -> datetime:
    """Get current UTC timestamp."""
    return datetime.now(UTC)


def _as_utc(value: datetime | None) -> datetime | None:
    """SQLite hands back naive datetimes; everything stored is UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def next_reset_date(now: datetime) -> datetime:
    """First day of the month after ``now``, midnight UTC."""
    if now.month == 12:
        return datetime(now.year + 1, 1, 1, tzinfo=UTC)
    return datetime(now.year, now.month + 1, 1, tzinfo=UTC)


def can_afford(account: CreditAccount, cost: int) -> bool:
    """Unlimited accounts can afford anything."""
    if account.is_unlimited:
        return True
    return account.balance is not None and account.balance >= cost


class CreditLedger:
    """
    Credit ledger backed by the credit_accounts table.

    Every mutation appends a credit_transactions row. Mutations take
    ``commit=False`` when the caller owns the transaction (for example to
    persist a design system version and charge for it atomically).
    """

    def __init__(self, session: AsyncSession) -> None:
        """Initialize credit ledger with database session."""
        self.session = session

    async def get_balance(self, user_id: str, plan: str = tiers.DEFAULT_PLAN) -> CreditAccount:
        """
        Return the user's account, creating it on first use.

        ``plan`` only applies when the account is created. Monthly plans are
        replenished here once their reset date has passed.

        Raises:
            UnknownTierError: Unknown plan for a new account
            PersistenceError: Store unavailable
        """
        try:
            row = await self._find_account(user_id)
            if row is None:
                row = await self._create_account(user_id, tiers.get_plan(plan))

            reset_date = _as_utc(row.reset_date)
            if reset_date is not None and _utc_now() >= reset_date:
                await self._replenish(row)
                row = await self._find_account(user_id)
                if row is None:
                    raise PersistenceError(f"Account {user_id} disappeared after replenish")

            return self._account_to_domain(row)

        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error("credit_account_read_failed", user_id=user_id, error=str(e))
            raise PersistenceError(str(e)) from e

    async def deduct(
        self, user_id: str, cost: int, reason: str, commit: bool = True
    ) -> int | None:
        """
        Atomically deduct ``cost`` credits.

        Returns:
            The new balance, or None for unlimited accounts

        Raises:
            InsufficientCreditsError: Balance below cost (nothing is deducted)
            AccountNotFoundError: No account for the user
            PersistenceError: Store unavailable
        """
        if cost <= 0:
            raise ValueError(f"Deduction must be positive: {cost}")

        now = _utc_now()
        stmt = (
            update(CreditAccountRow)
            .where(
                CreditAccountRow.user_id == user_id,
                or_(CreditAccountRow.balance.is_(None), CreditAccountRow.balance >= cost),
            )
            .values(
                balance=CreditAccountRow.balance - cost,
                total_spent=CreditAccountRow.total_spent + cost,
                last_updated=now,
            )
            .returning(CreditAccountRow.balance)
            .execution_options(synchronize_session=False)
        )

        try:
            result = await self.session.execute(stmt)
            row = result.first()

            if row is None:
                current = await self.session.execute(
                    select(CreditAccountRow.balance).where(CreditAccountRow.user_id == user_id)
                )
                existing = current.first()
                if commit:
                    await self.session.rollback()
                if existing is None:
                    metrics.record_deduction(False, cost, "account_not_found")
                    raise AccountNotFoundError(user_id)
                balance = existing[0] or 0
                metrics.record_deduction(False, cost, "insufficient_credits")
                logger.info(
                    "credits_insufficient", user_id=user_id, balance=balance, required=cost
                )
                raise InsufficientCreditsError(balance, cost)

            new_balance: int | None = row[0]
            balance_before = None if new_balance is None else new_balance + cost
            self.session.add(
                CreditTransaction(
                    user_id=user_id,
                    kind=TransactionKind.DEDUCT.value,
                    amount=cost,
                    balance_before=balance_before,
                    balance_after=new_balance,
                    reason=reason,
                    created_at=now,
                )
            )
            await self.session.flush()
            if commit:
                await self.session.commit()

        except SQLAlchemyError as e:
            await self.session.rollback()
            metrics.record_deduction(False, cost, "persistence_error")
            logger.error("credit_deduction_failed", user_id=user_id, cost=cost, error=str(e))
            raise PersistenceError(str(e)) from e

        metrics.record_deduction(True, cost)
        logger.info(
            "credits_deducted",
            user_id=user_id,
            cost=cost,
            balance_before=balance_before,
            balance_after=new_balance,
            reason=reason,
        )
        return new_balance

    async def add(
        self, user_id: str, amount: int, reason: str = "credits added", commit: bool = True
    ) -> int | None:
        """
        Add credits to a limited account. No-op on unlimited accounts.

        Returns:
            The new balance, or None for unlimited accounts

        Raises:
            AccountNotFoundError: No account for the user
            PersistenceError: Store unavailable
        """
        if amount <= 0:
            raise ValueError(f"Credit amount must be positive: {amount}")

        now = _utc_now()
        stmt = (
            update(CreditAccountRow)
            .where(CreditAccountRow.user_id == user_id, CreditAccountRow.balance.is_not(None))
            .values(
                balance=CreditAccountRow.balance + amount,
                total_earned=CreditAccountRow.total_earned + amount,
                last_updated=now,
            )
            .returning(CreditAccountRow.balance)
            .execution_options(synchronize_session=False)
        )

        try:
            result = await self.session.execute(stmt)
            row = result.first()

            if row is None:
                existing = await self._find_account(user_id)
                if existing is None:
                    if commit:
                        await self.session.rollback()
                    raise AccountNotFoundError(user_id)
                logger.info("credits_add_skipped_unlimited", user_id=user_id, amount=amount)
                return None

            new_balance: int = row[0]
            self.session.add(
                CreditTransaction(
                    user_id=user_id,
                    kind=TransactionKind.ADD.value,
                    amount=amount,
                    balance_before=new_balance - amount,
                    balance_after=new_balance,
                    reason=reason,
                    created_at=now,
                )
            )
            await self.session.flush()
            if commit:
                await self.session.commit()

        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error("credit_add_failed", user_id=user_id, amount=amount, error=str(e))
            raise PersistenceError(str(e)) from e

        metrics.record_credits_added(TransactionKind.ADD.value, amount)
        logger.info("credits_added", user_id=user_id, amount=amount, balance_after=new_balance)
        return new_balance

    async def reset(self, user_id: str, plan: str, commit: bool = True) -> CreditAccount:
        """
        Replace the user's account with a fresh one at the plan's allotment.

        Raises:
            UnknownTierError: Unknown plan
            PersistenceError: Store unavailable
        """
        plan_config = tiers.get_plan(plan)

        try:
            fresh = self._new_account_row(user_id, plan_config)
            row = await self._find_account(user_id)
            balance_before = row.balance if row is not None else None
            if row is None:
                row = fresh
                self.session.add(row)
            else:
                row.plan = fresh.plan
                row.balance = fresh.balance
                row.total_earned = fresh.total_earned
                row.total_spent = 0
                row.reset_date = fresh.reset_date
                row.last_updated = fresh.last_updated
            self.session.add(
                CreditTransaction(
                    user_id=user_id,
                    kind=TransactionKind.RESET.value,
                    amount=plan_config.credits or 0,
                    balance_before=balance_before,
                    balance_after=plan_config.credits,
                    reason=f"reset to {plan_config.name} plan",
                )
            )
            await self.session.flush()
            if commit:
                await self.session.commit()

        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error("credit_reset_failed", user_id=user_id, plan=plan, error=str(e))
            raise PersistenceError(str(e)) from e

        logger.info("credits_reset", user_id=user_id, plan=plan_config.name)
        return self._account_to_domain(row)

    async def history(self, user_id: str, limit: int = 50) -> list[CreditTransactionData]:
        """
        List the user's ledger entries, newest first.

        Raises:
            PersistenceError: Store unavailable
        """
        stmt = (
            select(CreditTransaction)
            .where(CreditTransaction.user_id == user_id)
            .order_by(CreditTransaction.created_at.desc())
            .limit(limit)
        )
        try:
            result = await self.session.execute(stmt)
        except SQLAlchemyError as e:
            logger.error("credit_history_failed", user_id=user_id, error=str(e))
            raise PersistenceError(str(e)) from e

        return [self._transaction_to_domain(row) for row in result.scalars().all()]

    # ========================================================================
    # Private Helper Methods
    # ========================================================================

    async def _find_account(self, user_id: str) -> CreditAccountRow | None:
        # Balances change through bulk UPDATEs; always reload from the database
        stmt = (
            select(CreditAccountRow)
            .where(CreditAccountRow.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    def _new_account_row(self, user_id: str, plan: PlanConfig) -> CreditAccountRow:
        now = _utc_now()
        return CreditAccountRow(
            user_id=user_id,
            plan=plan.name,
            balance=plan.credits,
            total_earned=plan.credits or 0,
            total_spent=0,
            reset_date=next_reset_date(now) if plan.monthly_reset else None,
            created_at=now,
            last_updated=now,
        )

    async def _create_account(self, user_id: str, plan: PlanConfig) -> CreditAccountRow:
        """Insert a new account; on a concurrent insert, return the winner's row."""
        row = self._new_account_row(user_id, plan)
        self.session.add(row)
        try:
            await self.session.flush()
            await self.session.commit()
        except IntegrityError:
            # Race condition - account created by another request
            await self.session.rollback()
            existing = await self._find_account(user_id)
            if existing is None:
                raise PersistenceError("Account creation failed due to race condition")
            return existing

        logger.info("credit_account_created", user_id=user_id, plan=plan.name)
        return row

    async def _replenish(self, row: CreditAccountRow) -> None:
        """
        Refill a monthly plan to its allotment and zero its spend.

        Conditional on the reset date so that concurrent readers replenish once.
        """
        plan = tiers.get_plan(row.plan)
        now = _utc_now()
        if plan.credits is None:
            return

        stmt = (
            update(CreditAccountRow)
            .where(
                CreditAccountRow.user_id == row.user_id,
                CreditAccountRow.reset_date <= now,
            )
            .values(
                balance=plan.credits,
                total_earned=CreditAccountRow.total_earned + plan.credits,
                total_spent=0,
                reset_date=next_reset_date(now),
                last_updated=now,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        if result.rowcount == 1:
            self.session.add(
                CreditTransaction(
                    user_id=row.user_id,
                    kind=TransactionKind.REPLENISH.value,
                    amount=plan.credits,
                    balance_before=row.balance,
                    balance_after=plan.credits,
                    reason=f"monthly {plan.name} replenishment",
                    created_at=now,
                )
            )
            metrics.record_credits_added(TransactionKind.REPLENISH.value, plan.credits)
            logger.info("credits_replenished", user_id=row.user_id, amount=plan.credits)
        await self.session.commit()
        self.session.expire(row)

    def _account_to_domain(self, row: CreditAccountRow) -> CreditAccount:
        """Convert ORM account to domain model."""
        return CreditAccount(
            user_id=row.user_id,
            plan=row.plan,
            balance=row.balance,
            total_earned=row.total_earned,
            total_spent=row.total_spent,
            reset_date=_as_utc(row.reset_date),
            last_updated=_as_utc(row.last_updated) or _utc_now(),
        )

    def _transaction_to_domain(self, row: CreditTransaction) -> CreditTransactionData:
        return CreditTransactionData(
            id=row.id,
            user_id=row.user_id,
            kind=TransactionKind(row.kind),
            amount=row.amount,
            balance_before=row.balance_before,
            balance_after=row.balance_after,
            reason=row.reason,
            created_at=_as_utc(row.created_at) or _utc_now(),
        )
