"""
Transaction Ledger

The ledger records money movement and is the ONLY component that changes
account balances. Every public write is one unit of work:

    validate -> check references -> write rows -> adjust balances -> commit

Everything inside a unit commits together or not at all. If storage fails
part-way, the whole unit is rolled back and NotPersistedError is raised,
so a transfer is never visible with only one leg and a balance never
moves without its transaction row.

Balance rule (keeps every account equal to the signed sum of its rows):
    income, credit  -> +amount
    expense, debit  -> -amount
"""

import datetime as dt
from contextlib import asynccontextmanager
from decimal import Decimal
from typing import AsyncIterator, Optional
from uuid import UUID

import structlog
from sqlalchemy import and_, func, select, update
from sqlalchemy.engine import Connection
from sqlalchemy.exc import SQLAlchemyError

from pocket_ledger.audit import AuditLogger, create_correlation_id
from pocket_ledger.config import AppSettings, get_settings
from pocket_ledger.exceptions import (
    NotPersistedError,
    StorageError,
    ValidationError,
)
from pocket_ledger.models.audit import AuditEventBuilder
from pocket_ledger.models.entities import (
    Account,
    Goal,
    Transaction,
    TransactionType,
    new_id,
    utc_now,
)
from pocket_ledger.models.money import from_minor_units, quantize, to_minor_units
from pocket_ledger.models.views import (
    BalanceDrift,
    CategoryTotal,
    TransactionDetail,
    TransferPair,
)
from pocket_ledger.services.storage import tables
from pocket_ledger.services.storage.accounts import AccountStore
from pocket_ledger.services.storage.categories import CategoryStore
from pocket_ledger.services.storage.database import Database
from pocket_ledger.services.storage.goals import GoalStore
from pocket_ledger.services.storage.sql_store import SqlEntityStore
from pocket_ledger.validation.validator import (
    LedgerValidator,
    ValidationIssue,
    build,
    raise_if_issues,
)


logger = structlog.get_logger(__name__)

OPENING_BALANCE_TITLE = "Opening balance"
DEFAULT_GOAL_ICON = "🎯"


class TransactionRows(SqlEntityStore[Transaction]):
    """
    Row mapping for the transactions table.

    Only the ledger uses this, and only through the ``*_with`` helpers
    inside its own units of work; writing transactions any other way
    would move money without touching balances.
    """

    table = tables.transactions
    model = Transaction
    entity_type = "transaction"
    money_columns = ("amount",)

    def _order_by(self) -> list:
        return [self.table.c.date.desc(), self.table.c.id]


def _not_owned(field: str, entity: str, entity_id: str) -> ValidationIssue:
    return ValidationIssue(
        field=field,
        issue_type="not_owned",
        message=f"{entity} {entity_id} does not exist or belongs to another user",
    )


class TransactionLedger:
    """Records transactions and keeps account balances consistent."""

    def __init__(
        self,
        database: Database,
        accounts: AccountStore,
        categories: CategoryStore,
        goals: GoalStore,
        audit_logger: Optional[AuditLogger] = None,
        validator: Optional[LedgerValidator] = None,
        settings: Optional[AppSettings] = None,
    ):
        self._db = database
        self._accounts = accounts
        self._categories = categories
        self._goals = goals
        self._audit = audit_logger or AuditLogger()
        self._validator = validator or LedgerValidator()
        self._settings = settings or get_settings().app
        self._rows = TransactionRows(database, self._audit, self._validator)

    # -------------------------------------------------------------------------
    # Unit of work
    # -------------------------------------------------------------------------

    @asynccontextmanager
    async def _unit(
        self,
        operation: str,
        user_id: Optional[str],
        correlation_id: UUID,
    ) -> AsyncIterator[Connection]:
        """
        One atomic unit. Validation failures and storage failures both
        roll back everything written inside the block. Failure events
        carry the caller's correlation id.
        """
        try:
            with self._db.transaction() as conn:
                yield conn
        except ValidationError as e:
            logger.warning(
                "ledger_validation_failed",
                operation=operation,
                user_id=user_id,
                correlation_id=str(correlation_id),
                error=str(e),
            )
            await self._audit.log(AuditEventBuilder.validation_failed(
                operation,
                [issue.model_dump() for issue in e.issues],
                user_id,
                correlation_id,
            ))
            raise
        except SQLAlchemyError as e:
            logger.error(
                "ledger_unit_failed",
                operation=operation,
                user_id=user_id,
                correlation_id=str(correlation_id),
                error=str(e),
                error_type=type(e).__name__,
            )
            await self._audit.log(AuditEventBuilder.save_failed(
                operation, str(e), user_id, correlation_id,
            ))
            raise NotPersistedError(f"{operation} was not persisted: {e}") from e

    def _require_account(
        self,
        conn: Connection,
        account_id: str,
        user_id: str,
        field: str = "account_id",
    ) -> Account:
        account = self._accounts.fetch_with(conn, account_id, user_id)
        if account is None:
            raise_if_issues("check references", [_not_owned(field, "Account", account_id)])
        return account

    def _check_category(self, conn: Connection, category_id: Optional[str], user_id: str) -> None:
        if category_id is None:
            return
        if self._categories.fetch_with(conn, category_id, user_id) is None:
            raise_if_issues(
                "check references",
                [_not_owned("category_id", "Category", category_id)],
            )

    def _adjust_balance(
        self,
        conn: Connection,
        account_id: str,
        user_id: str,
        delta: Decimal,
    ) -> bool:
        """Move an account's cached balance by ``delta``. Returns False if the account is gone."""
        accounts = tables.accounts
        result = conn.execute(
            update(accounts)
            .where((accounts.c.id == account_id) & (accounts.c.user_id == user_id))
            .values(
                balance=accounts.c.balance + to_minor_units(delta),
                updated_at=utc_now(),
                synced=False,
            )
        )
        return result.rowcount > 0

    def _insert(self, conn: Connection, transaction: Transaction) -> None:
        self._rows.insert_with(conn, transaction)
        self._adjust_balance(
            conn, transaction.account_id, transaction.user_id, transaction.signed_amount,
        )

    def _delete_legs(self, conn: Connection, transaction_id: str, user_id: str) -> list[str]:
        """
        Delete a transaction and its linked leg, reversing both balances.

        Returns the ids of the rows removed (empty if nothing matched).
        """
        first = self._rows.fetch_with(conn, transaction_id, user_id)
        if first is None:
            return []

        legs = [first]
        if first.linked_transaction_id:
            other = self._rows.fetch_with(conn, first.linked_transaction_id, user_id)
            if other is not None:
                legs.append(other)
            else:
                logger.warning(
                    "linked_leg_missing",
                    transaction_id=first.id,
                    linked_transaction_id=first.linked_transaction_id,
                )

        for leg in legs:
            self._rows.delete_with(conn, leg.id, user_id)
            if not self._adjust_balance(conn, leg.account_id, user_id, -leg.signed_amount):
                logger.warning(
                    "balance_reversal_skipped",
                    transaction_id=leg.id,
                    account_id=leg.account_id,
                )
        return [leg.id for leg in legs]

    # -------------------------------------------------------------------------
    # Recording
    # -------------------------------------------------------------------------

    async def record_simple(self, transaction: Transaction) -> Transaction:
        """
        Record an income or expense and move its account's balance.

        Raises:
            ValidationError: Bad amount, transfer-leg type, missing ids, or
                             an account/category the user does not own
            NotPersistedError: Storage failed; nothing was written
        """
        stored = transaction.model_copy(update={
            "amount": quantize(transaction.amount),
            "synced": False,
        })
        correlation_id = create_correlation_id()
        async with self._unit("record transaction", transaction.user_id, correlation_id) as conn:
            self._validator.check_simple(stored)
            self._require_account(conn, stored.account_id, stored.user_id)
            self._check_category(conn, stored.category_id, stored.user_id)
            self._insert(conn, stored)

        await self._audit.log(AuditEventBuilder.transaction_recorded(
            stored.id,
            stored.user_id,
            stored.type.value,
            stored.account_id,
            stored.amount,
            correlation_id,
        ))
        logger.info(
            "transaction_recorded",
            transaction_id=stored.id,
            type=stored.type.value,
            account_id=stored.account_id,
            correlation_id=str(correlation_id),
        )
        return stored

    async def record_transfer(
        self,
        user_id: str,
        from_account_id: str,
        to_account_id: str,
        amount: Decimal,
        date: Optional[dt.date] = None,
        title: Optional[str] = None,
        notes: Optional[str] = None,
        category_id: Optional[str] = None,
    ) -> TransferPair:
        """
        Move money between two of the user's accounts.

        Writes a debit leg on the source and a credit leg on the
        destination, each linked to the other, and adjusts both balances.
        All four writes commit together.

        Raises:
            ValidationError: Same account, non-positive amount, a field
                             out of range (such as an over-long title),
                             or an account the user does not own
            NotPersistedError: Storage failed; neither leg was written
        """
        amount = quantize(amount)
        date = date or dt.date.today()
        debit_id, credit_id = new_id(), new_id()
        correlation_id = create_correlation_id()

        async with self._unit("record transfer", user_id, correlation_id) as conn:
            self._validator.check_transfer(user_id, from_account_id, to_account_id, amount)
            debit = build(
                Transaction,
                "record transfer",
                id=debit_id,
                user_id=user_id,
                type=TransactionType.DEBIT,
                title=title,
                category_id=category_id,
                amount=amount,
                account_id=from_account_id,
                date=date,
                notes=notes,
                linked_transaction_id=credit_id,
            )
            credit = debit.model_copy(update={
                "id": credit_id,
                "type": TransactionType.CREDIT,
                "account_id": to_account_id,
                "linked_transaction_id": debit_id,
            })

            issues = []
            if self._accounts.fetch_with(conn, from_account_id, user_id) is None:
                issues.append(_not_owned("from_account_id", "Account", from_account_id))
            if self._accounts.fetch_with(conn, to_account_id, user_id) is None:
                issues.append(_not_owned("to_account_id", "Account", to_account_id))
            raise_if_issues("record transfer", issues)
            self._check_category(conn, category_id, user_id)

            self._insert(conn, debit)
            self._insert(conn, credit)

        await self._audit.log(AuditEventBuilder.transfer_recorded(
            debit_id, credit_id, user_id, from_account_id, to_account_id, amount, correlation_id,
        ))
        logger.info(
            "transfer_recorded",
            debit_id=debit_id,
            credit_id=credit_id,
            from_account_id=from_account_id,
            to_account_id=to_account_id,
            correlation_id=str(correlation_id),
        )
        return TransferPair(debit=debit, credit=credit)

    async def delete(self, transaction_id: str, user_id: str) -> bool:
        """
        Delete a transaction and reverse its effect on balances.

        Deleting either leg of a transfer deletes both legs.

        Returns:
            True if anything was deleted; False if the transaction did
            not exist (deleting twice is harmless)
        """
        correlation_id = create_correlation_id()
        async with self._unit("delete transaction", user_id, correlation_id) as conn:
            removed = self._delete_legs(conn, transaction_id, user_id)

        if not removed:
            return False
        await self._audit.log(AuditEventBuilder.transaction_deleted(removed, user_id, correlation_id))
        logger.info(
            "transaction_deleted",
            transaction_ids=removed,
            user_id=user_id,
            correlation_id=str(correlation_id),
        )
        return True

    async def open_account(
        self,
        account: Account,
        opening_balance: Decimal = Decimal("0"),
    ) -> Account:
        """
        Create an account, optionally with money already in it.

        A non-zero opening balance is recorded as an "Opening balance"
        income (or expense, when negative) in the same unit, so the new
        balance is backed by a transaction like any other.
        """
        opening_balance = quantize(opening_balance)
        transaction: Optional[Transaction] = None
        correlation_id = create_correlation_id()

        async with self._unit("open account", account.user_id, correlation_id) as conn:
            self._validator.check_new_account(account)
            if opening_balance != 0:
                transaction = build(
                    Transaction,
                    "open account",
                    user_id=account.user_id,
                    type=TransactionType.INCOME if opening_balance > 0 else TransactionType.EXPENSE,
                    title=OPENING_BALANCE_TITLE,
                    amount=abs(opening_balance),
                    account_id=account.id,
                )
            self._accounts.insert_with(conn, account)
            if transaction is not None:
                self._insert(conn, transaction)

        await self._audit.log(AuditEventBuilder.account_opened(
            account.id,
            account.user_id,
            opening_balance,
            transaction.id if transaction is not None else None,
            correlation_id,
        ))
        return account.model_copy(update={"balance": opening_balance})

    # -------------------------------------------------------------------------
    # Goals
    # -------------------------------------------------------------------------

    async def create_goal(
        self,
        goal: Goal,
        account_name: Optional[str] = None,
        icon: str = DEFAULT_GOAL_ICON,
    ) -> Goal:
        """
        Create a goal together with its dedicated account.

        The account takes ``goal.account_id`` when one is given, otherwise
        a fresh id. Returns the goal with ``account_id`` filled in.

        Raises:
            ValidationError: Bad goal fields, or an account name the
                             account model rejects (such as one too long)
        """
        correlation_id = create_correlation_id()

        async with self._unit("create goal", goal.user_id, correlation_id) as conn:
            account = build(
                Account,
                "create goal",
                id=goal.account_id or new_id(),
                user_id=goal.user_id,
                name=account_name or goal.title,
                icon=icon,
            )
            goal = goal.model_copy(update={"account_id": account.id})
            self._validator.check_goal(goal)
            self._accounts.insert_with(conn, account)
            self._goals.insert_with(conn, goal)

        await self._audit.log(AuditEventBuilder.goal_created(
            goal.id, goal.user_id, account.id, correlation_id,
        ))
        logger.info(
            "goal_created",
            goal_id=goal.id,
            account_id=account.id,
            correlation_id=str(correlation_id),
        )
        return goal

    async def contribute_to_goal(
        self,
        goal_id: str,
        user_id: str,
        from_account_id: str,
        amount: Decimal,
        date: Optional[dt.date] = None,
    ) -> TransferPair:
        """
        Move money into a goal's dedicated account.

        Raises:
            NotFoundError: If the goal does not exist for this user
        """
        goal = await self._goals.require(goal_id, user_id)
        return await self.record_transfer(
            user_id,
            from_account_id,
            goal.account_id,
            amount,
            date,
            title=f"Contribution to {goal.title}",
        )

    async def delete_goal(self, goal_id: str, user_id: str) -> bool:
        """
        Delete a goal, its dedicated account and every transaction on it.

        Transfers into the goal lose both legs, so the money reappears in
        the accounts it came from. Everything happens in one unit.

        Returns:
            False if the goal did not exist
        """
        transactions = tables.transactions
        correlation_id = create_correlation_id()
        async with self._unit("delete goal", user_id, correlation_id) as conn:
            goal = self._goals.fetch_with(conn, goal_id, user_id)
            if goal is None:
                return False

            leg_ids = conn.execute(
                select(transactions.c.id).where(
                    (transactions.c.user_id == user_id)
                    & (transactions.c.account_id == goal.account_id)
                )
            ).scalars().all()

            removed: list[str] = []
            for leg_id in leg_ids:
                if leg_id not in removed:
                    removed.extend(self._delete_legs(conn, leg_id, user_id))

            self._accounts.delete_with(conn, goal.account_id, user_id)
            self._goals.delete_with(conn, goal_id, user_id)

        await self._audit.log(AuditEventBuilder.goal_deleted(
            goal_id, user_id, goal.account_id, removed, correlation_id,
        ))
        logger.info(
            "goal_deleted",
            goal_id=goal_id,
            transactions_removed=len(removed),
            correlation_id=str(correlation_id),
        )
        return True

    # -------------------------------------------------------------------------
    # Categories
    # -------------------------------------------------------------------------

    async def reassign_category(
        self,
        user_id: str,
        from_category_id: str,
        to_category_id: Optional[str] = None,
    ) -> int:
        """
        Move every transaction off a category.

        With no ``to_category_id`` the transactions are left uncategorized
        (used after a category is deleted). Returns the number moved.
        """
        transactions = tables.transactions
        correlation_id = create_correlation_id()
        async with self._unit("reassign category", user_id, correlation_id) as conn:
            self._check_category(conn, to_category_id, user_id)
            result = conn.execute(
                update(transactions)
                .where(
                    (transactions.c.user_id == user_id)
                    & (transactions.c.category_id == from_category_id)
                )
                .values(category_id=to_category_id, synced=False)
            )
            count = result.rowcount

        await self._audit.log(AuditEventBuilder.category_reassigned(
            user_id, from_category_id, to_category_id, count, correlation_id,
        ))
        return count

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def _select_where(self, *conditions) -> list[Transaction]:
        transactions = tables.transactions
        try:
            with self._db.connect() as conn:
                rows = conn.execute(
                    select(transactions)
                    .where(and_(*conditions))
                    .order_by(*self._rows._order_by())
                ).mappings().all()
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to read transactions: {e}") from e
        return [self._rows.from_row(row) for row in rows]

    async def get(self, transaction_id: str, user_id: str) -> Transaction:
        """
        Raises:
            NotFoundError: If there is no such transaction for this user
        """
        return await self._rows.require(transaction_id, user_id)

    async def get_all(self, user_id: str) -> list[Transaction]:
        """All of a user's transactions, newest first."""
        return self._select_where(tables.transactions.c.user_id == user_id)

    async def get_by_account(self, account_id: str, user_id: str) -> list[Transaction]:
        transactions = tables.transactions
        return self._select_where(
            transactions.c.user_id == user_id,
            transactions.c.account_id == account_id,
        )

    async def get_by_category(self, category_id: str, user_id: str) -> list[Transaction]:
        transactions = tables.transactions
        return self._select_where(
            transactions.c.user_id == user_id,
            transactions.c.category_id == category_id,
        )

    async def get_category_totals(
        self,
        user_id: str,
        start_date: dt.date,
        end_date: dt.date,
    ) -> list[CategoryTotal]:
        """
        Signed total per category for ``start_date <= date < end_date``.

        Categories without transactions in the range are left out.
        Transactions whose category has been removed are grouped under
        the "Unknown" label; uncategorized ones under a None id.
        """
        transactions = tables.transactions
        categories = tables.categories
        joined = transactions.outerjoin(
            categories,
            (categories.c.id == transactions.c.category_id)
            & (categories.c.user_id == transactions.c.user_id),
        )
        stmt = (
            select(
                transactions.c.category_id,
                categories.c.name,
                func.sum(tables.signed_amount_expr()).label("total"),
                func.count().label("transaction_count"),
            )
            .select_from(joined)
            .where(
                (transactions.c.user_id == user_id)
                & (transactions.c.date >= start_date)
                & (transactions.c.date < end_date)
            )
            .group_by(transactions.c.category_id, categories.c.name)
            .order_by(categories.c.name, transactions.c.category_id)
        )
        try:
            with self._db.connect() as conn:
                rows = conn.execute(stmt).all()
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to total categories: {e}") from e

        return [
            CategoryTotal(
                category_id=row.category_id,
                category_name=row.name or self._settings.unknown_label,
                total=from_minor_units(row.total),
                transaction_count=row.transaction_count,
            )
            for row in rows
        ]

    async def list_detailed(self, user_id: str) -> list[TransactionDetail]:
        """
        Transactions with account and category names resolved.

        References to rows that no longer exist show as "Unknown".
        """
        transactions = tables.transactions
        accounts = tables.accounts
        categories = tables.categories
        joined = transactions.outerjoin(
            accounts,
            (accounts.c.id == transactions.c.account_id)
            & (accounts.c.user_id == transactions.c.user_id),
        ).outerjoin(
            categories,
            (categories.c.id == transactions.c.category_id)
            & (categories.c.user_id == transactions.c.user_id),
        )
        stmt = (
            select(
                transactions,
                accounts.c.name.label("account_name"),
                categories.c.name.label("category_name"),
            )
            .select_from(joined)
            .where(transactions.c.user_id == user_id)
            .order_by(transactions.c.date.desc(), transactions.c.id)
        )
        try:
            with self._db.connect() as conn:
                rows = conn.execute(stmt).mappings().all()
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to list transactions: {e}") from e

        unknown = self._settings.unknown_label
        details = []
        for row in rows:
            transaction = self._rows.from_row(
                {key: row[key] for key in transactions.c.keys()}
            )
            details.append(TransactionDetail(
                id=transaction.id,
                type=transaction.type,
                title=transaction.title,
                amount=transaction.amount,
                signed_amount=transaction.signed_amount,
                date=transaction.date,
                notes=transaction.notes,
                account_id=transaction.account_id,
                account_name=row["account_name"] or unknown,
                category_id=transaction.category_id,
                category_name=row["category_name"] or unknown,
                linked_transaction_id=transaction.linked_transaction_id,
            ))
        return details

    async def verify_balances(self, user_id: str) -> list[BalanceDrift]:
        """
        Recompute every account's balance from its transactions.

        Read-only. Returns the accounts whose cached balance disagrees;
        an empty list means the books are consistent.
        """
        transactions = tables.transactions
        accounts = tables.accounts
        sums = (
            select(
                transactions.c.account_id,
                func.sum(tables.signed_amount_expr()).label("computed"),
            )
            .where(transactions.c.user_id == user_id)
            .group_by(transactions.c.account_id)
            .subquery()
        )
        stmt = (
            select(
                accounts.c.id,
                accounts.c.balance,
                func.coalesce(sums.c.computed, 0).label("computed"),
            )
            .select_from(accounts.outerjoin(sums, sums.c.account_id == accounts.c.id))
            .where(accounts.c.user_id == user_id)
            .order_by(accounts.c.id)
        )
        try:
            with self._db.connect() as conn:
                rows = conn.execute(stmt).all()
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to verify balances: {e}") from e

        drift = [
            BalanceDrift(
                account_id=row.id,
                cached_balance=from_minor_units(row.balance),
                computed_balance=from_minor_units(row.computed),
            )
            for row in rows
            if row.balance != row.computed
        ]
        if drift:
            logger.warning(
                "balance_drift_detected",
                user_id=user_id,
                accounts=[d.account_id for d in drift],
            )
        return drift
