from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from budgetwatch.models.budget import Budget
from budgetwatch.models.transaction import Transaction
from budgetwatch.services.budget_alerts.errors import BudgetStoreError, TransientQueryError
from budgetwatch.services.budget_alerts.types import BudgetRecord, as_uuid, to_decimal


def to_budget_record(row: Budget) -> BudgetRecord:
    return BudgetRecord(
        id=row.id,
        owner_id=row.user_id,
        category=row.category,
        limit=row.limit_amount,
        start_date=row.start_date,
        end_date=row.end_date,
        alert_threshold=row.alert_threshold if row.alert_threshold is not None else 80.0,
    )


class SqlBudgetStore:
    """Budget definitions, always scoped to one owner."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def list_by_owner(self, owner_id: UUID | str) -> list[BudgetRecord]:
        q = (
            select(Budget)
            .where(Budget.user_id == as_uuid(owner_id))
            .order_by(Budget.start_date.desc(), Budget.created_at, Budget.id)
        )
        try:
            with self.session_factory() as db:
                rows = db.execute(q).scalars().all()
                return [to_budget_record(r) for r in rows]
        except SQLAlchemyError as e:
            raise BudgetStoreError(f"Could not list budgets for owner {owner_id}") from e


class SqlTransactionLedger:
    """
    Aggregation over stored transactions.
    Each call opens its own session, so concurrent callers never share one.
    """

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def sum_by_scope(self, owner_id: UUID | str, category: str, start: datetime, end: datetime) -> Decimal:
        # Window ends are inclusive. Income and expense rows both count toward the total.
        q = select(func.coalesce(func.sum(Transaction.amount), 0)).where(
            Transaction.user_id == as_uuid(owner_id),
            Transaction.category == category.strip().lower(),
            Transaction.date >= start,
            Transaction.date <= end,
        )
        try:
            with self.session_factory() as db:
                total = db.execute(q).scalar()
        except SQLAlchemyError as e:
            raise TransientQueryError(f"Spend aggregation failed for category {category!r}") from e
        return to_decimal(total or 0)
