from __future__ import annotations

import unittest
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import budgetwatch.models  # noqa: F401 - register models with Base.metadata
from budgetwatch.db.base import Base
from budgetwatch.models.budget import Budget
from budgetwatch.models.transaction import Transaction
from budgetwatch.models.user import User
from budgetwatch.services.budget_alerts.errors import BudgetStoreError, TransientQueryError
from budgetwatch.services.budget_alerts.repository import SqlBudgetStore, SqlTransactionLedger

START = datetime(2026, 2, 1, tzinfo=timezone.utc)
END = datetime(2026, 2, 28, 23, 59, 59, tzinfo=timezone.utc)


class RepositoryTests(unittest.TestCase):
    def setUp(self):
        self.engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
        Base.metadata.create_all(self.engine)
        self.Session = sessionmaker(bind=self.engine, autocommit=False, autoflush=False)
        with self.Session() as db:
            self.alice = self._user(db, "alice")
            self.bob = self._user(db, "bob")
            db.commit()

    def tearDown(self):
        self.engine.dispose()

    def _user(self, db, username):
        u = User(username=username, email=f"{username}@example.com", password_hash="x", password_salt="y")
        db.add(u)
        db.flush()
        return u.id

    def _txn(self, owner, amount, category="food", when=START, type="expense"):
        with self.Session() as db:
            db.add(
                Transaction(
                    user_id=owner,
                    amount=Decimal(amount),
                    type=type,
                    category=category,
                    date=when,
                    is_recurring=False,
                )
            )
            db.commit()

    def test_sum_includes_both_window_ends(self):
        self._txn(self.alice, "100", when=START)
        self._txn(self.alice, "50", when=END)
        self._txn(self.alice, "999", when=START - timedelta(seconds=1))
        self._txn(self.alice, "999", when=END + timedelta(seconds=1))
        total = SqlTransactionLedger(self.Session).sum_by_scope(self.alice, "food", START, END)
        self.assertEqual(total, Decimal("150"))

    def test_sum_is_scoped_to_owner_and_category(self):
        self._txn(self.alice, "40")
        self._txn(self.bob, "1000")
        self._txn(self.alice, "7", category="rent")
        total = SqlTransactionLedger(self.Session).sum_by_scope(self.alice, " Food ", START, END)
        self.assertEqual(total, Decimal("40"))

    def test_sum_counts_income_and_expense(self):
        self._txn(self.alice, "30", type="expense")
        self._txn(self.alice, "20", type="income")
        total = SqlTransactionLedger(self.Session).sum_by_scope(str(self.alice), "food", START, END)
        self.assertEqual(total, Decimal("50"))

    def test_sum_without_rows_is_zero(self):
        self.assertEqual(SqlTransactionLedger(self.Session).sum_by_scope(self.alice, "food", START, END), Decimal("0"))

    def test_list_by_owner_newest_window_first(self):
        with self.Session() as db:
            for category, month in [("jan", 1), ("mar", 3), ("feb", 2)]:
                db.add(
                    Budget(
                        user_id=self.alice,
                        category=category,
                        limit_amount=Decimal("100"),
                        start_date=datetime(2026, month, 1, tzinfo=timezone.utc),
                        end_date=datetime(2026, month, 20, tzinfo=timezone.utc),
                        alert_threshold=80.0,
                    )
                )
            db.add(
                Budget(
                    user_id=self.bob,
                    category="bob",
                    limit_amount=Decimal("1"),
                    start_date=START,
                    end_date=END,
                    alert_threshold=80.0,
                )
            )
            db.commit()
        budgets = SqlBudgetStore(self.Session).list_by_owner(self.alice)
        self.assertEqual([b.category for b in budgets], ["mar", "feb", "jan"])
        self.assertTrue(all(b.owner_id == self.alice for b in budgets))
        self.assertEqual(budgets[0].limit, Decimal("100"))

    def test_storage_failures_are_wrapped(self):
        Base.metadata.drop_all(self.engine)
        with self.assertRaises(BudgetStoreError):
            SqlBudgetStore(self.Session).list_by_owner(self.alice)
        with self.assertRaises(TransientQueryError):
            SqlTransactionLedger(self.Session).sum_by_scope(self.alice, "food", START, END)


if __name__ == "__main__":
    unittest.main()
