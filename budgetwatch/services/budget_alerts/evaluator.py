from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from budgetwatch.services.budget_alerts.errors import MalformedBudgetError
from budgetwatch.services.budget_alerts.types import BudgetRecord, BudgetStatus, BudgetStatusResult, to_decimal

TWO_PLACES = Decimal("0.01")
ZERO = Decimal("0")


def normalize_category(category: str) -> str:
    return category.strip().lower()


def percentage_used(spent: Decimal, limit: Decimal) -> Decimal:
    """
    Share of the limit already spent, in percent, rounded half-up to 2 places.
    A zero (or negative) limit has no meaningful ratio and reports 0.00.
    """
    if limit <= ZERO:
        return Decimal("0.00")
    return (spent / limit * 100).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def classify_status(spent: Decimal, limit: Decimal, alert_threshold: float) -> BudgetStatus:
    """
    Later rules override earlier ones: exceeded > near_limit > within_limit.
    The threshold comparison is numeric on the rounded percentage.
    """
    status = BudgetStatus.WITHIN_LIMIT
    if limit > ZERO and percentage_used(spent, limit) >= to_decimal(alert_threshold):
        status = BudgetStatus.NEAR_LIMIT
    if spent > limit:
        status = BudgetStatus.EXCEEDED
    return status


def check_budget(budget: BudgetRecord) -> None:
    missing = [
        name
        for name, value in (
            ("category", budget.category),
            ("limit", budget.limit),
            ("start_date", budget.start_date),
            ("end_date", budget.end_date),
        )
        if value is None or (name == "category" and not str(value).strip())
    ]
    if missing:
        raise MalformedBudgetError(f"budget {budget.id} is missing {', '.join(missing)}")


def build_status_result(budget: BudgetRecord, spent: Decimal | int | float) -> BudgetStatusResult:
    check_budget(budget)
    spent_amount = to_decimal(spent)
    limit = to_decimal(budget.limit)
    return BudgetStatusResult(
        budget_id=budget.id,
        category=normalize_category(budget.category),
        limit=limit,
        spent=spent_amount,
        percentage_used=percentage_used(spent_amount, limit),
        status=classify_status(spent_amount, limit, budget.alert_threshold),
    )


def degraded_result(budget: BudgetRecord, error: str) -> BudgetStatusResult:
    category = normalize_category(budget.category) if budget.category else budget.category
    limit = to_decimal(budget.limit) if budget.limit is not None else None
    return BudgetStatusResult(
        budget_id=budget.id,
        category=category,
        limit=limit,
        spent=None,
        percentage_used=None,
        status=BudgetStatus.UNKNOWN,
        error=error,
    )


class BudgetEvaluator:
    """Computes spend-to-date for a budget from the ledger and classifies it."""

    def __init__(self, ledger):
        self.ledger = ledger

    def spent_for(self, budget: BudgetRecord) -> Decimal:
        check_budget(budget)
        total = self.ledger.sum_by_scope(
            budget.owner_id,
            normalize_category(budget.category),
            budget.start_date,
            budget.end_date,
        )
        return to_decimal(total or 0)

    def evaluate(self, budget: BudgetRecord) -> BudgetStatusResult:
        return build_status_result(budget, self.spent_for(budget))
