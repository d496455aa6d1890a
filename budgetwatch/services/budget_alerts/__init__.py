from budgetwatch.services.budget_alerts.coordinator import AlertCoordinator, Recipient
from budgetwatch.services.budget_alerts.errors import (
    BudgetAlertError,
    BudgetStoreError,
    MalformedBudgetError,
    NotifyError,
    TransientQueryError,
)
from budgetwatch.services.budget_alerts.evaluator import BudgetEvaluator
from budgetwatch.services.budget_alerts.notifier import build_notifier
from budgetwatch.services.budget_alerts.repository import SqlBudgetStore, SqlTransactionLedger
from budgetwatch.services.budget_alerts.types import (
    AlertRecord,
    BudgetRecord,
    BudgetStatus,
    BudgetStatusResult,
    EvaluationReport,
)

__all__ = [
    "AlertCoordinator",
    "AlertRecord",
    "BudgetAlertError",
    "BudgetEvaluator",
    "BudgetRecord",
    "BudgetStatus",
    "BudgetStatusResult",
    "BudgetStoreError",
    "EvaluationReport",
    "MalformedBudgetError",
    "NotifyError",
    "Recipient",
    "SqlBudgetStore",
    "SqlTransactionLedger",
    "TransientQueryError",
    "build_notifier",
]
