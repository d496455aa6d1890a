from __future__ import annotations


class BudgetAlertError(Exception):
    """Base class for failures raised while evaluating budgets."""


class MalformedBudgetError(BudgetAlertError):
    """Budget row is missing a field evaluation needs (category, limit, window)."""


class TransientQueryError(BudgetAlertError):
    """Ledger aggregation failed on the storage side; retrying later may succeed."""


class NotifyError(BudgetAlertError):
    """Alert could not be handed to the delivery channel."""


class BudgetStoreError(BudgetAlertError):
    """Budgets could not be listed at all. Fatal for the whole evaluation."""
