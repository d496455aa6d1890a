from budgetwatch.models.budget import Budget
from budgetwatch.models.transaction import RecurrenceInterval, Transaction, TransactionType
from budgetwatch.models.user import User

__all__ = [
    "Budget",
    "RecurrenceInterval",
    "Transaction",
    "TransactionType",
    "User",
]
