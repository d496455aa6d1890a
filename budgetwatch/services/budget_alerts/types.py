from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from uuid import UUID


class BudgetStatus(str, enum.Enum):
    WITHIN_LIMIT = "within_limit"
    NEAR_LIMIT = "near_limit"
    EXCEEDED = "exceeded"
    UNKNOWN = "unknown"  # evaluation failed for this budget

    @property
    def label(self) -> str:
        return self.value.replace("_", " ")


ALERTING_STATUSES = (BudgetStatus.NEAR_LIMIT, BudgetStatus.EXCEEDED)


def as_uuid(value: UUID | str) -> UUID:
    return value if isinstance(value, UUID) else UUID(str(value))


def to_decimal(value: Decimal | int | float | str) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


@dataclass(frozen=True)
class BudgetRecord:
    """Budget definition as read from the store, detached from any session."""

    id: UUID | str
    owner_id: UUID | str
    category: str | None
    limit: Decimal | None
    start_date: datetime | None
    end_date: datetime | None
    alert_threshold: float = 80.0


@dataclass(frozen=True)
class BudgetStatusResult:
    budget_id: UUID | str
    category: str | None
    limit: Decimal | None
    spent: Decimal | None
    percentage_used: Decimal | None
    status: BudgetStatus
    error: str | None = None


@dataclass(frozen=True)
class AlertRecord:
    budget_id: UUID | str
    category: str
    message: str
    delivered: bool = False


@dataclass
class EvaluationReport:
    statuses: list[BudgetStatusResult] = field(default_factory=list)
    alerts: list[AlertRecord] = field(default_factory=list)
    failed_deliveries: int = 0
