from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from budgetwatch.services.budget_alerts.types import AlertRecord, BudgetStatusResult, EvaluationReport


class BudgetCreate(BaseModel):
    category: str = Field(..., min_length=1, max_length=128)
    limit_amount: float = Field(..., gt=0)
    start_date: datetime
    end_date: datetime
    alert_threshold: Optional[float] = Field(None, gt=0, description="Percent of the limit; defaults to 80")


class BudgetUpdate(BaseModel):
    category: Optional[str] = Field(None, min_length=1, max_length=128)
    limit_amount: Optional[float] = Field(None, gt=0)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    alert_threshold: Optional[float] = Field(None, gt=0)


class BudgetRead(BaseModel):
    id: UUID
    category: str
    limit_amount: float
    start_date: datetime
    end_date: datetime
    alert_threshold: float
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class BudgetPage(BaseModel):
    items: list[BudgetRead]
    total: int
    page: int
    total_pages: int


# ----- Status evaluation -----
class BudgetStatusRow(BaseModel):
    budget_id: UUID | str
    category: str | None
    limit: float | None
    spent: float | None
    percentage_used: float | None
    status: str
    error: str | None = None

    @classmethod
    def from_result(cls, r: BudgetStatusResult) -> "BudgetStatusRow":
        return cls(
            budget_id=r.budget_id,
            category=r.category,
            limit=float(r.limit) if r.limit is not None else None,
            spent=float(r.spent) if r.spent is not None else None,
            percentage_used=float(r.percentage_used) if r.percentage_used is not None else None,
            status=r.status.value,
            error=r.error,
        )


class AlertRow(BaseModel):
    budget_id: UUID | str
    category: str
    message: str
    delivered: bool

    @classmethod
    def from_record(cls, a: AlertRecord) -> "AlertRow":
        return cls(budget_id=a.budget_id, category=a.category, message=a.message, delivered=a.delivered)


class BudgetStatusResponse(BaseModel):
    statuses: list[BudgetStatusRow]
    alerts: list[AlertRow]
    failed_deliveries: int = 0

    @classmethod
    def from_report(cls, report: EvaluationReport) -> "BudgetStatusResponse":
        return cls(
            statuses=[BudgetStatusRow.from_result(s) for s in report.statuses],
            alerts=[AlertRow.from_record(a) for a in report.alerts],
            failed_deliveries=report.failed_deliveries,
        )
