from __future__ import annotations

import logging
import math
from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func, select
from sqlalchemy.orm import Session, sessionmaker

from budgetwatch.core.auth import SessionUser, get_current_user
from budgetwatch.core.config import settings
from budgetwatch.db.session import get_db, get_session_factory
from budgetwatch.models.budget import Budget
from budgetwatch.models.user import User
from budgetwatch.schemas.budget import BudgetCreate, BudgetPage, BudgetRead, BudgetStatusResponse, BudgetUpdate
from budgetwatch.services.budget_alerts import (
    AlertCoordinator,
    BudgetStoreError,
    Recipient,
    SqlBudgetStore,
    SqlTransactionLedger,
    build_notifier,
)
from budgetwatch.utils.dates import as_utc

router = APIRouter(prefix="/budgets", tags=["budgets"])
alerts_logger = logging.getLogger("budgetwatch.alerts")


def _normalize_category(raw: str) -> str:
    category = raw.strip().lower()
    if not category:
        raise HTTPException(status_code=400, detail="Category cannot be empty.")
    return category


def _check_window(start: datetime, end: datetime) -> None:
    if as_utc(end) <= as_utc(start):
        raise HTTPException(status_code=400, detail="End date must be later than the start date.")


def _get_owned_budget(db: Session, budget_id: UUID, owner_id: UUID) -> Budget:
    row = db.execute(select(Budget).where(Budget.id == budget_id, Budget.user_id == owner_id)).scalars().first()
    if not row:
        raise HTTPException(status_code=404, detail="Budget not found.")
    return row


def get_notifier():
    return build_notifier(settings)


def get_alert_coordinator(
    session_factory: sessionmaker = Depends(get_session_factory),
    notifier=Depends(get_notifier),
) -> AlertCoordinator:
    return AlertCoordinator(
        SqlBudgetStore(session_factory),
        SqlTransactionLedger(session_factory),
        notifier,
        concurrency=settings.evaluation_concurrency,
        ledger_timeout=settings.ledger_timeout_seconds,
        notify_timeout=settings.notify_timeout_seconds,
    )


@router.post("", response_model=BudgetRead, status_code=201)
def create_budget(
    payload: BudgetCreate,
    current: SessionUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> BudgetRead:
    _check_window(payload.start_date, payload.end_date)
    threshold = payload.alert_threshold if payload.alert_threshold is not None else settings.default_alert_threshold
    row = Budget(
        user_id=current.id,
        category=_normalize_category(payload.category),
        limit_amount=payload.limit_amount,
        start_date=as_utc(payload.start_date),
        end_date=as_utc(payload.end_date),
        alert_threshold=threshold,
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return BudgetRead.model_validate(row)


@router.get("", response_model=BudgetPage)
def list_budgets(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current: SessionUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> BudgetPage:
    total = int(db.execute(select(func.count(Budget.id)).where(Budget.user_id == current.id)).scalar() or 0)
    rows = (
        db.execute(
            select(Budget)
            .where(Budget.user_id == current.id)
            .order_by(Budget.start_date.desc(), Budget.created_at, Budget.id)
            .offset((page - 1) * limit)
            .limit(limit)
        )
        .scalars()
        .all()
    )
    return BudgetPage(
        items=[BudgetRead.model_validate(r) for r in rows],
        total=total,
        page=page,
        total_pages=math.ceil(total / limit),
    )


@router.get("/status", response_model=BudgetStatusResponse)
async def budget_status(
    current: SessionUser = Depends(get_current_user),
    db: Session = Depends(get_db),
    coordinator: AlertCoordinator = Depends(get_alert_coordinator),
) -> BudgetStatusResponse:
    user = db.get(User, current.id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    recipient = Recipient(email=user.email, name=user.name or user.username)
    try:
        report = await coordinator.evaluate_owner(user.id, recipient)
    except BudgetStoreError as e:
        alerts_logger.exception("budget_status_failed owner=%s", user.id)
        raise HTTPException(status_code=503, detail="Budgets are temporarily unavailable") from e
    return BudgetStatusResponse.from_report(report)


@router.get("/{budget_id}", response_model=BudgetRead)
def get_budget(
    budget_id: UUID,
    current: SessionUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> BudgetRead:
    return BudgetRead.model_validate(_get_owned_budget(db, budget_id, current.id))


@router.put("/{budget_id}", response_model=BudgetRead)
def update_budget(
    budget_id: UUID,
    payload: BudgetUpdate,
    current: SessionUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> BudgetRead:
    row = _get_owned_budget(db, budget_id, current.id)
    if payload.category is not None:
        row.category = _normalize_category(payload.category)
    if payload.limit_amount is not None:
        row.limit_amount = payload.limit_amount
    if payload.start_date is not None:
        row.start_date = as_utc(payload.start_date)
    if payload.end_date is not None:
        row.end_date = as_utc(payload.end_date)
    if payload.alert_threshold is not None:
        row.alert_threshold = payload.alert_threshold
    _check_window(row.start_date, row.end_date)
    db.commit()
    db.refresh(row)
    return BudgetRead.model_validate(row)


@router.delete("/{budget_id}", status_code=204)
def delete_budget(
    budget_id: UUID,
    current: SessionUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> None:
    row = _get_owned_budget(db, budget_id, current.id)
    db.delete(row)
    db.commit()
