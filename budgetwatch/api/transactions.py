from __future__ import annotations

import math
from datetime import datetime, timezone
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from budgetwatch.core.auth import SessionUser, get_current_user
from budgetwatch.db.session import get_db
from budgetwatch.models.transaction import RecurrenceInterval, Transaction, TransactionType
from budgetwatch.schemas.transaction import TransactionCreate, TransactionPage, TransactionRead, TransactionUpdate
from budgetwatch.utils.dates import as_utc

router = APIRouter(prefix="/transactions", tags=["transactions"])

TRANSACTION_TYPES = {t.value for t in TransactionType}
RECURRENCE_INTERVALS = {i.value for i in RecurrenceInterval}


def _normalize_type(raw: str) -> str:
    t = (raw or "").strip().lower()
    if t not in TRANSACTION_TYPES:
        raise HTTPException(status_code=400, detail="Invalid transaction type. Must be 'income' or 'expense'.")
    return t


def _normalize_category(raw: str) -> str:
    category = (raw or "").strip().lower()
    if not category:
        raise HTTPException(status_code=400, detail="Category cannot be empty.")
    return category


def _resolve_recurrence(is_recurring: bool, interval: str | None) -> str | None:
    """Interval is required iff the transaction recurs; it is dropped otherwise."""
    if not is_recurring:
        return None
    value = (interval or "").strip().lower()
    if not value:
        raise HTTPException(status_code=400, detail="Recurring transactions must have a recurrence_interval.")
    if value not in RECURRENCE_INTERVALS:
        raise HTTPException(
            status_code=400,
            detail="recurrence_interval must be one of daily, weekly, monthly, yearly.",
        )
    return value


def _get_owned_transaction(db: Session, transaction_id: UUID, owner_id: UUID) -> Transaction:
    row = (
        db.execute(select(Transaction).where(Transaction.id == transaction_id, Transaction.user_id == owner_id))
        .scalars()
        .first()
    )
    if not row:
        raise HTTPException(status_code=404, detail="Transaction not found.")
    return row


@router.post("", response_model=TransactionRead, status_code=201)
def create_transaction(
    payload: TransactionCreate,
    current: SessionUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> TransactionRead:
    row = Transaction(
        user_id=current.id,
        amount=payload.amount,
        type=_normalize_type(payload.type),
        category=_normalize_category(payload.category),
        description=payload.description,
        date=as_utc(payload.date) if payload.date else datetime.now(timezone.utc),
        is_recurring=payload.is_recurring,
        recurrence_interval=_resolve_recurrence(payload.is_recurring, payload.recurrence_interval),
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return TransactionRead.model_validate(row)


@router.get("", response_model=TransactionPage)
def list_transactions(
    type: str | None = None,
    category: str | None = None,
    min_amount: float | None = Query(None, ge=0),
    max_amount: float | None = Query(None, ge=0),
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    is_recurring: bool | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current: SessionUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> TransactionPage:
    filters = [Transaction.user_id == current.id]
    if type:
        filters.append(Transaction.type == type.strip().lower())
    if category:
        filters.append(Transaction.category == category.strip().lower())
    if min_amount is not None:
        filters.append(Transaction.amount >= min_amount)
    if max_amount is not None:
        filters.append(Transaction.amount <= max_amount)
    if start_date:
        filters.append(Transaction.date >= as_utc(start_date))
    if end_date:
        filters.append(Transaction.date <= as_utc(end_date))
    if is_recurring is not None:
        filters.append(Transaction.is_recurring == is_recurring)

    total = int(db.execute(select(func.count(Transaction.id)).where(*filters)).scalar() or 0)
    rows = (
        db.execute(
            select(Transaction)
            .where(*filters)
            .order_by(Transaction.date.desc(), Transaction.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        .scalars()
        .all()
    )
    return TransactionPage(
        items=[TransactionRead.model_validate(r) for r in rows],
        total=total,
        page=page,
        total_pages=math.ceil(total / limit),
    )


@router.get("/{transaction_id}", response_model=TransactionRead)
def get_transaction(
    transaction_id: UUID,
    current: SessionUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> TransactionRead:
    return TransactionRead.model_validate(_get_owned_transaction(db, transaction_id, current.id))


@router.put("/{transaction_id}", response_model=TransactionRead)
def update_transaction(
    transaction_id: UUID,
    payload: TransactionUpdate,
    current: SessionUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> TransactionRead:
    row = _get_owned_transaction(db, transaction_id, current.id)
    if payload.amount is not None:
        row.amount = payload.amount
    if payload.type is not None:
        row.type = _normalize_type(payload.type)
    if payload.category is not None:
        row.category = _normalize_category(payload.category)
    if payload.description is not None:
        row.description = payload.description
    if payload.date is not None:
        row.date = as_utc(payload.date)
    if payload.is_recurring is not None:
        row.is_recurring = payload.is_recurring
    interval = payload.recurrence_interval if payload.recurrence_interval is not None else row.recurrence_interval
    row.recurrence_interval = _resolve_recurrence(row.is_recurring, interval)
    db.commit()
    db.refresh(row)
    return TransactionRead.model_validate(row)


@router.delete("/{transaction_id}", status_code=204)
def delete_transaction(
    transaction_id: UUID,
    current: SessionUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> None:
    row = _get_owned_transaction(db, transaction_id, current.id)
    db.delete(row)
    db.commit()
