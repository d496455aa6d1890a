from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class TransactionCreate(BaseModel):
    amount: float = Field(..., gt=0)
    type: str = Field(..., description="income | expense")
    category: str = Field(..., min_length=1, max_length=128)
    description: Optional[str] = None
    date: Optional[datetime] = Field(None, description="Defaults to now")
    is_recurring: bool = False
    recurrence_interval: Optional[str] = Field(None, description="daily | weekly | monthly | yearly")


class TransactionUpdate(BaseModel):
    amount: Optional[float] = Field(None, gt=0)
    type: Optional[str] = None
    category: Optional[str] = Field(None, min_length=1, max_length=128)
    description: Optional[str] = None
    date: Optional[datetime] = None
    is_recurring: Optional[bool] = None
    recurrence_interval: Optional[str] = None


class TransactionRead(BaseModel):
    id: UUID
    amount: float
    type: str
    category: str
    description: Optional[str] = None
    date: datetime
    is_recurring: bool
    recurrence_interval: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class TransactionPage(BaseModel):
    items: list[TransactionRead]
    total: int
    page: int
    total_pages: int
