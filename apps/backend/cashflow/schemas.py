from __future__ import annotations

import math
from datetime import date, datetime
import datetime as dt
from typing import Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
    model_validator,
)

from .models import TxnType


def _normalize_category(v: str) -> str:
    normalized = v.strip().lower()
    if not normalized:
        raise ValueError("category must not be empty")
    return normalized


def _positive_amount(v: float | None) -> float | None:
    if v is None:
        return v
    if not math.isfinite(v):
        raise ValueError("amount must be finite")
    if v <= 0:
        raise ValueError("amount must be positive")
    return v


# Account Schemas
class AccountOut(BaseModel):
    id: int
    user_id: int
    name: str
    balance: float
    is_primary: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AccountListOut(BaseModel):
    accounts: list[AccountOut]
    total_balance: float


# Transaction Schemas
class TransactionCreate(BaseModel):
    type: TxnType
    description: str = Field(min_length=1, max_length=200)
    category: str = Field(min_length=1, max_length=50)
    amount: float
    occurred_at: date
    due_date: Optional[date] = None
    payment_method: Optional[str] = Field(default=None, max_length=30)
    account_id: Optional[int] = None
    is_paid: bool = True

    model_config = ConfigDict(extra="ignore")

    @field_validator("category")
    def category_lower(cls, v: str):
        return _normalize_category(v)

    @field_validator("amount")
    def amount_positive(cls, v: float):
        return _positive_amount(v)


class TransactionUpdate(BaseModel):
    type: Optional[TxnType] = None
    description: Optional[str] = Field(default=None, min_length=1, max_length=200)
    category: Optional[str] = Field(default=None, min_length=1, max_length=50)
    amount: Optional[float] = None
    occurred_at: Optional[date] = None
    due_date: Optional[date] = None
    payment_method: Optional[str] = Field(default=None, max_length=30)
    account_id: Optional[int] = None
    is_paid: Optional[bool] = None

    @field_validator("category")
    def category_lower(cls, v: str | None):
        if v is None:
            return v
        return _normalize_category(v)

    @field_validator("amount")
    def amount_positive(cls, v: float | None):
        return _positive_amount(v)


class TransactionOut(BaseModel):
    id: int
    user_id: int
    type: TxnType
    description: str
    category: str
    amount: float
    occurred_at: date
    due_date: Optional[date]
    payment_method: Optional[str]
    account_id: Optional[int]
    is_paid: bool
    recurring_rule_id: Optional[int]
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @computed_field(return_type=date)
    def effective_date(self) -> date:
        return self.due_date or self.occurred_at


class PayPendingResult(BaseModel):
    updated: int


# RecurringRule Schemas
class RecurringRuleCreate(BaseModel):
    type: TxnType
    description: str = Field(min_length=1, max_length=200)
    category: str = Field(min_length=1, max_length=50)
    amount: float
    day_of_month: int = Field(ge=1, le=31)
    account_id: Optional[int] = None
    start_date: date
    end_date: Optional[date] = None
    is_active: bool = True
    total_installments: Optional[int] = Field(default=None, ge=1)

    @field_validator("category")
    def category_lower(cls, v: str):
        return _normalize_category(v)

    @field_validator("amount")
    def amount_positive(cls, v: float):
        return _positive_amount(v)

    @model_validator(mode="after")
    def validate_window(self):
        if self.end_date is not None and self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class RecurringRuleUpdate(BaseModel):
    type: Optional[TxnType] = None
    description: Optional[str] = Field(default=None, min_length=1, max_length=200)
    category: Optional[str] = Field(default=None, min_length=1, max_length=50)
    amount: Optional[float] = None
    day_of_month: Optional[int] = Field(default=None, ge=1, le=31)
    account_id: Optional[int] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    is_active: Optional[bool] = None
    total_installments: Optional[int] = Field(default=None, ge=1)

    @field_validator("category")
    def category_lower(cls, v: str | None):
        if v is None:
            return v
        return _normalize_category(v)

    @field_validator("amount")
    def amount_positive(cls, v: float | None):
        return _positive_amount(v)


class RecurringRuleOut(BaseModel):
    id: int
    user_id: int
    type: TxnType
    description: str
    category: str
    amount: float
    day_of_month: int
    account_id: Optional[int]
    start_date: date
    end_date: Optional[date]
    is_active: bool
    total_installments: Optional[int]
    current_installment: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class RecurringGenerateOut(BaseModel):
    month: str
    created: list[TransactionOut]
    failed_rule_ids: list[int] = Field(default_factory=list)


# Cash flow Schemas
class CashFlowTransactionOut(BaseModel):
    id: Optional[int]
    description: str
    category: str
    type: TxnType
    amount: float
    is_recurring: bool
    is_paid: bool
    due_date: Optional[date] = None

    model_config = ConfigDict(from_attributes=True)


class CashFlowEntryOut(BaseModel):
    date: dt.date
    day: int
    transactions: list[CashFlowTransactionOut]
    total_income: float
    total_expense: float
    balance_before: float
    balance_after: float

    model_config = ConfigDict(from_attributes=True)


class NegativeBalanceWarningOut(BaseModel):
    date: dt.date
    balance: float

    model_config = ConfigDict(from_attributes=True)


class CashFlowOut(BaseModel):
    month: str
    starting_balance: float
    total_income: float
    total_expense: float
    final_balance: float
    negative_balance_warning: Optional[NegativeBalanceWarningOut] = None
    entries: list[CashFlowEntryOut]


# Calendar / dashboard / report Schemas
class FlowTotalsOut(BaseModel):
    income: float
    expense: float
    balance: float

    model_config = ConfigDict(from_attributes=True)


class CalendarDayOut(BaseModel):
    date: dt.date
    transactions: list[TransactionOut]
    income: float
    expense: float
    net: float


class CategoryTotalsOut(BaseModel):
    category: str
    income: float
    expense: float


class DashboardSummaryOut(BaseModel):
    month: str
    income: float
    expense: float
    balance: float
    categories: list[CategoryTotalsOut]


class MonthlyFlowItem(BaseModel):
    month: str
    income: float
    expense: float
    balance: float


class CategoryShareItem(BaseModel):
    category: str
    amount: float


class ReportsOverviewOut(BaseModel):
    start_month: str
    end_month: str
    monthly: list[MonthlyFlowItem]
    expenses_by_category: list[CategoryShareItem]
    current_month: FlowTotalsOut
    previous_month: FlowTotalsOut
