from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Iterable

from cashflow import models
from cashflow.services.cash_flow_service import bucket_by_date, merge_transactions
from cashflow.services.storage import CashFlowRepository
from cashflow.utils.dates import month_bounds, month_key, shift_month


ZERO = Decimal("0")


@dataclass
class FlowTotals:
    income: Decimal = ZERO
    expense: Decimal = ZERO

    @property
    def balance(self) -> Decimal:
        return self.income - self.expense

    def add(self, txn) -> None:
        amount = Decimal(txn.amount)
        if txn.type == models.TxnType.INCOME:
            self.income += amount
        else:
            self.expense += amount


@dataclass
class MonthSummary:
    month: date
    totals: FlowTotals
    categories: dict[str, FlowTotals] = field(default_factory=dict)


@dataclass
class CalendarDay:
    date: date
    transactions: list
    totals: FlowTotals


def summarize(transactions: Iterable) -> tuple[FlowTotals, dict[str, FlowTotals]]:
    totals = FlowTotals()
    categories: dict[str, FlowTotals] = {}
    for txn in transactions:
        totals.add(txn)
        categories.setdefault(txn.category, FlowTotals()).add(txn)
    return totals, categories


def sort_by_effective_date(transactions: Iterable, *, descending: bool = True) -> list:
    return sorted(
        transactions,
        key=lambda t: ((t.due_date or t.occurred_at), t.id or 0),
        reverse=descending,
    )


class ReportService:
    """Month-scoped read models for dashboard, calendar and reports."""

    def __init__(self, repository: CashFlowRepository) -> None:
        self.repository = repository

    def month_transactions(self, user_id: int, month: date) -> list[models.Transaction]:
        """Transactions whose settlement or due date falls in the month, newest first."""
        start, end = month_bounds(month)
        merged = merge_transactions(
            self.repository.list_transactions(user_id, "settlement", start, end),
            self.repository.list_transactions(user_id, "due", start, end),
        )
        return sort_by_effective_date(merged)

    def dashboard_summary(self, user_id: int, month: date) -> MonthSummary:
        totals, categories = summarize(self.month_transactions(user_id, month))
        return MonthSummary(month=month.replace(day=1), totals=totals, categories=categories)

    def calendar(self, user_id: int, month: date) -> list[CalendarDay]:
        start, end = month_bounds(month)
        buckets = bucket_by_date(self.month_transactions(user_id, month), start, end)
        days: list[CalendarDay] = []
        for day in sorted(buckets):
            rows = sort_by_effective_date(buckets[day], descending=False)
            totals, _ = summarize(rows)
            days.append(CalendarDay(date=day, transactions=rows, totals=totals))
        return days

    def overview(self, user_id: int, *, today: date, months: int = 6) -> dict:
        """Settlement-dated history over the last ``months`` months ending at ``today``'s month."""
        current = today.replace(day=1)
        first = shift_month(current, -(months - 1))
        _, last_day = month_bounds(current)
        rows = self.repository.list_transactions(user_id, "settlement", first, last_day)

        monthly: dict[str, FlowTotals] = {
            month_key(shift_month(first, offset)): FlowTotals() for offset in range(months)
        }
        expenses_by_category: dict[str, Decimal] = {}
        for txn in rows:
            monthly[month_key(txn.occurred_at)].add(txn)
            if txn.type == models.TxnType.EXPENSE:
                expenses_by_category[txn.category] = expenses_by_category.get(txn.category, ZERO) + Decimal(txn.amount)

        previous = shift_month(current, -1)
        return {
            "monthly": monthly,
            "expenses_by_category": expenses_by_category,
            "current": monthly.get(month_key(current), FlowTotals()),
            "previous": monthly.get(month_key(previous), FlowTotals()),
        }
