from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from threading import Lock
from typing import Iterable, Sequence

from cashflow import models
from cashflow.core.config import settings
from cashflow.services.occurrence_service import project_occurrences
from cashflow.services.storage import CashFlowRepository
from cashflow.utils.dates import month_bounds, month_key


logger = logging.getLogger(__name__)

ZERO = Decimal("0")


@dataclass(frozen=True)
class CashFlowTransaction:
    id: int | None
    description: str
    category: str
    type: models.TxnType
    amount: Decimal
    is_recurring: bool
    is_paid: bool
    due_date: date | None = None


@dataclass(frozen=True)
class CashFlowEntry:
    date: date
    transactions: list[CashFlowTransaction]
    total_income: Decimal
    total_expense: Decimal
    balance_before: Decimal
    balance_after: Decimal

    @property
    def day(self) -> int:
        return self.date.day


@dataclass(frozen=True)
class NegativeBalanceWarning:
    date: date
    balance: Decimal


@dataclass(frozen=True)
class CashFlowProjection:
    month: date
    starting_balance: Decimal
    entries: list[CashFlowEntry] = field(default_factory=list)

    @property
    def total_income(self) -> Decimal:
        return sum((entry.total_income for entry in self.entries), ZERO)

    @property
    def total_expense(self) -> Decimal:
        return sum((entry.total_expense for entry in self.entries), ZERO)

    @property
    def final_balance(self) -> Decimal:
        if not self.entries:
            return self.starting_balance
        return self.entries[-1].balance_after

    @property
    def negative_balance_warning(self) -> NegativeBalanceWarning | None:
        return find_negative_balance(self.entries)


# ---- Merge & dedup ---------------------------------------------------------

def merge_transactions(by_settlement: Iterable, by_due: Iterable) -> list:
    """Union of both selections; an id seen in both keeps the settlement copy."""
    merged = list(by_settlement)
    seen = {txn.id for txn in merged if txn.id is not None}
    for txn in by_due:
        if txn.id is not None and txn.id in seen:
            continue
        if txn.id is not None:
            seen.add(txn.id)
        merged.append(txn)
    return merged


def effective_date_key(txn, month_start: date, month_end: date) -> date | None:
    """Date under which ``txn`` is shown for the month, or ``None`` to drop it."""
    if txn.due_date is not None and month_start <= txn.due_date <= month_end:
        return txn.due_date
    if txn.occurred_at is not None and month_start <= txn.occurred_at <= month_end:
        return txn.occurred_at
    return None


def bucket_by_date(transactions: Iterable, month_start: date, month_end: date) -> dict[date, list]:
    buckets: dict[date, list] = {}
    for txn in transactions:
        key = effective_date_key(txn, month_start, month_end)
        if key is None:
            continue
        buckets.setdefault(key, []).append(txn)
    return buckets


# ---- Aggregation -----------------------------------------------------------

def _to_view(txn) -> CashFlowTransaction:
    return CashFlowTransaction(
        id=txn.id,
        description=txn.description,
        category=txn.category,
        type=models.TxnType(txn.type),
        amount=Decimal(txn.amount),
        is_recurring=txn.recurring_rule_id is not None,
        is_paid=bool(txn.is_paid),
        due_date=txn.due_date,
    )


def total_balance(accounts: Iterable) -> Decimal:
    return sum((Decimal(account.balance or 0) for account in accounts), ZERO)


def fold_running_balance(buckets: dict[date, list], starting_balance: Decimal) -> list[CashFlowEntry]:
    entries: list[CashFlowEntry] = []
    running = starting_balance
    # ISO ordering of the keys equals chronological ordering
    for day in sorted(buckets, key=lambda d: d.isoformat()):
        views = [_to_view(txn) for txn in buckets[day]]
        total_income = sum((v.amount for v in views if v.type == models.TxnType.INCOME), ZERO)
        total_expense = sum((v.amount for v in views if v.type == models.TxnType.EXPENSE), ZERO)
        balance_before = running
        running = running + total_income - total_expense
        entries.append(
            CashFlowEntry(
                date=day,
                transactions=views,
                total_income=total_income,
                total_expense=total_expense,
                balance_before=balance_before,
                balance_after=running,
            )
        )
    return entries


def compute_cash_flow(
    month: date,
    accounts: Sequence,
    rules: Sequence,
    by_settlement: Sequence,
    by_due: Sequence,
) -> CashFlowProjection:
    """Project the month's daily balances from the current account total.

    Stored transactions are merged and bucketed by effective date; recurring
    occurrences not yet generated are added as unpaid synthetic rows. Only
    days with activity produce an entry.
    """
    month_start, month_end = month_bounds(month)
    stored = merge_transactions(by_settlement, by_due)
    buckets = bucket_by_date(stored, month_start, month_end)
    for occurrence in project_occurrences(rules, stored, month_start, month_end):
        buckets.setdefault(occurrence.due_date, []).append(occurrence)

    starting_balance = total_balance(accounts)
    return CashFlowProjection(
        month=month_start,
        starting_balance=starting_balance,
        entries=fold_running_balance(buckets, starting_balance),
    )


def find_negative_balance(entries: Iterable[CashFlowEntry]) -> NegativeBalanceWarning | None:
    for entry in entries:
        if entry.balance_after < 0:
            return NegativeBalanceWarning(date=entry.date, balance=entry.balance_after)
    return None


# ---- Recompute policy -------------------------------------------------------

def calculation_key(user_id: int, month: date, rules: Iterable, accounts: Iterable) -> str:
    """Fingerprint of the inputs that trigger a recomputation when they change."""
    rules_part = ",".join(f"{r.id}-{r.day_of_month}-{Decimal(r.amount)}" for r in rules)
    accounts_part = ",".join(f"{a.id}-{Decimal(a.balance or 0)}" for a in accounts)
    return f"{user_id}:{month_key(month)}:{rules_part}:{accounts_part}"


class ProjectionCache:
    """Per-process cache of projections keyed by :func:`calculation_key`.

    Each computation takes a ticket from :meth:`begin`. When a newer request for
    the same owner has started meanwhile, :meth:`complete` drops the older
    result instead of storing it.
    """

    def __init__(self, max_size: int = 64) -> None:
        self.max_size = max_size
        self._entries: OrderedDict[str, CashFlowProjection] = OrderedDict()
        self._latest_ticket: dict[int, int] = {}
        self._counter = 0
        self._lock = Lock()

    def get(self, key: str) -> CashFlowProjection | None:
        with self._lock:
            projection = self._entries.get(key)
            if projection is not None:
                self._entries.move_to_end(key)
            return projection

    def begin(self, user_id: int) -> int:
        with self._lock:
            self._counter += 1
            self._latest_ticket[user_id] = self._counter
            return self._counter

    def complete(self, user_id: int, ticket: int, key: str, projection: CashFlowProjection) -> bool:
        with self._lock:
            if self._latest_ticket.get(user_id) != ticket:
                return False
            self._entries[key] = projection
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_size:
                self._entries.popitem(last=False)
            return True

    def invalidate(self, user_id: int) -> None:
        prefix = f"{user_id}:"
        with self._lock:
            for key in [k for k in self._entries if k.startswith(prefix)]:
                del self._entries[key]

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._latest_ticket.clear()


projection_cache = ProjectionCache(max_size=settings.PROJECTION_CACHE_SIZE)


class CashFlowProjector:
    """Recomputation entry point for a month's projected cash flow.

    Callers decide when to refresh; ``refresh=True`` bypasses the cache.
    Storage errors propagate and nothing is cached for the failed call.
    """

    def __init__(self, repository: CashFlowRepository, cache: ProjectionCache | None = None) -> None:
        self.repository = repository
        self.cache = cache if cache is not None else projection_cache

    def project(self, user_id: int, month: date, *, refresh: bool = False) -> CashFlowProjection:
        month_start, month_end = month_bounds(month)
        ticket = self.cache.begin(user_id)

        accounts = self.repository.list_accounts(user_id)
        rules = self.repository.list_active_recurring_rules(user_id)
        key = calculation_key(user_id, month_start, rules, accounts)
        if not refresh:
            cached = self.cache.get(key)
            if cached is not None:
                return cached

        by_settlement = self.repository.list_transactions(user_id, "settlement", month_start, month_end)
        by_due = self.repository.list_transactions(user_id, "due", month_start, month_end)
        projection = compute_cash_flow(month_start, accounts, rules, by_settlement, by_due)

        if not self.cache.complete(user_id, ticket, key, projection):
            logger.debug("discarding stale projection for user %s (%s)", user_id, month_key(month_start))
        return projection
