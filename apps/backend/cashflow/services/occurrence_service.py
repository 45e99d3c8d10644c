from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from threading import Lock
from typing import Iterable
from weakref import WeakValueDictionary

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from cashflow import models
from cashflow.services.recurring_evaluator import installment_label, occurrence_date
from cashflow.services.storage import CashFlowRepository
from cashflow.utils.dates import month_bounds, month_key


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProjectedOccurrence:
    """Transaction-shaped view of a recurring occurrence that is not stored yet."""

    user_id: int
    type: models.TxnType
    description: str
    category: str
    amount: Decimal
    occurred_at: date
    due_date: date
    account_id: int | None
    recurring_rule_id: int
    id: None = None
    is_paid: bool = False
    payment_method: None = None


def project_occurrences(
    rules: Iterable,
    transactions: Iterable,
    month_start: date,
    month_end: date,
) -> list[ProjectedOccurrence]:
    """Synthesize the month's occurrences that no stored transaction covers yet.

    A stored transaction covers an occurrence when it references the rule and
    its due date (or settlement date when it has none) equals the occurrence
    date. Nothing is written.
    """
    covered = {
        (txn.recurring_rule_id, txn.due_date or txn.occurred_at)
        for txn in transactions
        if txn.recurring_rule_id is not None
    }
    projected: list[ProjectedOccurrence] = []
    for rule in rules:
        occurs_on = occurrence_date(rule, month_start, month_end)
        if occurs_on is None:
            continue
        if (rule.id, occurs_on) in covered:
            continue
        projected.append(
            ProjectedOccurrence(
                user_id=rule.user_id,
                type=rule.type,
                description=rule.description,
                category=rule.category,
                amount=Decimal(rule.amount),
                occurred_at=occurs_on,
                due_date=occurs_on,
                account_id=rule.account_id,
                recurring_rule_id=rule.id,
            )
        )
    return projected


def build_generated_payload(rule, occurs_on: date) -> dict:
    """Column values for the concrete row materializing ``rule`` on ``occurs_on``."""
    label = installment_label(rule)
    description = f"{rule.description} {label}" if label else rule.description
    return {
        "user_id": rule.user_id,
        "type": rule.type,
        "description": description,
        "category": rule.category,
        "amount": Decimal(rule.amount),
        "occurred_at": occurs_on,
        "due_date": occurs_on,
        "account_id": rule.account_id,
        "recurring_rule_id": rule.id,
        "is_paid": False,
    }


# Entries vanish once no generation for that (owner, month) holds the lock
_GENERATION_LOCKS: WeakValueDictionary[tuple[int, str], Lock] = WeakValueDictionary()
_GENERATION_LOCKS_GUARD = Lock()


def _generation_lock(user_id: int, month: date) -> Lock:
    key = (user_id, month_key(month))
    with _GENERATION_LOCKS_GUARD:
        lock = _GENERATION_LOCKS.get(key)
        if lock is None:
            lock = Lock()
            _GENERATION_LOCKS[key] = lock
        return lock


class OccurrenceGenerator:
    """Persist a month's due recurring occurrences as unpaid transactions.

    Generation is idempotent per ``(rule, month)``: a rule that already has a
    generated row with its settlement or due date inside the month is skipped.
    Each rule's insert and installment bump commit together; a failing rule is
    rolled back and logged while the others stay committed.
    """

    def __init__(self, db: Session, repository: CashFlowRepository | None = None) -> None:
        self.db = db
        self.repository = repository or CashFlowRepository(db)
        self.failed_rule_ids: list[int] = []

    def generate_occurrences_for_month(self, user_id: int, month: date) -> list[models.Transaction]:
        month_start, month_end = month_bounds(month)
        self.failed_rule_ids = []
        with _generation_lock(user_id, month_start):
            rules = self.repository.list_active_recurring_rules(user_id)
            already_generated = self.repository.find_generated_rule_ids(user_id, month_start, month_end)

            pending: list[tuple[int, dict]] = []
            for rule in rules:
                if rule.id in already_generated:
                    continue
                occurs_on = occurrence_date(rule, month_start, month_end)
                if occurs_on is None:
                    continue
                pending.append((rule.id, build_generated_payload(rule, occurs_on)))

            created: list[models.Transaction] = []
            for rule_id, payload in pending:
                try:
                    rows = self.repository.insert_transactions([payload])
                    self.repository.increment_installment(rule_id)
                    self.db.commit()
                except SQLAlchemyError:
                    self.db.rollback()
                    self.failed_rule_ids.append(rule_id)
                    logger.exception("occurrence generation failed for rule %s in %s", rule_id, month_key(month_start))
                    continue
                created.extend(rows)

        for row in created:
            self.db.refresh(row)
        logger.info(
            "generated %d recurring occurrence(s) for user %s in %s",
            len(created),
            user_id,
            month_key(month_start),
        )
        return created
