from __future__ import annotations

from datetime import date
from typing import Iterable, Literal

from sqlalchemy import update
from sqlalchemy.orm import Session

from cashflow import models


DateField = Literal["settlement", "due"]


class CashFlowRepository:
    """Storage access used by the cash-flow core.

    Every query is scoped to a single owner. Writes only flush; committing is
    left to the caller so generation can commit each rule on its own.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    def list_transactions(
        self,
        user_id: int,
        date_field: DateField,
        start: date,
        end: date,
    ) -> list[models.Transaction]:
        if date_field == "settlement":
            column = models.Transaction.occurred_at
        elif date_field == "due":
            column = models.Transaction.due_date
        else:
            raise ValueError(f"unknown date field: {date_field!r}")
        return (
            self.db.query(models.Transaction)
            .filter(
                models.Transaction.user_id == user_id,
                column.is_not(None),
                column >= start,
                column <= end,
            )
            .order_by(column, models.Transaction.id)
            .all()
        )

    def list_active_recurring_rules(self, user_id: int) -> list[models.RecurringRule]:
        return (
            self.db.query(models.RecurringRule)
            .filter(
                models.RecurringRule.user_id == user_id,
                models.RecurringRule.is_active.is_(True),
            )
            .order_by(models.RecurringRule.day_of_month, models.RecurringRule.id)
            .all()
        )

    def list_accounts(self, user_id: int) -> list[models.Account]:
        return (
            self.db.query(models.Account)
            .filter(models.Account.user_id == user_id)
            .order_by(models.Account.is_primary.desc(), models.Account.id)
            .all()
        )

    def find_generated_rule_ids(self, user_id: int, start: date, end: date) -> set[int]:
        """Recurring rules that already have a generated row in ``[start, end]``.

        A row counts when either its settlement date or its due date falls in
        the window.
        """
        rows = (
            self.db.query(
                models.Transaction.recurring_rule_id,
                models.Transaction.occurred_at,
                models.Transaction.due_date,
            )
            .filter(
                models.Transaction.user_id == user_id,
                models.Transaction.recurring_rule_id.is_not(None),
                (
                    (models.Transaction.occurred_at >= start) & (models.Transaction.occurred_at <= end)
                )
                | (
                    (models.Transaction.due_date >= start) & (models.Transaction.due_date <= end)
                ),
            )
            .all()
        )
        return {row[0] for row in rows}

    def insert_transactions(self, rows: Iterable[dict]) -> list[models.Transaction]:
        created = [models.Transaction(**row) for row in rows]
        if not created:
            return []
        self.db.add_all(created)
        self.db.flush()
        return created

    def increment_installment(self, rule_id: int) -> None:
        self.db.execute(
            update(models.RecurringRule)
            .where(models.RecurringRule.id == rule_id)
            .values(current_installment=models.RecurringRule.current_installment + 1)
        )

    def set_primary_account(self, user_id: int, account_id: int) -> models.Account | None:
        """Mark one of the owner's accounts primary and clear the flag on the rest.

        Returns ``None`` (changing nothing) when the account is not the owner's.
        """
        account = (
            self.db.query(models.Account)
            .filter(models.Account.id == account_id, models.Account.user_id == user_id)
            .first()
        )
        if account is None:
            return None
        self.db.execute(
            update(models.Account)
            .where(models.Account.user_id == user_id, models.Account.id != account_id)
            .values(is_primary=False)
        )
        account.is_primary = True
        self.db.flush()
        return account
