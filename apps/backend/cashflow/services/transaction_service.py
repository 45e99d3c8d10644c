from __future__ import annotations

from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from cashflow import models


class AccountBalanceService:
    """Keep account balances in step with paid transactions.

    Only paid transactions linked to an account move money: income adds the
    amount, expense subtracts it. Unpaid rows (including generated recurring
    occurrences) leave balances untouched until they are marked paid.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    def apply(self, txn: models.Transaction) -> None:
        if not txn.is_paid:
            return
        self.apply_signed_delta(txn.account_id, txn.signed_amount)

    def revert(self, txn: models.Transaction) -> None:
        if not txn.is_paid:
            return
        self.apply_signed_delta(txn.account_id, -txn.signed_amount)

    def apply_signed_delta(self, account_id: Optional[int], delta: Decimal) -> None:
        if account_id is None:
            return
        signed = Decimal(delta or 0)
        if signed == 0:
            return
        account = (
            self.db.query(models.Account)
            .filter(models.Account.id == account_id)
            .first()
        )
        if not account:
            return
        account.balance = Decimal(account.balance or 0) + signed
