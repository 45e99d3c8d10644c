from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.orm import Session

from cashflow.core.database import get_db
from cashflow.core.deps import ensure_owned_account, get_current_user, get_month
from cashflow import models
from cashflow.schemas import (
    PayPendingResult,
    TransactionCreate,
    TransactionOut,
    TransactionUpdate,
)
from cashflow.services.cash_flow_service import projection_cache
from cashflow.services.report_service import ReportService
from cashflow.services.storage import CashFlowRepository
from cashflow.services.transaction_service import AccountBalanceService

router = APIRouter(prefix="/transactions", tags=["transactions"])


def _get_owned_transaction(db: Session, user_id: int, txn_id: int) -> models.Transaction:
    txn = (
        db.query(models.Transaction)
        .filter(models.Transaction.id == txn_id, models.Transaction.user_id == user_id)
        .first()
    )
    if not txn:
        raise HTTPException(status_code=404, detail="Transaction not found")
    return txn


@router.get("", response_model=list[TransactionOut])
def list_transactions(
    response: Response,
    month: date = Depends(get_month),
    type: models.TxnType | None = Query(None),
    category: str | None = Query(None),
    payment_method: str | None = Query(None),
    is_paid: bool | None = Query(None),
    search: str | None = Query(None),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    rows = ReportService(CashFlowRepository(db)).month_transactions(current_user.id, month)
    if type:
        rows = [t for t in rows if t.type == type]
    if category:
        wanted = category.strip().lower()
        rows = [t for t in rows if t.category == wanted]
    if payment_method:
        rows = [t for t in rows if t.payment_method == payment_method]
    if is_paid is not None:
        rows = [t for t in rows if t.is_paid == is_paid]
    if search:
        needle = search.strip().lower()
        rows = [
            t for t in rows
            if needle in t.description.lower() or needle in t.category
        ]
    response.headers["X-Total-Count"] = str(len(rows))
    return rows


@router.post("", response_model=TransactionOut, status_code=201)
def create_transaction(
    payload: TransactionCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    ensure_owned_account(db, current_user.id, payload.account_id)
    txn = models.Transaction(user_id=current_user.id, **payload.model_dump())
    db.add(txn)
    db.flush()
    AccountBalanceService(db).apply(txn)
    db.commit()
    db.refresh(txn)
    projection_cache.invalidate(current_user.id)
    return txn


@router.patch("/{txn_id}", response_model=TransactionOut)
def update_transaction(
    txn_id: int,
    payload: TransactionUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    txn = _get_owned_transaction(db, current_user.id, txn_id)
    changes = payload.model_dump(exclude_unset=True)
    if not changes:
        return txn
    for key in ("type", "description", "category", "amount", "occurred_at", "is_paid"):
        if key in changes and changes[key] is None:
            raise HTTPException(status_code=400, detail=f"{key} must not be null")
    ensure_owned_account(db, current_user.id, changes.get("account_id"))

    balances = AccountBalanceService(db)
    balances.revert(txn)
    for key, value in changes.items():
        setattr(txn, key, value)
    db.flush()
    balances.apply(txn)
    db.commit()
    db.refresh(txn)
    projection_cache.invalidate(current_user.id)
    return txn


@router.delete("/{txn_id}", status_code=204)
def delete_transaction(
    txn_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    txn = _get_owned_transaction(db, current_user.id, txn_id)
    AccountBalanceService(db).revert(txn)
    db.delete(txn)
    db.commit()
    projection_cache.invalidate(current_user.id)
    return None


@router.post("/{txn_id}/toggle-paid", response_model=TransactionOut)
def toggle_paid(
    txn_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    txn = _get_owned_transaction(db, current_user.id, txn_id)
    balances = AccountBalanceService(db)
    balances.revert(txn)
    txn.is_paid = not txn.is_paid
    balances.apply(txn)
    db.commit()
    db.refresh(txn)
    projection_cache.invalidate(current_user.id)
    return txn


@router.post("/pay-pending", response_model=PayPendingResult)
def pay_pending(
    month: date = Depends(get_month),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    rows = ReportService(CashFlowRepository(db)).month_transactions(current_user.id, month)
    pending = [t for t in rows if not t.is_paid]
    balances = AccountBalanceService(db)
    for txn in pending:
        txn.is_paid = True
        balances.apply(txn)
    db.commit()
    if pending:
        projection_cache.invalidate(current_user.id)
    return {"updated": len(pending)}
