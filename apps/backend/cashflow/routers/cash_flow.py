from __future__ import annotations

import logging
from dataclasses import asdict
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from cashflow.core.config import settings
from cashflow.core.database import get_db
from cashflow.core.deps import get_current_user, get_month
from cashflow import models
from cashflow.schemas import CashFlowOut
from cashflow.services.cash_flow_service import CashFlowEntry, CashFlowProjector, NegativeBalanceWarning
from cashflow.services.occurrence_service import OccurrenceGenerator
from cashflow.services.storage import CashFlowRepository
from cashflow.utils.dates import month_key

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/cash-flow", tags=["cash-flow"])


def _entry_out(entry: CashFlowEntry) -> dict:
    return {
        "date": entry.date,
        "day": entry.day,
        "transactions": [asdict(txn) for txn in entry.transactions],
        "total_income": entry.total_income,
        "total_expense": entry.total_expense,
        "balance_before": entry.balance_before,
        "balance_after": entry.balance_after,
    }


def _warning_out(warning: NegativeBalanceWarning | None) -> dict | None:
    if warning is None:
        return None
    return {"date": warning.date, "balance": warning.balance}


@router.get("", response_model=CashFlowOut)
def get_cash_flow(
    month: date = Depends(get_month),
    refresh: bool = Query(False, description="Recompute even when the inputs look unchanged"),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    repository = CashFlowRepository(db)
    try:
        if settings.GENERATE_ON_VISIT:
            created = OccurrenceGenerator(db, repository).generate_occurrences_for_month(current_user.id, month)
            refresh = refresh or bool(created)
        projection = CashFlowProjector(repository).project(current_user.id, month, refresh=refresh)
    except SQLAlchemyError:
        logger.exception("cash flow computation failed for user %s in %s", current_user.id, month_key(month))
        raise HTTPException(status_code=503, detail="Cash flow inputs could not be loaded")

    return {
        "month": month_key(projection.month),
        "starting_balance": projection.starting_balance,
        "total_income": projection.total_income,
        "total_expense": projection.total_expense,
        "final_balance": projection.final_balance,
        "negative_balance_warning": _warning_out(projection.negative_balance_warning),
        "entries": [_entry_out(entry) for entry in projection.entries],
    }
